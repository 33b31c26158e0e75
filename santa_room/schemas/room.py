# santa_room/schemas/room.py
from pydantic import BaseModel, ConfigDict, Field
from typing import Literal, Optional

from .participant import ParticipantOut

PhaseLiteral = Literal["LOBBY", "REVEAL"]


class RoomCreate(BaseModel):
    admin_name: str = Field(min_length=1, max_length=40)


class RoomOut(BaseModel):
    code: str
    phase: PhaseLiteral

    model_config = ConfigDict(from_attributes=True)


class RoomCreatedOut(BaseModel):
    """POST /api/rooms のレスポンス（作った本人＝管理者の枠つき）"""
    room: RoomOut
    me: ParticipantOut


class DrawOut(BaseModel):
    code: str
    phase: PhaseLiteral
    assignment_count: int


class SessionOut(BaseModel):
    room: Optional[RoomOut] = None
    me: Optional[ParticipantOut] = None
