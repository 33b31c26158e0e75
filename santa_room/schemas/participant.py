# santa_room/schemas/participant.py
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class ParticipantCreate(BaseModel):
    name: str = Field(min_length=1, max_length=40)


class ParticipantOut(BaseModel):
    id: str
    room_code: str
    name: str
    is_admin: bool
    claimed: bool  # 端末IDそのものは返さない

    model_config = ConfigDict(from_attributes=True)


class ReceiverOut(BaseModel):
    giver_id: str
    receiver: Optional[ParticipantOut] = None


class DeviceOut(BaseModel):
    device_id: str
