# santa_room/schemas/exclusion.py
from pydantic import BaseModel, ConfigDict


class ExclusionCreate(BaseModel):
    giver_id: str
    receiver_id: str


class ExclusionOut(BaseModel):
    id: str
    room_code: str
    giver_id: str
    receiver_id: str

    model_config = ConfigDict(from_attributes=True)
