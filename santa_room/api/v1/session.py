# santa_room/api/v1/session.py

from typing import Optional

from fastapi import APIRouter, Depends

from ...api.deps import get_coordinator, get_device_id
from ...device import new_device_id
from ...services.coordinator import SessionCoordinator
from ...schemas.participant import DeviceOut
from ...schemas.room import SessionOut

router = APIRouter(tags=["session"])


@router.post("/devices", response_model=DeviceOut, status_code=201)
def issue_device_id():
    """
    端末IDを自分で保存できないクライアント向けに新しい ID を発行する。
    サーバ側では何も保存しない。
    """
    return DeviceOut(device_id=new_device_id())


@router.get("/session", response_model=SessionOut)
def resolve_session(
    device_id: Optional[str] = Depends(get_device_id),
    coordinator: SessionCoordinator = Depends(get_coordinator),
):
    """再接続時の「自分は誰か」。この端末が最後に名乗った枠を返す"""
    found = coordinator.resolve_session(device_id)
    if found is None:
        return SessionOut()
    room, me = found
    return SessionOut(room=room, me=me)
