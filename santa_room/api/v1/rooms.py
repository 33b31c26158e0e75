# santa_room/api/v1/rooms.py

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from ...api.deps import get_coordinator, get_device_id, require_device_id
from ...core.errors import RoomNotFound, SantaError
from ...services.coordinator import SessionCoordinator
from ...services.registry import normalize_code
from ...schemas.room import DrawOut, RoomCreate, RoomCreatedOut, RoomOut
from ...schemas.participant import ParticipantCreate, ParticipantOut, ReceiverOut
from ...schemas.exclusion import ExclusionCreate, ExclusionOut

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/rooms",
    tags=["rooms"],
)


# -----------------------------
# 部屋の作成・確認
# -----------------------------

@router.post("", response_model=RoomCreatedOut, status_code=201)
def create_room(
    data: RoomCreate,
    device_id: str = Depends(require_device_id),
    coordinator: SessionCoordinator = Depends(get_coordinator),
):
    room, me = coordinator.create_room(data.admin_name, device_id)
    return RoomCreatedOut(room=room, me=me)


@router.get("/{code}", response_model=RoomOut)
def get_room(
    code: str,
    coordinator: SessionCoordinator = Depends(get_coordinator),
):
    """参加前の部屋コード確認（joinRoomCheck）とフェーズ取得を兼ねる"""
    return coordinator.join_room_check(code)


# -----------------------------
# 参加者の枠
# -----------------------------

@router.get("/{code}/participants", response_model=list[ParticipantOut])
def list_participants(
    code: str,
    coordinator: SessionCoordinator = Depends(get_coordinator),
):
    return coordinator.list_participants(code)


@router.post("/{code}/participants", response_model=ParticipantOut, status_code=201)
def add_participant(
    code: str,
    data: ParticipantCreate,
    device_id: Optional[str] = Depends(get_device_id),
    coordinator: SessionCoordinator = Depends(get_coordinator),
):
    return coordinator.add_participant(code, data.name, device_id)


@router.get("/{code}/participants/{participant_id}/receiver", response_model=ReceiverOut)
def get_my_receiver(
    code: str,
    participant_id: str,
    device_id: str = Depends(require_device_id),
    coordinator: SessionCoordinator = Depends(get_coordinator),
):
    """
    自分の贈り相手。抽選前は receiver=null。
    枠を名乗っている端末からしか見られない。
    """
    receiver = coordinator.my_receiver(code, participant_id, device_id)
    return ReceiverOut(giver_id=participant_id, receiver=receiver)


# -----------------------------
# 除外ペア
# -----------------------------

@router.get("/{code}/exclusions", response_model=list[ExclusionOut])
def list_exclusions(
    code: str,
    coordinator: SessionCoordinator = Depends(get_coordinator),
):
    return coordinator.list_exclusions(code)


@router.post("/{code}/exclusions", response_model=ExclusionOut, status_code=201)
def add_exclusion(
    code: str,
    data: ExclusionCreate,
    device_id: Optional[str] = Depends(get_device_id),
    coordinator: SessionCoordinator = Depends(get_coordinator),
):
    return coordinator.add_exclusion(code, data.giver_id, data.receiver_id, device_id)


# -----------------------------
# 抽選・リセット
# -----------------------------

@router.post("/{code}/draw", response_model=DrawOut)
def start_draw(
    code: str,
    device_id: Optional[str] = Depends(get_device_id),
    coordinator: SessionCoordinator = Depends(get_coordinator),
):
    return coordinator.start_draw(code, device_id)


@router.post("/{code}/reset", response_model=DrawOut)
def reset_room(
    code: str,
    device_id: Optional[str] = Depends(get_device_id),
    coordinator: SessionCoordinator = Depends(get_coordinator),
):
    return coordinator.reset(code, device_id)


# -----------------------------
# 変更通知（websocket）
# -----------------------------

@router.websocket("/{code}/events")
async def room_events(websocket: WebSocket, code: str):
    """
    部屋に変更があるたびに {"type": "room_changed", ...} を送る。
    中身は目安なので、クライアントは受け取ったら読み直すこと。
    """
    coordinator: SessionCoordinator = websocket.app.state.coordinator
    code = normalize_code(code)
    try:
        await asyncio.to_thread(coordinator.join_room_check, code)
    except RoomNotFound:
        await websocket.close(code=4404)
        return
    except SantaError as e:
        logger.error(f"events for room {code} unavailable: {e.message}")
        await websocket.close(code=1011)
        return

    await websocket.accept()
    queue, unsubscribe = coordinator.events.queue_for(code, asyncio.get_running_loop())

    async def pump():
        while True:
            event = await queue.get()
            await websocket.send_json(event)

    await websocket.send_json({"type": "subscribed", "code": code})
    sender = asyncio.create_task(pump())
    try:
        # クライアントからの受信は読み捨て（切断の検知用）
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        sender.cancel()
        unsubscribe()
        # 送信タスクの例外はここで回収する
        for result in await asyncio.gather(sender, return_exceptions=True):
            if isinstance(result, Exception):
                logger.warning(f"events for room {code} stopped: {result!r}")
