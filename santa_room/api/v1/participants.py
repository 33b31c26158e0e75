# santa_room/api/v1/participants.py

from typing import Optional

from fastapi import APIRouter, Depends

from ...api.deps import get_coordinator, get_device_id, require_device_id
from ...services.coordinator import SessionCoordinator
from ...schemas.participant import ParticipantOut

router = APIRouter(prefix="/participants", tags=["participants"])


@router.post("/{participant_id}/claim", response_model=ParticipantOut)
def claim_participant(
    participant_id: str,
    device_id: str = Depends(require_device_id),
    coordinator: SessionCoordinator = Depends(get_coordinator),
):
    """この端末で枠を名乗る。他の端末が名乗り済みなら 409"""
    return coordinator.claim(participant_id, device_id)


@router.post("/{participant_id}/release", response_model=ParticipantOut)
def release_participant(
    participant_id: str,
    coordinator: SessionCoordinator = Depends(get_coordinator),
):
    """「これは自分じゃない」：枠を空きに戻す"""
    return coordinator.release(participant_id)


@router.delete("/{participant_id}", status_code=204)
def remove_participant(
    participant_id: str,
    device_id: Optional[str] = Depends(get_device_id),
    coordinator: SessionCoordinator = Depends(get_coordinator),
):
    coordinator.remove_participant(participant_id, device_id)
    return
