# santa_room/api/v1/exclusions.py

from typing import Optional

from fastapi import APIRouter, Depends

from ...api.deps import get_coordinator, get_device_id
from ...services.coordinator import SessionCoordinator

router = APIRouter(prefix="/exclusions", tags=["exclusions"])


@router.delete("/{exclusion_id}", status_code=204)
def remove_exclusion(
    exclusion_id: str,
    device_id: Optional[str] = Depends(get_device_id),
    coordinator: SessionCoordinator = Depends(get_coordinator),
):
    coordinator.remove_exclusion(exclusion_id, device_id)
    return
