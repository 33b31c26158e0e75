# santa_room/api/deps.py

from typing import Optional

from fastapi import Header, HTTPException, Request

from ..services.coordinator import SessionCoordinator


def get_coordinator(request: Request) -> SessionCoordinator:
    """
    FastAPI の Depends で使う窓口の取得。
    main.py の起動時に app.state.coordinator に入れてある。
    """
    return request.app.state.coordinator


def get_device_id(x_device_id: Optional[str] = Header(default=None)) -> Optional[str]:
    """X-Device-Id ヘッダ（なければ None）"""
    if x_device_id is None:
        return None
    return x_device_id.strip() or None


def require_device_id(x_device_id: Optional[str] = Header(default=None)) -> str:
    device_id = get_device_id(x_device_id)
    if not device_id:
        raise HTTPException(status_code=400, detail="X-Device-Id header is required")
    return device_id
