# santa_room/api/errors.py
import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from ..core.errors import (
    AlreadyClaimed,
    CollaboratorUnavailable,
    ConstraintUnsatisfiable,
    DuplicateName,
    InsufficientParticipants,
    InvalidExclusion,
    InvalidName,
    NotAuthorized,
    NotFound,
    PhaseViolation,
    RoomCodeExhausted,
    SantaError,
)

logger = logging.getLogger(__name__)

STATUS_BY_ERROR = {
    NotFound: 404,
    NotAuthorized: 403,
    PhaseViolation: 409,
    DuplicateName: 409,
    AlreadyClaimed: 409,
    InsufficientParticipants: 422,
    ConstraintUnsatisfiable: 422,
    InvalidExclusion: 422,
    InvalidName: 422,
    CollaboratorUnavailable: 503,
    RoomCodeExhausted: 503,
}


def status_for(exc: SantaError) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[cls]
    return 400


async def santa_error_handler(request: Request, exc: SantaError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=status,
        content={"detail": exc.message, "error": type(exc).__name__},
    )
