# santa_room/api/v1/__init__.py

from fastapi import APIRouter

from . import rooms, participants, exclusions, session

api_router = APIRouter()

# それぞれの router 側で prefix を持っている前提にする
api_router.include_router(rooms.router)         # prefix="/rooms"
api_router.include_router(participants.router)  # prefix="/participants"
api_router.include_router(exclusions.router)    # prefix="/exclusions"
api_router.include_router(session.router)       # /session, /devices
