# santa_room/core/state_machine.py
import enum
import uuid
from datetime import datetime
from typing import Iterable

from sqlalchemy import delete, update
from sqlalchemy.orm import Session

from ..models.room import Room, Participant
from ..models.draw import Assignment
from .derangement import Pair
from .errors import NotAuthorized, PhaseViolation


class RoomPhase(str, enum.Enum):
    LOBBY = "LOBBY"
    REVEAL = "REVEAL"


# (現在のフェーズ, イベント) -> 次のフェーズ。これ以外の遷移はない
TRANSITIONS = {
    (RoomPhase.LOBBY, "draw"): RoomPhase.REVEAL,
    (RoomPhase.REVEAL, "reset"): RoomPhase.LOBBY,
}


def next_phase(current: RoomPhase, event: str) -> RoomPhase:
    try:
        return TRANSITIONS[(RoomPhase(current), event)]
    except KeyError:
        raise PhaseViolation(f"Cannot {event} while room is in {RoomPhase(current).value}")


def require_phase(room: Room, *allowed: RoomPhase) -> None:
    if RoomPhase(room.phase) not in allowed:
        if RoomPhase(room.phase) is RoomPhase.REVEAL:
            raise PhaseViolation("The draw has already happened. Reset the room first")
        raise PhaseViolation("The draw has not happened yet")


def require_admin(actor: Participant | None, room_code: str) -> Participant:
    if actor is None or actor.room_code != room_code or not actor.is_admin:
        raise NotAuthorized()
    return actor


def _transition(db: Session, room_code: str, event: str) -> RoomPhase:
    """
    フェーズを条件付き UPDATE で切り替える。
    読んだ時点から他の端末が遷移させていれば 0 行になり PhaseViolation。
    """
    room = db.get(Room, room_code)
    current = RoomPhase(room.phase)
    target = next_phase(current, event)

    result = db.execute(
        update(Room)
        .where(Room.code == room_code, Room.phase == current.value)
        .values(phase=target.value, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise PhaseViolation("The room changed meanwhile. Refresh and try again")
    return target


def reveal(db: Session, room_code: str, pairs: Iterable[Pair]) -> list[Assignment]:
    """
    LOBBY -> REVEAL。割り当ての一括 INSERT とフェーズ更新は同じトランザクション。
    commit は呼び出し側で行う。
    """
    _transition(db, room_code, "draw")

    batch = [
        Assignment(
            id=str(uuid.uuid4()),
            room_code=room_code,
            giver_id=p.giver,
            receiver_id=p.receiver,
        )
        for p in pairs
    ]
    db.add_all(batch)
    db.flush()
    return batch


def return_to_lobby(db: Session, room_code: str) -> int:
    """REVEAL -> LOBBY。その部屋の割り当てを全部消す。消した件数を返す。"""
    _transition(db, room_code, "reset")

    result = db.execute(
        delete(Assignment)
        .where(Assignment.room_code == room_code)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount
