# santa_room/services/registry.py
"""
参加者の枠（participants）と除外ペアの管理。

どの関数も commit しない。1 操作 = 1 トランザクションの境界は
SessionCoordinator 側で持つ。
"""
import logging
import secrets
import string
import uuid
from datetime import datetime

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.errors import (
    AlreadyClaimed,
    DuplicateName,
    ExclusionNotFound,
    InvalidExclusion,
    InvalidName,
    NotAuthorized,
    ParticipantNotFound,
    RoomCodeExhausted,
    RoomNotFound,
)
from ..core.state_machine import RoomPhase, require_phase
from ..models.room import Room, Participant
from ..models.draw import Exclusion

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.digits + string.ascii_uppercase  # base36
CODE_RETRIES = 20


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def name_key(name: str) -> str:
    return name.strip().casefold()


def new_room_code(length: int = 4) -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def get_room(db: Session, code: str, for_update: bool = False) -> Room:
    """
    for_update=True なら部屋の行をロックする（SELECT ... FOR UPDATE）。
    SQLite では BEGIN IMMEDIATE がその役なので FOR UPDATE は出ない。
    """
    room = db.get(Room, normalize_code(code), with_for_update=for_update or None)
    if room is None:
        raise RoomNotFound()
    return room


def get_participant(db: Session, participant_id: str) -> Participant:
    participant = db.get(Participant, participant_id)
    if participant is None:
        raise ParticipantNotFound()
    return participant


def find_claimant(db: Session, room_code: str, device_id: str | None) -> Participant | None:
    """この端末が部屋の中で名乗っている枠（なければ None）"""
    if not device_id:
        return None
    return db.scalars(
        select(Participant).where(
            Participant.room_code == normalize_code(room_code),
            Participant.device_id == device_id,
        )
    ).first()


# -----------------------------
# 部屋の作成
# -----------------------------

def create_room_with_admin(
    db: Session,
    admin_name: str,
    device_id: str,
    code_length: int = 4,
) -> tuple[Room, Participant]:
    """
    新しい部屋（LOBBY）と管理者の枠を作る。
    管理者の枠は作成した端末がそのまま名乗った状態で作る。
    """
    name = admin_name.strip()
    if not name:
        raise InvalidName()

    # 使用中のコードは引き直す。同時作成の衝突は主キー制約が弾くので、
    # savepoint の中で flush して、弾かれたらその分だけ巻き戻して引き直す
    for _ in range(CODE_RETRIES):
        code = new_room_code(code_length)
        if _code_in_use(db, code):
            logger.info("room code collision on %s, retrying", code)
            continue

        room = Room(code=code, phase=RoomPhase.LOBBY.value)
        admin = Participant(
            id=str(uuid.uuid4()),
            room_code=code,
            name=name,
            name_key=name_key(name),
            is_admin=True,
            device_id=device_id,
            claimed_at=datetime.utcnow(),
        )
        try:
            with db.begin_nested():
                db.add(room)
                db.add(admin)
                db.flush()
        except IntegrityError:
            logger.warning("room code %s taken concurrently, retrying", code)
            continue
        return room, admin

    raise RoomCodeExhausted()


def _code_in_use(db: Session, code: str) -> bool:
    return db.get(Room, code) is not None


# -----------------------------
# 参加者の枠
# -----------------------------

def _name_taken(db: Session, room_code: str, key: str) -> bool:
    return db.scalars(
        select(Participant.id).where(
            Participant.room_code == room_code,
            Participant.name_key == key,
        )
    ).first() is not None


def add_participant(db: Session, room_code: str, name: str) -> Participant:
    room = get_room(db, room_code, for_update=True)
    require_phase(room, RoomPhase.LOBBY)
    code = room.code

    name = name.strip()
    if not name:
        raise InvalidName()

    key = name_key(name)
    # 事前チェックは目安。最終的にはユニーク制約が判定する
    if _name_taken(db, code, key):
        raise DuplicateName()

    participant = Participant(
        id=str(uuid.uuid4()),
        room_code=code,
        name=name,
        name_key=key,
        is_admin=False,
        device_id=None,
    )
    db.add(participant)
    try:
        db.flush()
    except IntegrityError:
        # flush に失敗したセッションは rollback 待ち。ORM の属性は読まない
        logger.warning("duplicate name %r rejected by unique index in %s", name, code)
        raise DuplicateName()
    return participant


def claim(db: Session, participant_id: str, device_id: str) -> Participant:
    """
    compare-and-set で枠を名乗る。
    空き枠か、すでに自分の枠なら成功。他の端末の枠なら AlreadyClaimed。
    """
    target = get_participant(db, participant_id)
    holding = find_claimant(db, target.room_code, device_id)
    if holding is not None and holding.is_admin and holding.id != target.id:
        # 管理者の枠を持つ端末は、同じ部屋で別の枠を名乗れない
        raise NotAuthorized("The room admin cannot claim another name")

    now = datetime.utcnow()
    result = db.execute(
        update(Participant)
        .where(
            Participant.id == participant_id,
            or_(Participant.device_id.is_(None), Participant.device_id == device_id),
        )
        .values(device_id=device_id, claimed_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        get_participant(db, participant_id)  # 無ければ ParticipantNotFound
        logger.warning("claim lost for participant %s (device %s)", participant_id, device_id)
        raise AlreadyClaimed()

    participant = get_participant(db, participant_id)
    db.refresh(participant)

    # 同じ部屋で前に名乗っていた別の枠は手放す
    db.execute(
        update(Participant)
        .where(
            Participant.room_code == participant.room_code,
            Participant.device_id == device_id,
            Participant.id != participant_id,
        )
        .values(device_id=None, claimed_at=None)
        .execution_options(synchronize_session=False)
    )
    return participant


def release(db: Session, participant_id: str) -> Participant:
    participant = get_participant(db, participant_id)
    db.execute(
        update(Participant)
        .where(Participant.id == participant_id)
        .values(device_id=None, claimed_at=None)
        .execution_options(synchronize_session=False)
    )
    db.refresh(participant)
    return participant


def remove_participant(db: Session, participant_id: str) -> str:
    """枠を削除する。関係する除外ペアも消す。部屋コードを返す。"""
    participant = get_participant(db, participant_id)
    require_phase(get_room(db, participant.room_code, for_update=True), RoomPhase.LOBBY)
    if participant.is_admin:
        raise NotAuthorized("The room admin cannot be removed")

    room_code = participant.room_code
    db.execute(
        delete(Exclusion)
        .where(
            or_(
                Exclusion.giver_id == participant_id,
                Exclusion.receiver_id == participant_id,
            )
        )
        .execution_options(synchronize_session=False)
    )
    db.delete(participant)
    db.flush()
    return room_code


def resolve_session(db: Session, device_id: str | None) -> Participant | None:
    """端末が最後に名乗った枠（部屋をまたいで最新のもの）"""
    if not device_id:
        return None
    return db.scalars(
        select(Participant)
        .where(Participant.device_id == device_id)
        .order_by(Participant.claimed_at.desc(), Participant.created_at.desc())
        .limit(1)
    ).first()


# -----------------------------
# 除外ペア
# -----------------------------

def add_exclusion(db: Session, room_code: str, giver_id: str, receiver_id: str) -> Exclusion:
    room = get_room(db, room_code, for_update=True)
    require_phase(room, RoomPhase.LOBBY)

    if giver_id == receiver_id:
        raise InvalidExclusion("A participant cannot be excluded from themselves")
    for pid in (giver_id, receiver_id):
        p = db.get(Participant, pid)
        if p is None or p.room_code != room.code:
            raise ParticipantNotFound()

    existing = db.scalars(
        select(Exclusion).where(
            Exclusion.room_code == room.code,
            Exclusion.giver_id == giver_id,
            Exclusion.receiver_id == receiver_id,
        )
    ).first()
    if existing:
        return existing

    exclusion = Exclusion(
        id=str(uuid.uuid4()),
        room_code=room.code,
        giver_id=giver_id,
        receiver_id=receiver_id,
    )
    db.add(exclusion)
    db.flush()
    return exclusion


def remove_exclusion(db: Session, exclusion_id: str) -> str:
    exclusion = db.get(Exclusion, exclusion_id)
    if exclusion is None:
        raise ExclusionNotFound()
    room = get_room(db, exclusion.room_code, for_update=True)
    require_phase(room, RoomPhase.LOBBY)

    db.delete(exclusion)
    db.flush()
    return room.code
