# santa_room/services/coordinator.py
"""
画面側（API / クライアント）から使う窓口。

- 1 操作 = 1 セッション = 1 トランザクション
- 失敗したら rollback するので、途中までの変更は残らない
- 成功したら部屋ごとに room_changed を流す（受け手は読み直す前提）
"""
import logging
import random
from contextlib import contextmanager
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from ..config import Settings
from ..core import derangement
from ..core.errors import (
    CollaboratorUnavailable,
    InsufficientParticipants,
    NotAuthorized,
    ParticipantNotFound,
    SantaError,
)
from ..core.state_machine import (
    RoomPhase,
    require_admin,
    require_phase,
    reveal,
    return_to_lobby,
)
from ..models.room import Participant
from ..models.draw import Assignment, Exclusion
from ..schemas.exclusion import ExclusionOut
from ..schemas.participant import ParticipantOut
from ..schemas.room import DrawOut, RoomOut
from . import registry
from .events import RoomEventHub

logger = logging.getLogger(__name__)


class SessionCoordinator:
    def __init__(
        self,
        session_factory: sessionmaker,
        events: Optional[RoomEventHub] = None,
        settings: Optional[Settings] = None,
        rng: Optional[random.Random] = None,
    ):
        self.session_factory = session_factory
        self.events = events or RoomEventHub()
        self.settings = settings or Settings()
        self.rng = rng or random.Random()

    # -----------------------------
    # セッション境界
    # -----------------------------

    @contextmanager
    def _unit_of_work(self, reason: str):
        """
        書き込み用。yield した set に部屋コードを入れておくと commit 後に通知する。
        """
        db: Session = self.session_factory()
        touched: set[str] = set()
        try:
            yield db, touched
            db.commit()
        except SantaError:
            db.rollback()
            raise
        except OperationalError as e:
            db.rollback()
            logger.error(f"storage failure during {reason}: {e}")
            raise CollaboratorUnavailable() from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        for code in touched:
            self.events.publish(code, reason)

    @contextmanager
    def _read(self):
        db: Session = self.session_factory()
        try:
            yield db
        except OperationalError as e:
            logger.error(f"storage failure during read: {e}")
            raise CollaboratorUnavailable() from e
        finally:
            db.close()

    def _admin_of(self, db: Session, room_code: str, device_id: Optional[str]) -> Participant:
        actor = registry.find_claimant(db, room_code, device_id)
        return require_admin(actor, room_code)

    # -----------------------------
    # 部屋
    # -----------------------------

    def create_room(self, admin_name: str, device_id: str) -> tuple[RoomOut, ParticipantOut]:
        with self._unit_of_work("room_created") as (db, touched):
            room, admin = registry.create_room_with_admin(
                db, admin_name, device_id, code_length=self.settings.room_code_length
            )
            touched.add(room.code)
            result = RoomOut.model_validate(room), ParticipantOut.model_validate(admin)
        logger.info(f"room {result[0].code} created by {result[1].name}")
        return result

    def join_room_check(self, code: str) -> RoomOut:
        """部屋があるかだけ確認する。枠は作らない。"""
        with self._read() as db:
            return RoomOut.model_validate(registry.get_room(db, code))

    def room_phase(self, code: str) -> RoomPhase:
        with self._read() as db:
            return RoomPhase(registry.get_room(db, code).phase)

    # -----------------------------
    # 参加者
    # -----------------------------

    def list_participants(self, code: str) -> list[ParticipantOut]:
        with self._read() as db:
            room = registry.get_room(db, code)
            rows = db.scalars(
                select(Participant)
                .where(Participant.room_code == room.code)
                .order_by(Participant.created_at)
            ).all()
            return [ParticipantOut.model_validate(p) for p in rows]

    def add_participant(self, code: str, name: str, device_id: Optional[str]) -> ParticipantOut:
        with self._unit_of_work("participant_added") as (db, touched):
            room = registry.get_room(db, code, for_update=True)
            self._admin_of(db, room.code, device_id)
            participant = registry.add_participant(db, room.code, name)
            touched.add(room.code)
            out = ParticipantOut.model_validate(participant)
        return out

    def claim(self, participant_id: str, device_id: str) -> ParticipantOut:
        with self._unit_of_work("participant_claimed") as (db, touched):
            participant = registry.claim(db, participant_id, device_id)
            touched.add(participant.room_code)
            out = ParticipantOut.model_validate(participant)
        logger.info(f"participant {out.id} claimed in room {out.room_code}")
        return out

    def release(self, participant_id: str) -> ParticipantOut:
        """誰からでも解放できる（「これは自分じゃない」用）"""
        with self._unit_of_work("participant_released") as (db, touched):
            participant = registry.release(db, participant_id)
            touched.add(participant.room_code)
            out = ParticipantOut.model_validate(participant)
        return out

    def remove_participant(self, participant_id: str, device_id: Optional[str]) -> None:
        with self._unit_of_work("participant_removed") as (db, touched):
            participant = registry.get_participant(db, participant_id)
            self._admin_of(db, participant.room_code, device_id)
            touched.add(registry.remove_participant(db, participant_id))

    def resolve_session(self, device_id: Optional[str]) -> Optional[tuple[RoomOut, ParticipantOut]]:
        with self._read() as db:
            me = registry.resolve_session(db, device_id)
            if me is None:
                return None
            return RoomOut.model_validate(me.room), ParticipantOut.model_validate(me)

    # -----------------------------
    # 除外ペア
    # -----------------------------

    def list_exclusions(self, code: str) -> list[ExclusionOut]:
        with self._read() as db:
            room = registry.get_room(db, code)
            rows = db.scalars(
                select(Exclusion)
                .where(Exclusion.room_code == room.code)
                .order_by(Exclusion.created_at)
            ).all()
            return [ExclusionOut.model_validate(e) for e in rows]

    def add_exclusion(
        self, code: str, giver_id: str, receiver_id: str, device_id: Optional[str]
    ) -> ExclusionOut:
        with self._unit_of_work("exclusion_added") as (db, touched):
            room = registry.get_room(db, code, for_update=True)
            self._admin_of(db, room.code, device_id)
            exclusion = registry.add_exclusion(db, room.code, giver_id, receiver_id)
            touched.add(room.code)
            out = ExclusionOut.model_validate(exclusion)
        return out

    def remove_exclusion(self, exclusion_id: str, device_id: Optional[str]) -> None:
        with self._unit_of_work("exclusion_removed") as (db, touched):
            exclusion = db.get(Exclusion, exclusion_id)
            if exclusion is not None:
                self._admin_of(db, exclusion.room_code, device_id)
            touched.add(registry.remove_exclusion(db, exclusion_id))

    # -----------------------------
    # 抽選・リセット
    # -----------------------------

    def start_draw(self, code: str, device_id: Optional[str]) -> DrawOut:
        with self._unit_of_work("draw") as (db, touched):
            room = registry.get_room(db, code, for_update=True)
            self._admin_of(db, room.code, device_id)
            require_phase(room, RoomPhase.LOBBY)

            ids = db.scalars(
                select(Participant.id)
                .where(Participant.room_code == room.code)
                .order_by(Participant.created_at)
            ).all()
            minimum = max(2, self.settings.min_participants)
            if len(ids) < minimum:
                raise InsufficientParticipants(f"At least {minimum} participants are needed to draw")

            edges = db.execute(
                select(Exclusion.giver_id, Exclusion.receiver_id)
                .where(Exclusion.room_code == room.code)
            ).all()

            # ConstraintUnsatisfiable はそのまま上に投げる（何も書いていない）
            pairs = derangement.generate(
                ids,
                [tuple(e) for e in edges],
                attempts=self.settings.max_draw_attempts,
                rng=self.rng,
            )
            batch = reveal(db, room.code, pairs)
            touched.add(room.code)
            out = DrawOut(code=room.code, phase=RoomPhase.REVEAL.value, assignment_count=len(batch))
        logger.info(f"room {out.code} drawn with {out.assignment_count} assignments")
        return out

    def reset(self, code: str, device_id: Optional[str]) -> DrawOut:
        with self._unit_of_work("reset") as (db, touched):
            room = registry.get_room(db, code, for_update=True)
            self._admin_of(db, room.code, device_id)
            require_phase(room, RoomPhase.REVEAL)
            removed = return_to_lobby(db, room.code)
            touched.add(room.code)
            out = DrawOut(code=room.code, phase=RoomPhase.LOBBY.value, assignment_count=0)
        logger.info(f"room {out.code} reset, {removed} assignments removed")
        return out

    def my_receiver(
        self, code: str, my_id: str, device_id: Optional[str] = None
    ) -> Optional[ParticipantOut]:
        """
        自分が贈る相手。まだ抽選前（または反映前）なら None。
        device_id を渡した場合は、その端末が枠の持ち主であることを確認する。
        """
        with self._read() as db:
            room = registry.get_room(db, code)
            me = db.get(Participant, my_id)
            if me is None or me.room_code != room.code:
                raise ParticipantNotFound()
            if device_id is not None and me.device_id != device_id:
                raise NotAuthorized("You can only see your own match")

            receiver = db.scalars(
                select(Participant)
                .join(Assignment, Assignment.receiver_id == Participant.id)
                .where(
                    Assignment.room_code == room.code,
                    Assignment.giver_id == my_id,
                )
            ).first()
            if receiver is None:
                return None
            return ParticipantOut.model_validate(receiver)
