# santa_room/models/room.py
from sqlalchemy import (
    Column,
    String,
    DateTime,
    ForeignKey,
    Boolean,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime

from ..db import Base


class Room(Base):
    __tablename__ = "rooms"

    code = Column(String(8), primary_key=True)  # 大文字の英数字
    phase = Column(String, nullable=False, default="LOBBY")  # 'LOBBY' or 'REVEAL'

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    participants = relationship(
        "Participant",
        back_populates="room",
        cascade="all, delete-orphan",
        order_by="Participant.created_at",
    )
    exclusions = relationship("Exclusion", cascade="all, delete-orphan")
    assignments = relationship("Assignment", cascade="all, delete-orphan")


class Participant(Base):
    __tablename__ = "participants"
    __table_args__ = (
        # 同じ部屋で大文字小文字違いの同名を作らせない
        UniqueConstraint("room_code", "name_key", name="uq_participants_room_name"),
    )

    id = Column(String, primary_key=True)
    room_code = Column(String(8), ForeignKey("rooms.code"), nullable=False, index=True)
    name = Column(String, nullable=False)
    name_key = Column(String, nullable=False)
    is_admin = Column(Boolean, default=False, nullable=False)

    # NULL = 誰も名乗っていない枠
    device_id = Column(String, nullable=True, index=True)
    claimed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    room = relationship("Room", back_populates="participants")

    @property
    def claimed(self) -> bool:
        return self.device_id is not None
