# santa_room/models/draw.py
from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint
from datetime import datetime

from ..db import Base


class Exclusion(Base):
    """giver は receiver に贈れない（向きあり）"""

    __tablename__ = "exclusions"

    id = Column(String, primary_key=True)
    room_code = Column(String(8), ForeignKey("rooms.code"), nullable=False, index=True)
    giver_id = Column(String, ForeignKey("participants.id"), nullable=False)
    receiver_id = Column(String, ForeignKey("participants.id"), nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Assignment(Base):
    __tablename__ = "assignments"
    __table_args__ = (
        UniqueConstraint("room_code", "giver_id", name="uq_assignments_giver"),
        UniqueConstraint("room_code", "receiver_id", name="uq_assignments_receiver"),
    )

    id = Column(String, primary_key=True)
    room_code = Column(String(8), ForeignKey("rooms.code"), nullable=False, index=True)
    giver_id = Column(String, ForeignKey("participants.id"), nullable=False)
    receiver_id = Column(String, ForeignKey("participants.id"), nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
