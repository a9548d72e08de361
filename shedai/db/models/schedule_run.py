"""Schedule generation runs and notification log rows."""
from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import UUID

from shedai.db.base import Base
from shedai.db.types import JSONBCompat


class ScheduleRun(Base):
    __tablename__ = "schedule_runs"
    __table_args__ = (Index("ix_schedule_runs_user_id_created_at", "user_id", "created_at"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    run_type = Column(String(50), nullable=False, default="schedule")
    anchor_date = Column(Date, nullable=True)
    horizon_days = Column(Integer, nullable=True)
    proposer_status = Column(String(20), nullable=True)
    schedule = Column(JSONBCompat, nullable=False, default=list)
    report = Column(JSONBCompat, nullable=False, default=dict)
    reason = Column(Text, nullable=True)
    request_id = Column(String(64), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
    )
