"""ORM models for persistence."""
from __future__ import annotations

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime, Float

from .db import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SessionSummary(Base):
    __tablename__ = "session_summary"

    id = Column(Integer, primary_key=True, autoincrement=True)
    exercise_type = Column(String, nullable=False, index=True)
    file_path = Column(String, nullable=False)
    created_at_utc = Column(DateTime, default=_utcnow, index=True)
    avg_asymmetry = Column(Float, nullable=True)
    max_asymmetry = Column(Float, nullable=True)
    avg_angle = Column(Float, nullable=True)
    min_angle = Column(Float, nullable=True)
    max_angle = Column(Float, nullable=True)
