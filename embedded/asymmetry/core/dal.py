"""Data access layer utilities."""
from __future__ import annotations

from datetime import timezone
from typing import Callable, Optional

from sqlalchemy.orm import Session

from asymmetry.reports.generator import SummaryRecord

from .models import SessionSummary


def add_session_summary(db: Session, **kwargs) -> SessionSummary:
    row = SessionSummary(**kwargs)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def add_summary_record(db: Session, record: SummaryRecord) -> SessionSummary:
    created = record.timestamp
    if created.tzinfo is not None:
        created = created.astimezone(timezone.utc).replace(tzinfo=None)
    return add_session_summary(
        db,
        exercise_type=record.exercise_type.value,
        file_path=record.file_path,
        created_at_utc=created,
        avg_asymmetry=record.avg_asymmetry,
        max_asymmetry=record.max_asymmetry,
        avg_angle=record.avg_angle,
        min_angle=record.min_angle,
        max_angle=record.max_angle,
    )


def get_session_summary(db: Session, summary_id: int) -> Optional[SessionSummary]:
    return db.query(SessionSummary).filter(SessionSummary.id == summary_id).first()


def get_last_session_summary(db: Session) -> Optional[SessionSummary]:
    return (
        db.query(SessionSummary)
        .order_by(SessionSummary.created_at_utc.desc(), SessionSummary.id.desc())
        .first()
    )


def get_session_history(db: Session, limit: int = 20) -> list[SessionSummary]:
    q = (
        db.query(SessionSummary)
        .order_by(SessionSummary.created_at_utc.desc(), SessionSummary.id.desc())
        .limit(limit)
    )
    return list(q)


class SqlSummaryStore:
    """Summary store backed by the ``session_summary`` table.

    Each call opens its own short-lived session so it can be used from the
    session controller thread.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def add(self, record: SummaryRecord) -> SessionSummary:
        db = self._session_factory()
        try:
            return add_summary_record(db, record)
        finally:
            db.close()

    def list(self, limit: int = 20) -> list[SessionSummary]:
        db = self._session_factory()
        try:
            return get_session_history(db, limit)
        finally:
            db.close()
