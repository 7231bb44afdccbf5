"""Session control endpoints.

Provides start/cancel/stop controls, report generation and history endpoints.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from loguru import logger
from sqlalchemy.orm import Session

from asymmetry.api.routers.pose import pose_backend
from asymmetry.api.schemas import Envelope, ReportOutput, SessionStartInput, SessionSummaryOutput
from asymmetry.core.config import get_settings
from asymmetry.core.dal import SqlSummaryStore, get_last_session_summary, get_session_history
from asymmetry.core.db import Base, SessionLocal, engine, get_db
from asymmetry.core.models import SessionSummary
from asymmetry.core.session import SessionBusyError, SessionController, SessionStateError
from asymmetry.reports.generator import ReportParseError, classify_history

router = APIRouter()

# Ensure tables exist at import time (idempotent)
Base.metadata.create_all(bind=engine)

controller = SessionController(pose_backend, SqlSummaryStore(SessionLocal))


def require_api_key(x_api_key: str | None = Header(default=None, alias="X-API-Key")) -> None:
    s = get_settings()
    if getattr(s, "api_key", None) and x_api_key != s.api_key:
        raise HTTPException(status_code=401, detail="invalid_api_key")


def summary_payload(row: SessionSummary) -> dict:
    out = SessionSummaryOutput.model_validate(row)
    out.quality = classify_history(
        row.exercise_type,
        row.avg_asymmetry,
        row.max_asymmetry,
        row.avg_angle,
        get_settings().report_thresholds(),
    )
    return out.model_dump(by_alias=True)


@router.post("/session/start", response_model=Envelope, dependencies=[Depends(require_api_key)])
def session_start(payload: SessionStartInput) -> Envelope:
    try:
        status = controller.start(payload.exercise)
    except ValueError:
        return Envelope(success=False, error="invalid_exercise")
    except SessionBusyError:
        return Envelope(success=False, error="session_active", data=controller.status().to_dict())
    return Envelope(success=True, data=status.to_dict())


@router.post("/session/cancel", response_model=Envelope, dependencies=[Depends(require_api_key)])
def session_cancel() -> Envelope:
    try:
        status = controller.cancel()
    except SessionStateError:
        return Envelope(success=False, error="no_countdown", data=controller.status().to_dict())
    return Envelope(success=True, data=status.to_dict())


@router.post("/session/stop", response_model=Envelope, dependencies=[Depends(require_api_key)])
def session_stop() -> Envelope:
    try:
        controller.stop()
    except SessionStateError:
        return Envelope(success=False, error="not_recording", data=controller.status().to_dict())
    if not controller.wait(timeout=controller.tick_seconds + controller.grace_seconds + 5.0):
        logger.warning("Session loop still finishing after stop")
    return Envelope(success=True, data=controller.status().to_dict())


@router.get("/session/status", response_model=Envelope)
def session_status() -> Envelope:
    return Envelope(success=True, data=controller.status().to_dict())


@router.post("/session/report", response_model=Envelope, dependencies=[Depends(require_api_key)])
def session_report() -> Envelope:
    try:
        report = controller.generate_report()
    except SessionStateError:
        return Envelope(success=False, error="no_finished_session", data=controller.status().to_dict())
    except ReportParseError as exc:
        logger.warning("Report generation failed: {}", exc)
        return Envelope(success=False, error="report_failed", data={"detail": str(exc)})
    payload = ReportOutput.model_validate(report.to_dict())
    return Envelope(success=True, data=payload.model_dump())


@router.post("/session/reset", response_model=Envelope, dependencies=[Depends(require_api_key)])
def session_reset() -> Envelope:
    try:
        status = controller.reset()
    except SessionStateError:
        return Envelope(success=False, error="session_active", data=controller.status().to_dict())
    return Envelope(success=True, data=status.to_dict())


@router.get("/session/last", response_model=Envelope)
def session_last(db: Session = Depends(get_db)) -> Envelope:
    row = get_last_session_summary(db)
    if not row:
        return Envelope(success=True, data=None)
    return Envelope(success=True, data=summary_payload(row))


@router.get("/session/history", response_model=Envelope)
def session_history(
    db: Session = Depends(get_db),
    limit: int = Query(10, ge=1, le=100),
) -> Envelope:
    rows = get_session_history(db, limit=limit)
    items = [summary_payload(row) for row in rows]
    return Envelope(success=True, data={"sessions": items, "count": len(items)})
