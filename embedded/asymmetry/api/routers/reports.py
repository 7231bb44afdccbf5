"""Stored session report endpoints."""
from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends
from loguru import logger
from sqlalchemy.orm import Session

from asymmetry.api.routers.session import summary_payload
from asymmetry.api.schemas import Envelope, ReportOutput
from asymmetry.core.config import get_settings
from asymmetry.core.dal import get_session_summary
from asymmetry.core.db import get_db
from asymmetry.reports.generator import ReportParseError, generate_report

router = APIRouter()


@router.get("/reports/{summary_id}", response_model=Envelope)
def stored_report(summary_id: int, db: Session = Depends(get_db)) -> Envelope:
    """Re-run the report engine on the record behind a stored summary."""
    row = get_session_summary(db, summary_id)
    if not row:
        return Envelope(success=False, error="not_found")
    try:
        report = generate_report(Path(row.file_path), row.exercise_type, get_settings().report_thresholds())
    except ReportParseError as exc:
        logger.warning("Stored report {} unavailable: {}", summary_id, exc)
        return Envelope(success=False, error="report_failed", data={"summary": summary_payload(row), "detail": str(exc)})
    payload = ReportOutput.model_validate(report.to_dict())
    return Envelope(success=True, data={"summary": summary_payload(row), "report": payload.model_dump()})
