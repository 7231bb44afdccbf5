"""Pydantic schemas for request/response payloads.

All endpoints use a standardized JSON envelope: {"success": bool, "data": any, "error": str|None}
"""
from __future__ import annotations

from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List


class Envelope(BaseModel):
    success: bool = True
    data: Optional[dict] = None
    error: Optional[str] = None


class KeypointInput(BaseModel):
    name: str
    x: float
    y: float
    score: float = Field(ge=0.0, le=1.0, default=1.0)


class FrameInput(BaseModel):
    keypoints: List[KeypointInput]
    frame_width: int | None = Field(default=None, gt=0)
    frame_height: int | None = Field(default=None, gt=0)
    timestamp_ms: int | None = Field(default=None, ge=0)


class FrameOutput(BaseModel):
    accepted: bool
    usable: bool
    dropped_oldest: bool = False
    keypoints: int = 0


class SessionStartInput(BaseModel):
    exercise: str


class SessionSummaryOutput(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    summary_id: int = Field(alias="id")
    exercise_type: str
    file_path: str
    created_at_utc: datetime
    avg_asymmetry: float | None = None
    max_asymmetry: float | None = None
    avg_angle: float | None = None
    min_angle: float | None = None
    max_angle: float | None = None
    quality: str | None = None


class ReportBlockOutput(BaseModel):
    key: str
    title: str
    unit: str
    severity: str
    mean: float
    max: float
    min: float
    std_dev: float
    sample_count: int


class ReportOutput(BaseModel):
    exercise: str
    exercise_name: str
    kind: str
    feedback: str
    blocks: List[ReportBlockOutput]


class ConfigOutput(BaseModel):
    pose_backend: str
    available_backends: List[str]
    visibility_threshold: float
    min_normalization_scale: float
    countdown_ticks: int
    recording_ticks: int
    tick_seconds: float
    lost_user_grace_seconds: float
    exercises: dict[str, str]
    thresholds: dict[str, float]
