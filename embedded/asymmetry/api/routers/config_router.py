"""Config endpoint router exposing the effective runtime configuration."""
from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter

from asymmetry.api.schemas import Envelope, ConfigOutput
from asymmetry.core.config import get_settings
from asymmetry.vision.keypoints import ExerciseType
from asymmetry.vision.pipeline import get_available_backends

router = APIRouter()


@router.get("/config", response_model=Envelope)
async def get_config() -> Envelope:
    s = get_settings()
    out = ConfigOutput(
        pose_backend=s.pose_backend,
        available_backends=get_available_backends(),
        visibility_threshold=s.visibility_threshold,
        min_normalization_scale=s.min_normalization_scale,
        countdown_ticks=s.countdown_ticks,
        recording_ticks=s.recording_ticks,
        tick_seconds=s.tick_seconds,
        lost_user_grace_seconds=s.lost_user_grace_seconds,
        exercises={e.value: e.display_name for e in ExerciseType},
        thresholds=asdict(s.report_thresholds()),
    )
    return Envelope(success=True, data=out.model_dump())
