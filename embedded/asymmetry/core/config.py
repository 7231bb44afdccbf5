"""Core configuration and constants.

Uses environment variables for configuration. Follows PEP8 and Google style docstrings.
"""
from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Literal
import os

from pydantic import BaseModel


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


DEFAULT_DATA_DIR = Path(__file__).resolve().parent.parent / "data"


@dataclass(frozen=True)
class ReportThresholds:
    """Classification cut points used by the report engine.

    Two code paths historically disagreed on asymmetry tiers: the report cards
    use 2%/5% while the history list uses 5%/10%. Both are kept as separate
    named values until product decides on a single set.
    """

    asymmetry_excellent_pct: float = 2.0
    asymmetry_good_pct: float = 5.0
    feedback_asymmetry_excellent_pct: float = 2.0
    feedback_asymmetry_good_pct: float = 5.0
    plank_excellent_deg: float = 170.0
    plank_good_deg: float = 160.0
    squat_excellent_min_deg: float = 60.0
    squat_excellent_max_deg: float = 190.0
    squat_good_min_deg: float = 90.0
    squat_good_max_deg: float = 160.0
    history_asymmetry_excellent_pct: float = 5.0
    history_asymmetry_good_pct: float = 10.0
    history_angle_excellent_dev: float = 10.0
    history_angle_good_dev: float = 20.0


class Settings(BaseModel):
    """Application settings loaded from environment variables.

    Attributes:
        app_name: App display name.
        environment: Runtime environment.
        api_host: Host for FastAPI server.
        api_port: Port for FastAPI server.
        log_level: Logging level string.
        data_dir: Root directory for recordings, database and logs.
        pose_backend: Registry name of the detector backend.
        visibility_threshold: Minimum keypoint confidence to count as visible.
        min_normalization_scale: Smallest shoulder-hip distance (px) accepted as scale.
        countdown_ticks: Number of one-tick countdown steps.
        recording_ticks: Number of ticks a recording lasts.
        tick_seconds: Duration of one tick.
        lost_user_grace_seconds: Wait before stopping a recording that lost the user.
    """

    app_name: str = "Body Asymmetry Analyzer"
    environment: Literal["dev", "prod", "test"] = "dev"

    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))

    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Security & CORS
    api_key: str | None = os.getenv("API_KEY")
    exposed_origins: list[str] = (
        os.getenv("EXPOSED_ORIGINS", "*").split(",") if os.getenv("EXPOSED_ORIGINS") else ["*"]
    )

    # Storage
    data_dir: Path = Path(os.getenv("ASYMMETRY_DATA_DIR") or DEFAULT_DATA_DIR)

    # Detection
    pose_backend: str = os.getenv("POSE_BACKEND", "pixel")
    visibility_threshold: float = float(os.getenv("VISIBILITY_THRESHOLD", "0.7"))
    min_normalization_scale: float = float(os.getenv("MIN_NORMALIZATION_SCALE", "10.0"))
    frame_queue_size: int = int(os.getenv("FRAME_QUEUE_SIZE", "32"))
    # MediaPipe style landmarks come transposed relative to the upright image
    swap_normalized_axes: bool = _env_flag("SWAP_NORMALIZED_AXES", "1")

    # Session protocol
    countdown_ticks: int = int(os.getenv("COUNTDOWN_TICKS", "10"))
    recording_ticks: int = int(os.getenv("RECORDING_TICKS", "20"))
    tick_seconds: float = float(os.getenv("TICK_SECONDS", "1.0"))
    lost_user_grace_seconds: float = float(os.getenv("LOST_USER_GRACE_SECONDS", "2.0"))

    # Vision / camera source
    camera_enabled: bool = _env_flag("CAMERA_ENABLED", "0")
    camera_index: int = int(os.getenv("CAMERA_INDEX", "0"))
    camera_width: int = int(os.getenv("CAMERA_WIDTH", "640"))
    camera_height: int = int(os.getenv("CAMERA_HEIGHT", "480"))
    camera_fps: int = int(os.getenv("CAMERA_FPS", "15"))
    model_complexity: int = int(os.getenv("MODEL_COMPLEXITY", "1"))

    # Report classification
    asymmetry_excellent_pct: float = float(os.getenv("ASYMMETRY_EXCELLENT_PCT", "2.0"))
    asymmetry_good_pct: float = float(os.getenv("ASYMMETRY_GOOD_PCT", "5.0"))
    feedback_asymmetry_excellent_pct: float = float(os.getenv("FEEDBACK_ASYMMETRY_EXCELLENT_PCT", "2.0"))
    feedback_asymmetry_good_pct: float = float(os.getenv("FEEDBACK_ASYMMETRY_GOOD_PCT", "5.0"))
    plank_excellent_deg: float = float(os.getenv("PLANK_EXCELLENT_DEG", "170"))
    plank_good_deg: float = float(os.getenv("PLANK_GOOD_DEG", "160"))
    squat_excellent_min_deg: float = float(os.getenv("SQUAT_EXCELLENT_MIN_DEG", "60"))
    squat_excellent_max_deg: float = float(os.getenv("SQUAT_EXCELLENT_MAX_DEG", "190"))
    squat_good_min_deg: float = float(os.getenv("SQUAT_GOOD_MIN_DEG", "90"))
    squat_good_max_deg: float = float(os.getenv("SQUAT_GOOD_MAX_DEG", "160"))
    # History list cut points (diverge from the report cards, see ReportThresholds)
    history_asymmetry_excellent_pct: float = float(os.getenv("HISTORY_ASYMMETRY_EXCELLENT_PCT", "5.0"))
    history_asymmetry_good_pct: float = float(os.getenv("HISTORY_ASYMMETRY_GOOD_PCT", "10.0"))
    history_angle_excellent_dev: float = float(os.getenv("HISTORY_ANGLE_EXCELLENT_DEV", "10"))
    history_angle_good_dev: float = float(os.getenv("HISTORY_ANGLE_GOOD_DEV", "20"))

    @property
    def recordings_dir(self) -> Path:
        return self.data_dir / "recordings"

    @property
    def logs_dir(self) -> Path:
        return self.data_dir / "logs"

    def report_thresholds(self) -> ReportThresholds:
        return ReportThresholds(
            asymmetry_excellent_pct=self.asymmetry_excellent_pct,
            asymmetry_good_pct=self.asymmetry_good_pct,
            feedback_asymmetry_excellent_pct=self.feedback_asymmetry_excellent_pct,
            feedback_asymmetry_good_pct=self.feedback_asymmetry_good_pct,
            plank_excellent_deg=self.plank_excellent_deg,
            plank_good_deg=self.plank_good_deg,
            squat_excellent_min_deg=self.squat_excellent_min_deg,
            squat_excellent_max_deg=self.squat_excellent_max_deg,
            squat_good_min_deg=self.squat_good_min_deg,
            squat_good_max_deg=self.squat_good_max_deg,
            history_asymmetry_excellent_pct=self.history_asymmetry_excellent_pct,
            history_asymmetry_good_pct=self.history_asymmetry_good_pct,
            history_angle_excellent_dev=self.history_angle_excellent_dev,
            history_angle_good_dev=self.history_angle_good_dev,
        )


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()
