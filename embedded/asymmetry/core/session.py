"""Session state machine: countdown -> recording -> ready for results.

The tick loop runs on its own thread and only samples the backend's latest
pose; metric rows are written by the backend's frame path as detections
arrive. Cancel and stop wake the loop immediately.
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Protocol

from loguru import logger

from asymmetry.core.config import ReportThresholds, Settings, get_settings
from asymmetry.core.session_recorder import RecordingError
from asymmetry.reports.generator import (
    ReportParseError,
    SessionReport,
    SummaryRecord,
    generate_report as build_session_report,
    summarize,
)
from asymmetry.vision.keypoints import ExerciseType, Pose
from asymmetry.vision.metrics import DEFAULT_SCALE, normalization_scale
from asymmetry.vision.pipeline import PoseBackend


class SessionState(str, Enum):
    IDLE = "idle"
    COUNTDOWN = "countdown"
    RECORDING = "recording"
    READY_FOR_RESULTS = "ready_for_results"


class SessionError(Exception):
    """Base class for session control errors."""


class SessionBusyError(SessionError):
    """A session is already in progress."""


class SessionStateError(SessionError):
    """The command is not valid in the current state."""


class SummaryStore(Protocol):
    def add(self, record: SummaryRecord) -> Any: ...


@dataclass
class SessionStatus:
    state: SessionState
    exercise: Optional[ExerciseType] = None
    remaining_ticks: int = 0
    message: str = ""
    signal: Optional[str] = None
    record_path: Optional[str] = None
    rows_written: int = 0
    scale: float = DEFAULT_SCALE
    summary: Optional[SummaryRecord] = None

    def to_dict(self) -> dict:
        summary = None
        if self.summary is not None:
            summary = {
                "exercise_type": self.summary.exercise_type.value,
                "file_path": self.summary.file_path,
                "timestamp": self.summary.timestamp.isoformat(),
                "avg_asymmetry": self.summary.avg_asymmetry,
                "max_asymmetry": self.summary.max_asymmetry,
                "avg_angle": self.summary.avg_angle,
                "min_angle": self.summary.min_angle,
                "max_angle": self.summary.max_angle,
            }
        return {
            "state": self.state.value,
            "exercise": self.exercise.value if self.exercise else None,
            "remaining_ticks": self.remaining_ticks,
            "message": self.message,
            "signal": self.signal,
            "record_path": self.record_path,
            "rows_written": self.rows_written,
            "scale": self.scale,
            "summary": summary,
        }


@dataclass
class _Run:
    exercise: ExerciseType
    wake: threading.Event = field(default_factory=threading.Event)
    cancelled: bool = False
    stop_requested: bool = False


class SessionController:
    """Drives one exercise session at a time against a ``PoseBackend``."""

    def __init__(
        self,
        backend: PoseBackend,
        store: Optional[SummaryStore] = None,
        *,
        settings: Optional[Settings] = None,
        recordings_dir: Optional[Path] = None,
        thresholds: Optional[ReportThresholds] = None,
    ) -> None:
        s = settings or get_settings()
        self.backend = backend
        self.store = store
        self.countdown_ticks = max(1, int(s.countdown_ticks))
        self.recording_ticks = max(1, int(s.recording_ticks))
        self.tick_seconds = max(0.0, float(s.tick_seconds))
        self.grace_seconds = max(0.0, float(s.lost_user_grace_seconds))
        self.min_scale = float(s.min_normalization_scale)
        self.recordings_dir = Path(recordings_dir or s.recordings_dir)
        self.thresholds = thresholds or s.report_thresholds()
        self._lock = threading.RLock()
        self._thread: Optional[threading.Thread] = None
        self._run_ctx: Optional[_Run] = None
        self._status = SessionStatus(state=SessionState.IDLE)

    # --- Public API -----------------------------------------------------

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._status.state

    def status(self) -> SessionStatus:
        with self._lock:
            return replace(self._status)

    def start(self, exercise: "ExerciseType | str", *, blocking: bool = False) -> SessionStatus:
        """Begin the countdown. Raises SessionBusyError unless IDLE."""
        exercise = ExerciseType.parse(exercise)
        with self._lock:
            if self._status.state is not SessionState.IDLE:
                raise SessionBusyError(f"Session already {self._status.state.value}")
            ctx = _Run(exercise=exercise)
            self._run_ctx = ctx
            self._status = SessionStatus(
                state=SessionState.COUNTDOWN,
                exercise=exercise,
                remaining_ticks=self.countdown_ticks,
                message="Position yourself",
            )
            logger.info("Session countdown started exercise={}", exercise.value)
            if not blocking:
                self._thread = threading.Thread(target=self._run, args=(ctx,), name="SessionController", daemon=True)
                self._thread.start()
        if blocking:
            self._run(ctx)
        return self.status()

    def cancel(self) -> SessionStatus:
        """Abort the countdown and return to IDLE without any artifact."""
        with self._lock:
            if self._status.state is not SessionState.COUNTDOWN or self._run_ctx is None:
                raise SessionStateError(f"Cannot cancel while {self._status.state.value}")
            self._run_ctx.cancelled = True
            self._run_ctx.wake.set()
            self._reset_to_idle(signal="cancelled")
            logger.info("Session countdown cancelled")
        return self.status()

    def stop(self) -> None:
        """Ask the recording loop to finish early."""
        with self._lock:
            if self._status.state is not SessionState.RECORDING or self._run_ctx is None:
                raise SessionStateError(f"Cannot stop while {self._status.state.value}")
            self._run_ctx.stop_requested = True
            self._run_ctx.wake.set()
            logger.info("Session stop requested")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Join the tick loop thread. Returns True when it has finished."""
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout=timeout)
        return not thread.is_alive()

    def generate_report(self) -> SessionReport:
        """Analyze the finished record and return to IDLE."""
        with self._lock:
            if self._status.state is not SessionState.READY_FOR_RESULTS or not self._status.record_path:
                raise SessionStateError(f"No finished recording while {self._status.state.value}")
            path = Path(self._status.record_path)
            exercise = self._status.exercise
            if exercise is None:
                raise SessionStateError("Finished recording has no exercise type")
        try:
            report = build_session_report(path, exercise, self.thresholds)
        except ReportParseError:
            with self._lock:
                self._reset_to_idle(signal="report_failed")
            raise
        with self._lock:
            self._reset_to_idle(signal="report_generated")
        return report

    def reset(self) -> SessionStatus:
        """Discard a finished session without generating a report."""
        with self._lock:
            if self._status.state not in (SessionState.IDLE, SessionState.READY_FOR_RESULTS):
                raise SessionStateError(f"Cannot reset while {self._status.state.value}")
            self._reset_to_idle(signal=self._status.signal)
        return self.status()

    # --- Tick loop ------------------------------------------------------

    def _run(self, ctx: _Run) -> None:
        try:
            pose = self._countdown(ctx)
            if pose is None:
                return
            self._record(ctx, pose)
        except Exception:
            logger.exception("Session loop failed")
            with self._lock:
                if self._run_ctx is ctx:
                    self._close_recording()
                    self._reset_to_idle(signal="error")

    def _is_current(self, ctx: _Run) -> bool:
        with self._lock:
            return self._run_ctx is ctx and not ctx.cancelled

    def _countdown(self, ctx: _Run) -> Optional[Pose]:
        last_valid = False
        last_pose: Optional[Pose] = None
        for remaining in range(self.countdown_ticks, 0, -1):
            if not self._is_current(ctx):
                return None
            pose = self.backend.get_latest_pose()
            valid = self.backend.is_pose_usable(pose)
            last_valid = valid
            last_pose = pose if valid else None
            with self._lock:
                if not self._is_current(ctx):
                    return None
                self._status.remaining_ticks = remaining
                self._status.message = (
                    f"Body detected - {remaining}" if valid else f"Position yourself - {remaining}\nShow full body"
                )
            logger.debug("Countdown tick={} pose_valid={}", remaining, valid)
            ctx.wake.wait(self.tick_seconds)

        with self._lock:
            if not self._is_current(ctx):
                return None
            if not last_valid:
                logger.info("Countdown finished without a usable pose")
                self._reset_to_idle(
                    signal="pose_not_detected",
                    message="Couldn't detect pose during countdown. Try again.",
                )
                return None
        return last_pose

    def _record(self, ctx: _Run, pose: Pose) -> None:
        exercise = ctx.exercise
        scale = normalization_scale(pose, self.min_scale, self.backend.threshold) if exercise.is_front else DEFAULT_SCALE
        path = self.recordings_dir / f"keypoints_{int(time.time() * 1000)}_{exercise.value}_{self.backend.name}.csv"
        try:
            self.backend.start_recording(path, exercise, scale)
        except RecordingError as exc:
            logger.error("Could not start recording: {}", exc)
            with self._lock:
                if self._run_ctx is ctx:
                    self._reset_to_idle(signal="recording_failed", message="Error: Could not create data file")
            return

        with self._lock:
            if not self._is_current(ctx):
                # Cancelled while the record was being created
                self._close_recording()
                path.unlink(missing_ok=True)
                logger.info("Discarded record of cancelled session path={}", path)
                return
            self._status.state = SessionState.RECORDING
            self._status.record_path = str(path)
            self._status.scale = scale
            self._status.remaining_ticks = self.recording_ticks
            self._status.message = f"{self.recording_ticks} s remaining"
        logger.info("Recording started exercise={} scale={:.2f} path={}", exercise.value, scale, path)

        reason = "completed"
        remaining = self.recording_ticks
        while remaining > 0:
            if ctx.stop_requested:
                reason = "stopped"
                break
            current = self.backend.get_latest_pose()
            if not self.backend.is_pose_usable(current):
                with self._lock:
                    if self._run_ctx is ctx:
                        self._status.signal = "lost_user"
                        self._status.message = "Lost sight of user! Stopping recording..."
                logger.warning("Lost sight of user with {} ticks remaining", remaining)
                ctx.wake.wait(self.grace_seconds)
                reason = "lost_user"
                break
            with self._lock:
                if self._run_ctx is ctx:
                    self._status.remaining_ticks = remaining
                    self._status.message = f"{remaining} s remaining"
            if ctx.wake.wait(self.tick_seconds) and ctx.stop_requested:
                reason = "stopped"
                break
            remaining -= 1
        self._finish(ctx, path, reason)

    def _finish(self, ctx: _Run, path: Path, reason: str) -> None:
        rows = self._close_recording()
        with self._lock:
            if self._run_ctx is not ctx:
                logger.warning("Session replaced before it finished, record left at {}", path)
                return
        try:
            result = self.backend.analyze(path, ctx.exercise)
        except ReportParseError as exc:
            logger.warning("Session record has no metrics yet: {}", exc)
            result = None
        record = summarize(result, ctx.exercise, path, datetime.now(timezone.utc))
        if self.store is not None:
            try:
                self.store.add(record)
            except Exception as exc:  # pragma: no cover - persistence fallback
                logger.warning("Failed to persist session summary: {}", exc)
        with self._lock:
            if self._run_ctx is ctx:
                self._status.state = SessionState.READY_FOR_RESULTS
                self._status.signal = reason
                self._status.message = "Recording complete!"
                self._status.remaining_ticks = 0
                self._status.rows_written = rows
                self._status.summary = record
        logger.info("Recording finished reason={} rows={} path={}", reason, rows, path)

    def _close_recording(self) -> int:
        try:
            return self.backend.stop_recording()
        except RecordingError as exc:
            logger.error("Failed to close session record: {}", exc)
            return self.backend.rows_written

    def _reset_to_idle(self, *, signal: Optional[str] = None, message: str = "") -> None:
        self._run_ctx = None
        self._status = SessionStatus(state=SessionState.IDLE, signal=signal, message=message)
