"""Detector backends: latest-pose slot, frame channel and recording path.

Each backend converts its native landmark output into the canonical pixel
frame once, in ``to_pose``. Everything downstream (gating, metrics,
recording) is shared and backend agnostic.
"""
from __future__ import annotations

import queue
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, Type

from loguru import logger

from asymmetry.core.session_recorder import RecordingError, SessionRecorder
from asymmetry.reports.generator import AnalysisResult, parse

from .keypoints import KEYPOINT_NAMES, ExerciseType, Keypoint, Pose
from .metrics import MetricRow, compute_metric_row
from .visibility import DEFAULT_VISIBILITY_THRESHOLD, is_pose_usable

# MediaPipe Pose landmark indices for the names we track
MEDIAPIPE_INDEX: Dict[int, str] = {
    0: "nose",
    2: "left_eye",
    5: "right_eye",
    7: "left_ear",
    8: "right_ear",
    11: "left_shoulder",
    12: "right_shoulder",
    13: "left_elbow",
    14: "right_elbow",
    15: "left_wrist",
    16: "right_wrist",
    23: "left_hip",
    24: "right_hip",
    25: "left_knee",
    26: "right_knee",
    27: "left_ankle",
    28: "right_ankle",
}


def _now_ms() -> int:
    return int(time.time() * 1000)


def _field(lm: Any, *keys: str, default: Optional[float] = None) -> Optional[float]:
    """Read a numeric field from a dict or a landmark-like object."""
    for key in keys:
        value = lm.get(key) if isinstance(lm, Mapping) else getattr(lm, key, None)
        if value is not None:
            return float(value)
    return default


def _name(lm: Any) -> Optional[str]:
    value = lm.get("name") if isinstance(lm, Mapping) else getattr(lm, "name", None)
    return str(value) if value is not None else None


@dataclass(frozen=True)
class FrameEvent:
    """One detection result as delivered by a pose estimator."""

    landmarks: Sequence[Any]
    timestamp_ms: int
    frame_width: Optional[int] = None
    frame_height: Optional[int] = None


class LatestPoseSlot:
    """Single-slot cell holding the most recent pose (or None)."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pose: Optional[Pose] = None
        self._updated_ms: Optional[int] = None

    def publish(self, pose: Optional[Pose]) -> None:
        with self._lock:
            self._pose = pose
            self._updated_ms = _now_ms()

    def get(self) -> Optional[Pose]:
        with self._lock:
            return self._pose

    @property
    def updated_ms(self) -> Optional[int]:
        with self._lock:
            return self._updated_ms

    def clear(self) -> None:
        with self._lock:
            self._pose = None
            self._updated_ms = None


class FrameChannel:
    """Bounded FIFO of frame events; the oldest frame is dropped when full."""

    def __init__(self, maxsize: int = 32) -> None:
        self._queue: "queue.Queue[FrameEvent]" = queue.Queue(maxsize=max(1, int(maxsize)))
        self.dropped: int = 0

    def put(self, event: FrameEvent) -> bool:
        """Enqueue ``event``. Returns False when an older frame had to be dropped."""
        dropped = False
        while True:
            try:
                self._queue.put_nowait(event)
                return not dropped
            except queue.Full:
                try:
                    self._queue.get_nowait()
                    self.dropped += 1
                    dropped = True
                except queue.Empty:
                    continue

    def get(self, timeout: Optional[float] = None) -> Optional[FrameEvent]:
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def qsize(self) -> int:
        return self._queue.qsize()


class PoseBackend(ABC):
    """Capability contract consumed by the session controller."""

    name: str = "base"

    def __init__(
        self,
        *,
        threshold: float = DEFAULT_VISIBILITY_THRESHOLD,
        queue_size: int = 32,
    ) -> None:
        self.threshold = float(threshold)
        self._slot = LatestPoseSlot()
        self._channel = FrameChannel(queue_size)
        self._recorder = SessionRecorder()
        self._record_lock = threading.Lock()
        self._exercise: Optional[ExerciseType] = None
        self._scale: float = 1.0
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.frames_processed: int = 0

    # --- Boundary adapter -------------------------------------------------

    @abstractmethod
    def to_pose(
        self,
        landmarks: Sequence[Any],
        frame_width: Optional[int] = None,
        frame_height: Optional[int] = None,
    ) -> Optional[Pose]:
        """Convert native landmarks into a Pose in the canonical pixel frame."""

    # --- Contract -----------------------------------------------------------

    def get_latest_pose(self) -> Optional[Pose]:
        return self._slot.get()

    def latest_pose_age_ms(self) -> Optional[int]:
        """Milliseconds since the last published detection, None before the first."""
        updated = self._slot.updated_ms
        return None if updated is None else max(0, _now_ms() - updated)

    @property
    def pending_frames(self) -> int:
        return self._channel.qsize()

    def is_pose_usable(self, pose: Optional[Pose]) -> bool:
        return is_pose_usable(pose, self.threshold)

    @property
    def is_recording(self) -> bool:
        return self._exercise is not None

    @property
    def rows_written(self) -> int:
        return self._recorder.rows_written

    def start_recording(self, path: Path, exercise: ExerciseType, scale: float = 1.0) -> None:
        with self._record_lock:
            self._recorder.open(Path(path), exercise)
            self._exercise = exercise
            self._scale = float(scale) if scale > 0 else 1.0
        logger.info("{} backend recording started scale={:.2f}", self.name, self._scale)

    def stop_recording(self) -> int:
        """Close the record after any in-flight row. Returns the rows written."""
        with self._record_lock:
            self._exercise = None
            rows = self._recorder.rows_written
            self._recorder.close()
        return rows

    def analyze(self, path: Path, exercise: ExerciseType) -> AnalysisResult:
        return parse(path, exercise)

    # --- Frame path -----------------------------------------------------------

    def submit(
        self,
        landmarks: Sequence[Any],
        frame_width: Optional[int] = None,
        frame_height: Optional[int] = None,
        timestamp_ms: Optional[int] = None,
    ) -> bool:
        """Queue a detection result for the pump thread."""
        event = FrameEvent(
            landmarks=list(landmarks),
            timestamp_ms=int(timestamp_ms) if timestamp_ms is not None else _now_ms(),
            frame_width=frame_width,
            frame_height=frame_height,
        )
        return self._channel.put(event)

    def process_frame(self, event: FrameEvent) -> Optional[MetricRow]:
        """Publish the pose and, while recording, append one metric row."""
        pose = self.to_pose(event.landmarks, event.frame_width, event.frame_height)
        self._slot.publish(pose)
        self.frames_processed += 1
        if pose is None or not self.is_pose_usable(pose):
            return None
        with self._record_lock:
            exercise = self._exercise
            if exercise is None:
                return None
            row = compute_metric_row(pose, exercise, self._scale, event.timestamp_ms, self.threshold)
            try:
                self._recorder.append_row(row)
            except RecordingError as exc:
                logger.error("Dropping metric row: {}", exc)
                return None
        logger.debug("Row recorded ts={} exercise={}", row.timestamp_ms, exercise.value)
        return row

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name=f"PoseBackend-{self.name}", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        while not self._stop.is_set():
            event = self._channel.get(timeout=0.1)
            if event is None:
                continue
            try:
                self.process_frame(event)
            except ValueError as exc:
                logger.warning("Rejected frame from {} backend: {}", self.name, exc)
            except Exception:
                logger.exception("Frame processing failed in {} backend", self.name)

    def close(self, timeout: float = 2.0) -> None:
        self._stop.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        self.stop_recording()
        self._slot.clear()

    def _build_pose(self, points: Dict[str, Keypoint]) -> Optional[Pose]:
        if not points:
            return None
        return Pose(points)


class PixelPoseBackend(PoseBackend):
    """Landmarks already in upright image pixels, addressed by name (ML Kit style)."""

    name = "pixel"

    def to_pose(
        self,
        landmarks: Sequence[Any],
        frame_width: Optional[int] = None,
        frame_height: Optional[int] = None,
    ) -> Optional[Pose]:
        points: Dict[str, Keypoint] = {}
        for lm in landmarks:
            name = _name(lm)
            if name not in KEYPOINT_NAMES:
                continue
            x = _field(lm, "x")
            y = _field(lm, "y")
            if x is None or y is None:
                continue
            conf = _field(lm, "score", "confidence", "in_frame_likelihood", default=0.0)
            points[name] = Keypoint(x, y, conf)  # type: ignore[arg-type]
        return self._build_pose(points)


class NormalizedPoseBackend(PoseBackend):
    """Normalized [0, 1] landmarks (MediaPipe style), optionally transposed.

    With ``swap_axes`` the landmark ``y`` maps to the image x axis and ``x`` to
    the image y axis, which is how the rotated camera stream reports them.
    """

    name = "normalized"

    def __init__(
        self,
        *,
        frame_width: int = 640,
        frame_height: int = 480,
        swap_axes: bool = True,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.frame_width = int(frame_width)
        self.frame_height = int(frame_height)
        self.swap_axes = bool(swap_axes)

    def to_pose(
        self,
        landmarks: Sequence[Any],
        frame_width: Optional[int] = None,
        frame_height: Optional[int] = None,
    ) -> Optional[Pose]:
        width = float(frame_width or self.frame_width)
        height = float(frame_height or self.frame_height)
        points: Dict[str, Keypoint] = {}
        for idx, lm in enumerate(landmarks):
            name = _name(lm) or MEDIAPIPE_INDEX.get(idx)
            if name not in KEYPOINT_NAMES:
                continue
            nx = _field(lm, "x")
            ny = _field(lm, "y")
            if nx is None or ny is None:
                continue
            if self.swap_axes:
                nx, ny = ny, nx
            conf = _field(lm, "visibility", "score", "confidence", default=0.0)
            points[name] = Keypoint(nx * width, ny * height, conf)  # type: ignore[arg-type]
        return self._build_pose(points)


BACKEND_REGISTRY: Dict[str, Type[PoseBackend]] = {
    PixelPoseBackend.name: PixelPoseBackend,
    NormalizedPoseBackend.name: NormalizedPoseBackend,
}


def get_available_backends() -> list[str]:
    """Return the list of registered backend names."""
    return list(BACKEND_REGISTRY.keys())


def build_pose_backend(name: str, **kwargs: Any) -> PoseBackend:
    """Instantiate a pose backend by registry name."""
    backend_cls = BACKEND_REGISTRY.get(name)
    if not backend_cls:
        raise ValueError(
            f"Unknown pose backend '{name}'. "
            f"Available options: {', '.join(get_available_backends())}"
        )
    return backend_cls(**kwargs)
