"""Camera source: OpenCV capture + MediaPipe Pose feeding a pose backend.

Optional at runtime: when OpenCV or MediaPipe are not installed the source
refuses to start and clients are expected to push frames over HTTP instead.
"""
from __future__ import annotations

import threading
import time
from typing import Any, Dict, List, Optional

from loguru import logger

from asymmetry.core.config import Settings, get_settings

from .pipeline import PoseBackend

try:  # Optional heavy deps
    import cv2  # type: ignore
except Exception:  # pragma: no cover
    cv2 = None  # type: ignore

try:
    import mediapipe as mp  # type: ignore
except Exception:  # pragma: no cover
    mp = None  # type: ignore


def camera_available() -> bool:
    return cv2 is not None and mp is not None


def landmarks_to_dicts(landmarks: Any) -> List[Dict[str, float]]:
    """Flatten MediaPipe landmarks, keeping their index order."""
    return [
        {"x": float(lm.x), "y": float(lm.y), "visibility": float(getattr(lm, "visibility", 0.0))}
        for lm in landmarks
    ]


class CameraPoseSource:
    """Reads camera frames on a daemon thread and submits detections."""

    def __init__(self, backend: PoseBackend, settings: Optional[Settings] = None) -> None:
        self.backend = backend
        self.settings = settings or get_settings()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._cap = None
        self._pose = None
        self.frames_read: int = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        if not camera_available():
            raise RuntimeError("Camera source needs opencv-python and mediapipe installed")
        self._open()
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="CameraPoseSource", daemon=True)
        self._thread.start()
        logger.info("Camera source started index={}", self.settings.camera_index)

    def stop(self, timeout: float = 2.0) -> None:
        self._stop.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        self._release()
        logger.info("Camera source stopped frames={}", self.frames_read)

    def _open(self) -> None:  # pragma: no cover - hardware path
        assert cv2 is not None and mp is not None
        self._pose = mp.solutions.pose.Pose(
            static_image_mode=False,
            model_complexity=int(self.settings.model_complexity),
            enable_segmentation=False,
            min_detection_confidence=0.5,
            min_tracking_confidence=0.5,
        )
        self._cap = cv2.VideoCapture(int(self.settings.camera_index))
        if not self._cap or not self._cap.isOpened():
            self._release()
            raise RuntimeError("Camera could not be opened")
        self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, int(self.settings.camera_width))
        self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, int(self.settings.camera_height))
        self._cap.set(cv2.CAP_PROP_FPS, int(self.settings.camera_fps))

    def _run(self) -> None:  # pragma: no cover - hardware path
        assert cv2 is not None and self._cap is not None and self._pose is not None
        while not self._stop.is_set():
            ok, frame = self._cap.read()
            if not ok:
                logger.warning("Camera read failed")
                time.sleep(0.1)
                continue
            self.frames_read += 1
            height, width = frame.shape[:2]
            rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
            results = self._pose.process(rgb)
            landmarks = landmarks_to_dicts(results.pose_landmarks.landmark) if results.pose_landmarks else []
            self.backend.submit(landmarks, frame_width=width, frame_height=height)

    def _release(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
        if self._pose is not None:
            self._pose.close()
            self._pose = None
