from __future__ import annotations

import os
import tempfile
import time
from typing import Callable, Dict, Iterable, Optional, Tuple

import pytest

# Settings read the environment at import time: point storage at a scratch
# directory and shorten the session protocol before asymmetry is imported.
os.environ.setdefault("ASYMMETRY_DATA_DIR", tempfile.mkdtemp(prefix="asymmetry-tests-"))
os.environ.setdefault("TICK_SECONDS", "0.01")
os.environ.setdefault("LOST_USER_GRACE_SECONDS", "0.01")
os.environ.setdefault("COUNTDOWN_TICKS", "3")
os.environ.setdefault("RECORDING_TICKS", "500")
os.environ.setdefault("POSE_BACKEND", "pixel")
os.environ.pop("API_KEY", None)

from asymmetry.vision.keypoints import Keypoint, Pose  # noqa: E402

# Upright front-facing body, 100 px between mid-shoulder and mid-hip
STANDING: Dict[str, Tuple[float, float]] = {
    "nose": (100.0, 50.0),
    "left_eye": (95.0, 45.0),
    "right_eye": (105.0, 45.0),
    "left_ear": (90.0, 50.0),
    "right_ear": (110.0, 50.0),
    "left_shoulder": (80.0, 100.0),
    "right_shoulder": (120.0, 100.0),
    "left_elbow": (75.0, 150.0),
    "right_elbow": (125.0, 150.0),
    "left_wrist": (70.0, 200.0),
    "right_wrist": (130.0, 200.0),
    "left_hip": (85.0, 200.0),
    "right_hip": (115.0, 200.0),
    "left_knee": (85.0, 300.0),
    "right_knee": (115.0, 300.0),
    "left_ankle": (85.0, 400.0),
    "right_ankle": (115.0, 400.0),
}


def make_pose(
    overrides: Optional[Dict[str, Tuple[float, float]]] = None,
    confidence: float = 0.9,
    drop: Iterable[str] = (),
    low: Iterable[str] = (),
) -> Pose:
    coords = dict(STANDING)
    coords.update(overrides or {})
    dropped = set(drop)
    low_conf = set(low)
    return Pose(
        {
            name: Keypoint(x, y, 0.1 if name in low_conf else confidence)
            for name, (x, y) in coords.items()
            if name not in dropped
        }
    )


def landmarks_of(pose: Pose) -> list[dict]:
    return [{"name": name, "x": kp.x, "y": kp.y, "score": kp.confidence} for name, kp in pose.keypoints.items()]


def wait_for(predicate: Callable[[], bool], timeout: float = 3.0, interval: float = 0.01) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def pose_factory():
    return make_pose


@pytest.fixture
def standing_pose() -> Pose:
    return make_pose()


@pytest.fixture
def landmarks():
    return landmarks_of
