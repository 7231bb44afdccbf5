"""Metric engine: joint angles and bilateral asymmetry from a Pose.

All functions are stateless. Missing or low-confidence keypoints and
degenerate geometry produce ``None`` (written as ``NaN``), never an
exception and never a number derived from partial data.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

import numpy as np

from .keypoints import BODY_PARTS, ExerciseType, Keypoint, Pose, pair_names
from .visibility import DEFAULT_VISIBILITY_THRESHOLD, are_all_visible, is_keypoint_visible

Coordinates = Tuple[Optional[float], Optional[float], Optional[float], Optional[float]]

DEFAULT_SCALE = 1.0

SQUAT_JOINTS = ("hip", "knee", "ankle")
PLANK_JOINTS = ("shoulder", "hip", "knee")


@dataclass(frozen=True)
class MetricRow:
    """Metrics for one accepted frame."""

    timestamp_ms: int
    exercise: ExerciseType
    asymmetry: Dict[str, Optional[float]] = field(default_factory=dict)
    squat_angle: Optional[float] = None
    plank_angle: Optional[float] = None
    coordinates: Dict[str, Coordinates] = field(default_factory=dict)


def angle_at(a: Optional[Keypoint], b: Optional[Keypoint], c: Optional[Keypoint]) -> Optional[float]:
    """Return the angle in degrees at ``b`` between rays b->a and b->c."""
    if a is None or b is None or c is None:
        return None
    v1 = np.array([a.x - b.x, a.y - b.y], dtype=float)
    v2 = np.array([c.x - b.x, c.y - b.y], dtype=float)
    norm = float(np.linalg.norm(v1) * np.linalg.norm(v2))
    if norm == 0.0:
        return None
    cos = float(np.clip(np.dot(v1, v2) / norm, -1.0, 1.0))
    return math.degrees(math.acos(cos))


def bilateral_asymmetry(
    left: Optional[Keypoint],
    right: Optional[Keypoint],
    scale: float,
    threshold: float = DEFAULT_VISIBILITY_THRESHOLD,
) -> Optional[float]:
    """Vertical offset between a left/right pair as a percentage of ``scale``."""
    if not are_all_visible(left, right, threshold=threshold):
        return None
    if scale <= 0:
        return None
    return abs(left.y - right.y) / scale * 100.0  # type: ignore[union-attr]


def normalization_scale(
    pose: Optional[Pose],
    min_scale: float = 10.0,
    threshold: float = DEFAULT_VISIBILITY_THRESHOLD,
) -> float:
    """Distance between mid-shoulder and mid-hip, or 1.0 when unreliable."""
    if pose is None:
        return DEFAULT_SCALE
    ls, rs = pose.get("left_shoulder"), pose.get("right_shoulder")
    lh, rh = pose.get("left_hip"), pose.get("right_hip")
    if not are_all_visible(ls, rs, lh, rh, threshold=threshold):
        return DEFAULT_SCALE
    mid_shoulder = np.array([(ls.x + rs.x) / 2.0, (ls.y + rs.y) / 2.0])  # type: ignore[union-attr]
    mid_hip = np.array([(lh.x + rh.x) / 2.0, (lh.y + rh.y) / 2.0])  # type: ignore[union-attr]
    scale = float(np.linalg.norm(mid_shoulder - mid_hip))
    if scale > min_scale:
        return scale
    return DEFAULT_SCALE


def side_angle(pose: Pose, joints: Tuple[str, str, str], threshold: float = DEFAULT_VISIBILITY_THRESHOLD) -> Optional[float]:
    """Angle at the middle joint, using the left side first, then the right."""
    for side in ("left", "right"):
        points = [pose.get(f"{side}_{j}") for j in joints]
        if are_all_visible(*points, threshold=threshold):
            return angle_at(*points)
    return None


def _coordinates(pose: Pose, part: str, threshold: float) -> Coordinates:
    left_name, right_name = pair_names(part)
    out: list[Optional[float]] = []
    for name in (left_name, right_name):
        kp = pose.get(name)
        if is_keypoint_visible(kp, threshold):
            out.extend([kp.x, kp.y])  # type: ignore[union-attr]
        else:
            out.extend([None, None])
    return tuple(out)  # type: ignore[return-value]


def compute_metric_row(
    pose: Pose,
    exercise: ExerciseType,
    scale: float,
    timestamp_ms: int,
    threshold: float = DEFAULT_VISIBILITY_THRESHOLD,
) -> MetricRow:
    """Build the metric row for one frame.

    Front-view exercises fill asymmetry values only; side-view exercises fill
    exactly one angle column (knee for SIDE_SQUAT, hip for PLANK).
    """
    asymmetry: Dict[str, Optional[float]] = {}
    for part in BODY_PARTS:
        if exercise.is_front:
            left_name, right_name = pair_names(part)
            asymmetry[part] = bilateral_asymmetry(pose.get(left_name), pose.get(right_name), scale, threshold)
        else:
            asymmetry[part] = None

    squat_angle: Optional[float] = None
    plank_angle: Optional[float] = None
    if exercise is ExerciseType.SIDE_SQUAT:
        squat_angle = side_angle(pose, SQUAT_JOINTS, threshold)
    elif exercise is ExerciseType.PLANK:
        plank_angle = side_angle(pose, PLANK_JOINTS, threshold)

    return MetricRow(
        timestamp_ms=int(timestamp_ms),
        exercise=exercise,
        asymmetry=asymmetry,
        squat_angle=squat_angle,
        plank_angle=plank_angle,
        coordinates={part: _coordinates(pose, part, threshold) for part in BODY_PARTS},
    )
