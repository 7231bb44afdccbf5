"""Vision package exports."""

from .keypoints import BODY_PARTS, KEYPOINT_NAMES, ExerciseType, Keypoint, Orientation, Pose
from .metrics import MetricRow, angle_at, bilateral_asymmetry, compute_metric_row, normalization_scale
from .visibility import are_all_visible, is_keypoint_visible, is_pose_usable

__all__ = [
    "BODY_PARTS",
    "KEYPOINT_NAMES",
    "ExerciseType",
    "Keypoint",
    "MetricRow",
    "Orientation",
    "Pose",
    "angle_at",
    "are_all_visible",
    "bilateral_asymmetry",
    "compute_metric_row",
    "is_keypoint_visible",
    "is_pose_usable",
    "normalization_scale",
]
