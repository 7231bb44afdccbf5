"""Visibility gate: decide whether keypoints and poses are usable."""
from __future__ import annotations

from typing import Optional

from .keypoints import Keypoint, Pose

DEFAULT_VISIBILITY_THRESHOLD = 0.7


def is_keypoint_visible(kp: Optional[Keypoint], threshold: float = DEFAULT_VISIBILITY_THRESHOLD) -> bool:
    return kp is not None and kp.confidence > threshold


def are_all_visible(*kps: Optional[Keypoint], threshold: float = DEFAULT_VISIBILITY_THRESHOLD) -> bool:
    return all(is_keypoint_visible(kp, threshold) for kp in kps)


def _any_visible(pose: Pose, names: tuple[str, ...], threshold: float) -> bool:
    return any(is_keypoint_visible(pose.get(n), threshold) for n in names)


def is_pose_usable(pose: Optional[Pose], threshold: float = DEFAULT_VISIBILITY_THRESHOLD) -> bool:
    """Require at least one ear, one wrist and one ankle to be visible.

    Gates both the countdown success check and lost-user detection while
    recording.
    """
    if pose is None:
        return False
    return (
        _any_visible(pose, ("left_ear", "right_ear"), threshold)
        and _any_visible(pose, ("left_wrist", "right_wrist"), threshold)
        and _any_visible(pose, ("left_ankle", "right_ankle"), threshold)
    )
