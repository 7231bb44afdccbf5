from __future__ import annotations

import pytest

from asymmetry.vision.keypoints import ExerciseType, Keypoint
from asymmetry.vision.metrics import (
    angle_at,
    bilateral_asymmetry,
    compute_metric_row,
    normalization_scale,
)


def kp(x: float, y: float, conf: float = 0.9) -> Keypoint:
    return Keypoint(x, y, conf)


def test_angle_right_angle():
    assert angle_at(kp(1, 0), kp(0, 0), kp(0, 1)) == pytest.approx(90.0)


def test_angle_straight_line():
    assert angle_at(kp(0, 0), kp(0, 100), kp(0, 200)) == pytest.approx(180.0)


def test_angle_symmetric_in_outer_points():
    a, b, c = kp(10, 3), kp(2, 7), kp(-4, 20)
    assert angle_at(a, b, c) == pytest.approx(angle_at(c, b, a))


def test_angle_missing_or_degenerate():
    assert angle_at(None, kp(0, 0), kp(1, 1)) is None
    assert angle_at(kp(0, 0), kp(0, 0), kp(1, 1)) is None


def test_bilateral_asymmetry_percentage():
    assert bilateral_asymmetry(kp(0, 100), kp(0, 90), 50.0) == pytest.approx(20.0)


def test_bilateral_asymmetry_is_unsigned():
    assert bilateral_asymmetry(kp(0, 90), kp(0, 100), 50.0) == pytest.approx(20.0)


def test_bilateral_asymmetry_needs_both_visible():
    assert bilateral_asymmetry(kp(0, 100), kp(0, 90, conf=0.3), 50.0) is None
    assert bilateral_asymmetry(kp(0, 100), None, 50.0) is None
    # Threshold is strict
    assert bilateral_asymmetry(kp(0, 100), kp(0, 90, conf=0.7), 50.0) is None


def test_normalization_scale_from_torso(standing_pose):
    assert normalization_scale(standing_pose) == pytest.approx(100.0)


def test_normalization_scale_fallbacks(pose_factory):
    assert normalization_scale(None) == 1.0
    assert normalization_scale(pose_factory(drop=["left_hip"])) == 1.0
    squashed = pose_factory({"left_hip": (85.0, 105.0), "right_hip": (115.0, 105.0)})
    assert normalization_scale(squashed) == 1.0


def test_front_row_fills_asymmetry_only(pose_factory):
    pose = pose_factory({"left_shoulder": (80.0, 110.0)})
    row = compute_metric_row(pose, ExerciseType.SQUAT, 100.0, 1234)
    assert row.timestamp_ms == 1234
    assert row.asymmetry["shoulder"] == pytest.approx(10.0)
    assert row.asymmetry["hip"] == pytest.approx(0.0)
    assert row.squat_angle is None
    assert row.plank_angle is None
    assert row.coordinates["shoulder"] == (80.0, 110.0, 120.0, 100.0)


def test_front_row_low_confidence_is_missing(pose_factory):
    pose = pose_factory(low=["left_ear"])
    row = compute_metric_row(pose, ExerciseType.POSE, 100.0, 1)
    assert row.asymmetry["ear"] is None
    assert row.coordinates["ear"][:2] == (None, None)
    assert row.coordinates["ear"][2:] == (110.0, 50.0)


def test_side_squat_row_uses_knee_angle(standing_pose):
    row = compute_metric_row(standing_pose, ExerciseType.SIDE_SQUAT, 1.0, 1)
    assert row.squat_angle == pytest.approx(180.0)
    assert row.plank_angle is None
    assert all(v is None for v in row.asymmetry.values())


def test_plank_row_falls_back_to_right_side(pose_factory):
    pose = pose_factory(
        {
            "right_shoulder": (0.0, 100.0),
            "right_hip": (100.0, 100.0),
            "right_knee": (200.0, 100.0),
        },
        low=["left_knee"],
    )
    row = compute_metric_row(pose, ExerciseType.PLANK, 1.0, 1)
    assert row.plank_angle == pytest.approx(180.0)
    assert row.squat_angle is None
