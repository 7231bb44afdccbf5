from __future__ import annotations

import pytest

from asymmetry.vision.keypoints import ExerciseType, Keypoint, Orientation, Pose
from asymmetry.vision.visibility import are_all_visible, is_keypoint_visible, is_pose_usable


def test_keypoint_threshold_is_strict():
    assert is_keypoint_visible(Keypoint(0, 0, 0.71))
    assert not is_keypoint_visible(Keypoint(0, 0, 0.7))
    assert not is_keypoint_visible(None)
    assert is_keypoint_visible(Keypoint(0, 0, 0.6), threshold=0.5)


def test_all_visible():
    assert are_all_visible(Keypoint(0, 0, 0.9), Keypoint(1, 1, 0.8))
    assert not are_all_visible(Keypoint(0, 0, 0.9), None)


def test_standing_pose_is_usable(standing_pose):
    assert is_pose_usable(standing_pose)


def test_one_side_is_enough(pose_factory):
    pose = pose_factory(drop=["left_ear", "right_wrist", "left_ankle"])
    assert is_pose_usable(pose)


@pytest.mark.parametrize("group", [("left_ear", "right_ear"), ("left_wrist", "right_wrist"), ("left_ankle", "right_ankle")])
def test_missing_group_is_not_usable(pose_factory, group):
    assert not is_pose_usable(pose_factory(low=group))


def test_no_pose_is_not_usable():
    assert not is_pose_usable(None)
    assert not is_pose_usable(Pose({}))


def test_pose_rejects_unknown_names():
    with pytest.raises(ValueError):
        Pose({"left_toe": Keypoint(0, 0, 1.0)})


def test_exercise_parse_and_orientation():
    assert ExerciseType.parse("side_squat") is ExerciseType.SIDE_SQUAT
    assert ExerciseType.PLANK.orientation is Orientation.SIDE
    assert ExerciseType.HAND_RISE.is_front
    assert ExerciseType.POSE.display_name == "Standing Pose"
    with pytest.raises(ValueError):
        ExerciseType.parse("lunge")
