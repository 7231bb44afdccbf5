"""Keypoint model: named 2D body landmarks and exercise orientation.

Coordinates are always in the pixel space of the upright camera image
(origin top-left, y grows downward). Backend adapters convert their native
output into this frame before building a Pose.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Optional, Tuple

KEYPOINT_NAMES: Tuple[str, ...] = (
    "nose",
    "left_eye",
    "right_eye",
    "left_ear",
    "right_ear",
    "left_shoulder",
    "right_shoulder",
    "left_elbow",
    "right_elbow",
    "left_wrist",
    "right_wrist",
    "left_hip",
    "right_hip",
    "left_knee",
    "right_knee",
    "left_ankle",
    "right_ankle",
)

# Bilateral pairs in recorded column order
BODY_PARTS: Tuple[str, ...] = ("shoulder", "hip", "knee", "ankle", "elbow", "wrist", "ear")


def pair_names(part: str) -> Tuple[str, str]:
    return f"left_{part}", f"right_{part}"


class Orientation(str, Enum):
    FRONT = "front"
    SIDE = "side"


class ExerciseType(str, Enum):
    POSE = "POSE"
    SQUAT = "SQUAT"
    HAND_RISE = "HAND_RISE"
    SIDE_SQUAT = "SIDE_SQUAT"
    PLANK = "PLANK"

    @classmethod
    def parse(cls, value: "str | ExerciseType") -> "ExerciseType":
        if isinstance(value, ExerciseType):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(f"Unknown exercise type '{value}'") from None

    @property
    def orientation(self) -> Orientation:
        return _ORIENTATION[self]

    @property
    def is_front(self) -> bool:
        return self.orientation is Orientation.FRONT

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_ORIENTATION: Dict[ExerciseType, Orientation] = {
    ExerciseType.POSE: Orientation.FRONT,
    ExerciseType.SQUAT: Orientation.FRONT,
    ExerciseType.HAND_RISE: Orientation.FRONT,
    ExerciseType.SIDE_SQUAT: Orientation.SIDE,
    ExerciseType.PLANK: Orientation.SIDE,
}

_DISPLAY_NAMES: Dict[ExerciseType, str] = {
    ExerciseType.POSE: "Standing Pose",
    ExerciseType.SQUAT: "Squat",
    ExerciseType.HAND_RISE: "Hand Rise",
    ExerciseType.SIDE_SQUAT: "Side Squat",
    ExerciseType.PLANK: "Plank",
}


@dataclass(frozen=True)
class Keypoint:
    x: float
    y: float
    confidence: float


@dataclass(frozen=True)
class Pose:
    """Immutable snapshot of one detected body.

    Only names from ``KEYPOINT_NAMES`` are accepted; absent landmarks are
    simply missing from the mapping.
    """

    keypoints: Mapping[str, Keypoint] = field(default_factory=dict)

    def __post_init__(self) -> None:
        unknown = [name for name in self.keypoints if name not in KEYPOINT_NAMES]
        if unknown:
            raise ValueError(f"Unknown keypoint names: {', '.join(sorted(unknown))}")
        object.__setattr__(self, "keypoints", MappingProxyType(dict(self.keypoints)))

    def get(self, name: str) -> Optional[Keypoint]:
        return self.keypoints.get(name)

    def __getitem__(self, name: str) -> Keypoint:
        return self.keypoints[name]

    def __contains__(self, name: object) -> bool:
        return name in self.keypoints

    def __iter__(self) -> Iterator[str]:
        return iter(self.keypoints)

    def __len__(self) -> int:
        return len(self.keypoints)
