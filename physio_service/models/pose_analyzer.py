"""
PHYSIOCOACH Physio Service - Pose Geometry

Landmark/pose data types and the stateless geometric features (joint angles,
distances) that the exercise rules are built on. Pose estimation itself
happens upstream; this module only consumes its landmarks.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Sequence

import numpy as np


# ═══════════════════════════════════════════════════════════════════════════════
# ENUMS AND DATA CLASSES
# ═══════════════════════════════════════════════════════════════════════════════

POSE_LANDMARK_COUNT = 33


class JointType(Enum):
    """Body joint indices (BlazePose topology)."""
    NOSE = 0
    LEFT_EYE_INNER = 1
    LEFT_EYE = 2
    LEFT_EYE_OUTER = 3
    RIGHT_EYE_INNER = 4
    RIGHT_EYE = 5
    RIGHT_EYE_OUTER = 6
    LEFT_EAR = 7
    RIGHT_EAR = 8
    MOUTH_LEFT = 9
    MOUTH_RIGHT = 10
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_PINKY = 17
    RIGHT_PINKY = 18
    LEFT_INDEX = 19
    RIGHT_INDEX = 20
    LEFT_THUMB = 21
    RIGHT_THUMB = 22
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32


@dataclass(frozen=True)
class Landmark:
    """A single pose landmark in normalized screen space."""
    x: float
    y: float
    z: float = 0.0
    visibility: float = 1.0

    @property
    def is_finite(self) -> bool:
        return math.isfinite(self.x) and math.isfinite(self.y) and math.isfinite(self.z)


class Pose:
    """
    One detected body: exactly 33 landmarks ordered by JointType.

    Raises ValueError when built from the wrong number of landmarks.
    """

    __slots__ = ("landmarks", "timestamp")

    def __init__(self, landmarks: Sequence[Landmark], timestamp: float = 0.0):
        if len(landmarks) != POSE_LANDMARK_COUNT:
            raise ValueError(
                f"Pose needs {POSE_LANDMARK_COUNT} landmarks, got {len(landmarks)}"
            )
        self.landmarks: List[Landmark] = list(landmarks)
        self.timestamp = timestamp

    def __getitem__(self, joint) -> Landmark:
        if isinstance(joint, JointType):
            joint = joint.value
        return self.landmarks[joint]

    def __len__(self) -> int:
        return len(self.landmarks)

    def is_finite(self, joints: Optional[Iterable[JointType]] = None) -> bool:
        """True when every requested landmark (all by default) has finite coordinates."""
        if joints is None:
            return all(lm.is_finite for lm in self.landmarks)
        return all(self[j].is_finite for j in joints)

    @classmethod
    def from_points(cls, points: Sequence[Sequence[float]], timestamp: float = 0.0) -> "Pose":
        """Build a pose from [x, y, z] or [x, y, z, visibility] rows."""
        landmarks = []
        for point in points:
            if len(point) < 2:
                raise ValueError(f"Landmark needs at least x and y, got {point!r}")
            landmarks.append(Landmark(*(float(v) for v in point[:4])))
        return cls(landmarks, timestamp=timestamp)


# ═══════════════════════════════════════════════════════════════════════════════
# GEOMETRIC FEATURES
# ═══════════════════════════════════════════════════════════════════════════════

def calculate_angle(p1: Landmark, p2: Landmark, p3: Landmark) -> float:
    """
    Calculate the angle at p2 formed by p1-p2-p3.

    Uses the screen-space x/y of each landmark.

    Returns:
        Angle in degrees (0-180). NaN coordinates give NaN.
    """
    radians = np.arctan2(p3.y - p2.y, p3.x - p2.x) - np.arctan2(p1.y - p2.y, p1.x - p2.x)
    angle = abs(float(np.degrees(radians)))

    if angle > 180.0:
        angle = 360.0 - angle

    return angle


def distance(a: Landmark, b: Landmark) -> float:
    """Euclidean distance between two landmarks in screen space."""
    return float(np.hypot(a.x - b.x, a.y - b.y))


def joint_angle(pose: Pose, first: JointType, vertex: JointType, last: JointType) -> float:
    """Angle at `vertex` between `first` and `last`."""
    return calculate_angle(pose[first], pose[vertex], pose[last])
