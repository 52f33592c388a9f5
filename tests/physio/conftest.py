"""
Pose builders for physio tests.

Landmarks are placed so that the joint angles the exercise rules measure come
out at exactly the requested values.
"""

import math

import pytest

from physio_service.models import JointType, Pose
from physio_service.persistence import InMemoryResultSink


SEGMENT = 0.2
SHOULDER_WIDTH = 0.2


def _point(origin, direction_deg, length=SEGMENT):
    rad = math.radians(direction_deg)
    return (origin[0] + length * math.cos(rad), origin[1] + length * math.sin(rad))


def build_pose(overrides):
    """33-landmark pose at the frame centre, with some joints moved."""
    points = [[0.5, 0.5, 0.0] for _ in range(33)]
    for joint, (x, y) in overrides.items():
        points[joint.value] = [x, y, 0.0]
    return Pose.from_points(points)


def squat_pose(hip_angle=90.0, knee_angle=170.0):
    """Right-side squat pose with the given hip (spine lean) and knee angles."""
    hip = (0.5, 0.5)
    knee = _point(hip, 90)
    shoulder = _point(hip, 90 - hip_angle)
    ankle = _point(knee, -90 + knee_angle)
    return build_pose({
        JointType.RIGHT_SHOULDER: shoulder,
        JointType.RIGHT_HIP: hip,
        JointType.RIGHT_KNEE: knee,
        JointType.RIGHT_ANKLE: ankle,
    })


def leg_lift_pose(right_angle=180.0, left_angle=180.0):
    """Standing pose with each leg's shoulder-hip-ankle angle set."""
    overrides = {}
    for (shoulder, hip, ankle), x, angle in (
        ((JointType.RIGHT_SHOULDER, JointType.RIGHT_HIP, JointType.RIGHT_ANKLE), 0.45, right_angle),
        ((JointType.LEFT_SHOULDER, JointType.LEFT_HIP, JointType.LEFT_ANKLE), 0.55, left_angle),
    ):
        hip_point = (x, 0.5)
        overrides[hip] = hip_point
        overrides[shoulder] = _point(hip_point, -90)
        overrides[ankle] = _point(hip_point, -90 + angle)
    return build_pose(overrides)


def band_pose(ratio=3.0, wrist_y_diff=0.0):
    """Band stretch pose: wrist distance = ratio * shoulder width."""
    y = 0.3
    wrist_distance = ratio * SHOULDER_WIDTH
    dx = math.sqrt(max(wrist_distance ** 2 - wrist_y_diff ** 2, 0.0))
    return build_pose({
        JointType.LEFT_SHOULDER: (0.5 + SHOULDER_WIDTH / 2, y),
        JointType.RIGHT_SHOULDER: (0.5 - SHOULDER_WIDTH / 2, y),
        JointType.LEFT_WRIST: (0.5 + dx / 2, y + wrist_y_diff),
        JointType.RIGHT_WRIST: (0.5 - dx / 2, y),
    })


@pytest.fixture
def make_squat_pose():
    return squat_pose


@pytest.fixture
def make_leg_lift_pose():
    return leg_lift_pose


@pytest.fixture
def make_band_pose():
    return band_pose


@pytest.fixture
def make_pose():
    return build_pose


@pytest.fixture
def result_sink():
    return InMemoryResultSink()
