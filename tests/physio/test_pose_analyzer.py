"""Geometry helpers: joint angles, distances, pose construction."""

import math

import pytest

from physio_service.models import JointType, Landmark, Pose, calculate_angle, distance


def test_colinear_points_give_180():
    assert calculate_angle(Landmark(0.0, 0.0), Landmark(0.5, 0.5), Landmark(1.0, 1.0)) == pytest.approx(180.0)


def test_same_endpoints_give_zero():
    p = Landmark(0.2, 0.7)
    assert calculate_angle(p, Landmark(0.5, 0.5), p) == pytest.approx(0.0)


@pytest.mark.parametrize("p1, p3", [
    (Landmark(1.0, 0.0), Landmark(0.0, 1.0)),
    (Landmark(0.9, 0.1), Landmark(0.1, 0.2)),
    (Landmark(-0.3, 0.4), Landmark(0.6, -0.8)),
])
def test_angle_is_symmetric(p1, p3):
    vertex = Landmark(0.0, 0.0)
    assert calculate_angle(p1, vertex, p3) == pytest.approx(calculate_angle(p3, vertex, p1))


def test_right_angle():
    assert calculate_angle(Landmark(1.0, 0.0), Landmark(0.0, 0.0), Landmark(0.0, 1.0)) == pytest.approx(90.0)


def test_reflex_angle_is_folded():
    # Rays at +170 and -170 degrees: the raw difference is 340, folded to 20
    p1 = Landmark(math.cos(math.radians(170)), math.sin(math.radians(170)))
    p3 = Landmark(math.cos(math.radians(-170)), math.sin(math.radians(-170)))

    assert calculate_angle(p1, Landmark(0.0, 0.0), p3) == pytest.approx(20.0)


def test_nan_propagates():
    angle = calculate_angle(Landmark(float("nan"), 0.0), Landmark(0.0, 0.0), Landmark(1.0, 0.0))
    assert math.isnan(angle)


def test_distance_ignores_depth():
    assert distance(Landmark(0.0, 0.0, 5.0), Landmark(3.0, 4.0, -2.0)) == pytest.approx(5.0)


def test_pose_requires_33_landmarks():
    with pytest.raises(ValueError):
        Pose([Landmark(0.0, 0.0)] * 32)


def test_pose_from_points_accepts_xy_and_visibility():
    points = [[0.1, 0.2]] * 32 + [[0.3, 0.4, 0.5, 0.9]]
    pose = Pose.from_points(points)

    assert len(pose) == 33
    assert pose[JointType.RIGHT_FOOT_INDEX] == Landmark(0.3, 0.4, 0.5, 0.9)
    assert pose[0].z == 0.0


def test_pose_is_finite_checks_requested_joints(make_pose):
    pose = make_pose({JointType.LEFT_WRIST: (float("nan"), 0.5)})

    assert not pose.is_finite()
    assert not pose.is_finite([JointType.LEFT_WRIST])
    assert pose.is_finite([JointType.RIGHT_WRIST, JointType.LEFT_HIP])
