"""
PHYSIOCOACH Physio Service - Exercise Rules

Rule-based form classification for each supported exercise. Every exercise
is described by an ExercisePolicy: a classifier turning one pose into a
FormAssessment, and the predicate that tells the rep counter when a rep in
the Down stage is finished. Policies are looked up by exercise tag.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Optional, Tuple, Union

from .pose_analyzer import Pose, JointType, distance, joint_angle


# ═══════════════════════════════════════════════════════════════════════════════
# ENUMS AND DATA CLASSES
# ═══════════════════════════════════════════════════════════════════════════════

class ExerciseType(str, Enum):
    """Supported exercise types."""
    SQUAT = "squat"
    LATERAL_LEG_LIFT = "lateral_leg_lift"
    BAND_STRETCH = "band_stretch"


class ExerciseSide(str, Enum):
    """Working side for per-side exercises. PRIMARY uses the right-side landmarks."""
    PRIMARY = "primary"
    SECONDARY = "secondary"


class FormSeverity(str, Enum):
    """Per-frame form verdict."""
    GOOD = "good"
    CAUTION = "caution"
    BAD = "bad"

    @property
    def color(self) -> str:
        """Overlay color for the skeleton and feedback pill."""
        return _SEVERITY_COLORS[self]


_SEVERITY_COLORS = {
    FormSeverity.GOOD: "#00FF00",
    FormSeverity.CAUTION: "#FFFF00",
    FormSeverity.BAD: "#FF0000",
}


@dataclass(frozen=True)
class FormAssessment:
    """Form verdict for a single frame."""
    severity: FormSeverity
    message: str
    is_deep_enough: bool = False
    metrics: Dict[str, float] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        """False when any metric is NaN/inf (degenerate landmarks)."""
        return all(math.isfinite(value) for value in self.metrics.values())

    def to_dict(self) -> dict:
        return {
            "severity": self.severity.value,
            "color": self.severity.color,
            "message": self.message,
            "is_deep_enough": self.is_deep_enough,
            "metrics": {name: round(value, 2) for name, value in self.metrics.items()},
        }


Classifier = Callable[[Pose, ExerciseSide], FormAssessment]
RepFinished = Callable[[FormAssessment], bool]


@dataclass(frozen=True)
class ExercisePolicy:
    """How one exercise is judged and when its rep ends."""
    name: str
    classify: Classifier
    rep_finished: RepFinished
    joints: Dict[ExerciseSide, Tuple[JointType, ...]] = field(default_factory=dict)

    def joints_for(self, side: ExerciseSide) -> Tuple[JointType, ...]:
        """Landmarks the classifier reads on this side."""
        return self.joints.get(side, ())


# ═══════════════════════════════════════════════════════════════════════════════
# THRESHOLDS
# ═══════════════════════════════════════════════════════════════════════════════

# Empirically tuned; keep exact.
SQUAT_MIN_HIP_ANGLE = 60.0
SQUAT_MAX_DEPTH_KNEE_ANGLE = 110.0
SQUAT_STANDING_KNEE_ANGLE = 160.0

LEG_LIFT_REST_ANGLE = 165.0
LEG_LIFT_TARGET_ANGLE = 155.0

BAND_TARGET_RATIO = 2.8
BAND_RETURN_RATIO = 1.8
BAND_MAX_WRIST_Y_DIFF = 0.8


# ═══════════════════════════════════════════════════════════════════════════════
# CLASSIFIERS
# ═══════════════════════════════════════════════════════════════════════════════

def classify_squat(pose: Pose, side: ExerciseSide = ExerciseSide.PRIMARY) -> FormAssessment:
    """
    Squat, judged on the right side of the body.

    Hip angle (shoulder-hip-knee) guards against leaning forward,
    knee angle (hip-knee-ankle) measures depth.
    """
    knee_angle = joint_angle(pose, JointType.RIGHT_HIP, JointType.RIGHT_KNEE, JointType.RIGHT_ANKLE)
    hip_angle = joint_angle(pose, JointType.RIGHT_SHOULDER, JointType.RIGHT_HIP, JointType.RIGHT_KNEE)
    metrics = {"knee_angle": knee_angle, "hip_angle": hip_angle}

    if hip_angle < SQUAT_MIN_HIP_ANGLE:
        return FormAssessment(FormSeverity.BAD, "KEEP CHEST UP", False, metrics)
    if knee_angle > SQUAT_MAX_DEPTH_KNEE_ANGLE:
        return FormAssessment(FormSeverity.CAUTION, "GO LOWER", False, metrics)
    return FormAssessment(FormSeverity.GOOD, "Perfect Form!", True, metrics)


_LEG_LIFT_JOINTS = {
    ExerciseSide.PRIMARY: (JointType.RIGHT_SHOULDER, JointType.RIGHT_HIP, JointType.RIGHT_ANKLE),
    ExerciseSide.SECONDARY: (JointType.LEFT_SHOULDER, JointType.LEFT_HIP, JointType.LEFT_ANKLE),
}


def classify_lateral_leg_lift(pose: Pose, side: ExerciseSide = ExerciseSide.PRIMARY) -> FormAssessment:
    """
    Lateral leg lift on the active side.

    The shoulder-hip-ankle angle is about 180 with the leg down and shrinks
    as the leg rises. Between the two thresholds the verdict holds steady.
    """
    shoulder, hip, ankle = _LEG_LIFT_JOINTS[side]
    lift_angle = joint_angle(pose, shoulder, hip, ankle)
    metrics = {"lift_angle": lift_angle}

    if lift_angle > LEG_LIFT_REST_ANGLE:
        leg = "RIGHT" if side == ExerciseSide.PRIMARY else "LEFT"
        return FormAssessment(FormSeverity.CAUTION, f"LIFT {leg} LEG", False, metrics)
    if lift_angle < LEG_LIFT_TARGET_ANGLE:
        return FormAssessment(FormSeverity.GOOD, "GREAT HEIGHT!", True, metrics)
    return FormAssessment(FormSeverity.GOOD, "Good Control", False, metrics)


def classify_band_stretch(pose: Pose, side: ExerciseSide = ExerciseSide.PRIMARY) -> FormAssessment:
    """
    Band pull-apart.

    Expansion is wrist distance over shoulder width. Only once the band is
    wide enough are the arms checked for vertical symmetry.
    """
    left_shoulder = pose[JointType.LEFT_SHOULDER]
    right_shoulder = pose[JointType.RIGHT_SHOULDER]
    left_wrist = pose[JointType.LEFT_WRIST]
    right_wrist = pose[JointType.RIGHT_WRIST]

    shoulder_width = distance(left_shoulder, right_shoulder)
    wrist_distance = distance(left_wrist, right_wrist)
    ratio = wrist_distance / shoulder_width if shoulder_width > 0 else float("nan")
    wrist_y_diff = abs(left_wrist.y - right_wrist.y)

    metrics = {
        "current_ratio": ratio,
        "wrist_y_diff": wrist_y_diff,
        "shoulder_width": shoulder_width,
    }

    if ratio <= BAND_TARGET_RATIO:
        return FormAssessment(FormSeverity.CAUTION, "KEEP STRETCHING", False, metrics)
    if wrist_y_diff > shoulder_width * BAND_MAX_WRIST_Y_DIFF:
        return FormAssessment(FormSeverity.BAD, "ARMS UNEVEN", False, metrics)
    return FormAssessment(FormSeverity.GOOD, "PERFECT STRETCH!", True, metrics)


def classify_neutral(pose: Pose, side: ExerciseSide = ExerciseSide.PRIMARY) -> FormAssessment:
    return FormAssessment(FormSeverity.GOOD, "Neutral", False, {})


# ═══════════════════════════════════════════════════════════════════════════════
# POLICY REGISTRY
# ═══════════════════════════════════════════════════════════════════════════════

def _both_sides(*joints: JointType) -> Dict[ExerciseSide, Tuple[JointType, ...]]:
    return {side: joints for side in ExerciseSide}


EXERCISE_POLICIES: Dict[ExerciseType, ExercisePolicy] = {
    ExerciseType.SQUAT: ExercisePolicy(
        name="squat",
        classify=classify_squat,
        rep_finished=lambda a: a.metrics["knee_angle"] > SQUAT_STANDING_KNEE_ANGLE,
        joints=_both_sides(
            JointType.RIGHT_SHOULDER, JointType.RIGHT_HIP, JointType.RIGHT_KNEE, JointType.RIGHT_ANKLE
        ),
    ),
    ExerciseType.LATERAL_LEG_LIFT: ExercisePolicy(
        name="lateral_leg_lift",
        classify=classify_lateral_leg_lift,
        rep_finished=lambda a: not a.is_deep_enough,
        joints=_LEG_LIFT_JOINTS,
    ),
    ExerciseType.BAND_STRETCH: ExercisePolicy(
        name="band_stretch",
        classify=classify_band_stretch,
        rep_finished=lambda a: a.metrics["current_ratio"] < BAND_RETURN_RATIO,
        joints=_both_sides(
            JointType.LEFT_SHOULDER, JointType.RIGHT_SHOULDER, JointType.LEFT_WRIST, JointType.RIGHT_WRIST
        ),
    ),
}

NEUTRAL_POLICY = ExercisePolicy(
    name="neutral",
    classify=classify_neutral,
    rep_finished=lambda a: False,
)


def resolve_exercise(tag: Union[str, ExerciseType, None]) -> Optional[ExerciseType]:
    """Map a tag to an ExerciseType, or None when it is not recognized."""
    if isinstance(tag, ExerciseType):
        return tag
    try:
        return ExerciseType(tag)
    except ValueError:
        return None


def get_policy(tag: Union[str, ExerciseType, None]) -> ExercisePolicy:
    """Policy for an exercise tag. Unknown tags get the neutral policy."""
    exercise = resolve_exercise(tag)
    if exercise is None:
        return NEUTRAL_POLICY
    return EXERCISE_POLICIES.get(exercise, NEUTRAL_POLICY)


def assess_form(pose: Pose, tag: Union[str, ExerciseType], side: ExerciseSide = ExerciseSide.PRIMARY) -> FormAssessment:
    """Classify one pose for the given exercise."""
    return get_policy(tag).classify(pose, side)
