"""
PHYSIOCOACH Physio Service Models

Rule-based exercise form feedback and repetition counting from pose landmarks.
"""

from .pose_analyzer import (
    Landmark,
    Pose,
    JointType,
    calculate_angle,
    distance,
)

from .exercise_rules import (
    ExerciseType,
    ExerciseSide,
    FormSeverity,
    FormAssessment,
    ExercisePolicy,
    assess_form,
    get_policy,
)

from .rep_counter import (
    RepStage,
    RepCounterState,
    RepStep,
    advance,
)

from .side_switch import (
    ExerciseGoal,
    InvalidGoalError,
    SideSwitchController,
)

from .exercise_catalog import (
    EXERCISE_CATALOG,
    get_catalog_entry,
    goal_for,
    list_exercises,
)

from .exercise_session import (
    ExerciseSessionController,
    SessionState,
    SessionStatus,
    SessionResult,
    RepEvent,
    FrameUpdate,
    SessionRegistry,
    get_session_registry,
)

from .pose_source import (
    PoseSource,
    ScriptedPoseSource,
    MediaPipePoseSource,
    landmarks_to_pose,
)

from .frame_loop import run_frame_loop

__all__ = [
    # Pose geometry
    "Landmark",
    "Pose",
    "JointType",
    "calculate_angle",
    "distance",
    # Exercise rules
    "ExerciseType",
    "ExerciseSide",
    "FormSeverity",
    "FormAssessment",
    "ExercisePolicy",
    "assess_form",
    "get_policy",
    # Rep counting
    "RepStage",
    "RepCounterState",
    "RepStep",
    "advance",
    # Goals and sides
    "ExerciseGoal",
    "InvalidGoalError",
    "SideSwitchController",
    # Catalog
    "EXERCISE_CATALOG",
    "get_catalog_entry",
    "goal_for",
    "list_exercises",
    # Session
    "ExerciseSessionController",
    "SessionState",
    "SessionStatus",
    "SessionResult",
    "RepEvent",
    "FrameUpdate",
    "SessionRegistry",
    "get_session_registry",
    # Pose sources
    "PoseSource",
    "ScriptedPoseSource",
    "MediaPipePoseSource",
    "landmarks_to_pose",
    "run_frame_loop",
]
