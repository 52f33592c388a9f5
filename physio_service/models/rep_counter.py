"""
PHYSIOCOACH Physio Service - Repetition State Machine

Tracks the Up/Down stage of the current rep and decides, frame by frame,
when a rep is completed and whether it was clean. The state is an immutable
value: `advance` returns a new state instead of mutating the old one, so the
counter can be driven and tested without a session or a camera.
"""

from dataclasses import dataclass, replace
from enum import Enum

from core.config import settings

from .exercise_rules import ExercisePolicy, FormAssessment, FormSeverity


class RepStage(str, Enum):
    """Repetition phase. DOWN means the patient is in the target position."""
    UP = "up"
    DOWN = "down"


@dataclass(frozen=True)
class RepCounterState:
    """Counters for one session."""
    stage: RepStage = RepStage.UP
    total_completed: int = 0
    clean_completed: int = 0
    frames_in_down_stage: int = 0
    bad_frames_in_down_stage: int = 0

    @property
    def bad_ratio(self) -> float:
        """Share of Bad frames in the current Down stage."""
        return self.bad_frames_in_down_stage / max(self.frames_in_down_stage, 1)

    def to_dict(self) -> dict:
        return {
            "stage": self.stage.value,
            "total_completed": self.total_completed,
            "clean_completed": self.clean_completed,
            "frames_in_down_stage": self.frames_in_down_stage,
            "bad_frames_in_down_stage": self.bad_frames_in_down_stage,
        }


@dataclass(frozen=True)
class RepStep:
    """Result of feeding one assessment to the counter."""
    state: RepCounterState
    rep_completed: bool = False
    was_clean: bool = False


def advance(
    state: RepCounterState,
    assessment: FormAssessment,
    policy: ExercisePolicy,
    max_bad_ratio: float = None,
) -> RepStep:
    """
    Feed one valid frame assessment to the counter.

    Reaching depth moves the stage to DOWN. While in DOWN, the policy's
    completion predicate ends the rep; otherwise the frame is counted toward
    the Down stage (and as Bad when its severity is BAD). The completing
    frame closes the stage and is not itself counted.

    Callers must skip missing poses and invalid assessments before calling.
    """
    if max_bad_ratio is None:
        max_bad_ratio = settings.CLEAN_REP_MAX_BAD_RATIO

    if assessment.is_deep_enough and state.stage == RepStage.UP:
        state = replace(state, stage=RepStage.DOWN)

    if state.stage != RepStage.DOWN:
        return RepStep(state)

    if policy.rep_finished(assessment):
        was_clean = state.bad_ratio < max_bad_ratio
        finished = RepCounterState(
            stage=RepStage.UP,
            total_completed=state.total_completed + 1,
            clean_completed=state.clean_completed + (1 if was_clean else 0),
        )
        return RepStep(finished, rep_completed=True, was_clean=was_clean)

    is_bad = assessment.severity == FormSeverity.BAD
    return RepStep(replace(
        state,
        frames_in_down_stage=state.frames_in_down_stage + 1,
        bad_frames_in_down_stage=state.bad_frames_in_down_stage + (1 if is_bad else 0),
    ))
