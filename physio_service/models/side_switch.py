"""
PHYSIOCOACH Physio Service - Side Switching

Per-side exercises (e.g. lateral leg lifts) are done on the right side first
and then on the left. The controller here owns the one authoritative value
for the active side; classifiers and status snapshots read it, nobody keeps
a copy.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .exercise_rules import ExerciseSide

logger = logging.getLogger(__name__)


class InvalidGoalError(ValueError):
    """Exercise goal violates its invariants."""


@dataclass(frozen=True)
class ExerciseGoal:
    """Rep target for one session."""
    total_reps: int
    per_side: bool = False
    switch_at: Optional[int] = None

    def validate(self) -> "ExerciseGoal":
        if not isinstance(self.total_reps, int) or self.total_reps <= 0:
            raise InvalidGoalError(f"total_reps must be a positive integer, got {self.total_reps!r}")
        if self.per_side:
            if self.switch_at is None:
                raise InvalidGoalError("per-side goal needs switch_at")
            if self.switch_at * 2 != self.total_reps:
                raise InvalidGoalError(
                    f"switch_at ({self.switch_at}) must be half of total_reps ({self.total_reps})"
                )
        return self

    def to_dict(self) -> dict:
        return {
            "total_reps": self.total_reps,
            "per_side": self.per_side,
            "switch_at": self.switch_at,
        }


class SideSwitchController:
    """Single source of truth for the working side."""

    def __init__(self, goal: ExerciseGoal):
        self.goal = goal
        self._active_side = ExerciseSide.PRIMARY
        self._switched = False

    @property
    def active_side(self) -> ExerciseSide:
        return self._active_side

    @property
    def has_switched(self) -> bool:
        return self._switched

    def reset(self):
        self._active_side = ExerciseSide.PRIMARY
        self._switched = False

    def after_rep(self, total_completed: int) -> bool:
        """
        Check for the halfway switch right after a rep completes.

        Returns True (and flips to SECONDARY) exactly once per session,
        when the primary side has reached `switch_at`.
        """
        if not self.goal.per_side or self._switched:
            return False
        if self._active_side != ExerciseSide.PRIMARY:
            return False
        if total_completed != self.goal.switch_at:
            return False

        self._active_side = ExerciseSide.SECONDARY
        self._switched = True
        logger.info(f"🔄 Switching sides after {total_completed} reps")
        return True
