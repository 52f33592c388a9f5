"""
PHYSIOCOACH Physio Service - Exercise Catalog

Default goals and patient-facing instructions for each exercise.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from .exercise_rules import ExerciseType, resolve_exercise
from .side_switch import ExerciseGoal


@dataclass(frozen=True)
class CatalogEntry:
    exercise_type: ExerciseType
    title: str
    goal: ExerciseGoal
    instructions: str

    def to_dict(self) -> dict:
        return {
            "id": self.exercise_type.value,
            "title": self.title,
            "goal": self.goal.to_dict(),
            "instructions": self.instructions,
        }


EXERCISE_CATALOG: Dict[ExerciseType, CatalogEntry] = {
    ExerciseType.SQUAT: CatalogEntry(
        exercise_type=ExerciseType.SQUAT,
        title="Squats",
        goal=ExerciseGoal(total_reps=8),
        instructions="Keep your chest up and lower your hips until thighs are parallel.",
    ),
    ExerciseType.LATERAL_LEG_LIFT: CatalogEntry(
        exercise_type=ExerciseType.LATERAL_LEG_LIFT,
        title="Leg Lifts",
        goal=ExerciseGoal(total_reps=16, per_side=True, switch_at=8),
        instructions="Lift leg sideways keeping torso upright.",
    ),
    ExerciseType.BAND_STRETCH: CatalogEntry(
        exercise_type=ExerciseType.BAND_STRETCH,
        title="Band Pull-Aparts",
        goal=ExerciseGoal(total_reps=10),
        instructions="Pull band apart keeping arms straight.",
    ),
}

# Used for exercise tags the app does not have rules for yet.
DEFAULT_GOAL = ExerciseGoal(total_reps=5)


def get_catalog_entry(tag: str) -> Optional[CatalogEntry]:
    exercise = resolve_exercise(tag)
    if exercise is None:
        return None
    return EXERCISE_CATALOG.get(exercise)


def list_exercises() -> List[dict]:
    return [entry.to_dict() for entry in EXERCISE_CATALOG.values()]


def goal_for(tag: str, target_reps: Optional[int] = None) -> ExerciseGoal:
    """
    Goal for an exercise, optionally overridden by a prescribed rep count.

    Per-side exercises split the prescribed count evenly between sides.
    """
    entry = get_catalog_entry(tag)
    base = entry.goal if entry else DEFAULT_GOAL
    if target_reps is None:
        return base
    if base.per_side:
        return ExerciseGoal(total_reps=target_reps, per_side=True, switch_at=target_reps // 2)
    return ExerciseGoal(total_reps=target_reps)
