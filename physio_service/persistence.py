"""
PHYSIOCOACH Physio Service - Session Result Persistence

Writes finished sessions to the workout log collection in Firestore. The
log entry starts with no pain rating; the post-workout check-in fills it in
for the doctor.
"""

import logging
from typing import Any, Dict, List, Optional

from core.config import settings
from core.database import get_database
from shared.utils import get_now_iso

from .models.exercise_session import SessionResult

logger = logging.getLogger(__name__)


def build_workout_log(result: SessionResult) -> Dict[str, Any]:
    """Firestore document for a finished session."""
    return {
        "patient_id": result.patient_id,
        "assignment_id": result.assignment_id,
        "exercise": result.exercise_type,
        "total_reps": result.total_reps,
        "clean_reps": result.clean_reps,
        "target_reps": result.target_reps,
        "clean_ratio": round(result.clean_ratio, 3),
        "pain_rating": None,
        "seen_by_doctor": False,
        "completed_at": result.completed_at,
        "created_at": get_now_iso(),
    }


class FirestoreResultSink:
    """
    Saves session results as workout logs.

    Retries a failed write up to `max_attempts` times before raising, so the
    session controller can keep the result for a later retry.
    """

    def __init__(self, db=None, collection: Optional[str] = None, max_attempts: Optional[int] = None):
        self._db = db
        self.collection = collection or settings.WORKOUT_LOG_COLLECTION
        self.max_attempts = max_attempts or settings.PERSIST_MAX_ATTEMPTS

    @property
    def db(self):
        if self._db is None:
            self._db = get_database()
        return self._db

    def save(self, result: SessionResult) -> str:
        """
        Store one result.

        Returns:
            Document ID of the new workout log.
        """
        document = build_workout_log(result)
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                _, ref = self.db.collection(self.collection).add(document)
                logger.info(
                    f"💾 Workout log {ref.id} saved "
                    f"({result.total_reps} reps, {result.clean_reps} clean)"
                )
                return ref.id
            except Exception as e:
                last_error = e
                logger.warning(f"Workout log save attempt {attempt}/{self.max_attempts} failed: {e}")

        raise last_error


class InMemoryResultSink:
    """Keeps results in a list; used when no database is wanted (tests, demos)."""

    def __init__(self):
        self.results: List[SessionResult] = []

    def save(self, result: SessionResult) -> int:
        self.results.append(result)
        return len(self.results)
