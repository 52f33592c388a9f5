"""Workout log persistence."""

import pytest

from core.database import MockFirestoreClient
from physio_service.models import SessionResult
from physio_service.persistence import FirestoreResultSink, build_workout_log


def make_result(**overrides):
    values = dict(
        exercise_type="squat",
        total_reps=8,
        clean_reps=6,
        target_reps=8,
        patient_id="patient-1",
        assignment_id="assignment-1",
        completed_at="2024-01-01T10:00:00",
    )
    values.update(overrides)
    return SessionResult(**values)


class FlakyCollection:
    def __init__(self, failures):
        self.failures = failures
        self.calls = 0
        self.inner = MockFirestoreClient().collection("workout_logs")

    def add(self, data):
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError("deadline exceeded")
        return self.inner.add(data)


class FlakyDb:
    def __init__(self, failures):
        self.logs = FlakyCollection(failures)

    def collection(self, name):
        return self.logs


def test_workout_log_document():
    document = build_workout_log(make_result())

    assert document["patient_id"] == "patient-1"
    assert document["assignment_id"] == "assignment-1"
    assert document["exercise"] == "squat"
    assert document["total_reps"] == 8
    assert document["clean_reps"] == 6
    assert document["clean_ratio"] == 0.75
    assert document["pain_rating"] is None
    assert document["seen_by_doctor"] is False
    assert document["completed_at"] == "2024-01-01T10:00:00"


def test_clean_ratio_of_empty_session_is_zero():
    assert build_workout_log(make_result(total_reps=0, clean_reps=0))["clean_ratio"] == 0.0


def test_save_writes_to_collection():
    db = MockFirestoreClient()
    sink = FirestoreResultSink(db=db, collection="workout_logs")

    doc_id = sink.save(make_result())

    docs = db.collection("workout_logs").get()
    assert len(docs) == 1
    assert docs[0].id == doc_id
    assert docs[0].to_dict()["total_reps"] == 8


def test_save_retries_transient_errors():
    db = FlakyDb(failures=2)
    sink = FirestoreResultSink(db=db, max_attempts=3)

    sink.save(make_result())

    assert db.logs.calls == 3
    assert len(db.logs.inner.get()) == 1


def test_save_raises_after_last_attempt():
    db = FlakyDb(failures=10)
    sink = FirestoreResultSink(db=db, max_attempts=2)

    with pytest.raises(ConnectionError):
        sink.save(make_result())
    assert db.logs.calls == 2
