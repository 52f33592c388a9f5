"""
PHYSIOCOACH Physio Service - Exercise Session Controller

Runs one exercise session: countdown, live rep counting with form feedback,
the halfway side switch for per-side exercises, and the final result that is
handed to persistence.

Lifecycle:
    IDLE -> COUNTING_DOWN(5) -> ACTIVE(side) -> [SWITCHING -> COUNTING_DOWN(5)
    -> ACTIVE(SECONDARY)] -> FINISHED
    stop() returns to IDLE from any state.
"""

import asyncio
import logging
import threading
import uuid
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Any, Callable, Dict, List, Optional, Protocol, Union

from core.config import settings
from shared.utils import get_now_iso

from .exercise_catalog import goal_for
from .exercise_rules import ExerciseSide, ExerciseType, FormAssessment, get_policy, resolve_exercise
from .pose_analyzer import Pose
from .rep_counter import RepCounterState, advance
from .side_switch import ExerciseGoal, SideSwitchController

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    """Exercise session states."""
    IDLE = "idle"
    COUNTING_DOWN = "counting_down"
    ACTIVE = "active"
    SWITCHING = "switching"
    FINISHED = "finished"


@dataclass(frozen=True)
class SessionResult:
    """Final (or stopped-early) counts for a session."""
    exercise_type: str
    total_reps: int
    clean_reps: int
    target_reps: int
    patient_id: Optional[str] = None
    assignment_id: Optional[str] = None
    completed_at: str = ""

    @property
    def clean_ratio(self) -> float:
        if self.total_reps == 0:
            return 0.0
        return self.clean_reps / self.total_reps

    def to_dict(self) -> Dict[str, Any]:
        return {
            "exercise_type": self.exercise_type,
            "total_reps": self.total_reps,
            "clean_reps": self.clean_reps,
            "target_reps": self.target_reps,
            "clean_ratio": round(self.clean_ratio, 3),
            "patient_id": self.patient_id,
            "assignment_id": self.assignment_id,
            "completed_at": self.completed_at,
        }


@dataclass(frozen=True)
class RepEvent:
    """Emitted once per completed rep, for audio/visual cues."""
    number: int
    clean: bool
    side: ExerciseSide


@dataclass(frozen=True)
class SessionStatus:
    """Snapshot of the session for the presentation layer."""
    session_id: str
    exercise_type: str
    state: SessionState
    seconds_left: int
    side: Optional[ExerciseSide]
    total_completed: int
    clean_completed: int
    target_reps: int
    result: Optional[SessionResult] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "exercise_type": self.exercise_type,
            "state": self.state.value,
            "seconds_left": self.seconds_left,
            "side": self.side.value if self.side else None,
            "total_completed": self.total_completed,
            "clean_completed": self.clean_completed,
            "target_reps": self.target_reps,
            "result": self.result.to_dict() if self.result else None,
        }


@dataclass(frozen=True)
class FrameUpdate:
    """Everything one frame produced."""
    assessment: Optional[FormAssessment]
    status: SessionStatus
    rep_event: Optional[RepEvent] = None
    skipped: bool = False
    switched_sides: bool = False
    finished: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "assessment": self.assessment.to_dict() if self.assessment else None,
            "status": self.status.to_dict(),
            "rep_event": {
                "number": self.rep_event.number,
                "clean": self.rep_event.clean,
                "side": self.rep_event.side.value,
            } if self.rep_event else None,
            "skipped": self.skipped,
            "switched_sides": self.switched_sides,
            "finished": self.finished,
        }


class SessionResultSink(Protocol):
    """Persistence collaborator receiving the final result."""

    def save(self, result: SessionResult) -> Any:
        ...


class ExerciseSessionController:
    """
    Drives one exercise session from pose frames and control signals.

    Features:
    - 1 Hz countdown before counting starts (and again after a side switch)
    - Per-frame form assessment and rep counting
    - Clean/dirty rep classification
    - Halfway side switch for per-side exercises
    - Single hand-off of the final result to persistence

    Frames are processed only while the "analysis active" flag is set. The
    countdown task is the only writer that sets it; stop, switch and finish
    clear it on the frame path.
    """

    def __init__(
        self,
        exercise_type: Union[str, ExerciseType],
        goal: Optional[ExerciseGoal] = None,
        result_sink: Optional[SessionResultSink] = None,
        on_rep: Optional[Callable[[RepEvent], None]] = None,
        countdown_seconds: Optional[int] = None,
        tick_interval: Optional[float] = None,
        patient_id: Optional[str] = None,
        assignment_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ):
        """
        Args:
            exercise_type: Exercise tag; unknown tags run with neutral feedback
            goal: Rep goal (catalog default for the exercise if None)
            result_sink: Receives the SessionResult when the goal is reached
            on_rep: Called for every completed rep
            countdown_seconds: Countdown length (settings default if None)
            tick_interval: Seconds between countdown ticks (settings default if None)
        """
        exercise = resolve_exercise(exercise_type)
        self.exercise_type = exercise.value if exercise else str(exercise_type)
        self.policy = get_policy(exercise_type)
        self.goal = goal or goal_for(self.exercise_type)
        self.result_sink = result_sink
        self.on_rep = on_rep
        self.countdown_seconds = (
            settings.COUNTDOWN_SECONDS if countdown_seconds is None else countdown_seconds
        )
        self.tick_interval = (
            settings.COUNTDOWN_TICK_SECONDS if tick_interval is None else tick_interval
        )
        self.patient_id = patient_id
        self.assignment_id = assignment_id
        self.session_id = session_id or str(uuid.uuid4())[:8]

        self.state = SessionState.IDLE
        self.seconds_left = 0
        self.counter = RepCounterState()
        self.sides = SideSwitchController(self.goal)
        self.analysis_active = threading.Event()
        self.last_assessment: Optional[FormAssessment] = None

        self.result: Optional[SessionResult] = None
        self.unsaved_results: List[SessionResult] = []
        self.persist_error: Optional[str] = None

        self._countdown_task: Optional[asyncio.Task] = None
        self.pending_save: Optional[asyncio.Future] = None

        if exercise is None:
            logger.warning(f"⚠️ No rules for exercise '{exercise_type}', using neutral feedback")

    # ═══════════════════════════════════════════════════════════════════════════
    # CONTROL SIGNALS
    # ═══════════════════════════════════════════════════════════════════════════

    def start(self) -> SessionStatus:
        """
        Start (or restart) the session.

        Raises:
            InvalidGoalError: goal violates its invariants; nothing is reset.
        """
        self.goal.validate()

        self._cancel_countdown()
        self.counter = RepCounterState()
        self.sides.reset()
        self.last_assessment = None
        self.result = None

        logger.info(
            f"▶️ Session {self.session_id} started: {self.exercise_type} "
            f"(goal {self.goal.total_reps} reps, per side: {self.goal.per_side})"
        )
        self._begin_countdown()
        return self.status()

    def stop(self) -> SessionResult:
        """
        Stop early. Returns the counts so far; they are not persisted.
        """
        self.analysis_active.clear()
        self._cancel_countdown()
        self.seconds_left = 0

        result = self._build_result()
        self.state = SessionState.IDLE
        self.result = None
        logger.info(
            f"⏹️ Session {self.session_id} stopped at {result.total_reps}/{self.goal.total_reps} reps"
        )
        return result

    def resume_after_switch(self) -> SessionStatus:
        """Patient is ready on the second side; restart the countdown."""
        if self.state != SessionState.SWITCHING:
            logger.warning(
                f"Resume ignored for session {self.session_id}: state is {self.state.value}"
            )
            return self.status()

        logger.info(f"↪️ Session {self.session_id} resuming on {self.sides.active_side.value} side")
        self._begin_countdown()
        return self.status()

    # ═══════════════════════════════════════════════════════════════════════════
    # COUNTDOWN
    # ═══════════════════════════════════════════════════════════════════════════

    def tick(self) -> SessionStatus:
        """Advance the countdown by one second."""
        if self.state != SessionState.COUNTING_DOWN:
            return self.status()

        self.seconds_left -= 1
        if self.seconds_left <= 0:
            self._activate()
        return self.status()

    def _begin_countdown(self):
        self.analysis_active.clear()
        self.state = SessionState.COUNTING_DOWN
        self.seconds_left = self.countdown_seconds

        if self.seconds_left <= 0:
            self._activate()
            return

        self._countdown_task = self._schedule_countdown()

    def _schedule_countdown(self) -> Optional[asyncio.Task]:
        # Without a running loop the caller drives tick() itself.
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return None
        return loop.create_task(self._run_countdown())

    async def _run_countdown(self):
        while self.state == SessionState.COUNTING_DOWN:
            await asyncio.sleep(self.tick_interval)
            if self.state != SessionState.COUNTING_DOWN:
                break
            self.tick()

    def _cancel_countdown(self):
        task = self._countdown_task
        self._countdown_task = None
        if task is not None and not task.done():
            task.cancel()

    def _activate(self):
        self.seconds_left = 0
        self.state = SessionState.ACTIVE
        self.analysis_active.set()
        logger.info(f"🏁 Session {self.session_id} active on {self.sides.active_side.value} side")

    # ═══════════════════════════════════════════════════════════════════════════
    # FRAME PROCESSING
    # ═══════════════════════════════════════════════════════════════════════════

    def process_pose(self, pose: Optional[Pose]) -> FrameUpdate:
        """
        Process the latest pose (None when nothing was detected).

        Missing poses and degenerate landmarks are skipped without touching
        any counter; the previous assessment stays on display.
        """
        if not self.analysis_active.is_set() or self.state != SessionState.ACTIVE:
            return self._skip()
        if pose is None:
            return self._skip()

        # Side is read here, in the same step that may complete the rep.
        side = self.sides.active_side
        if not pose.is_finite(self.policy.joints_for(side)):
            logger.debug("Skipping frame with non-finite landmarks")
            return self._skip()

        assessment = self.policy.classify(pose, side)
        if not assessment.is_valid:
            logger.debug(f"Skipping frame with non-finite metrics: {assessment.metrics}")
            return self._skip()

        self.last_assessment = assessment
        step = advance(self.counter, assessment, self.policy)
        self.counter = step.state

        if not step.rep_completed:
            return FrameUpdate(assessment, self.status())

        event = RepEvent(number=self.counter.total_completed, clean=step.was_clean, side=side)
        logger.info(
            f"✅ Rep {event.number}/{self.goal.total_reps} "
            f"({'clean' if event.clean else 'dirty'}, {side.value} side)"
        )
        self._notify_rep(event)

        switched = False
        finished = False
        if self.sides.after_rep(self.counter.total_completed):
            self._enter_switching()
            switched = True
        elif self.counter.total_completed >= self.goal.total_reps:
            self._finish()
            finished = True

        return FrameUpdate(
            assessment,
            self.status(),
            rep_event=event,
            switched_sides=switched,
            finished=finished,
        )

    def _skip(self) -> FrameUpdate:
        return FrameUpdate(self.last_assessment, self.status(), skipped=True)

    def _notify_rep(self, event: RepEvent):
        if self.on_rep is None:
            return
        try:
            self.on_rep(event)
        except Exception as e:
            logger.error(f"Rep callback failed: {e}")

    def _enter_switching(self):
        self.analysis_active.clear()
        self.state = SessionState.SWITCHING
        logger.info(f"⏸️ Session {self.session_id} waiting for side switch")

    # ═══════════════════════════════════════════════════════════════════════════
    # RESULT & PERSISTENCE
    # ═══════════════════════════════════════════════════════════════════════════

    def _build_result(self) -> SessionResult:
        return SessionResult(
            exercise_type=self.exercise_type,
            total_reps=self.counter.total_completed,
            clean_reps=self.counter.clean_completed,
            target_reps=self.goal.total_reps,
            patient_id=self.patient_id,
            assignment_id=self.assignment_id,
            completed_at=get_now_iso(),
        )

    def _finish(self):
        self.analysis_active.clear()
        self.state = SessionState.FINISHED
        self.result = self._build_result()
        logger.info(
            f"🎉 Session {self.session_id} finished: "
            f"{self.result.clean_reps}/{self.result.total_reps} clean reps"
        )
        self._hand_off(self.result)

    def _hand_off(self, result: SessionResult):
        """Give the result to the sink without blocking the frame path."""
        if self.result_sink is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._save(result)
            return

        # Firestore writes and their retries run on the default executor
        self.pending_save = loop.run_in_executor(None, self.result_sink.save, result)
        self.pending_save.add_done_callback(partial(self._save_done, result))

    def _save_done(self, result: SessionResult, future: asyncio.Future):
        if future.cancelled():
            self._keep_unsaved(result, "save cancelled")
            return
        error = future.exception()
        if error is not None:
            self._keep_unsaved(result, error)

    def _save(self, result: SessionResult) -> bool:
        try:
            self.result_sink.save(result)
        except Exception as e:
            self._keep_unsaved(result, e)
            return False
        return True

    def _keep_unsaved(self, result: SessionResult, error):
        logger.error(f"❌ Failed to save result for session {self.session_id}: {error}")
        self.unsaved_results.append(result)
        self.persist_error = str(error)

    def retry_persist(self) -> bool:
        """
        Re-send every result whose save failed.

        Returns:
            True when nothing is left unsaved.
        """
        pending, self.unsaved_results = self.unsaved_results, []
        for result in pending:
            self._save(result)
        if not self.unsaved_results:
            self.persist_error = None
        return not self.unsaved_results

    def status(self) -> SessionStatus:
        return SessionStatus(
            session_id=self.session_id,
            exercise_type=self.exercise_type,
            state=self.state,
            seconds_left=self.seconds_left,
            side=self.sides.active_side if self.goal.per_side else None,
            total_completed=self.counter.total_completed,
            clean_completed=self.counter.clean_completed,
            target_reps=self.goal.total_reps,
            result=self.result,
        )


class SessionRegistry:
    """Live sessions by ID, for the HTTP/WebSocket layer."""

    def __init__(self):
        self.active_sessions: Dict[str, ExerciseSessionController] = {}

    def create_session(self, exercise_type: Union[str, ExerciseType], **kwargs) -> ExerciseSessionController:
        controller = ExerciseSessionController(exercise_type, **kwargs)
        self.active_sessions[controller.session_id] = controller
        logger.info(f"🆕 Session {controller.session_id} created for {controller.exercise_type}")
        return controller

    def get_session(self, session_id: str) -> Optional[ExerciseSessionController]:
        return self.active_sessions.get(session_id)

    def cleanup_session(self, session_id: str):
        """Stop and forget a session (page abandoned)."""
        controller = self.active_sessions.pop(session_id, None)
        if controller is not None and controller.state not in (SessionState.IDLE, SessionState.FINISHED):
            controller.stop()


# ═══════════════════════════════════════════════════════════════════════════════
# MODULE-LEVEL SINGLETON
# ═══════════════════════════════════════════════════════════════════════════════

_registry_instance: Optional[SessionRegistry] = None

def get_session_registry() -> SessionRegistry:
    """Get or create the global session registry."""
    global _registry_instance
    if _registry_instance is None:
        _registry_instance = SessionRegistry()
    return _registry_instance
