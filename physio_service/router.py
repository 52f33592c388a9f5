"""
PHYSIOCOACH Physio Service Router

Endpoints for guided exercise sessions with live form feedback and rep
counting. Pose estimation runs on the client; landmarks arrive over the
session WebSocket, one message per frame.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field

from .models import (
    ExerciseSessionController,
    FrameUpdate,
    InvalidGoalError,
    Pose,
    SessionRegistry,
    SessionState,
    get_catalog_entry,
    get_session_registry,
    goal_for,
    list_exercises,
)
from .persistence import FirestoreResultSink

logger = logging.getLogger(__name__)

router = APIRouter()


def get_services() -> SessionRegistry:
    """Get the session registry."""
    return get_session_registry()


def _get_controller(session_id: str) -> ExerciseSessionController:
    controller = get_services().get_session(session_id)
    if controller is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return controller


def parse_pose(landmarks: Optional[List[List[float]]]) -> Optional[Pose]:
    """Landmarks from the client, or None when the frame has no usable pose."""
    if landmarks is None:
        return None
    try:
        return Pose.from_points(landmarks)
    except (TypeError, ValueError) as e:
        logger.debug(f"Ignoring malformed landmarks: {e}")
        return None


# ============= Pydantic Models =============

class StartSessionRequest(BaseModel):
    exercise_type: str
    target_reps: Optional[int] = None
    patient_id: Optional[str] = None
    assignment_id: Optional[str] = None
    countdown_seconds: Optional[int] = Field(default=None, ge=0)


# ============= REST Endpoints =============

@router.get("/exercises")
async def get_exercises():
    """Get the exercise catalog."""
    exercises = list_exercises()
    return {"exercises": exercises, "total": len(exercises)}


@router.post("/session/start")
async def create_exercise_session(request: StartSessionRequest):
    """
    Create a session for real-time monitoring.

    Returns a session ID for use with the WebSocket stream. Counting starts
    with a "start" message (or POST /session/{id}/start).
    """
    entry = get_catalog_entry(request.exercise_type)
    if entry is None:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid exercise type. Valid types: {[e['id'] for e in list_exercises()]}"
        )

    goal = goal_for(request.exercise_type, request.target_reps)
    try:
        goal.validate()
    except InvalidGoalError as e:
        raise HTTPException(status_code=400, detail=str(e))

    controller = get_services().create_session(
        entry.exercise_type,
        goal=goal,
        result_sink=FirestoreResultSink(),
        countdown_seconds=request.countdown_seconds,
        patient_id=request.patient_id,
        assignment_id=request.assignment_id,
    )

    return {
        "status": "created",
        "session_id": controller.session_id,
        "exercise_type": controller.exercise_type,
        "title": entry.title,
        "instructions": entry.instructions,
        "goal": goal.to_dict(),
        "websocket_url": f"/api/physio/ws/session/{controller.session_id}"
    }


@router.post("/session/{session_id}/start")
async def start_exercise_session(session_id: str):
    """Start (or repeat) a session; begins the countdown."""
    controller = _get_controller(session_id)
    try:
        status = controller.start()
    except InvalidGoalError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return status.to_dict()


@router.post("/session/{session_id}/stop")
async def stop_exercise_session(session_id: str):
    """Stop early; returns the reps counted so far."""
    controller = _get_controller(session_id)
    result = controller.stop()
    return {"status": "stopped", "session_id": session_id, "result": result.to_dict()}


@router.post("/session/{session_id}/resume")
async def resume_exercise_session(session_id: str):
    """Patient confirmed they are ready on the second side."""
    controller = _get_controller(session_id)
    if controller.state != SessionState.SWITCHING:
        raise HTTPException(status_code=409, detail="Session is not waiting for a side switch")
    return controller.resume_after_switch().to_dict()


@router.post("/session/{session_id}/retry-save")
def retry_save_session(session_id: str):
    """Retry saving workout logs that failed to save (runs in the threadpool)."""
    controller = _get_controller(session_id)
    saved = controller.retry_persist()
    return {
        "session_id": session_id,
        "saved": saved,
        "pending": len(controller.unsaved_results),
        "error": controller.persist_error,
    }


@router.get("/session/{session_id}")
async def get_session_status(session_id: str):
    """Get current session status."""
    return _get_controller(session_id).status().to_dict()


@router.delete("/session/{session_id}")
async def delete_session(session_id: str):
    """Drop a session (page closed)."""
    _get_controller(session_id)
    get_services().cleanup_session(session_id)
    return {"status": "deleted", "session_id": session_id}


# ============= WebSocket Endpoints =============

def _frame_messages(update: FrameUpdate) -> List[Dict[str, Any]]:
    messages = [{"type": "frame_update", **update.to_dict()}]
    if update.rep_event:
        messages.append({
            "type": "rep_completed",
            "number": update.rep_event.number,
            "clean": update.rep_event.clean,
            "side": update.rep_event.side.value,
        })
    if update.switched_sides:
        messages.append({
            "type": "switch_sides",
            "message": "Switch sides, then press resume",
            "status": update.status.to_dict(),
        })
    if update.finished:
        messages.append({
            "type": "session_finished",
            "result": update.status.result.to_dict() if update.status.result else None,
        })
    return messages


@router.websocket("/ws/session/{session_id}")
async def exercise_session_stream(websocket: WebSocket, session_id: str):
    """
    Real-time exercise session stream.

    Client messages:
    - {"type": "pose", "landmarks": [[x, y, z], ...] | null}
    - {"type": "start"} / {"type": "stop"} / {"type": "resume"}
    - {"type": "status"}
    """
    await websocket.accept()

    controller = get_services().get_session(session_id)
    if controller is None:
        await websocket.send_json({"type": "error", "message": f"Session {session_id} not found"})
        await websocket.close()
        return

    await websocket.send_json({"type": "connected", "status": controller.status().to_dict()})

    try:
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError as e:
                await websocket.send_json({"type": "error", "message": f"Invalid JSON: {e}"})
                continue
            kind = message.get("type") if isinstance(message, dict) else None

            if kind == "pose":
                update = controller.process_pose(parse_pose(message.get("landmarks")))
                for outgoing in _frame_messages(update):
                    await websocket.send_json(outgoing)

            elif kind == "start":
                try:
                    status = controller.start()
                except InvalidGoalError as e:
                    await websocket.send_json({"type": "error", "message": str(e)})
                    continue
                await websocket.send_json({"type": "status", "status": status.to_dict()})

            elif kind == "stop":
                result = controller.stop()
                await websocket.send_json({"type": "session_stopped", "result": result.to_dict()})

            elif kind == "resume":
                await websocket.send_json({"type": "status", "status": controller.resume_after_switch().to_dict()})

            elif kind == "status":
                await websocket.send_json({"type": "status", "status": controller.status().to_dict()})

            else:
                await websocket.send_json({"type": "error", "message": f"Unknown message type: {kind}"})

    except WebSocketDisconnect:
        logger.info(f"Session {session_id} disconnected")
        get_services().cleanup_session(session_id)
