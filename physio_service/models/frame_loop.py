"""
PHYSIOCOACH Physio Service - Frame Loop

Cooperative per-frame loop: read the latest pose, step the session, report,
yield. Never blocks; a failing pose source only costs one frame.
"""

import asyncio
import logging
from typing import Callable, Optional

from core.config import settings

from .exercise_session import ExerciseSessionController, FrameUpdate, SessionState
from .pose_source import PoseSource

logger = logging.getLogger(__name__)


def read_pose(source: PoseSource):
    """Fetch one pose, treating source errors as 'no pose this frame'."""
    try:
        return source.next_pose()
    except Exception as e:
        logger.error(f"Pose source failed: {e}")
        return None


async def run_frame_loop(
    controller: ExerciseSessionController,
    source: PoseSource,
    on_update: Optional[Callable[[FrameUpdate], None]] = None,
    frame_interval: Optional[float] = None,
    max_frames: Optional[int] = None,
) -> int:
    """
    Feed frames to the controller until the session leaves its running states.

    Runs while the session is counting down, active or waiting for a side
    switch. Stops when it is FINISHED or IDLE, after `max_frames`, or on
    cancellation.

    Returns:
        Number of loop iterations performed.
    """
    if frame_interval is None:
        frame_interval = settings.FRAME_INTERVAL_SECONDS

    frames = 0
    while controller.state not in (SessionState.IDLE, SessionState.FINISHED):
        if max_frames is not None and frames >= max_frames:
            break

        update = controller.process_pose(read_pose(source))
        frames += 1

        if on_update is not None:
            try:
                on_update(update)
            except Exception as e:
                logger.error(f"Frame update callback failed: {e}")

        await asyncio.sleep(frame_interval)

    logger.debug(f"Frame loop ended after {frames} frames ({controller.state.value})")
    return frames
