"""
PHYSIOCOACH Physio Service - Pose Sources

Adapters that hand the frame loop at most one Pose per call. Pose estimation
runs in MediaPipe; nothing here interprets the landmarks.
"""

import logging
import time
from typing import Iterable, List, Optional, Protocol, Sequence

from core.config import settings

from .pose_analyzer import Landmark, Pose

logger = logging.getLogger(__name__)


class PoseSource(Protocol):
    def next_pose(self) -> Optional[Pose]:
        ...


def landmarks_to_pose(landmarks: Sequence, timestamp: float = 0.0) -> Optional[Pose]:
    """
    Convert MediaPipe landmarks (objects with x, y, z, visibility) to a Pose.

    Returns None when the landmark list is not a full body.
    """
    points = [
        Landmark(
            x=float(lm.x),
            y=float(lm.y),
            z=float(getattr(lm, "z", 0.0) or 0.0),
            visibility=float(getattr(lm, "visibility", 1.0) or 0.0),
        )
        for lm in landmarks
    ]
    try:
        return Pose(points, timestamp=timestamp)
    except ValueError as e:
        logger.debug(f"Discarding partial pose: {e}")
        return None


class ScriptedPoseSource:
    """Replays a fixed sequence of poses (None entries simulate lost tracking)."""

    def __init__(self, poses: Iterable[Optional[Pose]]):
        self._poses: List[Optional[Pose]] = list(poses)
        self._index = 0

    @property
    def exhausted(self) -> bool:
        return self._index >= len(self._poses)

    def next_pose(self) -> Optional[Pose]:
        if self.exhausted:
            return None
        pose = self._poses[self._index]
        self._index += 1
        return pose


class MediaPipePoseSource:
    """
    Live pose source: OpenCV capture + MediaPipe PoseLandmarker (VIDEO mode).

    Args:
        capture: cv2.VideoCapture index or path
        model_path: .task model file (settings.POSE_MODEL_PATH if None)
    """

    def __init__(self, capture=0, model_path: Optional[str] = None):
        import cv2
        import mediapipe as mp
        from mediapipe.tasks import python as mp_python
        from mediapipe.tasks.python import vision

        model_path = model_path or settings.POSE_MODEL_PATH
        if not model_path:
            raise ValueError("POSE_MODEL_PATH is not configured")

        self._cv2 = cv2
        self._mp = mp
        self._capture = cv2.VideoCapture(capture)
        if not self._capture.isOpened():
            raise RuntimeError(f"Cannot open video source: {capture}")

        options = vision.PoseLandmarkerOptions(
            base_options=mp_python.BaseOptions(model_asset_path=model_path),
            running_mode=vision.RunningMode.VIDEO,
            num_poses=1,
            min_pose_detection_confidence=0.5,
            min_tracking_confidence=0.5,
        )
        self._landmarker = vision.PoseLandmarker.create_from_options(options)
        self._started = time.monotonic()
        logger.info("✅ MediaPipe pose landmarker initialized")

    def next_pose(self) -> Optional[Pose]:
        ok, frame = self._capture.read()
        if not ok:
            return None

        rgb = self._cv2.cvtColor(frame, self._cv2.COLOR_BGR2RGB)
        image = self._mp.Image(image_format=self._mp.ImageFormat.SRGB, data=rgb)
        timestamp_ms = int((time.monotonic() - self._started) * 1000)
        result = self._landmarker.detect_for_video(image, timestamp_ms)

        if not result.pose_landmarks:
            return None
        return landmarks_to_pose(result.pose_landmarks[0], timestamp=timestamp_ms)

    def close(self):
        """Release resources."""
        self._landmarker.close()
        self._capture.release()
