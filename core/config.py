"""
PHYSIOCOACH Configuration

Environment variables and application settings.
"""

from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "PHYSIOCOACH"
    DEBUG: bool = True

    # Firebase
    FIREBASE_PROJECT_ID: str = "physiocoach"
    FIREBASE_CREDENTIALS_PATH: str = "service-account.json"
    WORKOUT_LOG_COLLECTION: str = "workout_logs"
    PERSIST_MAX_ATTEMPTS: int = 3

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Exercise session
    COUNTDOWN_SECONDS: int = 5
    COUNTDOWN_TICK_SECONDS: float = 1.0
    FRAME_INTERVAL_SECONDS: float = 1 / 30
    CLEAN_REP_MAX_BAD_RATIO: float = 0.30

    # Pose source
    POSE_MODEL_PATH: Optional[str] = None

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
