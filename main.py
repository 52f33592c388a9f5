"""
PHYSIOCOACH Backend API
Guided physiotherapy exercises with live form feedback.

FastAPI application entry point.
"""

import logging
import sys
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from shared.utils import LOG_FORMAT, LOG_DATE_FORMAT, setup_logger

# Root logger before the service modules create theirs
logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT,
    datefmt=LOG_DATE_FORMAT,
    handlers=[logging.StreamHandler(sys.stdout)]
)

from core.config import settings
from core.database import init_firebase, is_mock_mode
from physio_service.models import get_session_registry
from physio_service.router import router as physio_router

logger = setup_logger("physiocoach.main", level=logging.DEBUG if settings.DEBUG else logging.INFO)
request_logger = setup_logger("physiocoach.requests")

QUIET_PATHS = {"/health"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One log line per HTTP request with status and duration."""

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        path = request.url.path

        try:
            response = await call_next(request)
        except Exception as e:
            elapsed_ms = (time.perf_counter() - started) * 1000
            request_logger.error(f"💥 {request.method} {path} failed after {elapsed_ms:.1f}ms: {e!r}")
            raise

        if path not in QUIET_PATHS:
            elapsed_ms = (time.perf_counter() - started) * 1000
            level = logging.INFO if response.status_code < 400 else logging.WARNING
            request_logger.log(level, f"{request.method} {path} → {response.status_code} ({elapsed_ms:.1f}ms)")
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"🚀 {settings.APP_NAME} starting")
    if not init_firebase():
        logger.warning("⚠️ Workout logs will not leave this process (mock Firestore)")

    yield

    registry = get_session_registry()
    open_sessions = list(registry.active_sessions)
    for session_id in open_sessions:
        registry.cleanup_session(session_id)
    logger.info(f"👋 {settings.APP_NAME} stopped ({len(open_sessions)} sessions closed)")


app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="Real-time exercise form feedback and repetition counting",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(physio_router, prefix="/api/physio", tags=["Physio Service"])


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "service": "physiocoach-api",
        "firebase": "mock" if is_mock_mode() else "connected",
        "active_sessions": len(get_session_registry().active_sessions)
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
