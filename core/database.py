"""
PHYSIOCOACH Firestore Access

Connects the Firebase Admin SDK for the workout log. When no service account
is available the app keeps running against an in-memory stand-in, so a
session can still finish and report its result locally.
"""

import logging
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import firebase_admin
from firebase_admin import credentials, firestore

from core.config import settings

logger = logging.getLogger(__name__)

_db: Optional[firestore.Client] = None
_memory_db: Optional["MockFirestoreClient"] = None
_mock_mode: bool = False


def _credentials_file() -> Path:
    path = Path(settings.FIREBASE_CREDENTIALS_PATH)
    if path.is_absolute():
        return path
    return Path(__file__).parent.parent / path


def init_firebase() -> bool:
    """
    Connect to Firestore once per process.

    Returns:
        bool: True when Firestore is reachable, False in mock mode.
    """
    global _db, _mock_mode

    if _db is not None or _mock_mode:
        return _db is not None

    cred_path = _credentials_file()
    if not cred_path.exists():
        logger.warning(f"⚠️ No service account at '{cred_path}', workout logs stay in memory")
        _mock_mode = True
        return False

    try:
        # Survives uvicorn hot reload, which re-imports this module
        if not firebase_admin._apps:
            firebase_admin.initialize_app(
                credentials.Certificate(str(cred_path)),
                {"projectId": settings.FIREBASE_PROJECT_ID},
            )
        _db = firestore.client()
    except Exception as e:
        logger.error(f"❌ Firestore connection failed: {e}")
        _mock_mode = True
        return False

    logger.info(f"🔥 Firestore ready (project {settings.FIREBASE_PROJECT_ID})")
    return True


def get_db() -> Optional[firestore.Client]:
    """Firestore client, or None in mock mode."""
    if _db is None and not _mock_mode:
        init_firebase()
    return _db


def is_mock_mode() -> bool:
    return _mock_mode


# ============================================
# In-memory Firestore stand-in
# ============================================

class MockDocument:
    """Snapshot-like document: id, exists, to_dict()."""

    def __init__(self, doc_id: str, data: Optional[Dict[str, Any]] = None):
        self.id = doc_id
        self._data = dict(data) if data is not None else None

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> Optional[Dict[str, Any]]:
        return dict(self._data) if self._data is not None else None


class MockCollection:
    """Supports the write/read calls the workout log uses."""

    def __init__(self, name: str):
        self.name = name
        self._rows: Dict[str, Dict[str, Any]] = {}

    def add(self, data: Dict[str, Any]) -> Tuple[None, MockDocument]:
        doc_id = uuid.uuid4().hex[:20]
        self._rows[doc_id] = dict(data)
        return None, MockDocument(doc_id, data)

    def get(self) -> List[MockDocument]:
        return [MockDocument(doc_id, row) for doc_id, row in self._rows.items()]

    def stream(self):
        return iter(self.get())

    def __len__(self) -> int:
        return len(self._rows)


class MockFirestoreClient:
    def __init__(self):
        self._collections: Dict[str, MockCollection] = {}

    def collection(self, name: str) -> MockCollection:
        return self._collections.setdefault(name, MockCollection(name))


def get_mock_db() -> MockFirestoreClient:
    """Process-wide in-memory database."""
    global _memory_db
    if _memory_db is None:
        _memory_db = MockFirestoreClient()
        logger.info("🧪 Using in-memory Firestore")
    return _memory_db


def get_database():
    """Real Firestore client when connected, the in-memory one otherwise."""
    db = get_db()
    return db if db is not None else get_mock_db()
