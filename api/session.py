"""
api/session.py — per-browser in-memory sessions (cookie based)

Each browser context gets a UUID session id and its own state: backend client,
auth holder, attempt store, notifier, active exam controller and assistant.
Sessions expire after SESSION_TTL of inactivity; expiry is the end of the
browsing context, so session-scoped exam progress goes with it.
"""

import logging
import threading
import time
import uuid
from typing import Any, List, Optional

from api.config import SESSION_TTL
from config import PROGRESS_DIR
from hr_portal.services.api_client import BackendClient
from hr_portal.models.user_model import User
from hr_portal.services.attempt_store import FileAttemptStore, MemoryAttemptStore, progress_key
from hr_portal.services.auth_service import AuthSession
from hr_portal.services.notifier import Notifier

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_sessions: dict[str, dict[str, Any]] = {}
_timestamps: dict[str, float] = {}


def _new_state() -> dict[str, Any]:
    client = BackendClient()
    auth = AuthSession(client)
    state = {
        "client": client,
        "auth": auth,
        "attempts": FileAttemptStore(PROGRESS_DIR) if PROGRESS_DIR else MemoryAttemptStore(),
        "notifier": Notifier(),
        "exam": None,
        "assistant": None,
    }
    auth.on_logout(lambda user: _on_logout(state, user))
    return state


def _on_logout(state: dict[str, Any], user: Optional[User]) -> None:
    """Progress, transcript and any running attempt do not survive a logout."""
    _dispose(state)
    if user is not None:
        state["attempts"].clear(progress_key(user.id, ""))


def create_session() -> str:
    """Create a session and return its id."""
    sid = uuid.uuid4().hex
    with _lock:
        _sessions[sid] = _new_state()
        _timestamps[sid] = time.time()
    return sid


def get_session(sid: str) -> Optional[dict[str, Any]]:
    """Session state for the id. None when unknown or expired."""
    expired = None
    with _lock:
        if sid not in _sessions:
            return None
        if time.time() - _timestamps[sid] > SESSION_TTL:
            expired = _sessions.pop(sid)
            del _timestamps[sid]
        else:
            _timestamps[sid] = time.time()  # touch on access
            return _sessions[sid]
    _dispose(expired)
    return None


def cleanup_expired() -> List[dict[str, Any]]:
    """Drop expired sessions and stop their exam controllers. Returns the dropped states."""
    now = time.time()
    with _lock:
        expired = [sid for sid, ts in _timestamps.items() if now - ts > SESSION_TTL]
        removed = [_sessions.pop(sid) for sid in expired]
        for sid in expired:
            del _timestamps[sid]
    for state in removed:
        _dispose(state)
    return removed


def _dispose(state: dict[str, Any]) -> None:
    controller = state.get("exam")
    if controller is not None:
        controller.close()
    state["exam"] = None
    state["assistant"] = None


def all_states() -> List[dict[str, Any]]:
    with _lock:
        return list(_sessions.values())
