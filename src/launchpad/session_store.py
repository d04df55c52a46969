"""Session-scoped dashboard state storage."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, List

from .auth import AuthContext
from .orchestrator import ViewOrchestrator

logger = logging.getLogger(__name__)

_MAX_SESSIONS = 500


@dataclass
class DashboardSession:
    """Auth context and dashboard state for one browser session."""

    session_id: str
    auth: AuthContext
    orchestrator: ViewOrchestrator


SessionFactory = Callable[[str], DashboardSession]

_sessions: Dict[str, DashboardSession] = {}
_lock = Lock()


def get_or_create(session_id: str, factory: SessionFactory) -> DashboardSession:
    """Return the session for ``session_id``, building it with ``factory`` if needed."""

    if not session_id:
        raise ValueError("Session ID is required to load dashboard state.")

    evicted: List[DashboardSession] = []
    with _lock:
        session = _sessions.pop(session_id, None)
        if session is not None:
            # Most recently used last.
            _sessions[session_id] = session
        else:
            session = factory(session_id)
            _sessions[session_id] = session
            while len(_sessions) > _MAX_SESSIONS:
                oldest = next(iter(_sessions))
                evicted.append(_sessions.pop(oldest))
            logger.info("Created dashboard session %s", session_id)

    for stale in evicted:
        stale.orchestrator.close()
        logger.info("Session capacity reached. Dropped session %s", stale.session_id)
    return session


def get(session_id: str) -> DashboardSession | None:
    if not session_id:
        return None

    with _lock:
        return _sessions.get(session_id)


def drop(session_id: str) -> None:
    """Release the session and its store subscription."""

    if not session_id:
        return

    with _lock:
        session = _sessions.pop(session_id, None)

    if session is not None:
        session.orchestrator.close()
        logger.info("Dropped dashboard session %s", session_id)


def reset() -> None:
    """Drop every session."""

    with _lock:
        sessions = list(_sessions.values())
        _sessions.clear()
    for session in sessions:
        session.orchestrator.close()
    logger.info("Reset dashboard sessions. Removed %s sessions", len(sessions))


def count() -> int:
    with _lock:
        return len(_sessions)
