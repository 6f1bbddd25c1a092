"""Session lookups shared by the orchestrator and the poller."""
from __future__ import annotations

from storage import sessions as session_store

from .errors import ForbiddenError, SessionNotFoundError
from .models import InterviewSession


def load_session(session_id: str) -> InterviewSession:
    session = session_store.get_session(session_id)
    if session is None:
        raise SessionNotFoundError(f"session '{session_id}' not found", session_id=session_id)
    return session


def load_owned(session_id: str, caller_id: str) -> InterviewSession:
    """Load a session and check that ``caller_id`` is its candidate."""

    session = load_session(session_id)
    if session.candidate_id != caller_id:
        raise ForbiddenError("session belongs to another candidate", session_id=session_id)
    return session


__all__ = ["load_owned", "load_session"]
