"""Error taxonomy surfaced by the session orchestrator."""
from __future__ import annotations

from typing import Optional


class InterviewSessionError(Exception):
    """Base error; ``retryable`` tells callers whether repeating the call may help."""

    code = "session_error"
    retryable = False

    def __init__(self, message: str, *, session_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.session_id = session_id


class SessionNotFoundError(InterviewSessionError):
    code = "not_found"


class ForbiddenError(InterviewSessionError):
    code = "forbidden"


class InvalidStateError(InterviewSessionError):
    code = "invalid_state"


class AnswerValidationError(InterviewSessionError):
    code = "validation_error"


class UpstreamUnavailableError(InterviewSessionError):
    code = "upstream_unavailable"
    retryable = True


class ConflictError(InterviewSessionError):
    code = "conflict"
    retryable = True


__all__ = [
    "InterviewSessionError",
    "SessionNotFoundError",
    "ForbiddenError",
    "InvalidStateError",
    "AnswerValidationError",
    "UpstreamUnavailableError",
    "ConflictError",
]
