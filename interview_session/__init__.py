"""Interview session lifecycle: statuses, records and error taxonomy.

The orchestrator lives in :mod:`interview_session.orchestrator` and is
imported explicitly so that storage modules can depend on these models.
"""
from .errors import (
    AnswerValidationError,
    ConflictError,
    ForbiddenError,
    InterviewSessionError,
    InvalidStateError,
    SessionNotFoundError,
    UpstreamUnavailableError,
)
from .models import (
    AdHocStart,
    BeginAck,
    Feedback,
    InitializationTask,
    InterviewSession,
    PollResult,
    RoleContext,
    SessionStatus,
    SessionView,
    Turn,
)

__all__ = [
    "AdHocStart",
    "AnswerValidationError",
    "BeginAck",
    "ConflictError",
    "Feedback",
    "ForbiddenError",
    "InitializationTask",
    "InterviewSession",
    "InterviewSessionError",
    "InvalidStateError",
    "PollResult",
    "RoleContext",
    "SessionNotFoundError",
    "SessionStatus",
    "SessionView",
    "Turn",
    "UpstreamUnavailableError",
]
