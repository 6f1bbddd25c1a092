"""Authoritative transition table for interview session statuses."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Dict, FrozenSet, Optional

from .errors import InvalidStateError
from .models import InterviewSession, SessionStatus

S = SessionStatus

TERMINAL: FrozenSet[SessionStatus] = frozenset(
    {S.COMPLETED, S.TERMINATED, S.FAILED, S.EXPIRED, S.ABANDONED}
)

TRANSITIONS: Dict[SessionStatus, FrozenSet[SessionStatus]] = {
    S.SCHEDULED: frozenset({S.INITIALIZING, S.EXPIRED}),
    S.INITIALIZING: frozenset({S.ACTIVE, S.FAILED, S.TERMINATED}),
    S.ACTIVE: frozenset({S.COMPLETED, S.EXPIRED, S.ABANDONED, S.TERMINATED}),
    S.COMPLETED: frozenset(),
    S.TERMINATED: frozenset(),
    S.FAILED: frozenset(),
    S.EXPIRED: frozenset(),
    S.ABANDONED: frozenset(),
}

END_REASONS: FrozenSet[SessionStatus] = frozenset({S.COMPLETED, S.TERMINATED})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def is_terminal(status: SessionStatus) -> bool:
    return status in TERMINAL


def can_transition(current: SessionStatus, target: SessionStatus) -> bool:
    return target in TRANSITIONS[current]


def transition(current: SessionStatus, target: SessionStatus, *, session_id: Optional[str] = None) -> SessionStatus:
    """Validate ``current -> target`` and return ``target``.

    Raises:
        InvalidStateError: If the move is not in :data:`TRANSITIONS`.
    """

    if not can_transition(current, target):
        raise InvalidStateError(
            f"cannot move session from '{current.value}' to '{target.value}'",
            session_id=session_id,
        )
    return target


def deadline_passed(session: InterviewSession, now: datetime) -> bool:
    deadline = session.context.deadline
    if deadline is None:
        return False
    return as_utc(now) > as_utc(deadline)


def is_overdue(session: InterviewSession, now: datetime) -> bool:
    """True when an active session ran past its planned duration."""

    if session.status is not S.ACTIVE or session.started_at is None:
        return False
    limit = timedelta(minutes=session.context.duration_minutes)
    return as_utc(now) - as_utc(session.started_at) > limit


def should_expire(session: InterviewSession, now: datetime) -> bool:
    """Active past its duration, or still scheduled past its deadline."""

    if session.status is S.SCHEDULED:
        return deadline_passed(session, now)
    return is_overdue(session, now)


__all__ = [
    "END_REASONS",
    "TERMINAL",
    "TRANSITIONS",
    "as_utc",
    "can_transition",
    "deadline_passed",
    "is_overdue",
    "is_terminal",
    "should_expire",
    "transition",
    "utcnow",
]
