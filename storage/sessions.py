"""Persistence helpers for interview session records."""
from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import List, Optional
from uuid import uuid4

from interview_session.models import Feedback, InterviewSession, RoleContext, SessionStatus

from .sqlite import get_conn

_COLUMNS = """
    session_id, candidate_id, scheduled_by, job_role, interview_type, difficulty,
    duration_minutes, deadline, candidate_label, status, created_at, updated_at,
    started_at, ended_at, feedback_json, failure_reason
"""


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat(timespec="microseconds") if value is not None else None


def _parse(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _from_row(row: sqlite3.Row) -> InterviewSession:
    feedback = Feedback.model_validate_json(row["feedback_json"]) if row["feedback_json"] else None
    return InterviewSession(
        session_id=row["session_id"],
        candidate_id=row["candidate_id"],
        scheduled_by=row["scheduled_by"],
        context=RoleContext(
            job_role=row["job_role"],
            interview_type=row["interview_type"],
            difficulty=row["difficulty"],
            duration_minutes=row["duration_minutes"],
            deadline=_parse(row["deadline"]),
            candidate_label=row["candidate_label"],
        ),
        status=SessionStatus(row["status"]),
        created_at=_parse(row["created_at"]),
        updated_at=_parse(row["updated_at"]),
        started_at=_parse(row["started_at"]),
        ended_at=_parse(row["ended_at"]),
        feedback=feedback,
        failure_reason=row["failure_reason"],
    )


def insert_session(session: InterviewSession, *, conn: Optional[sqlite3.Connection] = None) -> InterviewSession:
    """Insert a fully built session row."""

    ctx = session.context
    with get_conn(conn) as db:
        db.execute(
            f"INSERT INTO interview_sessions ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                session.session_id,
                session.candidate_id,
                session.scheduled_by,
                ctx.job_role,
                ctx.interview_type,
                ctx.difficulty,
                ctx.duration_minutes,
                _iso(ctx.deadline),
                ctx.candidate_label,
                session.status.value,
                _iso(session.created_at),
                _iso(session.updated_at),
                _iso(session.started_at),
                _iso(session.ended_at),
                session.feedback.model_dump_json() if session.feedback else None,
                session.failure_reason,
            ),
        )
    return session


def create_scheduled(
    candidate_id: str,
    context: RoleContext,
    *,
    scheduled_by: Optional[str],
    now: datetime,
    conn: Optional[sqlite3.Connection] = None,
) -> InterviewSession:
    """Book a session ahead of time in the ``scheduled`` state."""

    session = InterviewSession(
        session_id=uuid4().hex,
        candidate_id=candidate_id,
        scheduled_by=scheduled_by,
        context=context,
        status=SessionStatus.SCHEDULED,
        created_at=now,
        updated_at=now,
    )
    return insert_session(session, conn=conn)


def get_session(session_id: str, *, conn: Optional[sqlite3.Connection] = None) -> Optional[InterviewSession]:
    with get_conn(conn) as db:
        row = db.execute(
            f"SELECT {_COLUMNS} FROM interview_sessions WHERE session_id = ?",
            (session_id,),
        ).fetchone()
    return _from_row(row) if row else None


def list_for_candidate(
    candidate_id: str,
    status: SessionStatus,
    *,
    conn: Optional[sqlite3.Connection] = None,
) -> List[InterviewSession]:
    with get_conn(conn) as db:
        rows = db.execute(
            f"""
            SELECT {_COLUMNS} FROM interview_sessions
            WHERE candidate_id = ? AND status = ?
            ORDER BY created_at DESC, session_id DESC
            """,
            (candidate_id, status.value),
        ).fetchall()
    return [_from_row(row) for row in rows]


def list_recent(limit: int = 20, *, conn: Optional[sqlite3.Connection] = None) -> List[InterviewSession]:
    with get_conn(conn) as db:
        rows = db.execute(
            f"SELECT {_COLUMNS} FROM interview_sessions ORDER BY updated_at DESC LIMIT ?",
            (limit,),
        ).fetchall()
    return [_from_row(row) for row in rows]


def update_status(
    session_id: str,
    expected: SessionStatus,
    target: SessionStatus,
    *,
    now: datetime,
    mark_started: bool = False,
    mark_ended: bool = False,
    failure_reason: Optional[str] = None,
    conn: Optional[sqlite3.Connection] = None,
) -> bool:
    """Conditionally move ``expected -> target``; False when the row was not in ``expected``."""

    assignments = ["status = ?", "updated_at = ?"]
    params: list = [target.value, _iso(now)]
    if mark_started:
        assignments.append("started_at = ?")
        params.append(_iso(now))
    if mark_ended:
        assignments.append("ended_at = ?")
        params.append(_iso(now))
    if failure_reason is not None:
        assignments.append("failure_reason = ?")
        params.append(failure_reason)
    params.extend([session_id, expected.value])
    with get_conn(conn) as db:
        cur = db.execute(
            f"UPDATE interview_sessions SET {', '.join(assignments)} WHERE session_id = ? AND status = ?",
            params,
        )
        return cur.rowcount == 1


def abandon_active(
    candidate_id: str,
    *,
    now: datetime,
    keep_session_id: Optional[str] = None,
    conn: Optional[sqlite3.Connection] = None,
) -> List[str]:
    """Move every other active session of ``candidate_id`` to ``abandoned``."""

    with get_conn(conn) as db:
        rows = db.execute(
            "SELECT session_id FROM interview_sessions WHERE candidate_id = ? AND status = ?",
            (candidate_id, SessionStatus.ACTIVE.value),
        ).fetchall()
        abandoned: List[str] = []
        for row in rows:
            if row["session_id"] == keep_session_id:
                continue
            if update_status(
                row["session_id"],
                SessionStatus.ACTIVE,
                SessionStatus.ABANDONED,
                now=now,
                mark_ended=True,
                conn=db,
            ):
                abandoned.append(row["session_id"])
    return abandoned


def save_feedback(
    session_id: str,
    feedback: Feedback,
    *,
    now: datetime,
    conn: Optional[sqlite3.Connection] = None,
) -> bool:
    """Attach feedback to a completed session."""

    with get_conn(conn) as db:
        cur = db.execute(
            """
            UPDATE interview_sessions SET feedback_json = ?, updated_at = ?
            WHERE session_id = ? AND status = ?
            """,
            (feedback.model_dump_json(), _iso(now), session_id, SessionStatus.COMPLETED.value),
        )
        return cur.rowcount == 1


__all__ = [
    "abandon_active",
    "create_scheduled",
    "get_session",
    "insert_session",
    "list_for_candidate",
    "list_recent",
    "save_feedback",
    "update_status",
]
