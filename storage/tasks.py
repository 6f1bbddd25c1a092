"""Persistence helpers for background initialization task records."""
from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Optional
from uuid import uuid4

from interview_session.models import InitializationTask, TaskStatus

from .sqlite import get_conn


def _from_row(row: sqlite3.Row) -> InitializationTask:
    return InitializationTask(
        task_id=row["task_id"],
        session_id=row["session_id"],
        status=row["status"],
        error=row["error"],
        created_at=datetime.fromisoformat(row["created_at"]),
        finished_at=datetime.fromisoformat(row["finished_at"]) if row["finished_at"] else None,
    )


def create_task(session_id: str, *, now: datetime, conn: Optional[sqlite3.Connection] = None) -> InitializationTask:
    """Record the single initialization job for ``session_id``."""

    task = InitializationTask(
        task_id=uuid4().hex,
        session_id=session_id,
        status="pending",
        created_at=now,
    )
    with get_conn(conn) as db:
        db.execute(
            """
            INSERT INTO initialization_tasks (task_id, session_id, status, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (task.task_id, task.session_id, task.status, now.isoformat(timespec="microseconds")),
        )
    return task


def update_task(
    task_id: str,
    status: TaskStatus,
    *,
    now: Optional[datetime] = None,
    error: Optional[str] = None,
    conn: Optional[sqlite3.Connection] = None,
) -> None:
    finished = now.isoformat(timespec="microseconds") if now is not None else None
    with get_conn(conn) as db:
        db.execute(
            """
            UPDATE initialization_tasks
            SET status = ?, error = COALESCE(?, error), finished_at = COALESCE(?, finished_at)
            WHERE task_id = ?
            """,
            (status, error, finished, task_id),
        )


def get_task_for_session(session_id: str, *, conn: Optional[sqlite3.Connection] = None) -> Optional[InitializationTask]:
    with get_conn(conn) as db:
        row = db.execute(
            """
            SELECT task_id, session_id, status, error, created_at, finished_at
            FROM initialization_tasks WHERE session_id = ?
            """,
            (session_id,),
        ).fetchone()
    return _from_row(row) if row else None


__all__ = ["create_task", "get_task_for_session", "update_task"]
