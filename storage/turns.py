"""Append-only conversation log keyed by session id."""
from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import List, Optional

from interview_session.models import Turn, TurnRole, TurnSource

from .sqlite import get_conn, transaction


def _from_row(row: sqlite3.Row) -> Turn:
    return Turn(
        turn_id=row["id"],
        session_id=row["session_id"],
        sequence=row["sequence"],
        role=row["role"],
        content=row["content"],
        source=row["source"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def append_turn(
    session_id: str,
    role: TurnRole,
    content: str,
    *,
    now: datetime,
    source: TurnSource = "generated",
    conn: Optional[sqlite3.Connection] = None,
) -> Turn:
    """Append one turn; the only write the log supports.

    The timestamp never goes backwards within a session: a clock that reads
    earlier than the previous turn is clamped to that turn's time.
    """

    with transaction(conn) as db:
        last = db.execute(
            """
            SELECT sequence, created_at FROM conversation_turns
            WHERE session_id = ? ORDER BY sequence DESC LIMIT 1
            """,
            (session_id,),
        ).fetchone()
        sequence = 1
        created_at = now
        if last is not None:
            sequence = last["sequence"] + 1
            previous = datetime.fromisoformat(last["created_at"])
            if created_at < previous:
                created_at = previous
        cur = db.execute(
            """
            INSERT INTO conversation_turns (session_id, sequence, role, content, source, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (session_id, sequence, role, content, source, created_at.isoformat(timespec="microseconds")),
        )
        turn_id = int(cur.lastrowid)
    return Turn(
        turn_id=turn_id,
        session_id=session_id,
        sequence=sequence,
        role=role,
        content=content,
        source=source,
        created_at=created_at,
    )


def list_turns(session_id: str, *, conn: Optional[sqlite3.Connection] = None) -> List[Turn]:
    """Return the full history in ascending creation order."""

    with get_conn(conn) as db:
        rows = db.execute(
            """
            SELECT id, session_id, sequence, role, content, source, created_at
            FROM conversation_turns
            WHERE session_id = ?
            ORDER BY created_at ASC, sequence ASC
            """,
            (session_id,),
        ).fetchall()
    return [_from_row(row) for row in rows]


def count_turns(session_id: str, *, conn: Optional[sqlite3.Connection] = None) -> int:
    with get_conn(conn) as db:
        row = db.execute(
            "SELECT COUNT(*) AS n FROM conversation_turns WHERE session_id = ?",
            (session_id,),
        ).fetchone()
    return int(row["n"])


__all__ = ["append_turn", "count_turns", "list_turns"]
