"""SQLite schema migrations."""
from __future__ import annotations

import os
import sqlite3
from typing import Iterable, Optional

from config.settings import settings

SCHEMA: Iterable[str] = [
    """
CREATE TABLE IF NOT EXISTS interview_sessions (
  session_id TEXT PRIMARY KEY,
  candidate_id TEXT NOT NULL,
  scheduled_by TEXT,
  job_role TEXT NOT NULL,
  interview_type TEXT NOT NULL,
  difficulty TEXT NOT NULL DEFAULT 'mid',
  duration_minutes INTEGER NOT NULL,
  deadline TEXT,
  candidate_label TEXT NOT NULL DEFAULT '',
  status TEXT NOT NULL CHECK (status IN (
    'scheduled', 'initializing', 'active', 'completed',
    'terminated', 'failed', 'expired', 'abandoned'
  )),
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL,
  started_at TEXT,
  ended_at TEXT,
  feedback_json TEXT,
  failure_reason TEXT
);
""",
    """
CREATE INDEX IF NOT EXISTS ix_sessions_candidate
  ON interview_sessions (candidate_id);
""",
    """
CREATE UNIQUE INDEX IF NOT EXISTS ux_sessions_one_active
  ON interview_sessions (candidate_id) WHERE status = 'active';
""",
    """
CREATE TABLE IF NOT EXISTS conversation_turns (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  session_id TEXT NOT NULL,
  sequence INTEGER NOT NULL,
  role TEXT NOT NULL CHECK (role IN ('user', 'assistant', 'system')),
  content TEXT NOT NULL,
  source TEXT NOT NULL DEFAULT 'generated',
  created_at TEXT NOT NULL,
  UNIQUE (session_id, sequence),
  FOREIGN KEY (session_id) REFERENCES interview_sessions (session_id)
);
""",
    """
CREATE INDEX IF NOT EXISTS ix_turns_session
  ON conversation_turns (session_id);
""",
    """
CREATE TABLE IF NOT EXISTS initialization_tasks (
  task_id TEXT PRIMARY KEY,
  session_id TEXT NOT NULL UNIQUE,
  status TEXT NOT NULL CHECK (status IN ('pending', 'running', 'succeeded', 'failed')),
  error TEXT,
  created_at TEXT NOT NULL,
  finished_at TEXT,
  FOREIGN KEY (session_id) REFERENCES interview_sessions (session_id)
);
""",
]


def migrate(db_path: Optional[str] = None) -> None:
    """Apply schema migrations to the SQLite database."""

    path = db_path or settings.DB_PATH
    directory = os.path.dirname(path) or "."
    os.makedirs(directory, exist_ok=True)
    conn = sqlite3.connect(path)
    try:
        conn.execute("PRAGMA journal_mode=WAL")
        cur = conn.cursor()
        for stmt in SCHEMA:
            cur.execute(stmt)
        conn.commit()
    finally:
        conn.close()


if __name__ == "__main__":
    migrate()
