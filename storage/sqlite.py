"""SQLite helpers for the persistence layer."""
from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from typing import Iterator, Optional

from config.settings import settings


def connect(path: Optional[str] = None) -> sqlite3.Connection:
    """Open an autocommit connection, ensuring the data directory exists."""

    db_path = path or settings.DB_PATH
    directory = os.path.dirname(db_path) or "."
    os.makedirs(directory, exist_ok=True)
    conn = sqlite3.connect(db_path, timeout=settings.DB_TIMEOUT_S, isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def get_conn(conn: Optional[sqlite3.Connection] = None) -> Iterator[sqlite3.Connection]:
    """Yield ``conn`` when given, otherwise a fresh connection closed on exit."""

    if conn is not None:
        yield conn
        return
    own = connect()
    try:
        yield own
    finally:
        own.close()


@contextmanager
def transaction(conn: Optional[sqlite3.Connection] = None) -> Iterator[sqlite3.Connection]:
    """Run the block inside one ``BEGIN IMMEDIATE`` transaction.

    Nested use with an existing connection joins the outer transaction.
    """

    if conn is not None:
        yield conn
        return
    own = connect()
    try:
        own.execute("BEGIN IMMEDIATE")
        try:
            yield own
        except BaseException:
            own.execute("ROLLBACK")
            raise
        own.execute("COMMIT")
    finally:
        own.close()
