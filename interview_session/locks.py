"""Keyed lock registry for per-session critical sections."""
from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List

from .errors import ConflictError


class _Entry:  # Lock plus the number of callers holding or waiting on it
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class KeyedLocks:  # One lock per key, dropped once nobody uses it
    def __init__(self) -> None:
        self._entries: Dict[str, _Entry] = {}
        self._guard = threading.Lock()

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    def keys(self) -> List[str]:
        with self._guard:
            return list(self._entries)

    def _checkout(self, key: str) -> _Entry:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = _Entry()
                self._entries[key] = entry
            entry.users += 1
        return entry

    def _checkin(self, key: str, entry: _Entry) -> None:
        with self._guard:
            entry.users -= 1
            if entry.users == 0 and self._entries.get(key) is entry:
                del self._entries[key]

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:  # Block until the key is free
        entry = self._checkout(key)
        try:
            with entry.lock:
                yield
        finally:
            self._checkin(key, entry)

    @contextmanager
    def try_hold(self, key: str, *, message: str = "operation already in progress") -> Iterator[None]:
        """Enter the critical section for ``key`` or fail fast with ConflictError."""

        entry = self._checkout(key)
        if not entry.lock.acquire(blocking=False):
            self._checkin(key, entry)
            raise ConflictError(message, session_id=key)
        try:
            yield
        finally:
            entry.lock.release()
            self._checkin(key, entry)


__all__ = ["KeyedLocks"]
