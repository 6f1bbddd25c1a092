"""Read-only polling contract for asynchronous session initialization."""
from __future__ import annotations

import time
from typing import Callable, Optional

from config.settings import settings
from storage import tasks as task_store
from storage import turns as turn_log

from .access import load_owned
from .errors import InvalidStateError
from .models import PollResult, SessionStatus

S = SessionStatus


class InitializationTimeout(TimeoutError):  # Client gave up waiting
    def __init__(self, session_id: str, attempts: int) -> None:
        super().__init__(f"session '{session_id}' still initializing after {attempts} polls")
        self.session_id = session_id
        self.attempts = attempts


class InitializationPoller:  # Maps persisted status onto initializing / ready / failed
    def __init__(
        self,
        *,
        interval_seconds: Optional[float] = None,
        max_attempts: Optional[int] = None,
    ) -> None:
        self._interval = interval_seconds or settings.POLL_INTERVAL_SECONDS
        self._max_attempts = max_attempts or settings.POLL_MAX_ATTEMPTS

    def poll(self, session_id: str, caller_id: str) -> PollResult:
        """Describe initialization progress; never writes."""

        session = load_owned(session_id, caller_id)
        status = session.status
        if status is S.SCHEDULED:
            raise InvalidStateError("session has not begun; nothing to poll", session_id=session_id)
        if status is S.INITIALIZING:
            return PollResult(
                session_id=session_id,
                state="initializing",
                status=status,
                retry_after_seconds=self._interval,
                max_attempts=self._max_attempts,
            )
        if session.started_at is not None:
            return PollResult(
                session_id=session_id,
                state="ready",
                status=status,
                session=session,
                history=turn_log.list_turns(session_id),
            )
        return PollResult(
            session_id=session_id,
            state="failed",
            status=status,
            reason=self._failure_reason(session_id, session.failure_reason, status),
        )

    @staticmethod
    def _failure_reason(session_id: str, recorded: Optional[str], status: SessionStatus) -> str:
        if recorded:
            return recorded
        task = task_store.get_task_for_session(session_id)
        if task is not None and task.error:
            return task.error
        return f"session ended as '{status.value}' before it became active"


def wait_until_ready(
    poll: Callable[[], PollResult],
    *,
    interval_seconds: Optional[float] = None,
    max_attempts: Optional[int] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> PollResult:
    """Client-side loop: poll at a fixed backoff until ready/failed or attempts run out."""

    interval = interval_seconds or settings.POLL_INTERVAL_SECONDS
    attempts = max_attempts or settings.POLL_MAX_ATTEMPTS
    result: Optional[PollResult] = None
    for attempt in range(attempts):
        result = poll()
        if result.state != "initializing":
            return result
        if attempt + 1 < attempts:
            sleep(result.retry_after_seconds or interval)
    session_id = result.session_id if result is not None else "?"
    raise InitializationTimeout(session_id, attempts)


__all__ = ["InitializationPoller", "InitializationTimeout", "wait_until_ready"]
