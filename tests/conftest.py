import os
import sys
import tempfile
from concurrent.futures import Executor, Future
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("ENABLE_FILE_LOGS", "0")

from storage.migrate import migrate
from config.settings import settings
from interviewer.gateway import FeedbackDraft
from interview_session.orchestrator import SessionOrchestrator


@pytest.fixture(autouse=True)
def tmp_db(monkeypatch):
    td = tempfile.TemporaryDirectory()
    db_path = os.path.join(td.name, "test.db")
    monkeypatch.setattr(settings, "DB_PATH", db_path, raising=False)
    migrate(db_path)
    try:
        yield db_path
    finally:
        td.cleanup()


class FakeGateway:  # Scripted interviewer model
    def __init__(self, opening="Welcome! Tell me about a system you designed."):
        self.opening = opening
        self.questions = []
        self.feedback = FeedbackDraft(
            summary="Clear communicator with solid fundamentals.",
            score=82,
            strengths=["clarity", "structure"],
            improvements=["quantify impact"],
        )
        self.opening_error = None
        self.next_error = None
        self.feedback_error = None
        self.calls = []

    def generate_opening(self, context):
        self.calls.append(("opening", context.job_role))
        if self.opening_error is not None:
            raise self.opening_error
        return self.opening

    def generate_next(self, history, context):
        self.calls.append(("next", len(history)))
        if self.next_error is not None:
            raise self.next_error
        if self.questions:
            return self.questions.pop(0)
        return f"Follow-up question {len(history)}?"

    def generate_feedback(self, history):
        self.calls.append(("feedback", len(history)))
        if self.feedback_error is not None:
            raise self.feedback_error
        return self.feedback


class InlineExecutor(Executor):  # Runs submitted work immediately
    def submit(self, fn, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:  # noqa: BLE001
            future.set_exception(exc)
        return future


class DeferredExecutor(Executor):  # Queues work until the test releases it
    def __init__(self):
        self.pending = []

    def submit(self, fn, *args, **kwargs):
        future = Future()
        self.pending.append((future, fn, args, kwargs))
        return future

    def run_all(self):
        while self.pending:
            future, fn, args, kwargs = self.pending.pop(0)
            future.set_result(fn(*args, **kwargs))


class Clock:  # Manually advanced UTC clock
    def __init__(self, start=None):
        self.now = start or datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **delta):
        self.now = self.now + timedelta(**delta)
        return self.now


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def orchestrator(gateway, clock):
    return SessionOrchestrator(gateway, executor=InlineExecutor(), clock=clock)


@pytest.fixture
def deferred():
    return DeferredExecutor()


@pytest.fixture
def deferred_orchestrator(gateway, clock, deferred):
    return SessionOrchestrator(gateway, executor=deferred, clock=clock)
