"""Ad-hoc sessions: turn taking, supersession, expiry and ending."""
from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from interview_session.errors import (
    AnswerValidationError,
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    UpstreamUnavailableError,
)
from interview_session.models import RoleContext, SessionStatus
from interview_session.orchestrator import PLACEHOLDER_SUMMARY, SessionOrchestrator
from interviewer.gateway import FeedbackDraft
from storage import sessions as session_store

S = SessionStatus
CONTEXT = RoleContext(job_role="Backend Engineer", interview_type="technical", duration_minutes=30)


def _start(orchestrator, candidate_id="cand-1"):
    return orchestrator.start_ad_hoc(candidate_id, CONTEXT)


def _roles(orchestrator, session_id, candidate_id="cand-1"):
    return [turn.role for turn in orchestrator.history(session_id, candidate_id)]


def test_ad_hoc_start_creates_active_session_with_opening(orchestrator, gateway):
    started = _start(orchestrator)
    assert started.session.status is S.ACTIVE
    assert started.session.started_at is not None
    assert started.opening.role == "assistant"
    assert started.opening.sequence == 1
    assert started.opening.content == gateway.opening


def test_ad_hoc_start_requires_role_and_type(orchestrator):
    with pytest.raises(AnswerValidationError):
        orchestrator.start_ad_hoc("cand-1", RoleContext(job_role="  ", interview_type="technical"))


def test_ad_hoc_start_gateway_failure_leaves_nothing_behind(orchestrator, gateway):
    previous = _start(orchestrator)
    gateway.opening_error = UpstreamUnavailableError("interviewer.opening timed out after 120s")
    with pytest.raises(UpstreamUnavailableError):
        _start(orchestrator)
    assert session_store.get_session(previous.session.session_id).status is S.ACTIVE
    assert len(session_store.list_for_candidate("cand-1", S.ACTIVE)) == 1


def test_new_ad_hoc_start_abandons_previous(orchestrator):
    first = _start(orchestrator)
    second = _start(orchestrator)
    assert session_store.get_session(first.session.session_id).status is S.ABANDONED
    assert session_store.get_session(second.session.session_id).status is S.ACTIVE


def test_concurrent_starts_leave_one_active_session(gateway, clock):
    orchestrator = SessionOrchestrator(gateway, clock=clock)
    try:
        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(lambda _: _start(orchestrator), range(6)))
    finally:
        orchestrator.shutdown()
    active = session_store.list_for_candidate("cand-1", S.ACTIVE)
    assert len(active) == 1
    assert active[0].session_id in {r.session.session_id for r in results}
    assert len(session_store.list_for_candidate("cand-1", S.ABANDONED)) == 5


def test_submit_answer_alternates_roles(orchestrator, gateway):
    gateway.questions = ["How did you scale it?", "What would you change?"]
    started = _start(orchestrator)
    sid = started.session.session_id

    reply = orchestrator.submit_answer(sid, "cand-1", "  I built a billing pipeline.  ")
    assert reply.role == "assistant"
    assert reply.content == "How did you scale it?"
    orchestrator.submit_answer(sid, "cand-1", "Sharded the ledger.", source="speech")

    history = orchestrator.history(sid, "cand-1")
    assert [t.role for t in history] == ["assistant", "user", "assistant", "user", "assistant"]
    assert [t.sequence for t in history] == [1, 2, 3, 4, 5]
    assert history[1].content == "I built a billing pipeline."
    assert history[3].source == "speech"
    assert ("next", 2) in gateway.calls


def test_submit_answer_gateway_failure_keeps_user_turn(orchestrator, gateway):
    sid = _start(orchestrator).session.session_id
    gateway.next_error = UpstreamUnavailableError("interviewer.next timed out after 45s")
    with pytest.raises(UpstreamUnavailableError) as excinfo:
        orchestrator.submit_answer(sid, "cand-1", "My answer")
    assert excinfo.value.retryable

    history = orchestrator.history(sid, "cand-1")
    assert [t.role for t in history] == ["assistant", "user", "system"]
    assert history[1].content == "My answer"
    assert orchestrator.get_session(sid, "cand-1").session.status is S.ACTIVE

    gateway.next_error = None
    orchestrator.submit_answer(sid, "cand-1", "My answer")
    assert _roles(orchestrator, sid) == ["assistant", "user", "system", "user", "assistant"]


def test_submit_answer_rejects_blank_text(orchestrator):
    sid = _start(orchestrator).session.session_id
    with pytest.raises(AnswerValidationError):
        orchestrator.submit_answer(sid, "cand-1", "   ")
    assert _roles(orchestrator, sid) == ["assistant"]


def test_submit_answer_requires_owner_and_active(orchestrator):
    sid = _start(orchestrator).session.session_id
    with pytest.raises(ForbiddenError):
        orchestrator.submit_answer(sid, "intruder", "hi")
    orchestrator.end(sid, "cand-1")
    with pytest.raises(InvalidStateError):
        orchestrator.submit_answer(sid, "cand-1", "late answer")


def test_concurrent_submit_is_rejected_with_conflict(orchestrator, gateway):
    sid = _start(orchestrator).session.session_id
    entered = threading.Event()
    release = threading.Event()

    def slow_next(history, context):
        entered.set()
        release.wait(timeout=5)
        return "Next?"

    gateway.generate_next = slow_next
    outcome = {}
    worker = threading.Thread(target=lambda: outcome.setdefault("turn", orchestrator.submit_answer(sid, "cand-1", "first")))
    worker.start()
    assert entered.wait(timeout=5)
    try:
        with pytest.raises(ConflictError) as excinfo:
            orchestrator.submit_answer(sid, "cand-1", "second")
        assert excinfo.value.retryable
    finally:
        release.set()
        worker.join(timeout=5)
    assert outcome["turn"].content == "Next?"
    assert _roles(orchestrator, sid) == ["assistant", "user", "assistant"]


def test_overdue_session_expires_on_access(orchestrator, clock):
    sid = _start(orchestrator).session.session_id
    clock.advance(minutes=31)
    with pytest.raises(InvalidStateError):
        orchestrator.submit_answer(sid, "cand-1", "still here")
    view = orchestrator.get_session(sid, "cand-1")
    assert view.session.status is S.EXPIRED
    assert view.session.ended_at == clock.now


def test_end_completes_and_stores_feedback(orchestrator, gateway):
    sid = _start(orchestrator).session.session_id
    orchestrator.submit_answer(sid, "cand-1", "I led the migration.")
    ended = orchestrator.end(sid, "cand-1")
    assert ended.status is S.COMPLETED
    assert ended.ended_at is not None
    assert ended.feedback.score == 82
    assert ended.feedback.confidence == 1.0
    assert ended.feedback.improvements == ["quantify impact"]
    assert [s.session_id for s in orchestrator.list_completed("cand-1")] == [sid]


def test_end_with_terminated_reason_skips_feedback(orchestrator, gateway):
    sid = _start(orchestrator).session.session_id
    ended = orchestrator.end(sid, "cand-1", "terminated")
    assert ended.status is S.TERMINATED
    assert ended.feedback is None
    assert not any(call[0] == "feedback" for call in gateway.calls)


@pytest.mark.parametrize("reason", ["abandoned", "bogus"])
def test_end_rejects_other_reasons(orchestrator, reason):
    sid = _start(orchestrator).session.session_id
    with pytest.raises(AnswerValidationError):
        orchestrator.end(sid, "cand-1", reason)


def test_feedback_failure_does_not_block_completion(orchestrator, gateway):
    sid = _start(orchestrator).session.session_id
    gateway.feedback_error = UpstreamUnavailableError("interviewer.feedback timed out after 90s")
    ended = orchestrator.end(sid, "cand-1")
    assert ended.status is S.COMPLETED
    assert ended.feedback is None

    gateway.feedback_error = None
    regenerated = orchestrator.regenerate_feedback(sid, "cand-1")
    assert regenerated.feedback.score == 82


def test_invalid_score_yields_placeholder_then_regenerates(orchestrator, gateway):
    sid = _start(orchestrator).session.session_id
    gateway.feedback = FeedbackDraft(summary="Great", score="excellent")
    ended = orchestrator.end(sid, "cand-1")
    assert ended.feedback.summary == PLACEHOLDER_SUMMARY
    assert ended.feedback.score == 0
    assert ended.feedback.confidence == 0.0

    gateway.feedback = FeedbackDraft(summary="Great", score=91.4)
    assert orchestrator.regenerate_feedback(sid, "cand-1").feedback.score == 91


def test_regenerate_requires_completed_session(orchestrator):
    sid = _start(orchestrator).session.session_id
    with pytest.raises(InvalidStateError):
        orchestrator.regenerate_feedback(sid, "cand-1")


def test_terminate_only_for_running_sessions(orchestrator):
    sid = _start(orchestrator).session.session_id
    assert orchestrator.terminate(sid, "admin-1").status is S.TERMINATED
    with pytest.raises(InvalidStateError):
        orchestrator.terminate(sid, "admin-1")


def test_lock_registries_empty_after_full_cycles(orchestrator):
    for n in range(5):
        candidate = f"cand-{n}"
        sid = _start(orchestrator, candidate).session.session_id
        orchestrator.submit_answer(sid, candidate, "An answer")
        orchestrator.end(sid, candidate)
    assert len(orchestrator._session_locks) == 0
    assert len(orchestrator._candidate_locks) == 0
