from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from api.routes import get_orchestrator
from api_server import app
from interview_session.errors import UpstreamUnavailableError

CANDIDATE = {"X-User-Id": "cand-1"}
RECRUITER = {"X-User-Id": "hr-1", "X-User-Role": "interviewer"}
START = {"job_role": "Backend Engineer", "interview_type": "technical", "difficulty": "senior"}


@pytest.fixture
def client(orchestrator):
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def deferred_client(deferred_orchestrator):
    app.dependency_overrides[get_orchestrator] = lambda: deferred_orchestrator
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _start(client):
    resp = client.post("/api/interview-sessions/start", json=START, headers=CANDIDATE)
    assert resp.status_code == 201
    return resp.json()


def _schedule(client, **extra):
    payload = {**START, "candidate_id": "cand-1", **extra}
    resp = client.post("/api/admin/interviews/schedule", json=payload, headers=RECRUITER)
    assert resp.status_code == 201
    return resp.json()["session_id"]


def test_ad_hoc_interview_full_cycle(client):
    started = _start(client)
    session_id = started["session"]["session_id"]
    assert started["session"]["status"] == "active"
    assert started["opening"]["role"] == "assistant"

    answer = client.post(
        f"/api/interview-sessions/{session_id}/answer",
        json={"text": "I designed the payments ledger."},
        headers=CANDIDATE,
    )
    assert answer.status_code == 200
    assert answer.json()["role"] == "assistant"

    view = client.get(f"/api/interview-sessions/{session_id}", headers=CANDIDATE).json()
    assert [t["role"] for t in view["history"]] == ["assistant", "user", "assistant"]

    ended = client.post(f"/api/interview-sessions/{session_id}/end", json={"reason": "completed"}, headers=CANDIDATE)
    assert ended.status_code == 200
    body = ended.json()
    assert body["status"] == "completed"
    assert body["feedback"]["score"] == 82

    report = client.get(f"/api/interview-sessions/{session_id}/report.pdf", headers=CANDIDATE)
    assert report.status_code == 200
    assert report.headers["content-type"] == "application/pdf"
    assert "backend-engineer" in report.headers["content-disposition"]
    assert report.content.startswith(b"%PDF")

    completed = client.get("/api/interview-sessions/mine/completed", headers=CANDIDATE).json()
    assert [s["session_id"] for s in completed] == [session_id]


def test_end_without_body_defaults_to_completed(client):
    session_id = _start(client)["session"]["session_id"]
    resp = client.post(f"/api/interview-sessions/{session_id}/end", headers=CANDIDATE)
    assert resp.status_code == 200
    assert resp.json()["status"] == "completed"


def test_scheduled_interview_begin_and_poll(client):
    scheduled = client.post(
        "/api/admin/interviews/schedule",
        json={**START, "candidate_id": "cand-1"},
        headers=RECRUITER,
    )
    assert scheduled.status_code == 201
    session_id = scheduled.json()["session_id"]
    assert scheduled.json()["scheduled_by"] == "hr-1"

    mine = client.get("/api/interview-sessions/mine/scheduled", headers=CANDIDATE).json()
    assert [s["session_id"] for s in mine] == [session_id]

    begin = client.post(f"/api/interview-sessions/{session_id}/begin", headers=CANDIDATE)
    assert begin.status_code == 202
    assert begin.json()["status"] == "initializing"

    poll = client.get(f"/api/interview-sessions/{session_id}/status", headers=CANDIDATE)
    assert poll.status_code == 200
    body = poll.json()
    assert body["state"] == "ready"
    assert len(body["history"]) == 1
    assert "retry-after" not in poll.headers


def test_poll_while_initializing_sets_retry_after(deferred_client):
    scheduled = _schedule(deferred_client)
    deferred_client.post(f"/api/interview-sessions/{scheduled}/begin", headers=CANDIDATE)
    poll = deferred_client.get(f"/api/interview-sessions/{scheduled}/status", headers=CANDIDATE)
    assert poll.json()["state"] == "initializing"
    assert poll.headers["retry-after"] == "3"

    again = deferred_client.post(f"/api/interview-sessions/{scheduled}/begin", headers=CANDIDATE)
    assert again.status_code == 409
    assert again.json() == {
        "detail": "session is 'initializing'; only scheduled sessions can begin",
        "code": "invalid_state",
        "retryable": False,
    }


def test_expired_deadline_cannot_begin(client, clock):
    deadline = (clock.now - timedelta(minutes=5)).isoformat()
    session_id = _schedule(client, deadline=deadline)
    resp = client.post(f"/api/interview-sessions/{session_id}/begin", headers=CANDIDATE)
    assert resp.status_code == 409
    view = client.get(f"/api/interview-sessions/{session_id}", headers=CANDIDATE).json()
    assert view["session"]["status"] == "expired"


def test_error_mapping(client, gateway):
    session_id = _start(client)["session"]["session_id"]

    missing = client.get("/api/interview-sessions/nope", headers=CANDIDATE)
    assert missing.status_code == 404
    assert missing.json()["code"] == "not_found"

    other = client.get(f"/api/interview-sessions/{session_id}", headers={"X-User-Id": "cand-2"})
    assert other.status_code == 403
    assert other.json()["code"] == "forbidden"

    blank = client.post(f"/api/interview-sessions/{session_id}/answer", json={"text": " "}, headers=CANDIDATE)
    assert blank.status_code == 422
    assert blank.json()["code"] == "validation_error"

    gateway.next_error = UpstreamUnavailableError("interviewer.next timed out after 45s")
    unavailable = client.post(
        f"/api/interview-sessions/{session_id}/answer", json={"text": "An answer"}, headers=CANDIDATE
    )
    assert unavailable.status_code == 503
    assert unavailable.json() == {
        "detail": "interviewer.next timed out after 45s",
        "code": "upstream_unavailable",
        "retryable": True,
    }

    report = client.get(f"/api/interview-sessions/{session_id}/report.pdf", headers=CANDIDATE)
    assert report.status_code == 409


def test_identity_headers_are_required(client):
    assert client.get("/api/interview-sessions/mine/scheduled").status_code == 401
    resp = client.post(
        "/api/admin/interviews/schedule",
        json={**START, "candidate_id": "cand-1"},
        headers=CANDIDATE,
    )
    assert resp.status_code == 403


def test_admin_terminates_active_session(client):
    session_id = _start(client)["session"]["session_id"]
    resp = client.post(
        f"/api/admin/interviews/{session_id}/terminate",
        headers={"X-User-Id": "admin-1", "X-User-Role": "admin"},
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "terminated"
    answer = client.post(f"/api/interview-sessions/{session_id}/answer", json={"text": "hi"}, headers=CANDIDATE)
    assert answer.status_code == 409


def test_start_validates_payload(client):
    resp = client.post(
        "/api/interview-sessions/start",
        json={"job_role": "", "interview_type": "technical"},
        headers=CANDIDATE,
    )
    assert resp.status_code == 422


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
