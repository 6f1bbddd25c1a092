from __future__ import annotations

import pytest

from interview_session.models import RoleContext
from observability import admin_cli
from session_reports import ReportNotAvailable, generate_feedback_report_pdf

CONTEXT = RoleContext(
    job_role="Frontend Engineer",
    interview_type="behavioral",
    candidate_label="Grace “Gee” Hopper",
)


def _completed(orchestrator):
    sid = orchestrator.start_ad_hoc("cand-1", CONTEXT).session.session_id
    orchestrator.submit_answer(sid, "cand-1", "I’d start by profiling the render path.")
    orchestrator.end(sid, "cand-1")
    return orchestrator.get_session(sid, "cand-1")


def test_pdf_report_for_completed_session(orchestrator):
    view = _completed(orchestrator)
    payload = generate_feedback_report_pdf(view.session, view.history)
    assert isinstance(payload, bytes)
    assert payload.startswith(b"%PDF")
    assert len(payload) > 500


def test_pdf_report_without_feedback(orchestrator, gateway):
    gateway.feedback_error = RuntimeError("offline")
    view = _completed(orchestrator)
    assert view.session.feedback is None
    assert generate_feedback_report_pdf(view.session, view.history).startswith(b"%PDF")


def test_pdf_report_requires_completed_session(orchestrator):
    started = orchestrator.start_ad_hoc("cand-1", CONTEXT)
    with pytest.raises(ReportNotAvailable):
        generate_feedback_report_pdf(started.session, [started.opening])


def test_admin_cli_lists_sessions_and_transcript(orchestrator, capsys):
    view = _completed(orchestrator)
    sid = view.session.session_id

    admin_cli.main(["--tail-sessions", "5", "--transcript", sid])
    out = capsys.readouterr().out
    assert f"{sid} candidate=cand-1 status=completed" in out
    assert "#1" in out and "assistant:" in out
    assert "#2" in out and "user: I’d start by profiling" in out
    assert "feedback score=82" in out


def test_admin_cli_unknown_session():
    assert admin_cli.show_transcript("missing") == ["session missing not found"]
