"""FastAPI routes for interview session control."""
from __future__ import annotations

import re
from functools import lru_cache
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Response
from fastapi.concurrency import run_in_threadpool

from api.identity import Caller, get_caller, require_staff
from api.schemas import AnswerReq, EndReq, ScheduleReq, StartReq, SynthesizeReq
from config.settings import settings
from interview_session.errors import InvalidStateError
from interview_session.models import (
    AdHocStart,
    BeginAck,
    InterviewSession,
    PollResult,
    SessionStatus,
    SessionView,
    Turn,
)
from interview_session.orchestrator import SessionOrchestrator
from interviewer import build_interviewer
from session_reports import generate_feedback_report_pdf
from speech_gateway import HttpSpeechGateway, SpeechGateway, SpeechHealth, Transcription


router = APIRouter(prefix="/api/interview-sessions", tags=["interview-sessions"])
admin_router = APIRouter(prefix="/api/admin/interviews", tags=["admin"])
speech_router = APIRouter(prefix="/api/speech", tags=["speech"])


@lru_cache(maxsize=1)
def get_orchestrator() -> SessionOrchestrator:
    return SessionOrchestrator(build_interviewer())


@lru_cache(maxsize=1)
def get_speech_gateway() -> SpeechGateway:
    return HttpSpeechGateway()


def _safe_slug(value: str) -> str:  # Sanitize value for filenames
    slug = re.sub(r"[^a-z0-9]+", "-", (value or "").lower())
    return re.sub(r"-+", "-", slug).strip("-")


# -- candidate session routes ----------------------------------------------------


@router.post("/start", response_model=AdHocStart, status_code=201)
def start_session(
    payload: StartReq,
    caller: Caller = Depends(get_caller),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> AdHocStart:
    context = payload.to_context(settings.DEFAULT_DURATION_MINUTES)
    return orchestrator.start_ad_hoc(caller.user_id, context)


@router.get("/mine/scheduled", response_model=List[InterviewSession])
def my_scheduled(
    caller: Caller = Depends(get_caller),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> List[InterviewSession]:
    return orchestrator.list_scheduled(caller.user_id)


@router.get("/mine/completed", response_model=List[InterviewSession])
def my_completed(
    caller: Caller = Depends(get_caller),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> List[InterviewSession]:
    return orchestrator.list_completed(caller.user_id)


@router.post("/{session_id}/begin", response_model=BeginAck, status_code=202)
def begin_session(
    session_id: str,
    caller: Caller = Depends(get_caller),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> BeginAck:
    return orchestrator.begin(session_id, caller.user_id)


@router.get("/{session_id}/status", response_model=PollResult)
def poll_session(
    session_id: str,
    response: Response,
    caller: Caller = Depends(get_caller),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> PollResult:
    result = orchestrator.poll_status(session_id, caller.user_id)
    if result.retry_after_seconds:
        response.headers["Retry-After"] = str(max(1, round(result.retry_after_seconds)))
    return result


@router.get("/{session_id}", response_model=SessionView)
def read_session(
    session_id: str,
    caller: Caller = Depends(get_caller),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> SessionView:
    return orchestrator.get_session(session_id, caller.user_id)


@router.post("/{session_id}/answer", response_model=Turn)
def submit_answer(
    session_id: str,
    payload: AnswerReq,
    caller: Caller = Depends(get_caller),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> Turn:
    return orchestrator.submit_answer(session_id, caller.user_id, payload.text, source=payload.source)


@router.post("/{session_id}/end", response_model=InterviewSession)
def end_session(
    session_id: str,
    payload: Optional[EndReq] = None,
    caller: Caller = Depends(get_caller),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> InterviewSession:
    reason = payload.reason if payload is not None else SessionStatus.COMPLETED.value
    return orchestrator.end(session_id, caller.user_id, reason)


@router.post("/{session_id}/feedback", response_model=InterviewSession)
def regenerate_feedback(
    session_id: str,
    caller: Caller = Depends(get_caller),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> InterviewSession:
    return orchestrator.regenerate_feedback(session_id, caller.user_id)


@router.get("/{session_id}/report.pdf")
def session_report_pdf(
    session_id: str,
    caller: Caller = Depends(get_caller),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> Response:
    view = orchestrator.get_session(session_id, caller.user_id)
    session = view.session
    if session.status is not SessionStatus.COMPLETED:
        raise InvalidStateError("reports are only available for completed sessions", session_id=session_id)
    payload = generate_feedback_report_pdf(session, view.history)
    role = _safe_slug(session.context.job_role) or "interview"
    filename = f"{session_id}-{role}-feedback.pdf"
    headers = {"Content-Disposition": f"attachment; filename=\"{filename}\""}
    return Response(content=payload, media_type="application/pdf", headers=headers)


# -- administrative routes -------------------------------------------------------


@admin_router.post("/schedule", response_model=InterviewSession, status_code=201)
def schedule_session(
    payload: ScheduleReq,
    caller: Caller = Depends(require_staff),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> InterviewSession:
    context = payload.to_context(settings.DEFAULT_DURATION_MINUTES)
    return orchestrator.schedule(payload.candidate_id, context, scheduled_by=caller.user_id)


@admin_router.post("/{session_id}/terminate", response_model=InterviewSession)
def terminate_session(
    session_id: str,
    caller: Caller = Depends(require_staff),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> InterviewSession:
    return orchestrator.terminate(session_id, caller.user_id)


# -- speech routes ---------------------------------------------------------------


@speech_router.post("/transcribe", response_model=Transcription)
async def transcribe(
    audio: bytes = Body(..., media_type="application/octet-stream"),
    caller: Caller = Depends(get_caller),
    gateway: SpeechGateway = Depends(get_speech_gateway),
) -> Transcription:
    return await run_in_threadpool(gateway.transcribe, audio)


@speech_router.post("/synthesize")
def synthesize(
    payload: SynthesizeReq,
    caller: Caller = Depends(get_caller),
    gateway: SpeechGateway = Depends(get_speech_gateway),
) -> Response:
    result = gateway.synthesize(payload.text, voice=payload.voice)
    return Response(content=result.audio, media_type=result.mime_type, headers={"X-Voice": result.voice})


@speech_router.get("/health", response_model=SpeechHealth)
def speech_health(gateway: SpeechGateway = Depends(get_speech_gateway)) -> SpeechHealth:
    return gateway.health()


__all__ = ["admin_router", "get_orchestrator", "get_speech_gateway", "router", "speech_router"]
