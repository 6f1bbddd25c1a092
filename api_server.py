from __future__ import annotations  # FastAPI server exposing the interview session lifecycle

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes import admin_router, get_orchestrator, router, speech_router
from api.schemas import HealthResp
from interview_session.errors import (
    AnswerValidationError,
    ConflictError,
    ForbiddenError,
    InterviewSessionError,
    InvalidStateError,
    SessionNotFoundError,
    UpstreamUnavailableError,
)
from interview_session.lifecycle import utcnow
from observability import log_event
from speech_gateway import SpeechGatewayError
from storage.migrate import migrate


logger = logging.getLogger(__name__)

STATUS_CODES: Dict[type, int] = {
    SessionNotFoundError: 404,
    ForbiddenError: 403,
    InvalidStateError: 409,
    AnswerValidationError: 422,
    UpstreamUnavailableError: 503,
    ConflictError: 409,
}


def status_for(error: InterviewSessionError) -> int:  # Map taxonomy to HTTP status
    for kind, code in STATUS_CODES.items():
        if isinstance(error, kind):
            return code
    return 500


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:  # Migrate on boot, stop workers on shutdown
    migrate()
    yield
    if get_orchestrator.cache_info().currsize:
        get_orchestrator().shutdown(wait=False)


def create_app() -> FastAPI:  # Build the ASGI app with routers and error mapping
    application = FastAPI(title="Interview Session API", lifespan=lifespan)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.include_router(router)
    application.include_router(admin_router)
    application.include_router(speech_router)

    @application.exception_handler(InterviewSessionError)
    async def _session_error(request: Request, exc: InterviewSessionError) -> JSONResponse:
        status = status_for(exc)
        if exc.session_id:
            log_event(
                "request_failed",
                exc.session_id,
                level=logging.WARNING,
                code=exc.code,
                reason=exc.message,
                op=f"{request.method} {request.url.path}",
            )
        return JSONResponse(
            status_code=status,
            content={"detail": exc.message, "code": exc.code, "retryable": exc.retryable},
        )

    @application.exception_handler(SpeechGatewayError)
    async def _speech_error(request: Request, exc: SpeechGatewayError) -> JSONResponse:
        logger.warning("Speech request %s failed: %s", request.url.path, exc)
        return JSONResponse(
            status_code=503,
            content={"detail": str(exc), "code": "speech_unavailable", "retryable": True},
        )

    @application.get("/api/health", response_model=HealthResp)
    def health() -> HealthResp:
        return HealthResp(time=utcnow())

    return application


app = create_app()
