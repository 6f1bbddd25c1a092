"""Session lifecycle orchestrator: state machine and turn-taking protocol."""
from __future__ import annotations

import logging
import math
import sqlite3
from concurrent.futures import Executor, ThreadPoolExecutor
from datetime import datetime
from typing import Callable, List, Optional, Union
from uuid import uuid4

from config.settings import settings
from interviewer.gateway import FeedbackDraft, LanguageModelGateway
from observability import log_event, span
from storage import sessions as session_store
from storage import tasks as task_store
from storage import turns as turn_log
from storage.sqlite import transaction

from .access import load_owned, load_session
from .errors import (
    AnswerValidationError,
    ConflictError,
    InterviewSessionError,
    InvalidStateError,
    UpstreamUnavailableError,
)
from .lifecycle import END_REASONS, deadline_passed, should_expire, transition, utcnow
from .locks import KeyedLocks
from .models import (
    AdHocStart,
    BeginAck,
    Feedback,
    InterviewSession,
    PollResult,
    RoleContext,
    SessionStatus,
    SessionView,
    Turn,
    TurnSource,
)
from .poller import InitializationPoller

logger = logging.getLogger(__name__)

S = SessionStatus

PLACEHOLDER_SUMMARY = "Automated feedback could not be validated for this session."


def coerce_feedback(draft: FeedbackDraft, *, now: datetime) -> Feedback:
    """Turn a model draft into a storable record.

    The score must be an integer in [0, 100]; in-range floats and numeric
    strings are rounded. Anything else yields a zero-confidence placeholder.
    """

    score = _parse_score(draft.score)
    if score is None:
        logger.warning("Rejecting feedback with invalid score %r", draft.score)
        return Feedback(summary=PLACEHOLDER_SUMMARY, score=0, generated_at=now, confidence=0.0)
    return Feedback(
        summary=draft.summary.strip() or "No summary provided.",
        score=score,
        strengths=[item.strip() for item in draft.strengths if item and item.strip()],
        improvements=[item.strip() for item in draft.improvements if item and item.strip()],
        generated_at=now,
    )


def _parse_score(raw: Union[int, float, str, None]) -> Optional[int]:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if math.isnan(value) or value < 0 or value > 100:
        return None
    return int(round(value))


def _clean_question(text: object) -> str:
    if not isinstance(text, str) or not text.strip():
        raise UpstreamUnavailableError("interviewer returned an empty question")
    return text.strip()


class SessionOrchestrator:  # Sole writer of session status, feedback and turns
    def __init__(
        self,
        gateway: LanguageModelGateway,
        *,
        executor: Optional[Executor] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._gateway = gateway
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=settings.INIT_WORKERS,
            thread_name_prefix="session-init",
        )
        self._clock = clock
        self._session_locks = KeyedLocks()
        self._candidate_locks = KeyedLocks()
        self._poller = InitializationPoller()

    def shutdown(self, wait: bool = True) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    def schedule(self, candidate_id: str, context: RoleContext, *, scheduled_by: str) -> InterviewSession:
        """Book a session for later; the candidate starts it with :meth:`begin`."""

        session = session_store.create_scheduled(
            candidate_id, context, scheduled_by=scheduled_by, now=self._clock()
        )
        log_event("session_scheduled", session.session_id, status=S.SCHEDULED.value, op=f"by {scheduled_by}")
        return session

    # -- begin / initialization -------------------------------------------------

    def begin(self, session_id: str, caller_id: str) -> BeginAck:
        """Move a scheduled session to ``initializing`` and start the opening job."""

        session = load_owned(session_id, caller_id)
        now = self._clock()
        if session.status is S.SCHEDULED and deadline_passed(session, now):
            self._try_move(session, S.EXPIRED, mark_ended=True)
            raise InvalidStateError(
                "session deadline has passed; it is no longer startable",
                session_id=session_id,
            )
        if session.status is not S.SCHEDULED:
            raise InvalidStateError(
                f"session is '{session.status.value}'; only scheduled sessions can begin",
                session_id=session_id,
            )
        transition(session.status, S.INITIALIZING, session_id=session_id)
        with transaction() as conn:
            if not session_store.update_status(session_id, S.SCHEDULED, S.INITIALIZING, now=now, conn=conn):
                raise InvalidStateError("session has already begun", session_id=session_id)
            task = task_store.create_task(session_id, now=now, conn=conn)
        log_event("status_changed", session_id, from_status=S.SCHEDULED.value, to_status=S.INITIALIZING.value)
        try:
            self._executor.submit(self._run_initialization, session_id, task.task_id)
        except RuntimeError as exc:
            logger.error("Could not schedule initialization for %s: %s", session_id, exc)
            self._fail_initialization(session_id, task.task_id, "initialization could not be scheduled")
        return BeginAck(session_id=session_id, task_id=task.task_id)

    def _run_initialization(self, session_id: str, task_id: str) -> None:  # Worker entry point; never raises
        try:
            self._initialize(session_id, task_id)
        except Exception as exc:  # noqa: BLE001 - outcome is recorded on the session
            logger.exception("Initialization crashed for %s", session_id)
            try:
                self._fail_initialization(session_id, task_id, f"initialization crashed: {exc}")
            except Exception:  # noqa: BLE001
                logger.exception("Could not record initialization failure for %s", session_id)

    def _initialize(self, session_id: str, task_id: str) -> None:
        task_store.update_task(task_id, "running")
        session = session_store.get_session(session_id)
        if session is None or session.status is not S.INITIALIZING:
            task_store.update_task(task_id, "failed", now=self._clock(), error="session left initializing")
            return
        try:
            with span(session_id, "generate_opening"):
                question = _clean_question(self._gateway.generate_opening(session.context))
        except Exception as exc:  # noqa: BLE001 - outcome is recorded on the session
            reason = exc.message if isinstance(exc, InterviewSessionError) else "opening question generation failed"
            logger.warning("Initialization failed for %s: %s", session_id, exc)
            self._fail_initialization(session_id, task_id, reason)
            return

        now = self._clock()
        try:
            with self._candidate_locks.hold(session.candidate_id):
                with transaction() as conn:
                    abandoned = session_store.abandon_active(
                        session.candidate_id, now=now, keep_session_id=session_id, conn=conn
                    )
                    if not session_store.update_status(
                        session_id, S.INITIALIZING, S.ACTIVE, now=now, mark_started=True, conn=conn
                    ):
                        raise InvalidStateError("session left initializing", session_id=session_id)
                    opening = turn_log.append_turn(session_id, "assistant", question, now=now, conn=conn)
                    task_store.update_task(task_id, "succeeded", now=now, conn=conn)
        except InvalidStateError as exc:
            task_store.update_task(task_id, "failed", now=self._clock(), error=exc.message)
            log_event("initialization_discarded", session_id, level=logging.WARNING, reason=exc.message)
            return
        except sqlite3.Error as exc:
            logger.exception("Storage failure while activating %s", session_id)
            self._fail_initialization(session_id, task_id, f"storage failure: {exc}")
            return

        for other in abandoned:
            log_event("status_changed", other, from_status=S.ACTIVE.value, to_status=S.ABANDONED.value)
        log_event("turn_appended", session_id, role="assistant", sequence=opening.sequence)
        log_event("status_changed", session_id, from_status=S.INITIALIZING.value, to_status=S.ACTIVE.value)

    def _fail_initialization(self, session_id: str, task_id: str, reason: str) -> None:
        now = self._clock()
        moved = session_store.update_status(
            session_id,
            S.INITIALIZING,
            S.FAILED,
            now=now,
            mark_ended=True,
            failure_reason=reason,
        )
        task_store.update_task(task_id, "failed", now=now, error=reason)
        if moved:
            log_event(
                "status_changed",
                session_id,
                level=logging.WARNING,
                from_status=S.INITIALIZING.value,
                to_status=S.FAILED.value,
                reason=reason,
            )

    def poll_status(self, session_id: str, caller_id: str) -> PollResult:
        return self._poller.poll(session_id, caller_id)

    # -- ad-hoc start -----------------------------------------------------------

    def start_ad_hoc(self, candidate_id: str, context: RoleContext) -> AdHocStart:
        """Create an active session with its opening turn, superseding any active one."""

        if not context.job_role.strip() or not context.interview_type.strip():
            raise AnswerValidationError("job role and interview type are required")
        session_id = uuid4().hex
        try:
            with span(session_id, "generate_opening"):
                question = _clean_question(self._gateway.generate_opening(context))
        except UpstreamUnavailableError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise UpstreamUnavailableError("opening question generation failed", session_id=session_id) from exc

        now = self._clock()
        session = InterviewSession(
            session_id=session_id,
            candidate_id=candidate_id,
            context=context,
            status=S.ACTIVE,
            created_at=now,
            updated_at=now,
            started_at=now,
        )
        with self._candidate_locks.hold(candidate_id):
            try:
                with transaction() as conn:
                    abandoned = session_store.abandon_active(candidate_id, now=now, conn=conn)
                    session_store.insert_session(session, conn=conn)
                    opening = turn_log.append_turn(session_id, "assistant", question, now=now, conn=conn)
            except sqlite3.IntegrityError as exc:
                raise ConflictError(
                    "another session became active for this candidate; retry",
                    session_id=session_id,
                ) from exc

        for other in abandoned:
            log_event("status_changed", other, from_status=S.ACTIVE.value, to_status=S.ABANDONED.value)
        log_event("session_started", session_id, status=S.ACTIVE.value, op="ad_hoc")
        log_event("turn_appended", session_id, role="assistant", sequence=opening.sequence)
        return AdHocStart(session=session, opening=opening)

    # -- turn taking ------------------------------------------------------------

    def submit_answer(
        self,
        session_id: str,
        caller_id: str,
        text: str,
        *,
        source: TurnSource = "typed",
    ) -> Turn:
        """Append the candidate's answer and the interviewer's follow-up.

        The user turn survives a gateway failure; a system note is appended
        after it so the transcript keeps alternating.
        """

        session = self._expire_if_overdue(load_owned(session_id, caller_id))
        self._require(session, S.ACTIVE)
        answer = (text or "").strip()
        if not answer:
            raise AnswerValidationError("answer text is required", session_id=session_id)

        with self._session_locks.try_hold(
            session_id, message="a previous answer for this session is still being processed"
        ):
            with transaction() as conn:
                current = session_store.get_session(session_id, conn=conn)
                self._require(current, S.ACTIVE)
                user_turn = turn_log.append_turn(
                    session_id, "user", answer, now=self._clock(), source=source, conn=conn
                )
            log_event("turn_appended", session_id, role="user", sequence=user_turn.sequence)

            history = turn_log.list_turns(session_id)
            if not history or history[-1].turn_id != user_turn.turn_id:
                raise ConflictError("conversation changed while the answer was stored", session_id=session_id)

            try:
                with span(session_id, "generate_next"):
                    question = _clean_question(self._gateway.generate_next(history, current.context))
            except UpstreamUnavailableError as exc:
                self._note_generation_failure(session_id, exc.message)
                raise
            except Exception as exc:  # noqa: BLE001
                self._note_generation_failure(session_id, "follow-up question generation failed")
                raise UpstreamUnavailableError(
                    "follow-up question generation failed", session_id=session_id
                ) from exc

            with transaction() as conn:
                latest = session_store.get_session(session_id, conn=conn)
                self._require(latest, S.ACTIVE)
                reply = turn_log.append_turn(session_id, "assistant", question, now=self._clock(), conn=conn)
            log_event("turn_appended", session_id, role="assistant", sequence=reply.sequence)
            return reply

    def _note_generation_failure(self, session_id: str, reason: str) -> None:
        try:
            note = turn_log.append_turn(
                session_id,
                "system",
                f"Interviewer follow-up unavailable: {reason}",
                now=self._clock(),
            )
        except sqlite3.Error:
            logger.exception("Could not record generation failure note for %s", session_id)
            return
        log_event("turn_appended", session_id, level=logging.WARNING, role="system", sequence=note.sequence)

    # -- ending -----------------------------------------------------------------

    def end(
        self,
        session_id: str,
        caller_id: str,
        reason: Union[SessionStatus, str] = S.COMPLETED,
    ) -> InterviewSession:
        """End an active session; ``completed`` also attempts feedback generation."""

        try:
            target = SessionStatus(reason)
        except ValueError as exc:
            raise AnswerValidationError(f"unknown end reason '{reason}'", session_id=session_id) from exc
        if target not in END_REASONS:
            raise AnswerValidationError(f"'{target.value}' is not a valid end reason", session_id=session_id)

        load_owned(session_id, caller_id)
        with self._session_locks.hold(session_id):
            session = self._expire_if_overdue(load_session(session_id))
            self._require(session, S.ACTIVE)
            session = self._move(session, target, mark_ended=True)

        if target is S.COMPLETED:
            try:
                session = self._store_feedback(session)
            except UpstreamUnavailableError as exc:
                log_event(
                    "feedback_failed",
                    session_id,
                    level=logging.WARNING,
                    reason=exc.message,
                )
        return session

    def terminate(self, session_id: str, admin_id: str) -> InterviewSession:
        """Administrative stop for an active or stuck initializing session."""

        with self._session_locks.hold(session_id):
            session = load_session(session_id)
            if session.status not in (S.ACTIVE, S.INITIALIZING):
                raise InvalidStateError(
                    f"session is '{session.status.value}'; only active or initializing sessions can be terminated",
                    session_id=session_id,
                )
            session = self._move(session, S.TERMINATED, mark_ended=True)
        log_event("session_terminated", session_id, op="admin", reason=f"by {admin_id}")
        return session

    def regenerate_feedback(self, session_id: str, caller_id: str) -> InterviewSession:
        """Retry feedback for a completed session that has none, or only a placeholder."""

        session = load_owned(session_id, caller_id)
        self._require(session, S.COMPLETED)
        if session.feedback is not None and session.feedback.confidence > 0:
            return session
        return self._store_feedback(session)

    def _store_feedback(self, session: InterviewSession) -> InterviewSession:
        history = turn_log.list_turns(session.session_id)
        try:
            with span(session.session_id, "generate_feedback"):
                draft = self._gateway.generate_feedback(history)
        except UpstreamUnavailableError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise UpstreamUnavailableError("feedback generation failed", session_id=session.session_id) from exc
        now = self._clock()
        feedback = coerce_feedback(draft, now=now)
        session_store.save_feedback(session.session_id, feedback, now=now)
        log_event(
            "feedback_stored",
            session.session_id,
            status=session.status.value,
            outcome="placeholder" if feedback.confidence == 0 else "ok",
        )
        return load_session(session.session_id)

    # -- reads ------------------------------------------------------------------

    def get_session(self, session_id: str, caller_id: str) -> SessionView:
        session = self._expire_if_overdue(load_owned(session_id, caller_id))
        return SessionView(session=session, history=turn_log.list_turns(session_id))

    def history(self, session_id: str, caller_id: str) -> List[Turn]:
        load_owned(session_id, caller_id)
        return turn_log.list_turns(session_id)

    def list_scheduled(self, candidate_id: str) -> List[InterviewSession]:
        """Startable sessions only; rows past their deadline expire on the way out."""

        sessions = [
            self._expire_if_overdue(session)
            for session in session_store.list_for_candidate(candidate_id, S.SCHEDULED)
        ]
        return [session for session in sessions if session.status is S.SCHEDULED]

    def list_completed(self, candidate_id: str) -> List[InterviewSession]:
        return session_store.list_for_candidate(candidate_id, S.COMPLETED)

    # -- transitions ------------------------------------------------------------

    def _require(self, session: Optional[InterviewSession], status: SessionStatus) -> None:
        if session is None:
            raise InvalidStateError("session disappeared")
        if session.status is not status:
            raise InvalidStateError(
                f"session is '{session.status.value}', expected '{status.value}'",
                session_id=session.session_id,
            )

    def _move(
        self,
        session: InterviewSession,
        target: SessionStatus,
        *,
        mark_started: bool = False,
        mark_ended: bool = False,
        failure_reason: Optional[str] = None,
    ) -> InterviewSession:
        transition(session.status, target, session_id=session.session_id)
        moved = session_store.update_status(
            session.session_id,
            session.status,
            target,
            now=self._clock(),
            mark_started=mark_started,
            mark_ended=mark_ended,
            failure_reason=failure_reason,
        )
        if not moved:
            current = load_session(session.session_id)
            raise ConflictError(
                f"session changed to '{current.status.value}' concurrently",
                session_id=session.session_id,
            )
        log_event(
            "status_changed",
            session.session_id,
            from_status=session.status.value,
            to_status=target.value,
        )
        return load_session(session.session_id)

    def _try_move(self, session: InterviewSession, target: SessionStatus, **markers: bool) -> InterviewSession:
        try:
            return self._move(session, target, **markers)
        except ConflictError:
            return load_session(session.session_id)

    def _expire_if_overdue(self, session: InterviewSession) -> InterviewSession:
        if should_expire(session, self._clock()):
            return self._try_move(session, S.EXPIRED, mark_ended=True)
        return session


__all__ = ["PLACEHOLDER_SUMMARY", "SessionOrchestrator", "coerce_feedback"]
