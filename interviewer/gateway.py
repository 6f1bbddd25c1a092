from __future__ import annotations  # Language model gateway for the interviewer

import logging
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence, Union

from pydantic import AliasChoices, BaseModel, Field, field_validator

from config import LlmRoute, load_app_registry, settings
from interview_session.errors import UpstreamUnavailableError
from interview_session.models import RoleContext, Turn
from llm_gateway import HttpClient, LlmGatewayError, LlmTimeoutError, chat

from .prompts import feedback_messages, next_messages, opening_messages

logger = logging.getLogger(__name__)

OPENING_TASK = "interviewer.opening"
NEXT_TASK = "interviewer.next"
FEEDBACK_TASK = "interviewer.feedback"


class InterviewerReply(BaseModel):  # Question emitted by the model
    question: str

    @field_validator("question")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        text = value.strip()
        if not text:
            raise ValueError("question must not be empty")
        return text

    @classmethod
    def from_raw_content(cls, content: str) -> "InterviewerReply":  # Accept plain-text replies
        if content.lstrip().startswith("{"):
            raise ValueError("malformed JSON reply")
        return cls(question=content)


class FeedbackDraft(BaseModel):  # Unvalidated feedback as returned by the model
    summary: str = ""
    score: Union[int, float, str, None] = None
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("improvements", "areasForImprovement"),
    )


class LanguageModelGateway(Protocol):  # Capability consumed by the orchestrator
    def generate_opening(self, context: RoleContext) -> str: ...

    def generate_next(self, history: Sequence[Turn], context: RoleContext) -> str: ...

    def generate_feedback(self, history: Sequence[Turn]) -> FeedbackDraft: ...


TASK_SCHEMAS = {
    OPENING_TASK: InterviewerReply,
    NEXT_TASK: InterviewerReply,
    FEEDBACK_TASK: FeedbackDraft,
}


class LlmInterviewer:  # Routes each interviewer task to its configured LLM endpoint
    def __init__(
        self,
        routes: Dict[str, LlmRoute],
        *,
        client: Optional[HttpClient] = None,
        system_prompt: Optional[str] = None,
        history_limit: Optional[int] = None,
    ) -> None:
        missing = [task for task in TASK_SCHEMAS if task not in routes]
        if missing:
            raise KeyError(f"Routes missing for {', '.join(missing)}")
        self._routes = routes
        self._client = client
        self._system_prompt = system_prompt if system_prompt is not None else settings.SYSTEM_PROMPT
        self._history_limit = settings.PROMPT_HISTORY_LIMIT if history_limit is None else history_limit

    def generate_opening(self, context: RoleContext) -> str:
        messages = opening_messages(context, system_prompt=self._system_prompt)
        return self._ask(OPENING_TASK, messages).question

    def generate_next(self, history: Sequence[Turn], context: RoleContext) -> str:
        messages = next_messages(
            history,
            context,
            system_prompt=self._system_prompt,
            history_limit=self._history_limit,
        )
        return self._ask(NEXT_TASK, messages).question

    def generate_feedback(self, history: Sequence[Turn]) -> FeedbackDraft:
        return self._ask(FEEDBACK_TASK, feedback_messages(history))

    def _ask(self, task: str, messages: List[Dict[str, str]]):
        route = self._routes[task]
        try:
            return chat(messages, TASK_SCHEMAS[task], cfg=route, client=self._client)
        except LlmTimeoutError as exc:
            raise UpstreamUnavailableError(f"{task} timed out after {route.timeout_s:.0f}s") from exc
        except LlmGatewayError as exc:
            logger.warning("Interviewer task %s failed on route %s: %s", task, route.name, exc)
            raise UpstreamUnavailableError(f"{task} failed: {exc}") from exc


def build_interviewer(config_path: Optional[Path] = None, *, client: Optional[HttpClient] = None) -> LlmInterviewer:
    """Load routes for every interviewer task from the app config file."""

    path = config_path or Path(settings.APP_CONFIG_PATH)
    registry = load_app_registry(path, TASK_SCHEMAS)
    routes = {task: route for task, (route, _schema) in registry.items()}
    return LlmInterviewer(routes, client=client)


__all__ = [
    "FEEDBACK_TASK",
    "NEXT_TASK",
    "OPENING_TASK",
    "FeedbackDraft",
    "InterviewerReply",
    "LanguageModelGateway",
    "LlmInterviewer",
    "build_interviewer",
]
