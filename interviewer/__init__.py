from __future__ import annotations  # Interviewer gateway exports

from .gateway import (
    FEEDBACK_TASK,
    NEXT_TASK,
    OPENING_TASK,
    FeedbackDraft,
    InterviewerReply,
    LanguageModelGateway,
    LlmInterviewer,
    build_interviewer,
)
from .prompts import feedback_messages, format_transcript, next_messages, opening_messages

__all__ = [
    "FEEDBACK_TASK",
    "NEXT_TASK",
    "OPENING_TASK",
    "FeedbackDraft",
    "InterviewerReply",
    "LanguageModelGateway",
    "LlmInterviewer",
    "build_interviewer",
    "feedback_messages",
    "format_transcript",
    "next_messages",
    "opening_messages",
]
