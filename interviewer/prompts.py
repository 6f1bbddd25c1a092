from __future__ import annotations  # Pure prompt assembly for the interviewer model

from textwrap import dedent
from typing import Dict, List, Sequence

from interview_session.models import RoleContext, Turn

Message = Dict[str, str]

_SPEAKERS = {"user": "Candidate", "assistant": "Interviewer", "system": "Note"}


def _context_line(context: RoleContext) -> str:  # One-line description of the interview
    return f"a {context.difficulty}-level {context.interview_type} interview for a {context.job_role} position"


def opening_messages(context: RoleContext, *, system_prompt: str) -> List[Message]:  # First question request
    candidate = f" The candidate's name is {context.candidate_label}." if context.candidate_label else ""
    instructions = dedent(
        f"""
        {system_prompt}
        You are conducting {_context_line(context)}.{candidate}
        Start with one welcoming sentence, then ask your first open-ended question.
        Ask exactly one question.
        """
    ).strip()
    return [
        {"role": "system", "content": instructions},
        {"role": "user", "content": "Start the interview now."},
    ]


def next_messages(
    history: Sequence[Turn],
    context: RoleContext,
    *,
    system_prompt: str,
    history_limit: int = 0,
) -> List[Message]:  # Follow-up request built from the ordered transcript
    instructions = dedent(
        f"""
        {system_prompt}
        You are conducting {_context_line(context)}.
        Based on the candidate's last answer, ask one relevant follow-up question.
        Do not evaluate the answer aloud and do not ask more than one question.
        """
    ).strip()
    turns = list(history)
    if history_limit and len(turns) > history_limit:
        turns = turns[-history_limit:]
    messages: List[Message] = [{"role": "system", "content": instructions}]
    messages.extend({"role": turn.role, "content": turn.content} for turn in turns)
    return messages


def format_transcript(history: Sequence[Turn]) -> str:
    return "\n".join(f"{_SPEAKERS[turn.role]}: {turn.content}" for turn in history)


def feedback_messages(history: Sequence[Turn]) -> List[Message]:  # Structured evaluation request
    transcript = format_transcript(history) or "(empty transcript)"
    return [
        {
            "role": "system",
            "content": (
                "You are a hiring manager. Provide feedback for the interview transcript as JSON with "
                'fields "summary" (string), "score" (integer 0-100), "strengths" (list of strings) and '
                '"improvements" (list of strings).'
            ),
        },
        {
            "role": "user",
            "content": (
                "Analyze this transcript and provide your evaluation in the required JSON format. "
                "The score must be an integer from 0 to 100.\n\nTRANSCRIPT:\n" + transcript
            ),
        },
    ]


__all__ = ["feedback_messages", "format_transcript", "next_messages", "opening_messages"]
