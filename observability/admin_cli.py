"""Lightweight CLI helpers for inspecting interview sessions and transcripts."""
from __future__ import annotations

import argparse
from typing import List, Optional

from storage import sessions as session_store
from storage import tasks as task_store
from storage import turns as turn_log


def tail_sessions(limit: int = 20) -> List[str]:
    lines: List[str] = []
    for session in session_store.list_recent(limit):
        context = session.context
        line = (
            f"[{session.updated_at.isoformat()}] {session.session_id} candidate={session.candidate_id} "
            f"status={session.status.value} role={context.job_role}/{context.interview_type}"
        )
        if session.failure_reason:
            line += f" reason={session.failure_reason}"
        lines.append(line)
    return lines


def show_transcript(session_id: str) -> List[str]:
    session = session_store.get_session(session_id)
    if session is None:
        return [f"session {session_id} not found"]
    lines = [f"{session.session_id} status={session.status.value} candidate={session.candidate_id}"]
    task = task_store.get_task_for_session(session_id)
    if task is not None:
        lines.append(f"  init task {task.task_id}: {task.status}" + (f" ({task.error})" if task.error else ""))
    for turn in turn_log.list_turns(session_id):
        lines.append(f"  #{turn.sequence} [{turn.created_at.isoformat()}] {turn.role}: {turn.content}")
    if session.feedback is not None:
        lines.append(f"  feedback score={session.feedback.score} confidence={session.feedback.confidence}")
    return lines


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Inspect interview sessions")
    parser.add_argument("--tail-sessions", type=int, help="Show the most recently updated sessions")
    parser.add_argument("--transcript", help="Print the conversation log of one session")
    args = parser.parse_args(argv)

    if args.tail_sessions:
        for line in tail_sessions(args.tail_sessions):
            print(line)
    if args.transcript:
        for line in show_transcript(args.transcript):
            print(line)


if __name__ == "__main__":
    main()
