from __future__ import annotations  # Session lifecycle domain models

from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

TurnRole = Literal["user", "assistant", "system"]
TurnSource = Literal["typed", "speech", "generated"]
Difficulty = Literal["junior", "mid", "senior"]
TaskStatus = Literal["pending", "running", "succeeded", "failed"]
PollState = Literal["initializing", "ready", "failed"]


class SessionStatus(str, Enum):  # Closed set of session lifecycle states
    SCHEDULED = "scheduled"
    INITIALIZING = "initializing"
    ACTIVE = "active"
    COMPLETED = "completed"
    TERMINATED = "terminated"
    FAILED = "failed"
    EXPIRED = "expired"
    ABANDONED = "abandoned"


class RoleContext(BaseModel):  # What the interview is about
    job_role: str = Field(min_length=1)
    interview_type: str = Field(min_length=1)
    difficulty: Difficulty = "mid"
    duration_minutes: int = Field(default=30, ge=1)
    deadline: Optional[datetime] = None
    candidate_label: str = ""


class Feedback(BaseModel):  # Structured end-of-interview evaluation
    summary: str
    score: int = Field(ge=0, le=100)
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)
    generated_at: datetime
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)


class InterviewSession(BaseModel):  # Persisted session record
    session_id: str
    candidate_id: str
    scheduled_by: Optional[str] = None
    context: RoleContext
    status: SessionStatus
    created_at: datetime
    updated_at: datetime
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    feedback: Optional[Feedback] = None
    failure_reason: Optional[str] = None

    @property
    def duration_seconds(self) -> int:
        if self.started_at and self.ended_at:
            return round((self.ended_at - self.started_at).total_seconds())
        return 0


class Turn(BaseModel):  # Immutable conversation entry
    turn_id: int
    session_id: str
    sequence: int
    role: TurnRole
    content: str
    created_at: datetime
    source: TurnSource = "generated"


class InitializationTask(BaseModel):  # Background opening-question job record
    task_id: str
    session_id: str
    status: TaskStatus
    error: Optional[str] = None
    created_at: datetime
    finished_at: Optional[datetime] = None


class BeginAck(BaseModel):  # Accepted response for begin
    session_id: str
    task_id: str
    status: SessionStatus = SessionStatus.INITIALIZING


class AdHocStart(BaseModel):  # Result of an ad-hoc start
    session: InterviewSession
    opening: Turn


class SessionView(BaseModel):  # Session together with its full history
    session: InterviewSession
    history: List[Turn] = Field(default_factory=list)


class PollResult(BaseModel):  # Initialization poller response
    session_id: str
    state: PollState
    status: SessionStatus
    session: Optional[InterviewSession] = None
    history: List[Turn] = Field(default_factory=list)
    reason: Optional[str] = None
    retry_after_seconds: Optional[float] = None
    max_attempts: Optional[int] = None


__all__ = [
    "AdHocStart",
    "BeginAck",
    "Difficulty",
    "Feedback",
    "InitializationTask",
    "InterviewSession",
    "PollResult",
    "PollState",
    "RoleContext",
    "SessionStatus",
    "SessionView",
    "TaskStatus",
    "Turn",
    "TurnRole",
    "TurnSource",
]
