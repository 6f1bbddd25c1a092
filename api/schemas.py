"""Pydantic schemas for the interview session API."""
from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from interview_session.models import Difficulty, RoleContext, TurnSource


class StartReq(BaseModel):
    job_role: str = Field(min_length=1)
    interview_type: str = Field(min_length=1)
    difficulty: Difficulty = "mid"
    duration_minutes: Optional[int] = Field(default=None, ge=1)
    candidate_label: str = ""

    def to_context(self, default_minutes: int) -> RoleContext:
        return RoleContext(
            job_role=self.job_role,
            interview_type=self.interview_type,
            difficulty=self.difficulty,
            duration_minutes=self.duration_minutes or default_minutes,
            candidate_label=self.candidate_label,
        )


class ScheduleReq(StartReq):
    candidate_id: str = Field(min_length=1)
    deadline: Optional[datetime] = None

    def to_context(self, default_minutes: int) -> RoleContext:
        return super().to_context(default_minutes).model_copy(update={"deadline": self.deadline})


class AnswerReq(BaseModel):
    text: str
    source: TurnSource = "typed"


class EndReq(BaseModel):
    reason: Literal["completed", "terminated"] = "completed"


class SynthesizeReq(BaseModel):
    text: str = Field(min_length=1)
    voice: Optional[str] = None


class ErrorResp(BaseModel):
    detail: str
    code: str
    retryable: bool = False


class HealthResp(BaseModel):
    status: Literal["ok"] = "ok"
    time: datetime
