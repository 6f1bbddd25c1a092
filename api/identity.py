"""Caller identity taken from the trusted gateway headers."""
from __future__ import annotations

from typing import Literal

from fastapi import Depends, Header, HTTPException
from pydantic import BaseModel

CallerRole = Literal["candidate", "interviewer", "admin"]


class Caller(BaseModel):  # Verified (user id, role) pair
    user_id: str
    role: CallerRole = "candidate"


def get_caller(
    x_user_id: str = Header(default="", alias="X-User-Id"),
    x_user_role: str = Header(default="candidate", alias="X-User-Role"),
) -> Caller:
    user_id = x_user_id.strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="X-User-Id header is required")
    role = x_user_role.strip().lower() or "candidate"
    if role not in ("candidate", "interviewer", "admin"):
        raise HTTPException(status_code=403, detail=f"unknown role '{x_user_role}'")
    return Caller(user_id=user_id, role=role)


def require_staff(caller: Caller = Depends(get_caller)) -> Caller:
    if caller.role not in ("interviewer", "admin"):
        raise HTTPException(status_code=403, detail="interviewer or admin role required")
    return caller


__all__ = ["Caller", "CallerRole", "get_caller", "require_staff"]
