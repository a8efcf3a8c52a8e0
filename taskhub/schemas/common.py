"""Response envelope shared by every endpoint."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class MessageResponse(BaseModel):
    status: Literal["success", "error"] = "success"
    message: str | None = None


def required_text(v: str, field: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError(f"{field} must not be empty")
    return v


class HealthResponse(MessageResponse):
    version: str
    db: bool


def otp_text(v: object) -> object:
    """OTP codes arrive as strings or JSON numbers; compare them as text."""
    if isinstance(v, int) and not isinstance(v, bool):
        return str(v)
    return v
