"""
OTP challenge engine.

Each subject has at most one pending challenge::

    NoChallenge --initiate--> Pending(purpose, code, payload)
    Pending     --initiate--> Pending(new purpose, new code, new payload)
    Pending     --consume---> NoChallenge

``verify`` never consumes; flows delete the challenge in the same commit
that applies the verified action.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.core.config import settings
from taskhub.core.exceptions import AuthError
from taskhub.core.security import generate_otp
from taskhub.models.user_otp import UserOtp

logger = logging.getLogger(__name__)

INVALID_OTP_MESSAGE = "Invalid OTP or OTP has expired"


class OtpPurpose(str, enum.Enum):
    REGISTER = "register"
    LOGIN = "login"
    EMAIL_CHANGE = "Email Change"
    PASSWORD_CHANGE = "Password Change"


@dataclass(frozen=True)
class OtpPayload:
    email: str
    password: str  # plaintext pending password, or a placeholder


@dataclass(frozen=True)
class PendingChallenge:
    subject: str
    purpose: OtpPurpose
    code: str
    payload: OtpPayload
    created_at: datetime


def _ensure_utc(dt: datetime) -> datetime:
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def _to_challenge(row: UserOtp) -> PendingChallenge:
    return PendingChallenge(
        subject=row.user_id,
        purpose=OtpPurpose(row.state),
        code=row.otp,
        payload=OtpPayload(email=row.email, password=row.password),
        created_at=_ensure_utc(row.created_at),
    )


async def peek(db: AsyncSession, subject: str) -> PendingChallenge | None:
    row = await db.get(UserOtp, subject)
    return _to_challenge(row) if row is not None else None


async def initiate(
    db: AsyncSession,
    subject: str,
    purpose: OtpPurpose,
    payload: OtpPayload,
    code: str | None = None,
) -> str:
    """Stage (or overwrite) the subject's challenge; caller commits. Returns the code."""
    code = code or generate_otp()
    now = datetime.now(timezone.utc)

    row = await db.get(UserOtp, subject)
    if row is None:
        db.add(
            UserOtp(
                user_id=subject,
                email=payload.email,
                password=payload.password,
                otp=code,
                state=purpose.value,
                created_at=now,
            )
        )
    else:
        row.email = payload.email
        row.password = payload.password
        row.otp = code
        row.state = purpose.value
        row.created_at = now

    logger.info("OTP challenge staged for %s (%s)", subject, purpose.value)
    return code


async def verify(
    db: AsyncSession,
    subject: str,
    code: str,
    purpose: OtpPurpose,
    message: str = INVALID_OTP_MESSAGE,
) -> PendingChallenge:
    """Exact match on subject, code and purpose; raises ``AuthError`` (400) otherwise."""
    row = await db.get(UserOtp, subject)
    if row is None or row.otp != code or row.state != purpose.value:
        logger.warning("Rejected %s OTP for %s", purpose.value, subject)
        raise AuthError(message, status_code=400)

    challenge = _to_challenge(row)
    if settings.OTP_TTL_SECONDS is not None:
        age = datetime.now(timezone.utc) - challenge.created_at
        if age > timedelta(seconds=settings.OTP_TTL_SECONDS):
            logger.warning("Expired %s OTP for %s", purpose.value, subject)
            raise AuthError(message, status_code=400)
    return challenge


async def consume(db: AsyncSession, subject: str) -> None:
    """Delete the subject's challenge; caller commits."""
    await db.execute(delete(UserOtp).where(UserOtp.user_id == subject))
