"""
Session store — issue, resolve and revoke login sessions.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.core.config import settings
from taskhub.core.exceptions import InternalError, NotFoundError
from taskhub.core.security import generate_session_id
from taskhub.models.auth_session import STATUS_LOGGED_IN, STATUS_LOGGED_OFF, AuthSession

logger = logging.getLogger(__name__)


async def session_exists(db: AsyncSession, session_id: str) -> bool:
    result = await db.execute(
        select(AuthSession.session_id).where(AuthSession.session_id == session_id)
    )
    return result.first() is not None


async def issue(db: AsyncSession, user_id: str) -> str:
    """Persist a fresh LoggedIn session for *user_id*; caller commits."""
    for _ in range(settings.MAX_ID_ATTEMPTS):
        session_id = generate_session_id()
        if not await session_exists(db, session_id):
            break
    else:
        logger.error("Session id space exhausted after %d attempts", settings.MAX_ID_ATTEMPTS)
        raise InternalError("Unable to allocate a session. Please try again later.")

    db.add(
        AuthSession(
            session_id=session_id,
            user_id=user_id,
            login_time=datetime.now(timezone.utc),
            status=STATUS_LOGGED_IN,
        )
    )
    return session_id


async def resolve(db: AsyncSession, session_id: str) -> str | None:
    """Owning user of a LoggedIn session, else ``None``."""
    result = await db.execute(
        select(AuthSession.user_id).where(
            AuthSession.session_id == session_id,
            AuthSession.status == STATUS_LOGGED_IN,
        )
    )
    return result.scalar_one_or_none()


async def revoke(db: AsyncSession, session_id: str) -> str:
    """Mark the session LoggedOff and return its owner; caller commits."""
    record = await db.get(AuthSession, session_id)
    if record is None:
        raise NotFoundError("Session not found.")
    record.status = STATUS_LOGGED_OFF
    record.logout_time = datetime.now(timezone.utc)
    return record.user_id
