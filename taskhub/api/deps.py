"""
FastAPI dependencies — session authentication and capability guards.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.core.config import settings
from taskhub.core.exceptions import AuthError
from taskhub.core.security import decrypt_session_id
from taskhub.db.session import get_db
from taskhub.models.user import User
from taskhub.services import permissions, sessions

logger = logging.getLogger(__name__)

NO_SESSION_MESSAGE = "No session cookie found. Please log in first."
INVALID_SESSION_MESSAGE = "Invalid session or session has expired."


async def _session_token(request: Request) -> str | None:
    """Encrypted token from the JSON body ``cookie`` field, else the session cookie."""
    token = None
    if request.method not in ("GET", "HEAD") and await request.body():
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            body = None
        if isinstance(body, dict) and isinstance(body.get("cookie"), str):
            token = body["cookie"]
    return token or request.cookies.get(settings.SESSION_COOKIE_NAME)


# ── Auth dependencies ───────────────────────────────────────────────
async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the encrypted session token into the logged-in user."""
    token = await _session_token(request)
    if not token:
        raise AuthError(NO_SESSION_MESSAGE)

    session_id = decrypt_session_id(token)
    if session_id is None:
        raise AuthError(INVALID_SESSION_MESSAGE)

    user_id = await sessions.resolve(db, session_id)
    if user_id is None:
        raise AuthError(INVALID_SESSION_MESSAGE)

    user = await db.get(User, user_id)
    if user is None:
        raise AuthError(INVALID_SESSION_MESSAGE)

    request.state.user_id = user.user_id
    return user


def require_capability(
    flag: str, message: str | None = None
) -> Callable[..., Awaitable[User]]:
    """Build a dependency that admits only users holding capability *flag*."""

    async def _guard(
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
    ) -> User:
        await permissions.require_capability(db, current_user.user_id, flag, message)
        return current_user

    return _guard
