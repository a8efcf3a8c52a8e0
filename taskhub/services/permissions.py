"""
Permission model — capability flags and the power hierarchy.

Power is an ordinal rank where a *lower* number means *more* authority.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.core.exceptions import ForbiddenError
from taskhub.models.user import Permission, User

logger = logging.getLogger(__name__)

CAPABILITIES = (
    "edit_user",
    "delete_user",
    "create_task",
    "edit_task",
    "delete_task",
    "edit_task_state",
)


async def get_permissions(db: AsyncSession, user_id: str) -> Permission | None:
    return await db.get(Permission, user_id)


def permissions_dict(permission: Permission) -> dict[str, bool]:
    return {flag: bool(getattr(permission, flag)) for flag in CAPABILITIES}


async def require_capability(
    db: AsyncSession,
    user_id: str,
    flag: str,
    message: str | None = None,
) -> Permission:
    if flag not in CAPABILITIES:
        raise ValueError(f"Unknown capability: {flag}")
    permission = await get_permissions(db, user_id)
    if permission is None or not getattr(permission, flag):
        logger.warning("%s lacks %s", user_id, flag)
        raise ForbiddenError(message)
    return permission


def check_power_over(actor: User, target: User, new_power: int | None = None) -> None:
    """Refuse when *actor* ranks below *target* or would lift *target* above itself."""
    if actor.power > target.power:
        logger.warning("%s (power %s) cannot act on %s (power %s)",
                       actor.user_id, actor.power, target.user_id, target.power)
        raise ForbiddenError("You don't have the required power to act on this user.")
    if new_power is not None and actor.power > new_power:
        logger.warning("%s (power %s) tried to assign power %s", actor.user_id, actor.power, new_power)
        raise ForbiddenError("You are not allowed to assign a power higher than your own.")
