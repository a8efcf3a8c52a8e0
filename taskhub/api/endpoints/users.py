"""
User endpoints — own profile, OTP-confirmed email / password changes,
lookup, and administration gated by capability flags and power rank.

Every route requires a logged-in session.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.api.deps import get_current_user, require_capability
from taskhub.core.exceptions import AuthError, ForbiddenError, NotFoundError, ValidationError
from taskhub.core.mail import Mailer, get_mailer, mask_email
from taskhub.core.security import generate_otp, generate_placeholder, hash_password, verify_password
from taskhub.db.session import get_db
from taskhub.models.auth_session import AuthSession
from taskhub.models.task import UserTaskMap
from taskhub.models.user import Permission, User
from taskhub.models.user_otp import UserOtp
from taskhub.schemas.common import MessageResponse
from taskhub.schemas.user import (DeleteUserRequest, EmailChangeRequest,
                                  OtpRequest, PasswordChangeRequest,
                                  RenameRequest, SearchRequest,
                                  UpdateUserRequest, UserIdRequest, UserRead,
                                  UserResponse, UserSearchResponse,
                                  UserSummary)
from taskhub.services import otp, permissions
from taskhub.services.otp import OtpPayload, OtpPurpose

router = APIRouter(prefix="/users", tags=["users"], dependencies=[Depends(get_current_user)])
logger = logging.getLogger(__name__)

INVALID_OTP_MESSAGE = "Invalid or expired OTP."


async def _user_with_permissions(db: AsyncSession, user_id: str) -> UserRead:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found.")
    permission = await permissions.get_permissions(db, user_id)
    if permission is None:
        raise NotFoundError("Permissions not found for the user.")
    return UserRead(
        user_id=user.user_id,
        name=user.name,
        power=user.power,
        role=user.role,
        email=user.email,
        permissions=permissions.permissions_dict(permission),
    )


# ── Own profile ─────────────────────────────────────────────────────
@router.post("/getUser", response_model=UserResponse)
async def get_user(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    return UserResponse(user=await _user_with_permissions(db, current_user.user_id))


@router.post("/renameUser", response_model=MessageResponse)
async def rename_user(
    body: RenameRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    current_user.name = body.new_name
    await db.commit()
    return MessageResponse(message="Name updated successfully.")


@router.post("/emailChange", response_model=MessageResponse)
async def email_change(
    body: EmailChangeRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
) -> MessageResponse:
    """Email an OTP to the *new* address; the change applies on verifyEmailOTP."""
    taken = await db.execute(
        select(User.user_id).where(User.email == body.new_email, User.user_id != current_user.user_id)
    )
    if taken.first() is not None:
        raise ValidationError("The email address is already registered. Please try another email.")

    code = generate_otp()
    await mailer.send(body.new_email, "Your OTP for Email Change", f"Your OTP for email change is: {code}")

    await otp.initiate(
        db,
        current_user.user_id,
        OtpPurpose.EMAIL_CHANGE,
        OtpPayload(email=body.new_email, password=generate_placeholder()),
        code=code,
    )
    await db.commit()
    return MessageResponse(message=f"OTP has been sent to {body.new_email}")


@router.post("/verifyEmailOTP", response_model=MessageResponse)
async def verify_email_otp(
    body: OtpRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    challenge = await otp.verify(
        db, current_user.user_id, body.otp, OtpPurpose.EMAIL_CHANGE, INVALID_OTP_MESSAGE
    )
    current_user.email = challenge.payload.email
    await otp.consume(db, current_user.user_id)
    await db.commit()
    logger.info("Email changed for %s", current_user.user_id)
    return MessageResponse(message="Email changed successfully.")


@router.post("/passwordChange", response_model=MessageResponse)
async def password_change(
    body: PasswordChangeRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
) -> MessageResponse:
    """Email an OTP to the current address; the new password is staged until verified."""
    if not verify_password(body.current_password, current_user.password_hash):
        raise AuthError("Current password is incorrect.", status_code=400)

    code = generate_otp()
    await mailer.send(
        current_user.email,
        "Your OTP for Password Change",
        f"Your OTP for password change is: {code}",
    )

    # Staged in plaintext; hashed only when the OTP is verified.
    await otp.initiate(
        db,
        current_user.user_id,
        OtpPurpose.PASSWORD_CHANGE,
        OtpPayload(email=current_user.email, password=body.new_password),
        code=code,
    )
    await db.commit()
    return MessageResponse(message=f"An OTP has been sent to {mask_email(current_user.email, keep=2)}")


@router.post("/verifyPasswordOTP", response_model=MessageResponse)
async def verify_password_otp(
    body: OtpRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    challenge = await otp.verify(
        db, current_user.user_id, body.otp, OtpPurpose.PASSWORD_CHANGE, INVALID_OTP_MESSAGE
    )
    current_user.password_hash = hash_password(challenge.payload.password)
    await otp.consume(db, current_user.user_id)
    await db.commit()
    logger.info("Password changed for %s", current_user.user_id)
    return MessageResponse(message="Password updated successfully.")


# ── Lookup ──────────────────────────────────────────────────────────
@router.post("/searchUsers", response_model=UserSearchResponse)
async def search_users(
    body: SearchRequest,
    db: AsyncSession = Depends(get_db),
) -> UserSearchResponse:
    pattern = f"%{body.search}%"
    result = await db.execute(
        select(User)
        .where(or_(User.user_id.like(pattern), User.name.like(pattern)))
        .order_by(User.user_id)
    )
    users = [UserSummary.model_validate(u) for u in result.scalars().all()]
    return UserSearchResponse(users=users)


@router.post("/getUserbyId", response_model=UserResponse)
async def get_user_by_id(
    body: UserIdRequest,
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    return UserResponse(user=await _user_with_permissions(db, body.user_id))


# ── Administration ─────────────────────────────────────────────────
@router.post("/updateUser", response_model=MessageResponse)
async def update_user(
    body: UpdateUserRequest,
    current_user: User = Depends(
        require_capability("edit_user", "You do not have permission to edit user details.")
    ),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Change another user's name, power, role and capability flags in one commit."""
    target_data = body.target_user
    if target_data.user_id == current_user.user_id:
        raise ForbiddenError("You are not allowed to change your own permissions or role details")

    target = await db.get(User, target_data.user_id)
    if target is None:
        raise NotFoundError("Target user not found.")
    permissions.check_power_over(current_user, target, new_power=target_data.power)

    permission = await permissions.get_permissions(db, target.user_id)
    if permission is None:
        permission = Permission(user_id=target.user_id)
        db.add(permission)

    target.name = target_data.name
    target.power = target_data.power
    target.role = target_data.role
    for flag, value in target_data.permissions.model_dump().items():
        setattr(permission, flag, value)
    await db.commit()

    logger.info("%s updated user %s", current_user.user_id, target.user_id)
    return MessageResponse(message="User details and permissions updated successfully.")


@router.post("/deleteUser", response_model=MessageResponse)
async def delete_user(
    body: DeleteUserRequest,
    current_user: User = Depends(
        require_capability("delete_user", "You do not have permission to delete users.")
    ),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Remove a user with its permissions, sessions, pending OTP and task assignments."""
    target_id = body.target_user
    if target_id == current_user.user_id:
        raise ForbiddenError("You are not allowed to delete yourself.")

    target = await db.get(User, target_id)
    if target is None:
        raise NotFoundError("Target user not found.")
    permissions.check_power_over(current_user, target)

    await db.execute(delete(Permission).where(Permission.user_id == target_id))
    await db.execute(delete(AuthSession).where(AuthSession.user_id == target_id))
    await db.execute(delete(UserOtp).where(UserOtp.user_id == target_id))
    await db.execute(delete(UserTaskMap).where(UserTaskMap.user_id == target_id))
    await db.execute(delete(User).where(User.user_id == target_id))
    await db.commit()

    logger.info("%s deleted user %s", current_user.user_id, target_id)
    return MessageResponse(message=f"User with ID {target_id} deleted successfully.")
