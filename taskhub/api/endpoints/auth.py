"""
Auth endpoints — register / login, each confirmed by an emailed OTP, and logout.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.api.deps import get_current_user
from taskhub.core.config import settings
from taskhub.core.exceptions import AuthError, ValidationError
from taskhub.core.mail import Mailer, get_mailer, mask_email
from taskhub.core.security import (decrypt_session_id, encrypt_session_id,
                                   generate_otp, generate_placeholder,
                                   hash_password, verify_password)
from taskhub.db.session import get_db
from taskhub.models.user import Permission, User
from taskhub.schemas.auth import (LoginRequest, LoginVerifiedResponse,
                                  LogoutRequest, RegisterRequest,
                                  VerifyOtpRequest)
from taskhub.schemas.common import MessageResponse
from taskhub.services import otp, sessions
from taskhub.services.otp import OtpPayload, OtpPurpose

# Rate limiter — keyed by client IP, applied to password endpoints only
limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


# ── Registration ────────────────────────────────────────────────────
@router.post("/register", response_model=MessageResponse)
@limiter.limit(lambda: settings.LOGIN_RATE_LIMIT)
async def register(
    request: Request,
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
) -> MessageResponse:
    """Stage a register challenge and email its OTP; the user is created on verify.

    ``confirmPassword`` is optional here; when supplied it must equal ``password``.
    """
    if await db.get(User, body.username) is not None:
        raise ValidationError(
            "The provided username is already in use. Please choose another username."
        )
    existing = await db.execute(select(User.user_id).where(User.email == body.email))
    if existing.first() is not None:
        raise ValidationError("The email address is already registered. Please try another email.")
    if body.confirm_password is not None and body.confirm_password != body.password:
        raise ValidationError("Password and confirm password do not match.")

    code = generate_otp()
    await mailer.send(body.email, "Your OTP for Registration", f"Your OTP for registration is: {code}")

    await otp.initiate(
        db,
        body.username,
        OtpPurpose.REGISTER,
        OtpPayload(email=body.email, password=body.password),
        code=code,
    )
    await db.commit()
    return MessageResponse(message=f"OTP has been sent to {body.email}")


@router.post("/verifyOTP", response_model=MessageResponse)
async def verify_register_otp(
    body: VerifyOtpRequest,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    challenge = await otp.verify(db, body.username, body.otp, OtpPurpose.REGISTER)

    user = User(
        user_id=body.username,
        email=challenge.payload.email,
        password_hash=hash_password(challenge.payload.password),
        name=body.username,
    )
    user.permission = Permission()
    db.add(user)
    await otp.consume(db, body.username)
    await db.commit()

    logger.info("User %s registered", body.username)
    return MessageResponse(message="OTP verified successfully, you may proceed with login.")


# ── Login ───────────────────────────────────────────────────────────
@router.post("/login", response_model=MessageResponse)
@limiter.limit(lambda: settings.LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
) -> MessageResponse:
    """Check the password, then email a login OTP. No session until it is verified."""
    user = await db.get(User, body.username)
    if user is None:
        raise AuthError("User not found", status_code=400)
    if not verify_password(body.password, user.password_hash):
        logger.warning("Bad password for %s", body.username)
        raise AuthError("Invalid credentials", status_code=400)

    code = generate_otp()
    await mailer.send(user.email, "Your OTP for Login", f"Your OTP for login is: {code}")

    await otp.initiate(
        db,
        user.user_id,
        OtpPurpose.LOGIN,
        OtpPayload(email=user.email, password=generate_placeholder()),
        code=code,
    )
    await db.commit()
    return MessageResponse(message=f"OTP has been sent to {mask_email(user.email)}")


@router.post("/verifyLoginOTP", response_model=LoginVerifiedResponse)
async def verify_login_otp(
    response: Response,
    body: VerifyOtpRequest,
    db: AsyncSession = Depends(get_db),
) -> LoginVerifiedResponse:
    """Consume the login challenge and open a session. Returns 200 with an HttpOnly cookie."""
    await otp.verify(db, body.username, body.otp, OtpPurpose.LOGIN)

    await otp.consume(db, body.username)
    session_id = await sessions.issue(db, body.username)
    await db.commit()
    logger.info("Session issued for %s", body.username)

    token = encrypt_session_id(session_id)
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="none",
        max_age=settings.SESSION_COOKIE_MAX_AGE,
    )
    return LoginVerifiedResponse(
        message="OTP verified successfully, redirecting to tasks",
        cookie=token,
    )


# ── Session ─────────────────────────────────────────────────────────
@router.post("", response_model=MessageResponse)
async def check_session(
    _user: User = Depends(get_current_user),
) -> MessageResponse:
    """200 while the presented session is still logged in."""
    return MessageResponse()


@router.post("/logout", response_model=MessageResponse)
async def logout(
    response: Response,
    body: LogoutRequest,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Mark the session Logged Off and clear the cookie."""
    if not body.cookie:
        raise ValidationError("Session ID cookie is missing.")
    session_id = decrypt_session_id(body.cookie)
    if session_id is None:
        raise ValidationError("Invalid session ID.")

    user_id = await sessions.revoke(db, session_id)
    await db.commit()
    logger.info("Session for %s logged off", user_id)

    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return MessageResponse(message="User logged out successfully.")
