"""
Pending OTP challenge — a single slot per subject, overwritten in place.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String

from taskhub.db.base import Base


class UserOtp(Base):
    __tablename__ = "user_otp"

    # Subject handle. Not a foreign key: register challenges exist before the user does.
    user_id: str = Column(String(45), primary_key=True)  # type: ignore[assignment]
    email: str = Column(String(320), nullable=False)  # type: ignore[assignment]
    password: str = Column(String(255), nullable=False)  # type: ignore[assignment]
    otp: str = Column(String(6), nullable=False)  # type: ignore[assignment]
    state: str = Column(String(20), nullable=False)  # type: ignore[assignment]
    # register | login | Email Change | Password Change
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
