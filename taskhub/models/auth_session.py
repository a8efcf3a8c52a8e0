"""
Login session records — one row per completed login, never reused.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, String

from taskhub.db.base import Base

STATUS_LOGGED_IN = "Logged In"
STATUS_LOGGED_OFF = "Logged Off"


class AuthSession(Base):
    __tablename__ = "auth"

    session_id: str = Column(String(32), primary_key=True)  # type: ignore[assignment]
    user_id: str = Column(  # type: ignore[assignment]
        String(45),
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    login_time: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    logout_time: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    status: str = Column(String(20), nullable=False, default=STATUS_LOGGED_IN)  # type: ignore[assignment]
    # Logged In | Logged Off
