"""
User & Permission models — identity, power rank and capability flags.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from taskhub.db.base import Base

NAME_MAX_LENGTH = 45
DEFAULT_POWER = 100000  # lower power = more authority


class User(Base):
    __tablename__ = "users"

    user_id: str = Column(String(45), primary_key=True)  # type: ignore[assignment]
    email: str = Column(String(320), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    password_hash: str = Column(String(36), nullable=False)  # type: ignore[assignment]
    name: str = Column(String(NAME_MAX_LENGTH), nullable=False)  # type: ignore[assignment]
    type: str = Column(String(20), nullable=False, default="User")  # type: ignore[assignment]
    role: str = Column(String(45), nullable=False, default="New User")  # type: ignore[assignment]
    power: int = Column(Integer, nullable=False, default=DEFAULT_POWER)  # type: ignore[assignment]

    permission = relationship(
        "Permission",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
    )


class Permission(Base):
    __tablename__ = "permissions"

    user_id: str = Column(  # type: ignore[assignment]
        String(45),
        ForeignKey("users.user_id", ondelete="CASCADE"),
        primary_key=True,
    )
    edit_user: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    delete_user: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    create_task: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    edit_task: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    delete_task: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    edit_task_state: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]

    user = relationship("User", back_populates="permission")
