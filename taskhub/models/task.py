"""
Task, TaskActivity & UserTaskMap models — core business domain.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text

from taskhub.db.base import Base


class Task(Base):
    __tablename__ = "tasks"

    task_id: str = Column(String(32), primary_key=True)  # type: ignore[assignment]
    title: str = Column(String(255), nullable=False)  # type: ignore[assignment]
    description: str = Column(Text, nullable=False)  # type: ignore[assignment]
    assigned_date: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    due_date: str = Column(String(32), nullable=False)  # type: ignore[assignment]
    priority: str = Column(String(20), nullable=False)  # type: ignore[assignment]
    assigned_by_user_id: str = Column(String(45), nullable=False, index=True)  # type: ignore[assignment]


class TaskActivity(Base):
    __tablename__ = "task_activity"
    __table_args__ = (Index("ix_task_activity_task_time", "task_id", "activity_time_stamp"),)

    id: int = Column(Integer, primary_key=True, autoincrement=True)  # type: ignore[assignment]
    task_id: str = Column(String(32), ForeignKey("tasks.task_id"), nullable=False)  # type: ignore[assignment]
    marked_status: str = Column(String(45), nullable=False)  # type: ignore[assignment]
    activity_time_stamp: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    user_id: str = Column(String(45), nullable=False)  # type: ignore[assignment]
    comments: str | None = Column(Text, nullable=True)  # type: ignore[assignment]


class UserTaskMap(Base):
    __tablename__ = "user_task_map"

    id: int = Column(Integer, primary_key=True, autoincrement=True)  # type: ignore[assignment]
    user_id: str = Column(  # type: ignore[assignment]
        String(45),
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    task_id: str = Column(String(32), ForeignKey("tasks.task_id"), nullable=False, index=True)  # type: ignore[assignment]
