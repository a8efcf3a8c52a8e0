"""Pydantic schemas for Tasks and their activity log."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from taskhub.schemas.common import MessageResponse, required_text


# ── Requests ────────────────────────────────────────────────────────
class TaskFields(BaseModel):
    title: str
    description: str
    priority: str
    due_date: str

    @field_validator("title", "description", "priority", "due_date")
    @classmethod
    def _required(cls, v: str, info) -> str:
        return required_text(v, info.field_name)

    @field_validator("title")
    @classmethod
    def _title(cls, v: str) -> str:
        if len(v) > 255:
            raise ValueError("title must not exceed 255 characters")
        return v


class TaskCreate(TaskFields):
    assignees: str = Field(alias="userId")  # comma-separated user handles

    model_config = {"populate_by_name": True}

    @field_validator("assignees")
    @classmethod
    def _assignees(cls, v: str) -> str:
        if not [a for a in v.split(",") if a.strip()]:
            raise ValueError("At least one assignee is required")
        return v

    def assignee_ids(self) -> list[str]:
        seen: dict[str, None] = {}
        for raw in self.assignees.split(","):
            if raw.strip():
                seen.setdefault(raw.strip())
        return list(seen)


class TaskIdRequest(BaseModel):
    task_id: str

    @field_validator("task_id")
    @classmethod
    def _task_id(cls, v: str) -> str:
        return required_text(v, "Task ID")


class TaskStateUpdate(TaskIdRequest):
    marked_status: str
    comment: str | None = None

    @field_validator("marked_status")
    @classmethod
    def _status(cls, v: str) -> str:
        v = required_text(v, "marked_status")
        if len(v) > 45:
            raise ValueError("marked_status must not exceed 45 characters")
        return v


class TaskUpdate(TaskIdRequest, TaskFields):
    pass


# ── Responses ───────────────────────────────────────────────────────
class ActivityRead(BaseModel):
    marked_status: str
    activity_time_stamp: datetime
    user_id: str
    comments: str | None

    model_config = {"from_attributes": True}


class TaskRead(BaseModel):
    task_id: str
    title: str
    description: str
    assigned_date: datetime
    due_date: str
    priority: str
    assigned_by_user_id: str

    model_config = {"from_attributes": True}


class TaskSummary(TaskRead):
    recent_log: ActivityRead | None = None


class TaskDetail(TaskRead):
    logs: list[ActivityRead] = []


class TaskCreatedResponse(MessageResponse):
    task_id: str = Field(serialization_alias="taskId")


class TaskListResponse(MessageResponse):
    tasks: list[TaskSummary]


class TaskDetailResponse(MessageResponse):
    task: TaskDetail
