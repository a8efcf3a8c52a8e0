"""
Task endpoints — create / read / update / delete plus the append-only
activity log.

- Reads require any logged-in user.
- Creating a task and recording state changes require ``edit_task_state``.
- Editing task fields requires ``edit_task``; deleting requires ``delete_task``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.api.deps import get_current_user, require_capability
from taskhub.core.config import settings
from taskhub.core.exceptions import InternalError, NotFoundError, ValidationError
from taskhub.core.security import generate_task_id
from taskhub.db.session import get_db
from taskhub.models.task import Task, TaskActivity, UserTaskMap
from taskhub.models.user import User
from taskhub.schemas.common import MessageResponse
from taskhub.schemas.task import (ActivityRead, TaskCreate,
                                  TaskCreatedResponse, TaskDetail,
                                  TaskDetailResponse, TaskIdRequest,
                                  TaskListResponse, TaskStateUpdate,
                                  TaskSummary, TaskUpdate)

router = APIRouter(prefix="/tasks", tags=["tasks"], dependencies=[Depends(get_current_user)])
logger = logging.getLogger(__name__)


async def _allocate_task_id(db: AsyncSession) -> str:
    for _ in range(settings.MAX_ID_ATTEMPTS):
        task_id = generate_task_id()
        if await db.get(Task, task_id) is None:
            return task_id
    logger.error("Task id space exhausted after %d attempts", settings.MAX_ID_ATTEMPTS)
    raise InternalError("Unable to allocate a task id. Please try again later.")


async def _get_task_or_404(db: AsyncSession, task_id: str) -> Task:
    task = await db.get(Task, task_id)
    if task is None:
        raise NotFoundError("Task not found")
    return task


def _activity_order():
    return (TaskActivity.activity_time_stamp.desc(), TaskActivity.id.desc())


async def _summaries(db: AsyncSession, task_ids: list[str]) -> list[TaskSummary]:
    """Task details with each task's most recent activity."""
    if not task_ids:
        return []
    result = await db.execute(
        select(Task).where(Task.task_id.in_(task_ids)).order_by(Task.assigned_date.desc())
    )
    summaries = []
    for task in result.scalars().all():
        latest = await db.execute(
            select(TaskActivity)
            .where(TaskActivity.task_id == task.task_id)
            .order_by(*_activity_order())
            .limit(1)
        )
        activity = latest.scalar_one_or_none()
        summary = TaskSummary.model_validate(task)
        summary.recent_log = ActivityRead.model_validate(activity) if activity else None
        summaries.append(summary)
    return summaries


# ── Create ──────────────────────────────────────────────────────────
@router.post("/createTask", response_model=TaskCreatedResponse)
async def create_task(
    body: TaskCreate,
    current_user: User = Depends(
        require_capability("edit_task_state", "You do not have permission to create a Task.")
    ),
    db: AsyncSession = Depends(get_db),
) -> TaskCreatedResponse:
    """Create a task, its "Created" activity and one assignment per assignee in one commit."""
    assignees = body.assignee_ids()
    found = await db.execute(select(User.user_id).where(User.user_id.in_(assignees)))
    known = set(found.scalars().all())
    invalid = [a for a in assignees if a not in known]
    if invalid:
        raise ValidationError(f"Invalid users: {', '.join(invalid)}")

    task_id = await _allocate_task_id(db)
    now = datetime.now(timezone.utc)

    db.add(
        Task(
            task_id=task_id,
            title=body.title,
            description=body.description,
            assigned_date=now,
            due_date=body.due_date,
            priority=body.priority,
            assigned_by_user_id=current_user.user_id,
        )
    )
    await db.flush()
    db.add(
        TaskActivity(
            task_id=task_id,
            marked_status="Created",
            activity_time_stamp=now,
            user_id=current_user.user_id,
            comments="Assigned",
        )
    )
    db.add_all(UserTaskMap(task_id=task_id, user_id=a) for a in assignees)
    await db.commit()

    logger.info("Task %s created by %s for %s", task_id, current_user.user_id, ", ".join(assignees))
    return TaskCreatedResponse(message="Task created successfully", task_id=task_id)


# ── Read ────────────────────────────────────────────────────────────
@router.post("/getTasks", response_model=TaskListResponse)
async def get_tasks(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> TaskListResponse:
    """Tasks assigned to the caller."""
    result = await db.execute(
        select(UserTaskMap.task_id).where(UserTaskMap.user_id == current_user.user_id).distinct()
    )
    tasks = await _summaries(db, list(result.scalars().all()))
    if not tasks:
        raise NotFoundError("No tasks found for this user")
    return TaskListResponse(tasks=tasks)


@router.post("/getCreatedTasks", response_model=TaskListResponse)
async def get_created_tasks(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> TaskListResponse:
    """Tasks the caller created."""
    result = await db.execute(
        select(Task.task_id).where(Task.assigned_by_user_id == current_user.user_id)
    )
    tasks = await _summaries(db, list(result.scalars().all()))
    if not tasks:
        raise NotFoundError("No tasks found for this user")
    return TaskListResponse(tasks=tasks)


@router.post("/getTaskById", response_model=TaskDetailResponse)
async def get_task_by_id(
    body: TaskIdRequest,
    db: AsyncSession = Depends(get_db),
) -> TaskDetailResponse:
    """One task with its full activity log, newest first."""
    task = await _get_task_or_404(db, body.task_id)
    result = await db.execute(
        select(TaskActivity).where(TaskActivity.task_id == task.task_id).order_by(*_activity_order())
    )
    detail = TaskDetail.model_validate(task)
    detail.logs = [ActivityRead.model_validate(a) for a in result.scalars().all()]
    return TaskDetailResponse(task=detail)


# ── Update ──────────────────────────────────────────────────────────
@router.post("/updateTaskState", response_model=MessageResponse)
async def update_task_state(
    body: TaskStateUpdate,
    current_user: User = Depends(
        require_capability("edit_task_state", "You do not have permission to update the task state.")
    ),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Append a state entry to the task's activity log."""
    task = await _get_task_or_404(db, body.task_id)
    db.add(
        TaskActivity(
            task_id=task.task_id,
            marked_status=body.marked_status,
            activity_time_stamp=datetime.now(timezone.utc),
            user_id=current_user.user_id,
            comments=body.comment,
        )
    )
    await db.commit()
    logger.info("Task %s marked %r by %s", task.task_id, body.marked_status, current_user.user_id)
    return MessageResponse(message="Task state updated successfully.")


@router.post("/updateTask", response_model=MessageResponse)
async def update_task(
    body: TaskUpdate,
    _editor: User = Depends(
        require_capability("edit_task", "You don't have permission to update this task")
    ),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    task = await _get_task_or_404(db, body.task_id)
    task.title = body.title
    task.description = body.description
    task.priority = body.priority
    task.due_date = body.due_date
    await db.commit()
    return MessageResponse(message="Task updated successfully")


# ── Delete ──────────────────────────────────────────────────────────
@router.post("/deleteTask", response_model=MessageResponse)
async def delete_task(
    body: TaskIdRequest,
    current_user: User = Depends(
        require_capability("delete_task", "You do not have permission to delete tasks")
    ),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Delete a task together with its activity log and assignments."""
    task = await _get_task_or_404(db, body.task_id)
    await db.execute(delete(TaskActivity).where(TaskActivity.task_id == task.task_id))
    await db.execute(delete(UserTaskMap).where(UserTaskMap.task_id == task.task_id))
    await db.execute(delete(Task).where(Task.task_id == task.task_id))
    await db.commit()

    logger.info("Task %s deleted by %s", body.task_id, current_user.user_id)
    return MessageResponse(message="Task deleted successfully")
