"""
Task service layer: business logic for the task status pipeline.

Handles:
- Task CRUD with positions assigned per (workspace, status) column
- Status changes (completed_at is stamped once, on the first move to done)
- Kanban reorder as a single transactional batch
- Workspace listings, search, overdue and per-user queries
- Enrichment of task data for API responses
"""

from __future__ import annotations

import uuid
from typing import Optional, Sequence

import structlog
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import NotFoundError, ValidationError
from app.models.base import as_utc_naive, utcnow
from app.models.task import Task
from app.models.workspace import Workspace, WorkspaceMember
from app.services.workspaces import recompute_task_stats
from taskflow_shared.schemas.common import TaskStatus
from taskflow_shared.schemas.tasks import (
    TaskCreate,
    TaskRead,
    TaskReorderItem,
    TaskUpdate,
)

log = structlog.get_logger()

_DATE_FIELDS = ("due_date", "start_date")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def get_task_or_404(
    session: AsyncSession, task_id: uuid.UUID, workspace_id: Optional[uuid.UUID] = None
) -> Task:
    task = await session.get(Task, task_id)
    if task is None or task.is_archived:
        raise NotFoundError("Task not found")
    if workspace_id is not None and task.workspace_id != workspace_id:
        raise NotFoundError("Task not found")
    return task


async def next_position(session: AsyncSession, workspace_id: uuid.UUID, status: str) -> int:
    """1 + the highest position in the (workspace, status) column, 0 when empty."""
    result = await session.execute(
        select(func.max(Task.position)).where(
            Task.workspace_id == workspace_id,
            Task.status == status,
        )
    )
    highest = result.scalar_one_or_none()
    return 0 if highest is None else highest + 1


async def _ensure_assignee_is_member(
    session: AsyncSession, workspace_id: uuid.UUID, assignee_id: Optional[uuid.UUID]
) -> None:
    if assignee_id is None:
        return
    membership = await session.get(WorkspaceMember, (workspace_id, assignee_id))
    if membership is None:
        raise ValidationError(
            "Validation failed",
            errors=[{
                "field": "assignee_id",
                "message": "Assignee must be a member of this workspace",
                "type": "value_error",
            }],
        )


def enrich_task(task: Task) -> TaskRead:
    """Convert a Task ORM object to a TaskRead including derived values."""
    return TaskRead(
        id=task.id,
        workspace_id=task.workspace_id,
        title=task.title,
        description=task.description,
        status=task.status,
        priority=task.priority,
        assignee_id=task.assignee_id,
        reporter_id=task.reporter_id,
        due_date=task.due_date,
        start_date=task.start_date,
        completed_at=task.completed_at,
        estimated_hours=task.estimated_hours,
        actual_hours=task.actual_hours,
        tags=task.tags or [],
        labels=task.labels or [],
        attachments=task.attachments or [],
        comments=task.comments or [],
        subtasks=task.subtasks or [],
        dependencies=task.dependencies or [],
        watchers=task.watchers or [],
        is_archived=task.is_archived,
        position=task.position,
        custom_fields=task.custom_fields or {},
        progress=task.progress,
        is_overdue=task.is_overdue,
        time_remaining=task.time_remaining,
        created_at=task.created_at,
        updated_at=task.updated_at,
    )


def enrich_tasks(tasks: Sequence[Task]) -> list[TaskRead]:
    return [enrich_task(t) for t in tasks]


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


async def create_task(
    session: AsyncSession,
    workspace: Workspace,
    task_in: TaskCreate,
    reporter_id: uuid.UUID,
) -> Task:
    status = task_in.status.value if task_in.status else workspace.default_task_status
    await _ensure_assignee_is_member(session, workspace.id, task_in.assignee_id)

    task = Task(
        workspace_id=workspace.id,
        title=task_in.title,
        description=task_in.description,
        status=status,
        priority=task_in.priority.value,
        assignee_id=task_in.assignee_id,
        reporter_id=reporter_id,
        due_date=as_utc_naive(task_in.due_date),
        start_date=as_utc_naive(task_in.start_date),
        estimated_hours=task_in.estimated_hours,
        tags=list(task_in.tags),
        labels=[label.model_dump(mode="json") for label in task_in.labels],
        custom_fields=dict(task_in.custom_fields),
        position=await next_position(session, workspace.id, status),
    )
    # a task created straight into done is completed now
    task.set_status(status)
    session.add(task)
    await session.flush()

    await recompute_task_stats(session, workspace.id)
    log.info("task.created", task_id=str(task.id), workspace_id=str(workspace.id), status=status)
    return task


async def update_task(session: AsyncSession, task: Task, task_in: TaskUpdate) -> bool:
    """Apply a partial update. Returns True when this update completed the task for the first time."""
    data = task_in.model_dump(exclude_unset=True, mode="json")
    became_done = False

    if "assignee_id" in data:
        await _ensure_assignee_is_member(session, task.workspace_id, task_in.assignee_id)
        task.assignee_id = task_in.assignee_id
        data.pop("assignee_id")

    if "status" in data:
        status = data.pop("status")
        if status is not None:
            became_done = task.set_status(status)

    for key in _DATE_FIELDS:
        if key in data:
            data.pop(key)
            setattr(task, key, as_utc_naive(getattr(task_in, key)))

    for key, value in data.items():
        if key in ("title", "priority") and value is None:
            continue
        if key in ("tags", "labels", "custom_fields") and value is None:
            continue
        setattr(task, key, value)

    task.updated_at = utcnow()
    session.add(task)
    await session.flush()

    await recompute_task_stats(session, task.workspace_id)
    log.info("task.updated", task_id=str(task.id), status=task.status, completed=became_done)
    return became_done


async def archive_task(session: AsyncSession, task: Task) -> None:
    """Delete is a soft archive."""
    task.is_archived = True
    task.updated_at = utcnow()
    session.add(task)
    await session.flush()

    await recompute_task_stats(session, task.workspace_id)
    log.info("task.archived", task_id=str(task.id), workspace_id=str(task.workspace_id))


async def save_task(session: AsyncSession, task: Task) -> Task:
    """Persist an aggregate change made through one of the Task methods."""
    task.updated_at = utcnow()
    session.add(task)
    await session.flush()
    return task


# ---------------------------------------------------------------------------
# Reorder
# ---------------------------------------------------------------------------


async def reorder_tasks(
    session: AsyncSession, workspace: Workspace, items: Sequence[TaskReorderItem]
) -> tuple[list[Task], list[tuple[Task, str]]]:
    """Apply a kanban batch of (id, status, position).

    Runs inside the request transaction: an unknown id aborts the request and
    the session rolls back every update already applied. Returns the updated
    tasks and, for each one that reached done for the first time, its previous
    status.
    """
    updated: list[Task] = []
    completed: list[tuple[Task, str]] = []
    for item in items:
        task = await get_task_or_404(session, item.id, workspace.id)
        old_status = task.status
        if task.set_status(item.status.value):
            completed.append((task, old_status))
        task.position = item.position
        task.updated_at = utcnow()
        session.add(task)
        updated.append(task)

    await session.flush()
    await recompute_task_stats(session, workspace.id)
    log.info("task.reordered", workspace_id=str(workspace.id), count=len(updated), completed=len(completed))
    return updated, completed


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def _matches(task: Task, needle: str) -> bool:
    needle = needle.lower()
    if needle in task.title.lower():
        return True
    if task.description and needle in task.description.lower():
        return True
    return any(needle in tag.lower() for tag in task.tags or [])


async def list_workspace_tasks(
    session: AsyncSession,
    workspace_id: uuid.UUID,
    *,
    status: Optional[str] = None,
    assignee_id: Optional[uuid.UUID] = None,
    priority: Optional[str] = None,
    search: Optional[str] = None,
) -> list[Task]:
    """Non-archived tasks ordered by position, then newest first."""
    stmt = select(Task).where(
        Task.workspace_id == workspace_id,
        Task.is_archived == False,  # noqa: E712
    )
    if status:
        stmt = stmt.where(Task.status == status)
    if assignee_id:
        stmt = stmt.where(Task.assignee_id == assignee_id)
    if priority:
        stmt = stmt.where(Task.priority == priority)
    stmt = stmt.order_by(Task.position.asc(), Task.created_at.desc())

    result = await session.execute(stmt)
    tasks = list(result.scalars().all())
    if search:
        tasks = [t for t in tasks if _matches(t, search)]
    return tasks


async def list_overdue_tasks(session: AsyncSession, workspace_id: uuid.UUID) -> list[Task]:
    result = await session.execute(
        select(Task)
        .where(
            Task.workspace_id == workspace_id,
            Task.is_archived == False,  # noqa: E712
            Task.due_date != None,  # noqa: E711
            Task.due_date < utcnow(),
            Task.status != TaskStatus.DONE.value,
        )
        .order_by(Task.due_date.asc())
    )
    return list(result.scalars().all())


async def _active_workspace_tasks(session: AsyncSession, *criteria) -> list[Task]:
    result = await session.execute(
        select(Task)
        .join(Workspace, Workspace.id == Task.workspace_id)
        .where(
            Task.is_archived == False,  # noqa: E712
            Workspace.is_active == True,  # noqa: E712
            *criteria,
        )
        .order_by(Task.due_date.asc(), Task.created_at.desc())
    )
    return list(result.scalars().all())


async def list_assigned_tasks(
    session: AsyncSession, user_id: uuid.UUID, status: Optional[str] = None
) -> list[Task]:
    criteria = [Task.assignee_id == user_id]
    if status:
        criteria.append(Task.status == status)
    return await _active_workspace_tasks(session, *criteria)


async def list_reported_tasks(
    session: AsyncSession, user_id: uuid.UUID, status: Optional[str] = None
) -> list[Task]:
    criteria = [Task.reporter_id == user_id]
    if status:
        criteria.append(Task.status == status)
    return await _active_workspace_tasks(session, *criteria)
