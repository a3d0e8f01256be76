"""
Task endpoints: CRUD, kanban reorder, comments, subtasks, watchers,
attachments and dependencies.

Status columns: todo → in-progress → review → done (any move allowed).
- completed_at is stamped on the first move to done and kept afterwards.
- Delete archives the task.
- Reorder is all-or-nothing within the request transaction.
"""

from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user
from app.core.database import get_session
from app.core.permissions import TaskAccess, WorkspaceAccess, require_task_role, require_workspace_role
from app.models.user import User
from app.services import activities as activity_service
from app.services import tasks as task_service
from taskflow_shared.schemas.activities import ActivityMetadata, CommentRef, TaskRef
from taskflow_shared.schemas.common import (
    ActivityType,
    APIResponse,
    TaskPriority,
    TaskStatus,
    WorkspaceRole,
)
from taskflow_shared.schemas.tasks import (
    AttachmentCreate,
    AttachmentRead,
    CommentCreate,
    CommentRead,
    CommentUpdate,
    DependencyAdd,
    DependencyRead,
    SubtaskCreate,
    SubtaskRead,
    TaskCreate,
    TaskRead,
    TaskReorderRequest,
    TaskUpdate,
)

# /workspaces/{workspace_id}/tasks
router_scoped = APIRouter()
# /tasks
router = APIRouter()

VIEWER = WorkspaceRole.VIEWER.value
MEMBER = WorkspaceRole.MEMBER.value


# ---------------------------------------------------------------------------
# Workspace-scoped
# ---------------------------------------------------------------------------


@router_scoped.get("", response_model=APIResponse[List[TaskRead]])
async def list_tasks_endpoint(
    status: Optional[TaskStatus] = None,
    assignee_id: Optional[uuid.UUID] = None,
    priority: Optional[TaskPriority] = None,
    search: Optional[str] = None,
    access: WorkspaceAccess = Depends(require_workspace_role(VIEWER)),
    session: AsyncSession = Depends(get_session),
):
    """List tasks with optional filters by status, assignee, priority and a text search."""
    tasks = await task_service.list_workspace_tasks(
        session,
        access.workspace.id,
        status=status.value if status else None,
        assignee_id=assignee_id,
        priority=priority.value if priority else None,
        search=search,
    )
    return APIResponse(data=task_service.enrich_tasks(tasks), count=len(tasks))


@router_scoped.post("", response_model=APIResponse[TaskRead], status_code=201)
async def create_task_endpoint(
    task_in: TaskCreate,
    access: WorkspaceAccess = Depends(require_workspace_role(MEMBER)),
    session: AsyncSession = Depends(get_session),
):
    task = await task_service.create_task(session, access.workspace, task_in, access.user.id)
    await activity_service.record(
        session,
        ActivityType.TASK_CREATED,
        access.workspace.id,
        access.user.id,
        entity=TaskRef(id=task.id),
        metadata=ActivityMetadata(title=task.title),
    )
    return APIResponse(message="Task created successfully", data=task_service.enrich_task(task))


@router_scoped.put("/reorder", response_model=APIResponse[List[TaskRead]])
async def reorder_tasks_endpoint(
    body: TaskReorderRequest,
    access: WorkspaceAccess = Depends(require_workspace_role(MEMBER)),
    session: AsyncSession = Depends(get_session),
):
    """Kanban drag and drop: apply a batch of {id, status, position}."""
    tasks, completed = await task_service.reorder_tasks(session, access.workspace, body.tasks)
    for task, old_status in completed:
        await activity_service.record(
            session,
            ActivityType.TASK_COMPLETED,
            task.workspace_id,
            access.user.id,
            entity=TaskRef(id=task.id),
            metadata=ActivityMetadata(title=task.title, old_value=old_status, new_value=task.status),
        )
    return APIResponse(message="Tasks reordered successfully", data=task_service.enrich_tasks(tasks))


@router_scoped.get("/overdue", response_model=APIResponse[List[TaskRead]])
async def overdue_tasks_endpoint(
    access: WorkspaceAccess = Depends(require_workspace_role(VIEWER)),
    session: AsyncSession = Depends(get_session),
):
    tasks = await task_service.list_overdue_tasks(session, access.workspace.id)
    return APIResponse(data=task_service.enrich_tasks(tasks), count=len(tasks))


# ---------------------------------------------------------------------------
# Caller's tasks
# ---------------------------------------------------------------------------


@router.get("/assigned", response_model=APIResponse[List[TaskRead]])
async def assigned_tasks_endpoint(
    status: Optional[TaskStatus] = None,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    tasks = await task_service.list_assigned_tasks(session, user.id, status.value if status else None)
    return APIResponse(data=task_service.enrich_tasks(tasks), count=len(tasks))


@router.get("/reported", response_model=APIResponse[List[TaskRead]])
async def reported_tasks_endpoint(
    status: Optional[TaskStatus] = None,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    tasks = await task_service.list_reported_tasks(session, user.id, status.value if status else None)
    return APIResponse(data=task_service.enrich_tasks(tasks), count=len(tasks))


# ---------------------------------------------------------------------------
# Single task
# ---------------------------------------------------------------------------


@router.get("/{task_id}", response_model=APIResponse[TaskRead])
async def get_task_endpoint(access: TaskAccess = Depends(require_task_role(VIEWER))):
    return APIResponse(data=task_service.enrich_task(access.task))


@router.put("/{task_id}", response_model=APIResponse[TaskRead])
async def update_task_endpoint(
    task_in: TaskUpdate,
    access: TaskAccess = Depends(require_task_role(MEMBER)),
    session: AsyncSession = Depends(get_session),
):
    task = access.task
    old_status = task.status
    completed = await task_service.update_task(session, task, task_in)
    await activity_service.record(
        session,
        ActivityType.TASK_COMPLETED if completed else ActivityType.TASK_UPDATED,
        task.workspace_id,
        access.user.id,
        entity=TaskRef(id=task.id),
        metadata=ActivityMetadata(title=task.title, old_value=old_status, new_value=task.status),
    )
    return APIResponse(message="Task updated successfully", data=task_service.enrich_task(task))


@router.delete("/{task_id}", response_model=APIResponse[None])
async def delete_task_endpoint(
    access: TaskAccess = Depends(require_task_role(MEMBER)),
    session: AsyncSession = Depends(get_session),
):
    task = access.task
    await task_service.archive_task(session, task)
    await activity_service.record(
        session,
        ActivityType.TASK_DELETED,
        task.workspace_id,
        access.user.id,
        entity=TaskRef(id=task.id),
        metadata=ActivityMetadata(title=task.title),
    )
    return APIResponse(message="Task deleted successfully")


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


@router.post("/{task_id}/comments", response_model=APIResponse[CommentRead], status_code=201)
async def add_comment_endpoint(
    body: CommentCreate,
    access: TaskAccess = Depends(require_task_role(MEMBER)),
    session: AsyncSession = Depends(get_session),
):
    task = access.task
    comment = task.add_comment(access.user.id, body.content, body.mentions)
    await task_service.save_task(session, task)
    await activity_service.record(
        session,
        ActivityType.COMMENT_ADDED,
        task.workspace_id,
        access.user.id,
        entity=CommentRef(id=comment["id"], task_id=task.id),
        metadata=ActivityMetadata(title=task.title, description=body.content[:100]),
        mentions=body.mentions,
    )
    return APIResponse(message="Comment added successfully", data=comment)


@router.put("/{task_id}/comments/{comment_id}", response_model=APIResponse[CommentRead])
async def edit_comment_endpoint(
    comment_id: uuid.UUID,
    body: CommentUpdate,
    access: TaskAccess = Depends(require_task_role(MEMBER)),
    session: AsyncSession = Depends(get_session),
):
    """Only the comment's author may edit it."""
    comment = access.task.edit_comment(comment_id, access.user.id, body.content)
    await task_service.save_task(session, access.task)
    return APIResponse(message="Comment updated successfully", data=comment)


# ---------------------------------------------------------------------------
# Subtasks
# ---------------------------------------------------------------------------


@router.post("/{task_id}/subtasks", response_model=APIResponse[SubtaskRead], status_code=201)
async def add_subtask_endpoint(
    body: SubtaskCreate,
    access: TaskAccess = Depends(require_task_role(MEMBER)),
    session: AsyncSession = Depends(get_session),
):
    subtask = access.task.add_subtask(body.title.strip())
    await task_service.save_task(session, access.task)
    return APIResponse(message="Subtask added successfully", data=subtask)


@router.put("/{task_id}/subtasks/{index}", response_model=APIResponse[SubtaskRead])
async def complete_subtask_endpoint(
    index: int,
    access: TaskAccess = Depends(require_task_role(MEMBER)),
    session: AsyncSession = Depends(get_session),
):
    subtask = access.task.complete_subtask(index, access.user.id)
    await task_service.save_task(session, access.task)
    return APIResponse(message="Subtask updated successfully", data=subtask)


# ---------------------------------------------------------------------------
# Watchers
# ---------------------------------------------------------------------------


@router.post("/{task_id}/watchers", response_model=APIResponse[List[uuid.UUID]])
async def watch_task_endpoint(
    access: TaskAccess = Depends(require_task_role(MEMBER)),
    session: AsyncSession = Depends(get_session),
):
    access.task.add_watcher(access.user.id)
    await task_service.save_task(session, access.task)
    return APIResponse(message="Added as watcher successfully", data=access.task.watchers)


@router.delete("/{task_id}/watchers", response_model=APIResponse[List[uuid.UUID]])
async def unwatch_task_endpoint(
    access: TaskAccess = Depends(require_task_role(MEMBER)),
    session: AsyncSession = Depends(get_session),
):
    access.task.remove_watcher(access.user.id)
    await task_service.save_task(session, access.task)
    return APIResponse(message="Removed as watcher successfully", data=access.task.watchers)


# ---------------------------------------------------------------------------
# Attachments
# ---------------------------------------------------------------------------


@router.post("/{task_id}/attachments", response_model=APIResponse[AttachmentRead], status_code=201)
async def add_attachment_endpoint(
    body: AttachmentCreate,
    access: TaskAccess = Depends(require_task_role(MEMBER)),
    session: AsyncSession = Depends(get_session),
):
    """Record metadata of an already-uploaded file."""
    attachment = access.task.add_attachment(body.model_dump(), access.user.id)
    await task_service.save_task(session, access.task)
    return APIResponse(message="Attachment added successfully", data=attachment)


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


@router.post("/{task_id}/dependencies", response_model=APIResponse[DependencyRead], status_code=201)
async def add_dependency_endpoint(
    body: DependencyAdd,
    access: TaskAccess = Depends(require_task_role(MEMBER)),
    session: AsyncSession = Depends(get_session),
):
    other = await task_service.get_task_or_404(session, body.task_id)
    dependency = access.task.add_dependency(other, body.type.value)
    await task_service.save_task(session, access.task)
    return APIResponse(message="Dependency added successfully", data=dependency)


@router.delete("/{task_id}/dependencies/{dep_task_id}", response_model=APIResponse[List[DependencyRead]])
async def remove_dependency_endpoint(
    dep_task_id: uuid.UUID,
    access: TaskAccess = Depends(require_task_role(MEMBER)),
    session: AsyncSession = Depends(get_session),
):
    access.task.remove_dependency(dep_task_id)
    await task_service.save_task(session, access.task)
    return APIResponse(message="Dependency removed successfully", data=access.task.dependencies)
