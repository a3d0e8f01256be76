"""
Workspace service: workspace CRUD, membership and the stats cache.
"""

from __future__ import annotations

import uuid
from datetime import timedelta
from typing import Optional

import pydantic
import structlog
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import (
    DuplicateMemberError,
    MemberNotFoundError,
    NotFoundError,
    ValidationError,
)
from app.core.roles import has_permission as role_satisfies
from app.models.base import utcnow
from app.models.task import Task
from app.models.user import User
from app.models.workspace import Workspace, WorkspaceMember
from taskflow_shared.schemas.common import TaskStatus, WorkspaceRole
from taskflow_shared.schemas.users import UserSummary
from taskflow_shared.schemas.workspaces import (
    MemberRead,
    RecentTask,
    StatusCount,
    WorkspaceCreate,
    WorkspaceRead,
    WorkspaceSettings,
    WorkspaceStats,
    WorkspaceStatsReport,
    WorkspaceUpdate,
)

log = structlog.get_logger()


def deep_merge(base: dict, patch: dict) -> dict:
    """JSON Merge Patch style deep merge."""
    result = base.copy()
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _field_errors(exc: pydantic.ValidationError, prefix: str = "") -> list[dict]:
    return [
        {
            "field": prefix + ".".join(str(part) for part in err["loc"]),
            "message": err["msg"],
            "type": err["type"],
        }
        for err in exc.errors()
    ]


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------


async def get_workspace_or_404(session: AsyncSession, workspace_id: uuid.UUID) -> Workspace:
    """Inactive (soft-deleted) workspaces resolve as not found."""
    workspace = await session.get(Workspace, workspace_id)
    if workspace is None or not workspace.is_active:
        raise NotFoundError("Workspace not found")
    return workspace


async def list_user_workspaces(session: AsyncSession, user_id: uuid.UUID) -> list[tuple[Workspace, str]]:
    """Active workspaces the user belongs to, with the user's role, newest first."""
    result = await session.execute(
        select(Workspace, WorkspaceMember.role)
        .join(WorkspaceMember, WorkspaceMember.workspace_id == Workspace.id)
        .where(WorkspaceMember.user_id == user_id)
        .where(Workspace.is_active == True)  # noqa: E712
        .order_by(Workspace.created_at.desc())
    )
    return [(workspace, role) for workspace, role in result.all()]


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------


async def _get_membership(
    session: AsyncSession, workspace: Workspace, user_id: uuid.UUID
) -> Optional[WorkspaceMember]:
    result = await session.execute(
        select(WorkspaceMember).where(
            WorkspaceMember.workspace_id == workspace.id,
            WorkspaceMember.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def _sync_member_count(session: AsyncSession, workspace: Workspace) -> None:
    await session.flush()
    result = await session.execute(
        select(func.count()).select_from(WorkspaceMember).where(
            WorkspaceMember.workspace_id == workspace.id
        )
    )
    workspace.total_members = result.scalar_one()
    workspace.updated_at = utcnow()
    session.add(workspace)
    await session.flush()


async def get_member_role(
    session: AsyncSession, workspace: Workspace, user_id: uuid.UUID
) -> Optional[str]:
    membership = await _get_membership(session, workspace, user_id)
    return membership.role if membership else None


async def has_permission(
    session: AsyncSession, workspace: Workspace, user_id: uuid.UUID, required_role: str
) -> bool:
    """False for non-members, otherwise the role hierarchy decides."""
    role = await get_member_role(session, workspace, user_id)
    if role is None:
        return False
    return role_satisfies(role, required_role)


async def add_member(
    session: AsyncSession,
    workspace: Workspace,
    user_id: uuid.UUID,
    role: str = WorkspaceRole.MEMBER.value,
    invited_by: Optional[uuid.UUID] = None,
) -> WorkspaceMember:
    if await _get_membership(session, workspace, user_id) is not None:
        raise DuplicateMemberError()

    membership = WorkspaceMember(
        workspace_id=workspace.id,
        user_id=user_id,
        role=role,
        joined_at=utcnow(),
        invited_by=invited_by,
    )
    session.add(membership)
    await _sync_member_count(session, workspace)

    log.info("member.added", workspace_id=str(workspace.id), user_id=str(user_id), role=role)
    return membership


async def remove_member(session: AsyncSession, workspace: Workspace, user_id: uuid.UUID) -> None:
    """Remove by user id. Removing a non-member is a no-op."""
    membership = await _get_membership(session, workspace, user_id)
    if membership is not None:
        await session.delete(membership)
        log.info("member.removed", workspace_id=str(workspace.id), user_id=str(user_id))
    await _sync_member_count(session, workspace)


async def update_member_role(
    session: AsyncSession, workspace: Workspace, user_id: uuid.UUID, new_role: str
) -> WorkspaceMember:
    membership = await _get_membership(session, workspace, user_id)
    if membership is None:
        raise MemberNotFoundError()

    old_role = membership.role
    membership.role = new_role
    session.add(membership)
    await _sync_member_count(session, workspace)

    log.info(
        "member.role_changed",
        workspace_id=str(workspace.id),
        user_id=str(user_id),
        old_role=old_role,
        new_role=new_role,
    )
    return membership


async def list_members(session: AsyncSession, workspace: Workspace) -> list[MemberRead]:
    """Members ordered by join time, with user summaries."""
    result = await session.execute(
        select(WorkspaceMember, User)
        .join(User, User.id == WorkspaceMember.user_id)
        .where(WorkspaceMember.workspace_id == workspace.id)
        .order_by(WorkspaceMember.joined_at.asc())
    )
    return [
        MemberRead(
            user=UserSummary.model_validate(user),
            role=membership.role,
            joined_at=membership.joined_at,
            invited_by=membership.invited_by,
        )
        for membership, user in result.all()
    ]


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


async def create_workspace(
    session: AsyncSession, req: WorkspaceCreate, owner: User
) -> Workspace:
    """Create a workspace; the creator becomes its single owner member."""
    workspace = Workspace(
        name=req.name,
        description=req.description,
        color=req.color,
        icon=req.icon,
        owner_id=owner.id,
        settings=req.settings.model_dump(mode="json"),
    )
    session.add(workspace)
    await session.flush()

    await add_member(session, workspace, owner.id, WorkspaceRole.OWNER.value)

    log.info("workspace.created", workspace_id=str(workspace.id), owner_id=str(owner.id))
    return workspace


async def update_workspace(
    session: AsyncSession, workspace: Workspace, req: WorkspaceUpdate
) -> Workspace:
    """Update scalar fields and deep-merge a partial settings patch."""
    if req.name is not None:
        workspace.name = req.name
    if req.description is not None:
        workspace.description = req.description
    if req.color is not None:
        workspace.color = req.color
    if req.icon is not None:
        workspace.icon = req.icon

    if req.settings is not None:
        merged = deep_merge(workspace.settings, req.settings)
        try:
            validated = WorkspaceSettings.model_validate(merged)
        except pydantic.ValidationError as exc:
            raise ValidationError("Validation failed", errors=_field_errors(exc, "settings."))
        workspace.settings = validated.model_dump(mode="json")

    workspace.updated_at = utcnow()
    session.add(workspace)
    await session.flush()

    log.info("workspace.updated", workspace_id=str(workspace.id))
    return workspace


async def delete_workspace(session: AsyncSession, workspace: Workspace) -> None:
    """Soft delete."""
    workspace.is_active = False
    workspace.updated_at = utcnow()
    session.add(workspace)
    await session.flush()
    log.info("workspace.deleted", workspace_id=str(workspace.id))


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------


async def recompute_task_stats(session: AsyncSession, workspace_id: uuid.UUID) -> None:
    """Recount non-archived and done tasks into the workspace stats cache."""
    await session.flush()
    result = await session.execute(
        select(Task.status, func.count())
        .where(Task.workspace_id == workspace_id, Task.is_archived == False)  # noqa: E712
        .group_by(Task.status)
    )
    counts = dict(result.all())

    workspace = await session.get(Workspace, workspace_id)
    if workspace is None:
        return
    workspace.total_tasks = sum(counts.values())
    workspace.completed_tasks = counts.get(TaskStatus.DONE.value, 0)
    session.add(workspace)
    await session.flush()


async def workspace_stats_report(session: AsyncSession, workspace: Workspace) -> WorkspaceStatsReport:
    now = utcnow()
    result = await session.execute(
        select(Task.status, func.count())
        .where(Task.workspace_id == workspace.id, Task.is_archived == False)  # noqa: E712
        .group_by(Task.status)
    )
    task_stats = [StatusCount(status=status, count=count) for status, count in result.all()]

    overdue = await session.execute(
        select(func.count()).select_from(Task).where(
            Task.workspace_id == workspace.id,
            Task.is_archived == False,  # noqa: E712
            Task.due_date != None,  # noqa: E711
            Task.due_date < now,
            Task.status != TaskStatus.DONE.value,
        )
    )

    recent = await session.execute(
        select(Task)
        .where(Task.workspace_id == workspace.id, Task.updated_at >= now - timedelta(days=7))
        .order_by(Task.updated_at.desc())
        .limit(10)
    )

    total = sum(s.count for s in task_stats)
    completed = next((s.count for s in task_stats if s.status == TaskStatus.DONE), 0)
    return WorkspaceStatsReport(
        task_stats=task_stats,
        overdue_tasks=overdue.scalar_one(),
        completion_rate=round(completed / total * 100) if total else 0,
        recent_activity=[
            RecentTask(
                id=t.id,
                title=t.title,
                status=t.status,
                assignee_id=t.assignee_id,
                updated_at=t.updated_at,
            )
            for t in recent.scalars().all()
        ],
    )


# ---------------------------------------------------------------------------
# Enrichment
# ---------------------------------------------------------------------------


async def enrich_workspace(session: AsyncSession, workspace: Workspace) -> WorkspaceRead:
    owner = await session.get(User, workspace.owner_id)
    return WorkspaceRead(
        id=workspace.id,
        name=workspace.name,
        description=workspace.description,
        color=workspace.color,
        icon=workspace.icon,
        owner=UserSummary.model_validate(owner),
        members=await list_members(session, workspace),
        settings=WorkspaceSettings.model_validate(workspace.settings),
        stats=WorkspaceStats(
            total_tasks=workspace.total_tasks,
            completed_tasks=workspace.completed_tasks,
            total_members=workspace.total_members,
        ),
        completion_percentage=workspace.completion_percentage,
        is_active=workspace.is_active,
        created_at=workspace.created_at,
        updated_at=workspace.updated_at,
    )
