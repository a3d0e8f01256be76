"""
Workspace permission gates.

Each ``require_*_role`` factory returns a FastAPI dependency that resolves the
workspace (directly, or through a task or goal), checks the caller's
membership role against the hierarchy and hands the resolved objects to the
handler so it does not fetch them again.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user
from app.core.database import get_session
from app.core.errors import AuthorizationError, NotFoundError
from app.core.roles import has_permission
from app.models.goal import Goal
from app.models.task import Task
from app.models.user import User
from app.models.workspace import Workspace
from app.services import workspaces as workspace_service

__all__ = [
    "GoalAccess",
    "TaskAccess",
    "WorkspaceAccess",
    "has_permission",
    "require_goal_role",
    "require_task_role",
    "require_workspace_role",
]


@dataclass
class WorkspaceAccess:
    user: User
    workspace: Workspace
    role: str


@dataclass
class TaskAccess(WorkspaceAccess):
    task: Optional[Task] = None


@dataclass
class GoalAccess(WorkspaceAccess):
    goal: Optional[Goal] = None


async def _check_role(
    session: AsyncSession, workspace: Workspace, user: User, required_role: str
) -> str:
    role = await workspace_service.get_member_role(session, workspace, user.id)
    if not has_permission(role, required_role):
        raise AuthorizationError(f"Access denied. {required_role} role required.")
    return role


def require_workspace_role(required_role: str):
    """Gate for routes with a ``workspace_id`` path parameter."""

    async def dependency(
        workspace_id: uuid.UUID,
        user: User = Depends(get_current_user),
        session: AsyncSession = Depends(get_session),
    ) -> WorkspaceAccess:
        workspace = await workspace_service.get_workspace_or_404(session, workspace_id)
        role = await _check_role(session, workspace, user, required_role)
        return WorkspaceAccess(user=user, workspace=workspace, role=role)

    return dependency


def require_task_role(required_role: str):
    """Gate for routes with a ``task_id`` path parameter."""

    async def dependency(
        task_id: uuid.UUID,
        user: User = Depends(get_current_user),
        session: AsyncSession = Depends(get_session),
    ) -> TaskAccess:
        task = await session.get(Task, task_id)
        if task is None or task.is_archived:
            raise NotFoundError("Task not found")
        workspace = await workspace_service.get_workspace_or_404(session, task.workspace_id)
        role = await _check_role(session, workspace, user, required_role)
        return TaskAccess(user=user, workspace=workspace, role=role, task=task)

    return dependency


def require_goal_role(required_role: str):
    """Gate for routes with a ``goal_id`` path parameter."""

    async def dependency(
        goal_id: uuid.UUID,
        user: User = Depends(get_current_user),
        session: AsyncSession = Depends(get_session),
    ) -> GoalAccess:
        goal = await session.get(Goal, goal_id)
        if goal is None or not goal.is_active:
            raise NotFoundError("Goal not found")
        workspace = await workspace_service.get_workspace_or_404(session, goal.workspace_id)
        role = await _check_role(session, workspace, user, required_role)
        return GoalAccess(user=user, workspace=workspace, role=role, goal=goal)

    return dependency
