"""
Goal endpoints: per-workspace listing and stats, CRUD, progress and contributors.
"""

from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_session
from app.core.errors import ValidationError
from app.core.permissions import GoalAccess, WorkspaceAccess, require_goal_role, require_workspace_role
from app.models.goal import Goal
from app.services import activities as activity_service
from app.services import goals as goal_service
from app.services import workspaces as workspace_service
from taskflow_shared.schemas.activities import ActivityMetadata, GoalRef
from taskflow_shared.schemas.common import ActivityType, APIResponse, GoalStatus, WorkspaceRole
from taskflow_shared.schemas.goals import (
    ContributorAdd,
    GoalCreate,
    GoalProgressUpdate,
    GoalRead,
    GoalStats,
    GoalUpdate,
)

# /workspaces/{workspace_id}/goals
router_scoped = APIRouter()
# /goals
router = APIRouter()

VIEWER = WorkspaceRole.VIEWER.value
MEMBER = WorkspaceRole.MEMBER.value
ADMIN = WorkspaceRole.ADMIN.value


async def _record_goal_change(
    session: AsyncSession,
    goal: Goal,
    user_id: uuid.UUID,
    old_status: str,
    metadata: ActivityMetadata,
) -> None:
    """goal_completed when this change completed the goal, goal_updated otherwise."""
    completed = goal.status == GoalStatus.COMPLETED.value and old_status != GoalStatus.COMPLETED.value
    await activity_service.record(
        session,
        ActivityType.GOAL_COMPLETED if completed else ActivityType.GOAL_UPDATED,
        goal.workspace_id,
        user_id,
        entity=GoalRef(id=goal.id),
        metadata=metadata,
    )


# ---------------------------------------------------------------------------
# Workspace-scoped
# ---------------------------------------------------------------------------


@router_scoped.get("", response_model=APIResponse[List[GoalRead]])
async def list_goals_endpoint(
    status: Optional[GoalStatus] = None,
    access: WorkspaceAccess = Depends(require_workspace_role(VIEWER)),
    session: AsyncSession = Depends(get_session),
):
    goals = await goal_service.list_workspace_goals(
        session, access.workspace.id, status.value if status else None
    )
    return APIResponse(data=[goal_service.enrich_goal(g) for g in goals], count=len(goals))


@router_scoped.post("", response_model=APIResponse[GoalRead], status_code=201)
async def create_goal_endpoint(
    body: GoalCreate,
    access: WorkspaceAccess = Depends(require_workspace_role(MEMBER)),
    session: AsyncSession = Depends(get_session),
):
    goal = await goal_service.create_goal(session, access.workspace.id, body, access.user.id)
    await activity_service.record(
        session,
        ActivityType.GOAL_CREATED,
        goal.workspace_id,
        access.user.id,
        entity=GoalRef(id=goal.id),
        metadata=ActivityMetadata(title=goal.title),
    )
    return APIResponse(message="Goal created successfully", data=goal_service.enrich_goal(goal))


@router_scoped.get("/stats", response_model=APIResponse[GoalStats])
async def goal_stats_endpoint(
    access: WorkspaceAccess = Depends(require_workspace_role(VIEWER)),
    session: AsyncSession = Depends(get_session),
):
    return APIResponse(data=await goal_service.workspace_goal_stats(session, access.workspace.id))


# ---------------------------------------------------------------------------
# Single goal
# ---------------------------------------------------------------------------


@router.get("/{goal_id}", response_model=APIResponse[GoalRead])
async def get_goal_endpoint(access: GoalAccess = Depends(require_goal_role(VIEWER))):
    return APIResponse(data=goal_service.enrich_goal(access.goal))


@router.put("/{goal_id}", response_model=APIResponse[GoalRead])
async def update_goal_endpoint(
    body: GoalUpdate,
    access: GoalAccess = Depends(require_goal_role(MEMBER)),
    session: AsyncSession = Depends(get_session),
):
    goal = access.goal
    old = {"title": goal.title, "target": goal.target, "status": goal.status}
    await goal_service.update_goal(session, goal, body)
    await _record_goal_change(
        session,
        goal,
        access.user.id,
        old["status"],
        ActivityMetadata(
            title=goal.title,
            old_value=old,
            new_value={"title": goal.title, "target": goal.target, "status": goal.status},
        ),
    )
    return APIResponse(message="Goal updated successfully", data=goal_service.enrich_goal(goal))


@router.put("/{goal_id}/progress", response_model=APIResponse[GoalRead])
async def update_progress_endpoint(
    body: GoalProgressUpdate,
    access: GoalAccess = Depends(require_goal_role(MEMBER)),
    session: AsyncSession = Depends(get_session),
):
    goal = access.goal
    old_current, old_status = goal.current, goal.status
    await goal_service.update_progress(session, goal, body.value, access.user.id, body.note)
    if abs(goal.current - old_current) >= 1 or goal.status != old_status:
        await _record_goal_change(
            session,
            goal,
            access.user.id,
            old_status,
            ActivityMetadata(title=goal.title, old_value=old_current, new_value=goal.current),
        )
    return APIResponse(message="Goal progress updated successfully", data=goal_service.enrich_goal(goal))


@router.delete("/{goal_id}", response_model=APIResponse[None])
async def delete_goal_endpoint(
    access: GoalAccess = Depends(require_goal_role(ADMIN)),
    session: AsyncSession = Depends(get_session),
):
    await goal_service.delete_goal(session, access.goal)
    return APIResponse(message="Goal deleted successfully")


# ---------------------------------------------------------------------------
# Contributors
# ---------------------------------------------------------------------------


@router.post("/{goal_id}/contributors", response_model=APIResponse[GoalRead])
async def add_contributor_endpoint(
    body: ContributorAdd,
    access: GoalAccess = Depends(require_goal_role(MEMBER)),
    session: AsyncSession = Depends(get_session),
):
    """Contributors must be members of the goal's workspace. Re-adding is a no-op."""
    if await workspace_service.get_member_role(session, access.workspace, body.user_id) is None:
        raise ValidationError(
            "Validation failed",
            errors=[{
                "field": "user_id",
                "message": "Contributor must be a member of this workspace",
                "type": "value_error",
            }],
        )
    await goal_service.add_contributor(session, access.goal, body.user_id, body.role.value)
    return APIResponse(message="Contributor added successfully", data=goal_service.enrich_goal(access.goal))


@router.delete("/{goal_id}/contributors/{user_id}", response_model=APIResponse[GoalRead])
async def remove_contributor_endpoint(
    user_id: uuid.UUID,
    access: GoalAccess = Depends(require_goal_role(MEMBER)),
    session: AsyncSession = Depends(get_session),
):
    await goal_service.remove_contributor(session, access.goal, user_id)
    return APIResponse(message="Contributor removed successfully", data=goal_service.enrich_goal(access.goal))
