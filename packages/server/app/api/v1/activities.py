"""
Activity feed endpoints.
"""

from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user
from app.core.database import get_session
from app.core.errors import AuthorizationError
from app.core.permissions import WorkspaceAccess, require_workspace_role
from app.models.activity import Activity
from app.models.user import User
from app.services import activities as activity_service
from app.services import workspaces as workspace_service
from taskflow_shared.schemas.activities import (
    ActivityRead,
    ActivityStats,
    MentionAdd,
    MentionRead,
    ReadReceipt,
)
from taskflow_shared.schemas.common import ActivityType, APIResponse, WorkspaceRole

# /workspaces/{workspace_id}/activities
router_scoped = APIRouter()
# /activities
router = APIRouter()


async def _activity_for(
    session: AsyncSession, activity_id: uuid.UUID, user: User, required_role: str
) -> Activity:
    """Load an activity and gate on the caller's role in its workspace."""
    activity = await activity_service.get_activity_or_404(session, activity_id)
    workspace = await workspace_service.get_workspace_or_404(session, activity.workspace_id)
    if not await workspace_service.has_permission(session, workspace, user.id, required_role):
        raise AuthorizationError(f"Access denied. {required_role} role required.")
    return activity


# ---------------------------------------------------------------------------
# Workspace-scoped
# ---------------------------------------------------------------------------


@router_scoped.get("", response_model=APIResponse[List[ActivityRead]])
async def list_activities_endpoint(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    type: Optional[ActivityType] = None,
    user_id: Optional[uuid.UUID] = None,
    access: WorkspaceAccess = Depends(require_workspace_role(WorkspaceRole.VIEWER.value)),
    session: AsyncSession = Depends(get_session),
):
    """Public activities of the workspace, newest first."""
    activities = await activity_service.find_by_workspace(
        session,
        access.workspace.id,
        limit=limit,
        offset=offset,
        activity_type=type.value if type else None,
        user_id=user_id,
    )
    return APIResponse(data=activities, count=len(activities))


@router_scoped.get("/stats", response_model=APIResponse[ActivityStats])
async def activity_stats_endpoint(
    period: int = Query(7, ge=1, le=365),
    access: WorkspaceAccess = Depends(require_workspace_role(WorkspaceRole.VIEWER.value)),
    session: AsyncSession = Depends(get_session),
):
    return APIResponse(data=await activity_service.activity_stats(session, access.workspace.id, period))


# ---------------------------------------------------------------------------
# Caller's feed / receipts
# ---------------------------------------------------------------------------


@router.get("/user", response_model=APIResponse[List[ActivityRead]])
async def user_activity_endpoint(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    activities = await activity_service.get_user_activity(session, user.id, limit=limit, offset=offset)
    return APIResponse(data=activities, count=len(activities))


@router.put("/{activity_id}/read", response_model=APIResponse[List[ReadReceipt]])
async def mark_read_endpoint(
    activity_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    activity = await _activity_for(session, activity_id, user, WorkspaceRole.VIEWER.value)
    await activity_service.mark_as_read(session, activity, user.id)
    return APIResponse(message="Activity marked as read", data=activity.read_by)


@router.post("/{activity_id}/mentions", response_model=APIResponse[List[MentionRead]])
async def add_mention_endpoint(
    activity_id: uuid.UUID,
    body: MentionAdd,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    activity = await _activity_for(session, activity_id, user, WorkspaceRole.MEMBER.value)
    await activity_service.add_mention(session, activity, body.user_id)
    return APIResponse(message="Mention added", data=activity.mentions)
