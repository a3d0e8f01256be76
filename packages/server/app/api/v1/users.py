"""
Current-user endpoints: profile, preferences, workspaces, stats, recent activity and search.
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user
from app.core.database import get_session
from app.models.user import User
from app.services import users as user_service
from app.services import workspaces as workspace_service
from taskflow_shared.schemas.common import APIResponse
from taskflow_shared.schemas.tasks import UserActivity
from taskflow_shared.schemas.users import (
    PreferencesUpdate,
    ProfileUpdate,
    UserProfile,
    UserStats,
    UserSummary,
)
from taskflow_shared.schemas.workspaces import UserWorkspace, WorkspaceStats

router = APIRouter()


@router.get("/profile", response_model=APIResponse[UserProfile], tags=["Users"])
async def get_profile(user: User = Depends(get_current_user)):
    return APIResponse(data=user_service.to_profile(user))


@router.put("/profile", response_model=APIResponse[UserProfile], tags=["Users"])
async def update_profile(
    body: ProfileUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await user_service.update_profile(session, user, body)
    return APIResponse(message="Profile updated successfully", data=user_service.to_profile(user))


@router.put("/preferences", response_model=APIResponse[UserProfile], tags=["Users"])
async def update_preferences(
    body: PreferencesUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await user_service.update_preferences(session, user, body)
    return APIResponse(message="Preferences updated successfully", data=user_service.to_profile(user))


@router.get("/workspaces", response_model=APIResponse[List[UserWorkspace]], tags=["Users"])
async def my_workspaces(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    rows = await workspace_service.list_user_workspaces(session, user.id)
    data = [
        UserWorkspace(
            id=ws.id,
            name=ws.name,
            description=ws.description,
            color=ws.color,
            icon=ws.icon,
            role=role,
            completion_percentage=ws.completion_percentage,
            stats=WorkspaceStats(
                total_tasks=ws.total_tasks,
                completed_tasks=ws.completed_tasks,
                total_members=ws.total_members,
            ),
        )
        for ws, role in rows
    ]
    return APIResponse(data=data, count=len(data))


@router.get("/stats", response_model=APIResponse[UserStats], tags=["Users"])
async def my_stats(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return APIResponse(data=await user_service.user_stats(session, user))


@router.get("/activity", response_model=APIResponse[UserActivity], tags=["Users"])
async def my_activity(
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Recent tasks assigned to or reported by the caller, plus their latest comments."""
    return APIResponse(data=await user_service.user_activity(session, user, limit))


@router.get("/search", response_model=APIResponse[List[UserSummary]], tags=["Users"])
async def search_users(
    query: str = Query(..., min_length=2),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Find other active users by name or email (for invitations)."""
    users = await user_service.search_users(session, query.strip(), user.id)
    data = [UserSummary.model_validate(u) for u in users]
    return APIResponse(data=data, count=len(data))
