"""
Workspace endpoints: CRUD, stats and member management.

Member management never touches the owner's membership, whatever the
caller's role, and only hands out admin, member or viewer.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user
from app.core.database import get_session
from app.core.errors import DomainInvariantError, NotFoundError
from app.core.permissions import WorkspaceAccess, require_workspace_role
from app.models.user import User
from app.models.workspace import Workspace
from app.services import activities as activity_service
from app.services import users as user_service
from app.services import workspaces as workspace_service
from taskflow_shared.schemas.activities import ActivityMetadata, MemberRef, WorkspaceRef
from taskflow_shared.schemas.common import ActivityType, APIResponse, WorkspaceRole
from taskflow_shared.schemas.workspaces import (
    MemberAdd,
    MemberRead,
    MemberRoleUpdate,
    WorkspaceCreate,
    WorkspaceRead,
    WorkspaceStatsReport,
    WorkspaceUpdate,
)

router = APIRouter()


def _is_owner(workspace: Workspace, user_id: uuid.UUID, role: str | None) -> bool:
    return user_id == workspace.owner_id or role == WorkspaceRole.OWNER.value


# ---------------------------------------------------------------------------
# Workspace CRUD
# ---------------------------------------------------------------------------


@router.get("", response_model=APIResponse[list[WorkspaceRead]])
async def list_workspaces(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Active workspaces the caller is a member of."""
    rows = await workspace_service.list_user_workspaces(session, user.id)
    data = [await workspace_service.enrich_workspace(session, ws) for ws, _role in rows]
    return APIResponse(data=data, count=len(data))


@router.post("", response_model=APIResponse[WorkspaceRead], status_code=201)
async def create_workspace(
    body: WorkspaceCreate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    workspace = await workspace_service.create_workspace(session, body, user)
    await activity_service.record(
        session,
        ActivityType.WORKSPACE_CREATED,
        workspace.id,
        user.id,
        entity=WorkspaceRef(id=workspace.id),
        metadata=ActivityMetadata(title=workspace.name),
    )
    return APIResponse(
        message="Workspace created successfully",
        data=await workspace_service.enrich_workspace(session, workspace),
    )


@router.get("/{workspace_id}", response_model=APIResponse[WorkspaceRead])
async def get_workspace(
    access: WorkspaceAccess = Depends(require_workspace_role(WorkspaceRole.VIEWER.value)),
    session: AsyncSession = Depends(get_session),
):
    return APIResponse(data=await workspace_service.enrich_workspace(session, access.workspace))


@router.put("/{workspace_id}", response_model=APIResponse[WorkspaceRead])
async def update_workspace(
    body: WorkspaceUpdate,
    access: WorkspaceAccess = Depends(require_workspace_role(WorkspaceRole.ADMIN.value)),
    session: AsyncSession = Depends(get_session),
):
    workspace = access.workspace
    old = {"name": workspace.name, "settings": workspace.settings}
    await workspace_service.update_workspace(session, workspace, body)
    await activity_service.record(
        session,
        ActivityType.WORKSPACE_UPDATED,
        workspace.id,
        access.user.id,
        entity=WorkspaceRef(id=workspace.id),
        metadata=ActivityMetadata(
            title=workspace.name,
            old_value=old,
            new_value={"name": workspace.name, "settings": workspace.settings},
        ),
    )
    return APIResponse(
        message="Workspace updated successfully",
        data=await workspace_service.enrich_workspace(session, workspace),
    )


@router.delete("/{workspace_id}", response_model=APIResponse[None])
async def delete_workspace(
    access: WorkspaceAccess = Depends(require_workspace_role(WorkspaceRole.OWNER.value)),
    session: AsyncSession = Depends(get_session),
):
    await workspace_service.delete_workspace(session, access.workspace)
    return APIResponse(message="Workspace deleted successfully")


@router.get("/{workspace_id}/stats", response_model=APIResponse[WorkspaceStatsReport])
async def workspace_stats(
    access: WorkspaceAccess = Depends(require_workspace_role(WorkspaceRole.VIEWER.value)),
    session: AsyncSession = Depends(get_session),
):
    return APIResponse(data=await workspace_service.workspace_stats_report(session, access.workspace))


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------


@router.get("/{workspace_id}/members", response_model=APIResponse[list[MemberRead]])
async def list_members(
    access: WorkspaceAccess = Depends(require_workspace_role(WorkspaceRole.VIEWER.value)),
    session: AsyncSession = Depends(get_session),
):
    members = await workspace_service.list_members(session, access.workspace)
    return APIResponse(data=members, count=len(members))


@router.post("/{workspace_id}/members", response_model=APIResponse[list[MemberRead]])
async def add_member(
    body: MemberAdd,
    access: WorkspaceAccess = Depends(require_workspace_role(WorkspaceRole.ADMIN.value)),
    session: AsyncSession = Depends(get_session),
):
    """Invite an existing user by email."""
    invitee = await user_service.find_user_by_email(session, body.email)
    if invitee is None or not invitee.is_active:
        raise NotFoundError("User not found")

    workspace = access.workspace
    await workspace_service.add_member(
        session, workspace, invitee.id, body.role.value, invited_by=access.user.id
    )
    await activity_service.record(
        session,
        ActivityType.MEMBER_JOINED,
        workspace.id,
        access.user.id,
        entity=MemberRef(id=invitee.id),
        metadata=ActivityMetadata(title=invitee.name, additional_info={"role": body.role.value}),
    )
    return APIResponse(
        message="Member added successfully",
        data=await workspace_service.list_members(session, workspace),
    )


@router.put("/{workspace_id}/members/{user_id}", response_model=APIResponse[list[MemberRead]])
async def update_member_role(
    user_id: uuid.UUID,
    body: MemberRoleUpdate,
    access: WorkspaceAccess = Depends(require_workspace_role(WorkspaceRole.ADMIN.value)),
    session: AsyncSession = Depends(get_session),
):
    workspace = access.workspace
    current = await workspace_service.get_member_role(session, workspace, user_id)
    if _is_owner(workspace, user_id, current):
        raise DomainInvariantError("Cannot change owner role")

    await workspace_service.update_member_role(session, workspace, user_id, body.role.value)
    await activity_service.record(
        session,
        ActivityType.MEMBER_ROLE_CHANGED,
        workspace.id,
        access.user.id,
        entity=MemberRef(id=user_id),
        metadata=ActivityMetadata(old_value=current, new_value=body.role.value),
    )
    return APIResponse(
        message="Member role updated successfully",
        data=await workspace_service.list_members(session, workspace),
    )


@router.delete("/{workspace_id}/members/{user_id}", response_model=APIResponse[list[MemberRead]])
async def remove_member(
    user_id: uuid.UUID,
    access: WorkspaceAccess = Depends(require_workspace_role(WorkspaceRole.ADMIN.value)),
    session: AsyncSession = Depends(get_session),
):
    workspace = access.workspace
    current = await workspace_service.get_member_role(session, workspace, user_id)
    if _is_owner(workspace, user_id, current):
        raise DomainInvariantError("Cannot remove workspace owner")

    await workspace_service.remove_member(session, workspace, user_id)
    if current is not None:
        await activity_service.record(
            session,
            ActivityType.MEMBER_LEFT,
            workspace.id,
            access.user.id,
            entity=MemberRef(id=user_id),
            metadata=ActivityMetadata(old_value=current),
        )
    return APIResponse(
        message="Member removed successfully",
        data=await workspace_service.list_members(session, workspace),
    )
