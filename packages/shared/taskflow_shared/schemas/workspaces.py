"""
Workspace and membership schemas.

Covers: workspace CRUD request/response, WorkspaceSettings, membership
management and the stats report.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from .common import ASSIGNABLE_ROLES, TaskPriority, TaskStatus, Visibility, WorkspaceRole
from .users import UserSummary

HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

class TaskLabel(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    color: str = Field(default="#6B7280", pattern=HEX_COLOR)


class WorkspaceSettings(BaseModel):
    """Workspace-level settings. All fields optional with defaults."""

    visibility: Visibility = Visibility.PRIVATE
    allow_guest_access: bool = False
    default_task_status: TaskStatus = TaskStatus.TODO
    task_labels: list[TaskLabel] = Field(default_factory=list)
    task_priorities: list[TaskPriority] = Field(
        default=[TaskPriority.LOW, TaskPriority.MEDIUM, TaskPriority.HIGH, TaskPriority.URGENT],
    )


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class WorkspaceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    color: str = Field(default="#3B82F6", pattern=HEX_COLOR)
    icon: str = Field(default="📋", max_length=10)
    settings: WorkspaceSettings = Field(default_factory=WorkspaceSettings)


class WorkspaceUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR)
    icon: Optional[str] = Field(default=None, max_length=10)
    settings: Optional[dict] = Field(
        default=None,
        description="Partial settings update (deep-merged into the current settings)",
    )


def _assignable(role: WorkspaceRole) -> WorkspaceRole:
    if role not in ASSIGNABLE_ROLES:
        raise ValueError("Role must be admin, member, or viewer")
    return role


class MemberAdd(BaseModel):
    """Invite an existing user to the workspace by email."""
    email: EmailStr
    role: WorkspaceRole = WorkspaceRole.MEMBER

    @field_validator("role")
    @classmethod
    def role_is_assignable(cls, value: WorkspaceRole) -> WorkspaceRole:
        return _assignable(value)


class MemberRoleUpdate(BaseModel):
    role: WorkspaceRole

    @field_validator("role")
    @classmethod
    def role_is_assignable(cls, value: WorkspaceRole) -> WorkspaceRole:
        return _assignable(value)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class MemberRead(BaseModel):
    user: UserSummary
    role: WorkspaceRole
    joined_at: datetime
    invited_by: Optional[uuid.UUID] = None


class WorkspaceStats(BaseModel):
    total_tasks: int = 0
    completed_tasks: int = 0
    total_members: int = 0


class WorkspaceRead(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    color: str
    icon: str
    owner: UserSummary
    members: List[MemberRead] = Field(default_factory=list)
    settings: WorkspaceSettings
    stats: WorkspaceStats
    completion_percentage: int
    is_active: bool
    created_at: datetime
    updated_at: datetime


class StatusCount(BaseModel):
    status: TaskStatus
    count: int


class RecentTask(BaseModel):
    id: uuid.UUID
    title: str
    status: TaskStatus
    assignee_id: Optional[uuid.UUID] = None
    updated_at: datetime


class WorkspaceStatsReport(BaseModel):
    task_stats: List[StatusCount]
    overdue_tasks: int
    completion_rate: int
    recent_activity: List[RecentTask]


class UserWorkspace(BaseModel):
    """A workspace as seen from one member's side."""
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    color: str
    icon: str
    role: WorkspaceRole
    completion_percentage: int
    stats: WorkspaceStats
