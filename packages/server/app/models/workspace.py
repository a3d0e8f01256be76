"""Workspace model and the membership join table."""

import uuid
from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from taskflow_shared.schemas.workspaces import WorkspaceSettings

from .base import JSONType, TimestampMixin, UUIDMixin, utcnow


def _default_settings() -> dict:
    return WorkspaceSettings().model_dump(mode="json")


class Workspace(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "workspaces"

    name: str = Field(nullable=False, index=True)
    description: Optional[str] = None
    color: str = Field(default="#3B82F6", nullable=False)
    icon: str = Field(default="📋", nullable=False)
    owner_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    settings: dict = Field(default_factory=_default_settings, sa_type=JSONType, nullable=False)
    # stats cache
    total_tasks: int = Field(default=0, nullable=False)
    completed_tasks: int = Field(default=0, nullable=False)
    total_members: int = Field(default=0, nullable=False)
    is_active: bool = Field(default=True, nullable=False, index=True)

    @property
    def completion_percentage(self) -> int:
        if not self.total_tasks:
            return 0
        return round(self.completed_tasks / self.total_tasks * 100)

    @property
    def default_task_status(self) -> str:
        return (self.settings or {}).get("default_task_status", "todo")


class WorkspaceMember(SQLModel, table=True):
    """One row per (workspace, user); the composite key keeps a user to a single membership."""

    __tablename__ = "workspace_members"

    workspace_id: uuid.UUID = Field(foreign_key="workspaces.id", primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", primary_key=True, index=True)
    role: str = Field(nullable=False, default="member")  # owner | admin | member | viewer
    joined_at: datetime = Field(default_factory=utcnow, nullable=False, sa_type=sa.DateTime())
    invited_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
