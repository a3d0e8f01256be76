"""Activity model (append-only audit record)."""

import copy
import uuid
from datetime import datetime
from typing import List, Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import JSONType, UUIDMixin, iso, utcnow


class Activity(UUIDMixin, SQLModel, table=True):
    __tablename__ = "activities"
    __table_args__ = (sa.Index("ix_activities_workspace_created", "workspace_id", "created_at"),)

    workspace_id: uuid.UUID = Field(foreign_key="workspaces.id", nullable=False, index=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    type: str = Field(nullable=False, index=True)
    # {"type": "task" | "goal" | ..., "id": "...", ...}; see EntityRef
    entity: Optional[dict] = Field(default=None, sa_type=JSONType)
    # "metadata" is reserved on declarative classes
    meta: dict = Field(default_factory=dict, sa_type=JSONType, nullable=False)
    message: str = Field(nullable=False)
    is_public: bool = Field(default=True, nullable=False)
    mentions: List[dict] = Field(default_factory=list, sa_type=JSONType, nullable=False)
    read_by: List[dict] = Field(default_factory=list, sa_type=JSONType, nullable=False)
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        index=True,
        sa_column_kwargs={"server_default": sa.func.now()},
        sa_type=sa.DateTime(),
    )

    def mark_read(self, user_id: uuid.UUID) -> bool:
        if any(r["user"] == str(user_id) for r in self.read_by):
            return False
        self.read_by = [*copy.deepcopy(self.read_by), {"user": str(user_id), "read_at": iso(utcnow())}]
        return True

    def add_mention(self, user_id: uuid.UUID) -> bool:
        if any(m["user"] == str(user_id) for m in self.mentions):
            return False
        self.mentions = [*copy.deepcopy(self.mentions), {"user": str(user_id), "notified": False}]
        return True
