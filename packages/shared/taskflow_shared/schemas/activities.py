"""
Activity feed schemas.

The entity an activity points at is a tagged union keyed on ``type``; the
server resolves each variant with its own lookup.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from .users import UserSummary


# ---------------------------------------------------------------------------
# Entity references
# ---------------------------------------------------------------------------

class TaskRef(BaseModel):
    type: Literal["task"] = "task"
    id: uuid.UUID


class GoalRef(BaseModel):
    type: Literal["goal"] = "goal"
    id: uuid.UUID


class WorkspaceRef(BaseModel):
    type: Literal["workspace"] = "workspace"
    id: uuid.UUID


class MemberRef(BaseModel):
    type: Literal["member"] = "member"
    id: uuid.UUID


class CommentRef(BaseModel):
    type: Literal["comment"] = "comment"
    id: uuid.UUID
    # comments live inside a task, so the parent is needed to find them
    task_id: Optional[uuid.UUID] = None


EntityRef = Annotated[
    Union[TaskRef, GoalRef, WorkspaceRef, MemberRef, CommentRef],
    Field(discriminator="type"),
]


class ActivityMetadata(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    old_value: Any = None
    new_value: Any = None
    additional_info: Any = None


# ---------------------------------------------------------------------------
# Requests / responses
# ---------------------------------------------------------------------------

class MentionAdd(BaseModel):
    user_id: uuid.UUID


class MentionRead(BaseModel):
    user: uuid.UUID
    notified: bool = False


class ReadReceipt(BaseModel):
    user: uuid.UUID
    read_at: datetime


class WorkspaceSummary(BaseModel):
    id: uuid.UUID
    name: str
    color: str
    icon: str


class ActivityRead(BaseModel):
    id: uuid.UUID
    workspace_id: uuid.UUID
    workspace: Optional[WorkspaceSummary] = None
    user: Optional[UserSummary] = None
    user_id: uuid.UUID
    type: str
    entity: Optional[EntityRef] = None
    # resolved view of the entity; None when it no longer exists
    entity_data: Optional[dict[str, Any]] = None
    metadata: ActivityMetadata = Field(default_factory=ActivityMetadata)
    message: str
    is_public: bool = True
    mentions: List[MentionRead] = Field(default_factory=list)
    read_by: List[ReadReceipt] = Field(default_factory=list)
    created_at: datetime


class TypeCount(BaseModel):
    type: str
    count: int


class UserCount(BaseModel):
    user: UserSummary
    count: int


class DayCount(BaseModel):
    date: str
    count: int


class ActivityStats(BaseModel):
    period_days: int
    activity_by_type: List[TypeCount]
    activity_by_user: List[UserCount]
    activity_by_day: List[DayCount]
