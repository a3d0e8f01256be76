"""Task-related Pydantic schemas for shared use across server and frontend codegen."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field, UUID4, field_validator

from .common import DependencyType, TaskPriority, TaskStatus
from .workspaces import TaskLabel


def _normalize_tags(tags: Optional[List[str]]) -> Optional[List[str]]:
    """Strip, drop empties and de-duplicate while keeping order."""
    if tags is None:
        return None
    seen: list[str] = []
    for tag in tags:
        tag = tag.strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


def _strip_title(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if not value:
        raise ValueError("Task title must be between 1 and 200 characters")
    return value


# ---------------------------------------------------------------------------
# Embedded children
# ---------------------------------------------------------------------------

class AttachmentCreate(BaseModel):
    filename: str = Field(..., min_length=1)
    original_name: str = Field(..., min_length=1)
    path: str = Field(..., min_length=1)
    size: int = Field(..., ge=0)
    mime_type: str = Field(..., min_length=1)


class AttachmentRead(AttachmentCreate):
    id: uuid.UUID
    uploaded_by: uuid.UUID
    uploaded_at: datetime


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=1000)
    mentions: List[UUID4] = Field(default_factory=list)

    @field_validator("content")
    @classmethod
    def strip_content(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Comment content must be between 1 and 1000 characters")
        return value


class CommentUpdate(CommentCreate):
    pass


class CommentRead(BaseModel):
    id: uuid.UUID
    user: uuid.UUID
    content: str
    mentions: List[uuid.UUID] = Field(default_factory=list)
    is_edited: bool = False
    edited_at: Optional[datetime] = None
    created_at: datetime


class SubtaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)


class SubtaskRead(BaseModel):
    id: uuid.UUID
    title: str
    is_completed: bool = False
    completed_at: Optional[datetime] = None
    completed_by: Optional[uuid.UUID] = None


class DependencyAdd(BaseModel):
    """Request body for POST /tasks/{taskId}/dependencies."""
    task_id: UUID4
    type: DependencyType = DependencyType.BLOCKS


class DependencyRead(BaseModel):
    task: uuid.UUID
    type: DependencyType


# ---------------------------------------------------------------------------
# Task CRUD
# ---------------------------------------------------------------------------

class TaskBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    priority: TaskPriority = TaskPriority.MEDIUM
    assignee_id: Optional[UUID4] = None
    due_date: Optional[datetime] = None
    start_date: Optional[datetime] = None
    estimated_hours: Optional[float] = Field(default=None, ge=0)
    tags: List[str] = Field(default_factory=list)
    labels: List[TaskLabel] = Field(default_factory=list)
    custom_fields: dict[str, Any] = Field(default_factory=dict)

    @field_validator("title")
    @classmethod
    def strip_title(cls, value: str) -> str:
        return _strip_title(value)

    @field_validator("tags")
    @classmethod
    def unique_tags(cls, value: List[str]) -> List[str]:
        return _normalize_tags(value)


class TaskCreate(TaskBase):
    # None means "use the workspace's default_task_status"
    status: Optional[TaskStatus] = None


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    assignee_id: Optional[UUID4] = None
    due_date: Optional[datetime] = None
    start_date: Optional[datetime] = None
    estimated_hours: Optional[float] = Field(default=None, ge=0)
    actual_hours: Optional[float] = Field(default=None, ge=0)
    tags: Optional[List[str]] = None
    labels: Optional[List[TaskLabel]] = None
    custom_fields: Optional[dict[str, Any]] = None

    @field_validator("title")
    @classmethod
    def strip_title(cls, value: Optional[str]) -> Optional[str]:
        return _strip_title(value)

    @field_validator("tags")
    @classmethod
    def unique_tags(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        return _normalize_tags(value)


class TaskRead(BaseModel):
    id: uuid.UUID
    workspace_id: uuid.UUID
    title: str
    description: Optional[str] = None
    status: TaskStatus
    priority: TaskPriority
    assignee_id: Optional[uuid.UUID] = None
    reporter_id: uuid.UUID
    due_date: Optional[datetime] = None
    start_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    estimated_hours: Optional[float] = None
    actual_hours: Optional[float] = None
    tags: List[str] = Field(default_factory=list)
    labels: List[TaskLabel] = Field(default_factory=list)
    attachments: List[AttachmentRead] = Field(default_factory=list)
    comments: List[CommentRead] = Field(default_factory=list)
    subtasks: List[SubtaskRead] = Field(default_factory=list)
    dependencies: List[DependencyRead] = Field(default_factory=list)
    watchers: List[uuid.UUID] = Field(default_factory=list)
    is_archived: bool = False
    position: int
    custom_fields: dict[str, Any] = Field(default_factory=dict)
    progress: int
    is_overdue: bool
    time_remaining: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Reorder
# ---------------------------------------------------------------------------

class TaskReorderItem(BaseModel):
    id: UUID4
    status: TaskStatus
    position: int = Field(..., ge=0)


class TaskReorderRequest(BaseModel):
    """Request body for PUT /workspaces/{id}/tasks/reorder (kanban drag and drop)."""
    tasks: List[TaskReorderItem]


# ---------------------------------------------------------------------------
# The caller's recent work
# ---------------------------------------------------------------------------

class RecentComment(BaseModel):
    task_id: uuid.UUID
    task_title: str
    workspace_id: uuid.UUID
    comment: CommentRead


class UserActivity(BaseModel):
    """Response for GET /users/activity."""
    recent_tasks: List[TaskRead] = Field(default_factory=list)
    recent_comments: List[RecentComment] = Field(default_factory=list)
