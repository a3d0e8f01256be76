"""Goal tracker schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, UUID4

from .common import ContributorRole, GoalStatus, GoalUnit


class GoalCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    target: float = Field(..., ge=1)
    current: float = Field(default=0, ge=0)
    unit: GoalUnit = GoalUnit.TASKS
    deadline: datetime


class GoalUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    target: Optional[float] = Field(default=None, ge=1)
    unit: Optional[GoalUnit] = None
    deadline: Optional[datetime] = None


class GoalProgressUpdate(BaseModel):
    value: float
    note: Optional[str] = Field(default=None, max_length=500)


class ContributorAdd(BaseModel):
    user_id: UUID4
    role: ContributorRole = ContributorRole.CONTRIBUTOR


class ContributorRead(BaseModel):
    user: uuid.UUID
    role: ContributorRole


class ProgressUpdateRead(BaseModel):
    user: uuid.UUID
    value: float
    note: Optional[str] = None
    timestamp: datetime


class GoalRead(BaseModel):
    id: uuid.UUID
    workspace_id: uuid.UUID
    title: str
    description: Optional[str] = None
    target: float
    current: float
    unit: GoalUnit
    deadline: datetime
    status: GoalStatus
    created_by: uuid.UUID
    contributors: List[ContributorRead] = Field(default_factory=list)
    progress_updates: List[ProgressUpdateRead] = Field(default_factory=list)
    is_active: bool
    progress_percentage: float
    days_remaining: int
    created_at: datetime
    updated_at: datetime


class GoalStats(BaseModel):
    total_goals: int = 0
    completed_goals: int = 0
    active_goals: int = 0
    overdue_goals: int = 0
    average_progress: float = 0
