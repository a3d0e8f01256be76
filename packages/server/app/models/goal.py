"""Goal model."""

import copy
import math
import uuid
from datetime import datetime
from typing import List, Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import JSONType, TimestampMixin, UUIDMixin, iso, utcnow


class Goal(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "goals"

    workspace_id: uuid.UUID = Field(foreign_key="workspaces.id", nullable=False, index=True)
    title: str = Field(nullable=False)
    description: Optional[str] = None
    target: float = Field(nullable=False)
    current: float = Field(default=0, nullable=False)
    unit: str = Field(default="tasks", nullable=False)  # tasks | days | members | projects | hours
    deadline: datetime = Field(nullable=False, sa_type=sa.DateTime(), index=True)
    status: str = Field(default="active", nullable=False, index=True)  # active | completed | overdue
    created_by: uuid.UUID = Field(foreign_key="users.id", nullable=False)
    contributors: List[dict] = Field(default_factory=list, sa_type=JSONType, nullable=False)
    # append-only
    progress_updates: List[dict] = Field(default_factory=list, sa_type=JSONType, nullable=False)
    is_active: bool = Field(default=True, nullable=False, index=True)

    @property
    def progress_percentage(self) -> float:
        return min(self.current / self.target * 100, 100)

    @property
    def days_remaining(self) -> int:
        return math.ceil((self.deadline - utcnow()).total_seconds() / 86400)

    def recompute_status(self) -> str:
        if self.current >= self.target:
            self.status = "completed"
        elif utcnow() > self.deadline:
            self.status = "overdue"
        else:
            self.status = "active"
        return self.status

    def update_progress(self, value: float, user_id: uuid.UUID, note: Optional[str] = None) -> dict:
        """Clamp ``value`` into [0, target], log it and recompute status."""
        self.current = max(0, min(value, self.target))
        update = {
            "user": str(user_id),
            "value": self.current,
            "note": note or "",
            "timestamp": iso(utcnow()),
        }
        self.progress_updates = [*copy.deepcopy(self.progress_updates), update]
        self.recompute_status()
        return update

    def add_contributor(self, user_id: uuid.UUID, role: str = "contributor") -> bool:
        if any(c["user"] == str(user_id) for c in self.contributors):
            return False
        self.contributors = [*copy.deepcopy(self.contributors), {"user": str(user_id), "role": role}]
        return True

    def remove_contributor(self, user_id: uuid.UUID) -> None:
        self.contributors = [
            copy.deepcopy(c) for c in self.contributors if c["user"] != str(user_id)
        ]
