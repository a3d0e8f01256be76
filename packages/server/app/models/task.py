"""Task model.

Comments, subtasks, attachments, dependencies and watchers are embedded in
JSON columns and only change through the methods below. Each method builds a
fresh copy of the column and reassigns it so the change is flushed.
"""

import copy
import uuid
from datetime import datetime
from typing import Any, List, Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from app.core.errors import AuthorizationError, DuplicateError, NotFoundError, ValidationError

from .base import JSONType, TimestampMixin, UUIDMixin, iso, utcnow

DONE = "done"


class Task(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "tasks"
    __table_args__ = (sa.Index("ix_tasks_workspace_status", "workspace_id", "status"),)

    workspace_id: uuid.UUID = Field(foreign_key="workspaces.id", nullable=False, index=True)
    title: str = Field(nullable=False)
    description: Optional[str] = None
    status: str = Field(nullable=False, default="todo")  # todo | in-progress | review | done
    priority: str = Field(nullable=False, default="medium")  # low | medium | high | urgent
    assignee_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id", index=True)
    reporter_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    due_date: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(), index=True)
    start_date: Optional[datetime] = Field(default=None, sa_type=sa.DateTime())
    completed_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime())
    estimated_hours: Optional[float] = None
    actual_hours: Optional[float] = None
    tags: List[str] = Field(default_factory=list, sa_type=JSONType, nullable=False)
    labels: List[dict] = Field(default_factory=list, sa_type=JSONType, nullable=False)
    attachments: List[dict] = Field(default_factory=list, sa_type=JSONType, nullable=False)
    comments: List[dict] = Field(default_factory=list, sa_type=JSONType, nullable=False)
    subtasks: List[dict] = Field(default_factory=list, sa_type=JSONType, nullable=False)
    dependencies: List[dict] = Field(default_factory=list, sa_type=JSONType, nullable=False)
    watchers: List[str] = Field(default_factory=list, sa_type=JSONType, nullable=False)
    is_archived: bool = Field(default=False, nullable=False, index=True)
    position: int = Field(default=0, nullable=False)
    custom_fields: dict = Field(default_factory=dict, sa_type=JSONType, nullable=False)

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def progress(self) -> int:
        if not self.subtasks:
            return 100 if self.status == DONE else 0
        completed = sum(1 for subtask in self.subtasks if subtask.get("is_completed"))
        return round(completed / len(self.subtasks) * 100)

    @property
    def is_overdue(self) -> bool:
        if self.due_date is None or self.status == DONE:
            return False
        return utcnow() > self.due_date

    @property
    def time_remaining(self) -> Optional[str]:
        if self.due_date is None:
            return None
        diff = self.due_date - utcnow()
        if diff.total_seconds() <= 0:
            return "Overdue"
        days = diff.days
        hours = diff.seconds // 3600
        if days > 0:
            return f"{days}d {hours}h remaining"
        return f"{hours}h remaining"

    # ------------------------------------------------------------------
    # Status pipeline
    # ------------------------------------------------------------------

    def set_status(self, status: str) -> bool:
        """Move to ``status``. Returns True only on the first transition into done.

        ``completed_at`` is stamped once and survives leaving done.
        """
        self.status = status
        if status == DONE and self.completed_at is None:
            self.completed_at = utcnow()
            return True
        return False

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def add_comment(self, user_id: uuid.UUID, content: str, mentions: Optional[list] = None) -> dict:
        comment = {
            "id": str(uuid.uuid4()),
            "user": str(user_id),
            "content": content,
            "mentions": [str(m) for m in (mentions or [])],
            "is_edited": False,
            "edited_at": None,
            "created_at": iso(utcnow()),
        }
        self.comments = [*copy.deepcopy(self.comments), comment]
        return comment

    def get_comment(self, comment_id: uuid.UUID) -> Optional[dict]:
        for comment in self.comments:
            if comment["id"] == str(comment_id):
                return comment
        return None

    def edit_comment(self, comment_id: uuid.UUID, user_id: uuid.UUID, content: str) -> dict:
        comments = copy.deepcopy(self.comments)
        for comment in comments:
            if comment["id"] != str(comment_id):
                continue
            if comment["user"] != str(user_id):
                raise AuthorizationError("Not authorized to edit this comment")
            comment["content"] = content
            comment["is_edited"] = True
            comment["edited_at"] = iso(utcnow())
            self.comments = comments
            return comment
        raise NotFoundError("Comment not found")

    # ------------------------------------------------------------------
    # Subtasks
    # ------------------------------------------------------------------

    def add_subtask(self, title: str) -> dict:
        subtask = {
            "id": str(uuid.uuid4()),
            "title": title,
            "is_completed": False,
            "completed_at": None,
            "completed_by": None,
        }
        self.subtasks = [*copy.deepcopy(self.subtasks), subtask]
        return subtask

    def complete_subtask(self, index: int, user_id: uuid.UUID) -> dict:
        if index < 0 or index >= len(self.subtasks):
            raise ValidationError("Invalid subtask index")
        subtasks = copy.deepcopy(self.subtasks)
        subtask = subtasks[index]
        subtask["is_completed"] = True
        subtask["completed_at"] = iso(utcnow())
        subtask["completed_by"] = str(user_id)
        self.subtasks = subtasks
        return subtask

    # ------------------------------------------------------------------
    # Watchers
    # ------------------------------------------------------------------

    def add_watcher(self, user_id: uuid.UUID) -> None:
        if str(user_id) not in self.watchers:
            self.watchers = [*self.watchers, str(user_id)]

    def remove_watcher(self, user_id: uuid.UUID) -> None:
        self.watchers = [w for w in self.watchers if w != str(user_id)]

    # ------------------------------------------------------------------
    # Attachments
    # ------------------------------------------------------------------

    def add_attachment(self, data: dict[str, Any], uploaded_by: uuid.UUID) -> dict:
        attachment = {
            "id": str(uuid.uuid4()),
            **data,
            "uploaded_by": str(uploaded_by),
            "uploaded_at": iso(utcnow()),
        }
        self.attachments = [*copy.deepcopy(self.attachments), attachment]
        return attachment

    # ------------------------------------------------------------------
    # Dependencies
    # ------------------------------------------------------------------

    def add_dependency(self, other: "Task", dep_type: str) -> dict:
        if other.id == self.id:
            raise ValidationError("A task cannot depend on itself")
        if other.workspace_id != self.workspace_id:
            raise ValidationError("Dependent task must belong to the same workspace")
        if any(dep["task"] == str(other.id) for dep in self.dependencies):
            raise DuplicateError("Dependency already exists")
        dependency = {"task": str(other.id), "type": dep_type}
        self.dependencies = [*copy.deepcopy(self.dependencies), dependency]
        return dependency

    def remove_dependency(self, task_id: uuid.UUID) -> None:
        remaining = [dep for dep in self.dependencies if dep["task"] != str(task_id)]
        if len(remaining) == len(self.dependencies):
            raise NotFoundError("Dependency not found")
        self.dependencies = copy.deepcopy(remaining)
