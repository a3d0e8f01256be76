from enum import Enum
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel


class WorkspaceRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"
    VIEWER = "viewer"


# Total order used by permission checks. Anything missing ranks 0.
ROLE_RANK: dict[str, int] = {
    WorkspaceRole.OWNER.value: 4,
    WorkspaceRole.ADMIN.value: 3,
    WorkspaceRole.MEMBER.value: 2,
    WorkspaceRole.VIEWER.value: 1,
}

# Roles that can be handed out through the member-management endpoints
ASSIGNABLE_ROLES = (WorkspaceRole.ADMIN, WorkspaceRole.MEMBER, WorkspaceRole.VIEWER)


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in-progress"
    REVIEW = "review"
    DONE = "done"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class DependencyType(str, Enum):
    BLOCKS = "blocks"
    BLOCKED_BY = "blocked_by"
    RELATES_TO = "relates_to"


class Visibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"
    TEAM = "team"


class GoalUnit(str, Enum):
    TASKS = "tasks"
    DAYS = "days"
    MEMBERS = "members"
    PROJECTS = "projects"
    HOURS = "hours"


class GoalStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    OVERDUE = "overdue"


class ContributorRole(str, Enum):
    OWNER = "owner"
    CONTRIBUTOR = "contributor"
    VIEWER = "viewer"


class ActivityType(str, Enum):
    TASK_CREATED = "task_created"
    TASK_UPDATED = "task_updated"
    TASK_COMPLETED = "task_completed"
    TASK_DELETED = "task_deleted"
    COMMENT_ADDED = "comment_added"
    MEMBER_JOINED = "member_joined"
    MEMBER_LEFT = "member_left"
    MEMBER_ROLE_CHANGED = "member_role_changed"
    GOAL_CREATED = "goal_created"
    GOAL_UPDATED = "goal_updated"
    GOAL_COMPLETED = "goal_completed"
    WORKSPACE_CREATED = "workspace_created"
    WORKSPACE_UPDATED = "workspace_updated"


class EntityType(str, Enum):
    TASK = "task"
    COMMENT = "comment"
    MEMBER = "member"
    GOAL = "goal"
    WORKSPACE = "workspace"


class ErrorItem(BaseModel):
    field: str
    message: str
    type: Optional[str] = None


T = TypeVar("T")


class APIResponse(BaseModel, Generic[T]):
    """Envelope shared by every endpoint."""
    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None
    errors: Optional[List[ErrorItem]] = None
    count: Optional[int] = None
