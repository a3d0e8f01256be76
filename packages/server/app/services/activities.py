"""
Activity trail: recording domain events and reading the feed back.

Entity references are a tagged union; every variant has its own resolver.
A failed resolution never fails the feed, the entity data is just left empty.
"""

from __future__ import annotations

import uuid
from collections import Counter
from datetime import timedelta
from typing import Any, Awaitable, Callable, Optional, Union

import structlog
from pydantic import TypeAdapter
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import NotFoundError
from app.models.activity import Activity
from app.models.base import utcnow
from app.models.goal import Goal
from app.models.task import Task
from app.models.user import User
from app.models.workspace import Workspace
from taskflow_shared.schemas.activities import (
    ActivityMetadata,
    ActivityRead,
    ActivityStats,
    CommentRef,
    DayCount,
    EntityRef,
    GoalRef,
    MemberRef,
    TaskRef,
    TypeCount,
    UserCount,
    WorkspaceRef,
    WorkspaceSummary,
)
from taskflow_shared.schemas.common import ActivityType
from taskflow_shared.schemas.users import UserSummary

log = structlog.get_logger()

MESSAGES: dict[str, str] = {
    ActivityType.TASK_CREATED.value: "created a new task",
    ActivityType.TASK_UPDATED.value: "updated a task",
    ActivityType.TASK_COMPLETED.value: "completed a task",
    ActivityType.TASK_DELETED.value: "deleted a task",
    ActivityType.COMMENT_ADDED.value: "added a comment",
    ActivityType.MEMBER_JOINED.value: "joined the workspace",
    ActivityType.MEMBER_LEFT.value: "left the workspace",
    ActivityType.MEMBER_ROLE_CHANGED.value: "changed member role",
    ActivityType.GOAL_CREATED.value: "created a new goal",
    ActivityType.GOAL_UPDATED.value: "updated a goal",
    ActivityType.GOAL_COMPLETED.value: "completed a goal",
    ActivityType.WORKSPACE_CREATED.value: "created a new workspace",
    ActivityType.WORKSPACE_UPDATED.value: "updated workspace settings",
}
FALLBACK_MESSAGE = "performed an action"

_entity_adapter: TypeAdapter = TypeAdapter(EntityRef)


def default_message(activity_type: Union[ActivityType, str]) -> str:
    return MESSAGES.get(getattr(activity_type, "value", activity_type), FALLBACK_MESSAGE)


# ---------------------------------------------------------------------------
# Recording
# ---------------------------------------------------------------------------


async def record(
    session: AsyncSession,
    activity_type: Union[ActivityType, str],
    workspace_id: uuid.UUID,
    user_id: uuid.UUID,
    entity: Optional[EntityRef] = None,
    metadata: Optional[ActivityMetadata] = None,
    message: Optional[str] = None,
    *,
    is_public: bool = True,
    mentions: Optional[list[uuid.UUID]] = None,
) -> Activity:
    activity = Activity(
        workspace_id=workspace_id,
        user_id=user_id,
        type=getattr(activity_type, "value", activity_type),
        entity=entity.model_dump(mode="json") if entity is not None else None,
        meta=(metadata or ActivityMetadata()).model_dump(mode="json"),
        message=message or default_message(activity_type),
        is_public=is_public,
        mentions=[{"user": str(m), "notified": False} for m in (mentions or [])],
    )
    session.add(activity)
    await session.flush()

    log.debug("activity.recorded", activity_id=str(activity.id), type=activity.type)
    return activity


# ---------------------------------------------------------------------------
# Entity resolution
# ---------------------------------------------------------------------------


async def _resolve_task(session: AsyncSession, ref: TaskRef) -> Optional[dict]:
    task = await session.get(Task, ref.id)
    if task is None:
        return None
    return {"id": str(task.id), "title": task.title, "status": task.status, "priority": task.priority}


async def _resolve_goal(session: AsyncSession, ref: GoalRef) -> Optional[dict]:
    goal = await session.get(Goal, ref.id)
    if goal is None:
        return None
    return {"id": str(goal.id), "title": goal.title, "status": goal.status}


async def _resolve_workspace(session: AsyncSession, ref: WorkspaceRef) -> Optional[dict]:
    workspace = await session.get(Workspace, ref.id)
    if workspace is None:
        return None
    return {"id": str(workspace.id), "name": workspace.name, "color": workspace.color, "icon": workspace.icon}


async def _resolve_member(session: AsyncSession, ref: MemberRef) -> Optional[dict]:
    user = await session.get(User, ref.id)
    if user is None:
        return None
    return UserSummary.model_validate(user).model_dump(mode="json")


async def _resolve_comment(session: AsyncSession, ref: CommentRef) -> Optional[dict]:
    if ref.task_id is None:
        return None
    task = await session.get(Task, ref.task_id)
    if task is None:
        return None
    comment = task.get_comment(ref.id)
    if comment is None:
        return None
    return {"id": comment["id"], "task_id": str(task.id), "content": comment["content"]}


_RESOLVERS: dict[str, Callable[[AsyncSession, Any], Awaitable[Optional[dict]]]] = {
    "task": _resolve_task,
    "goal": _resolve_goal,
    "workspace": _resolve_workspace,
    "member": _resolve_member,
    "comment": _resolve_comment,
}


async def resolve_entity(session: AsyncSession, activity: Activity) -> tuple[Optional[EntityRef], Optional[dict]]:
    """Parse and resolve the activity's entity. Failures are logged, not raised."""
    if not activity.entity:
        return None, None
    try:
        ref = _entity_adapter.validate_python(activity.entity)
        return ref, await _RESOLVERS[ref.type](session, ref)
    except Exception as exc:
        log.warning(
            "activity.entity_resolve_failed",
            activity_id=str(activity.id),
            entity=activity.entity,
            error=str(exc),
        )
        return None, None


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def _to_read(
    session: AsyncSession,
    activity: Activity,
    user: Optional[User] = None,
    workspace: Optional[Workspace] = None,
) -> ActivityRead:
    ref, entity_data = await resolve_entity(session, activity)
    return ActivityRead(
        id=activity.id,
        workspace_id=activity.workspace_id,
        workspace=WorkspaceSummary(
            id=workspace.id, name=workspace.name, color=workspace.color, icon=workspace.icon
        ) if workspace is not None else None,
        user=UserSummary.model_validate(user) if user is not None else None,
        user_id=activity.user_id,
        type=activity.type,
        entity=ref,
        entity_data=entity_data,
        metadata=ActivityMetadata.model_validate(activity.meta or {}),
        message=activity.message,
        is_public=activity.is_public,
        mentions=activity.mentions,
        read_by=activity.read_by,
        created_at=activity.created_at,
    )


async def find_by_workspace(
    session: AsyncSession,
    workspace_id: uuid.UUID,
    *,
    limit: int = 50,
    offset: int = 0,
    activity_type: Optional[str] = None,
    user_id: Optional[uuid.UUID] = None,
) -> list[ActivityRead]:
    """Public activities of a workspace, newest first."""
    stmt = (
        select(Activity, User)
        .join(User, User.id == Activity.user_id)
        .where(Activity.workspace_id == workspace_id, Activity.is_public == True)  # noqa: E712
    )
    if activity_type:
        stmt = stmt.where(Activity.type == activity_type)
    if user_id:
        stmt = stmt.where(Activity.user_id == user_id)
    stmt = stmt.order_by(Activity.created_at.desc()).offset(offset).limit(limit)

    result = await session.execute(stmt)
    return [await _to_read(session, activity, user=user) for activity, user in result.all()]


async def get_user_activity(
    session: AsyncSession, user_id: uuid.UUID, *, limit: int = 20, offset: int = 0
) -> list[ActivityRead]:
    """The user's own activities across workspaces, newest first."""
    result = await session.execute(
        select(Activity, Workspace)
        .join(Workspace, Workspace.id == Activity.workspace_id)
        .where(Activity.user_id == user_id)
        .order_by(Activity.created_at.desc())
        .offset(offset)
        .limit(limit)
    )
    return [
        await _to_read(session, activity, workspace=workspace)
        for activity, workspace in result.all()
    ]


async def get_activity_or_404(session: AsyncSession, activity_id: uuid.UUID) -> Activity:
    activity = await session.get(Activity, activity_id)
    if activity is None:
        raise NotFoundError("Activity not found")
    return activity


async def mark_as_read(session: AsyncSession, activity: Activity, user_id: uuid.UUID) -> Activity:
    """Append a read receipt once per user."""
    if activity.mark_read(user_id):
        session.add(activity)
        await session.flush()
    return activity


async def add_mention(session: AsyncSession, activity: Activity, user_id: uuid.UUID) -> Activity:
    """Append a mention once per user."""
    if activity.add_mention(user_id):
        session.add(activity)
        await session.flush()
    return activity


async def activity_stats(
    session: AsyncSession, workspace_id: uuid.UUID, period_days: int = 7
) -> ActivityStats:
    since = utcnow() - timedelta(days=period_days)
    scope = (Activity.workspace_id == workspace_id, Activity.created_at >= since)

    by_type = await session.execute(
        select(Activity.type, func.count())
        .where(*scope)
        .group_by(Activity.type)
        .order_by(func.count().desc())
    )

    by_user = await session.execute(
        select(User, func.count(Activity.id))
        .join(Activity, Activity.user_id == User.id)
        .where(*scope)
        .group_by(User.id)
        .order_by(func.count(Activity.id).desc())
        .limit(10)
    )

    created = await session.execute(select(Activity.created_at).where(*scope))
    per_day = Counter(ts.date().isoformat() for ts in created.scalars().all())

    return ActivityStats(
        period_days=period_days,
        activity_by_type=[TypeCount(type=t, count=c) for t, c in by_type.all()],
        activity_by_user=[
            UserCount(user=UserSummary.model_validate(user), count=c) for user, c in by_user.all()
        ],
        activity_by_day=[DayCount(date=day, count=per_day[day]) for day in sorted(per_day)],
    )
