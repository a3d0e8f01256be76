"""
User service: registration, credentials, profile, preferences and stats.
"""

from __future__ import annotations

import uuid
from datetime import timedelta
from typing import Optional

import structlog
from sqlalchemy import func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import (
    generate_reset_token,
    get_user_by_email,
    hash_password,
    hash_reset_token,
    verify_password,
)
from app.core.config import get_settings
from app.core.errors import AuthenticationError, DuplicateError, NotFoundError, ValidationError
from app.models.base import utcnow
from app.models.task import Task
from app.models.user import User
from app.models.workspace import Workspace, WorkspaceMember
from app.services.tasks import enrich_tasks
from app.services.workspaces import deep_merge
from taskflow_shared.schemas.common import TaskStatus
from taskflow_shared.schemas.tasks import RecentComment, UserActivity
from taskflow_shared.schemas.users import (
    PreferencesUpdate,
    ProfileUpdate,
    RegisterRequest,
    UserPreferences,
    UserProfile,
    UserStats,
)

log = structlog.get_logger()


def to_profile(user: User) -> UserProfile:
    return UserProfile(
        id=user.id,
        name=user.name,
        email=user.email,
        avatar=user.avatar,
        role=user.role,
        is_active=user.is_active,
        preferences=UserPreferences.model_validate(user.preferences or {}),
        last_login=user.last_login,
        created_at=user.created_at,
    )


async def get_user_or_404(session: AsyncSession, user_id: uuid.UUID) -> User:
    user = await session.get(User, user_id)
    if user is None or not user.is_active:
        raise NotFoundError("User not found")
    return user


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


async def register_user(session: AsyncSession, req: RegisterRequest) -> User:
    email = req.email.lower()
    if await get_user_by_email(email, session) is not None:
        raise DuplicateError("User with this email already exists")

    user = User(
        name=req.name.strip(),
        email=email,
        password_hash=hash_password(req.password),
        last_login=utcnow(),
    )
    session.add(user)
    await session.flush()

    log.info("user.registered", user_id=str(user.id), email=email)
    return user


async def authenticate(session: AsyncSession, email: str, password: str) -> User:
    user = await get_user_by_email(email, session)
    if user is None or not verify_password(password, user.password_hash):
        log.warning("auth.login_failure", email=email.lower(), reason="bad_credentials")
        raise AuthenticationError("Invalid credentials")
    if not user.is_active:
        log.warning("auth.login_failure", email=email.lower(), reason="inactive")
        raise AuthenticationError("Account is deactivated")

    user.last_login = utcnow()
    session.add(user)
    await session.flush()

    log.info("auth.login_success", user_id=str(user.id))
    return user


async def change_password(
    session: AsyncSession, user: User, current_password: str, new_password: str
) -> None:
    if not verify_password(current_password, user.password_hash):
        raise AuthenticationError("Current password is incorrect")
    user.password_hash = hash_password(new_password)
    user.updated_at = utcnow()
    session.add(user)
    await session.flush()
    log.info("auth.password_changed", user_id=str(user.id))


async def start_password_reset(session: AsyncSession, email: str) -> str:
    """Store a reset token digest and return the raw token for delivery."""
    user = await get_user_by_email(email, session)
    if user is None:
        raise NotFoundError("User not found")

    raw, digest = generate_reset_token()
    user.reset_password_token = digest
    user.reset_password_expire = utcnow() + timedelta(
        minutes=get_settings().password_reset_expire_minutes
    )
    session.add(user)
    await session.flush()

    log.info("auth.password_reset_requested", user_id=str(user.id))
    return raw


async def complete_password_reset(session: AsyncSession, raw_token: str, new_password: str) -> User:
    result = await session.execute(
        select(User).where(
            User.reset_password_token == hash_reset_token(raw_token),
            User.reset_password_expire > utcnow(),
        )
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise ValidationError("Invalid or expired reset token")

    user.password_hash = hash_password(new_password)
    user.reset_password_token = None
    user.reset_password_expire = None
    user.updated_at = utcnow()
    session.add(user)
    await session.flush()

    log.info("auth.password_reset_completed", user_id=str(user.id))
    return user


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


async def update_profile(session: AsyncSession, user: User, req: ProfileUpdate) -> User:
    if req.name is not None:
        user.name = req.name.strip()
    if req.avatar is not None:
        user.avatar = req.avatar
    user.updated_at = utcnow()
    session.add(user)
    await session.flush()
    return user


async def update_preferences(session: AsyncSession, user: User, req: PreferencesUpdate) -> User:
    patch = req.model_dump(exclude_none=True, mode="json")
    merged = deep_merge(user.preferences or {}, patch)
    user.preferences = UserPreferences.model_validate(merged).model_dump(mode="json")
    user.updated_at = utcnow()
    session.add(user)
    await session.flush()
    return user


async def search_users(
    session: AsyncSession, query: str, exclude_user_id: uuid.UUID, limit: int = 10
) -> list[User]:
    pattern = f"%{query.lower()}%"
    result = await session.execute(
        select(User)
        .where(
            or_(func.lower(User.name).like(pattern), func.lower(User.email).like(pattern)),
            User.id != exclude_user_id,
            User.is_active == True,  # noqa: E712
        )
        .order_by(User.name.asc())
        .limit(limit)
    )
    return list(result.scalars().all())


def _rate(part: int, total: int) -> int:
    return round(part / total * 100) if total else 0


async def user_stats(session: AsyncSession, user: User) -> UserStats:
    assigned = await session.execute(
        select(Task).where(Task.assignee_id == user.id, Task.is_archived == False)  # noqa: E712
    )
    assigned_tasks = list(assigned.scalars().all())
    created = await session.execute(
        select(Task).where(Task.reporter_id == user.id, Task.is_archived == False)  # noqa: E712
    )
    created_tasks = list(created.scalars().all())
    workspaces = await session.execute(
        select(func.count())
        .select_from(WorkspaceMember)
        .join(Workspace, Workspace.id == WorkspaceMember.workspace_id)
        .where(WorkspaceMember.user_id == user.id, Workspace.is_active == True)  # noqa: E712
    )

    completed_assigned = sum(1 for t in assigned_tasks if t.status == TaskStatus.DONE.value)
    completed_created = sum(1 for t in created_tasks if t.status == TaskStatus.DONE.value)
    return UserStats(
        total_assigned=len(assigned_tasks),
        completed_assigned=completed_assigned,
        overdue_assigned=sum(1 for t in assigned_tasks if t.is_overdue),
        total_created=len(created_tasks),
        completed_created=completed_created,
        workspaces_count=workspaces.scalar_one(),
        assigned_completion_rate=_rate(completed_assigned, len(assigned_tasks)),
        created_completion_rate=_rate(completed_created, len(created_tasks)),
    )


async def user_activity(session: AsyncSession, user: User, limit: int = 20) -> UserActivity:
    """The caller's recently touched tasks and their own latest comments.

    Only non-archived tasks in active workspaces count. Comments are embedded on
    the task, so they are unwound and filtered here rather than in SQL.
    """
    live = (Task.is_archived == False, Workspace.is_active == True)  # noqa: E712
    recent = await session.execute(
        select(Task)
        .join(Workspace, Workspace.id == Task.workspace_id)
        .where(or_(Task.assignee_id == user.id, Task.reporter_id == user.id), *live)
        .order_by(Task.updated_at.desc())
        .limit(limit)
    )

    member_tasks = await session.execute(
        select(Task)
        .join(Workspace, Workspace.id == Task.workspace_id)
        .join(WorkspaceMember, WorkspaceMember.workspace_id == Task.workspace_id)
        .where(WorkspaceMember.user_id == user.id, *live)
    )
    uid = str(user.id)
    comments = [
        RecentComment(task_id=task.id, task_title=task.title, workspace_id=task.workspace_id, comment=comment)
        for task in member_tasks.scalars().all()
        for comment in task.comments or []
        if comment["user"] == uid
    ]
    comments.sort(key=lambda c: c.comment.created_at, reverse=True)

    return UserActivity(
        recent_tasks=enrich_tasks(recent.scalars().all()),
        recent_comments=comments[:limit],
    )


async def find_user_by_email(session: AsyncSession, email: str) -> Optional[User]:
    return await get_user_by_email(email, session)
