"""
Goal service: CRUD, progress tracking and workspace goal stats.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.base import as_utc_naive, utcnow
from app.models.goal import Goal
from taskflow_shared.schemas.common import GoalStatus
from taskflow_shared.schemas.goals import GoalCreate, GoalRead, GoalStats, GoalUpdate

log = structlog.get_logger()


def enrich_goal(goal: Goal) -> GoalRead:
    return GoalRead(
        id=goal.id,
        workspace_id=goal.workspace_id,
        title=goal.title,
        description=goal.description,
        target=goal.target,
        current=goal.current,
        unit=goal.unit,
        deadline=goal.deadline,
        status=goal.status,
        created_by=goal.created_by,
        contributors=goal.contributors or [],
        progress_updates=goal.progress_updates or [],
        is_active=goal.is_active,
        progress_percentage=goal.progress_percentage,
        days_remaining=goal.days_remaining,
        created_at=goal.created_at,
        updated_at=goal.updated_at,
    )


async def create_goal(
    session: AsyncSession, workspace_id: uuid.UUID, req: GoalCreate, created_by: uuid.UUID
) -> Goal:
    goal = Goal(
        workspace_id=workspace_id,
        title=req.title,
        description=req.description,
        target=req.target,
        current=min(req.current, req.target),
        unit=req.unit.value,
        deadline=as_utc_naive(req.deadline),
        created_by=created_by,
    )
    goal.recompute_status()
    session.add(goal)
    await session.flush()

    log.info("goal.created", goal_id=str(goal.id), workspace_id=str(workspace_id))
    return goal


async def update_goal(session: AsyncSession, goal: Goal, req: GoalUpdate) -> Goal:
    data = req.model_dump(exclude_unset=True, exclude_none=True)
    if "unit" in data:
        data["unit"] = req.unit.value
    if "deadline" in data:
        data["deadline"] = as_utc_naive(req.deadline)
    for key, value in data.items():
        setattr(goal, key, value)

    # a lowered target may complete the goal; a moved deadline may un-expire it
    goal.current = min(goal.current, goal.target)
    goal.recompute_status()
    goal.updated_at = utcnow()
    session.add(goal)
    await session.flush()

    log.info("goal.updated", goal_id=str(goal.id), status=goal.status)
    return goal


async def update_progress(
    session: AsyncSession, goal: Goal, value: float, user_id: uuid.UUID, note: Optional[str] = None
) -> Goal:
    goal.update_progress(value, user_id, note)
    goal.updated_at = utcnow()
    session.add(goal)
    await session.flush()

    log.info("goal.progress_updated", goal_id=str(goal.id), current=goal.current, status=goal.status)
    return goal


async def add_contributor(
    session: AsyncSession, goal: Goal, user_id: uuid.UUID, role: str
) -> Goal:
    if goal.add_contributor(user_id, role):
        session.add(goal)
        await session.flush()
    return goal


async def remove_contributor(session: AsyncSession, goal: Goal, user_id: uuid.UUID) -> Goal:
    goal.remove_contributor(user_id)
    session.add(goal)
    await session.flush()
    return goal


async def delete_goal(session: AsyncSession, goal: Goal) -> None:
    """Soft delete."""
    goal.is_active = False
    goal.updated_at = utcnow()
    session.add(goal)
    await session.flush()
    log.info("goal.deleted", goal_id=str(goal.id))


async def list_workspace_goals(
    session: AsyncSession, workspace_id: uuid.UUID, status: Optional[str] = None
) -> list[Goal]:
    stmt = select(Goal).where(Goal.workspace_id == workspace_id, Goal.is_active == True)  # noqa: E712
    if status:
        stmt = stmt.where(Goal.status == status)
    result = await session.execute(stmt.order_by(Goal.created_at.desc()))
    return list(result.scalars().all())


async def workspace_goal_stats(session: AsyncSession, workspace_id: uuid.UUID) -> GoalStats:
    goals = await list_workspace_goals(session, workspace_id)
    if not goals:
        return GoalStats()

    average = sum(g.progress_percentage for g in goals) / len(goals)
    return GoalStats(
        total_goals=len(goals),
        completed_goals=sum(1 for g in goals if g.status == GoalStatus.COMPLETED.value),
        active_goals=sum(1 for g in goals if g.status == GoalStatus.ACTIVE.value),
        overdue_goals=sum(1 for g in goals if g.status == GoalStatus.OVERDUE.value),
        average_progress=round(average, 2),
    )


async def mark_overdue_goals(session: AsyncSession) -> int:
    """Flip active goals whose deadline has passed short of target to overdue."""
    result = await session.execute(
        select(Goal).where(
            Goal.is_active == True,  # noqa: E712
            Goal.status == GoalStatus.ACTIVE.value,
            Goal.deadline < utcnow(),
        )
    )
    flipped = 0
    for goal in result.scalars().all():
        if goal.current < goal.target:
            goal.status = GoalStatus.OVERDUE.value
            session.add(goal)
            flipped += 1
    await session.flush()
    return flipped
