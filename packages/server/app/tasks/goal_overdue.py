"""
ARQ background task: mark goals overdue once their deadline passes short of target.

Scheduled to run periodically (every hour, on the hour).
"""

from __future__ import annotations

import structlog

from app.core.database import get_session_context
from app.services.goals import mark_overdue_goals

log = structlog.get_logger()


async def sweep_overdue_goals(ctx: dict) -> int:
    """Returns the number of goals flipped to overdue."""
    async with get_session_context() as session:
        count = await mark_overdue_goals(session)

    if count:
        log.info("goal_overdue.batch_marked", count=count)
    return count


# ARQ worker settings
class WorkerSettings:
    """ARQ worker configuration."""

    functions = [sweep_overdue_goals]
    cron_jobs = [
        {
            "coroutine": sweep_overdue_goals,
            "hour": None,  # every hour
            "minute": 0,
        },
    ]
