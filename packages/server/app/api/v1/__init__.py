"""
API v1 Router

Workspace-scoped collections live under /workspaces/{workspace_id}; single
tasks, goals and activities are addressed directly by id.
"""

from fastapi import APIRouter
from . import activities, goals, tasks, users, workspaces

router = APIRouter()

router.include_router(workspaces.router, prefix="/workspaces", tags=["Workspaces"])

# Workspace-scoped collections
router.include_router(
    tasks.router_scoped, prefix="/workspaces/{workspace_id}/tasks", tags=["Tasks"]
)
router.include_router(
    goals.router_scoped, prefix="/workspaces/{workspace_id}/goals", tags=["Goals"]
)
router.include_router(
    activities.router_scoped, prefix="/workspaces/{workspace_id}/activities", tags=["Activities"]
)

# Resources addressed by id
router.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
router.include_router(goals.router, prefix="/goals", tags=["Goals"])
router.include_router(activities.router, prefix="/activities", tags=["Activities"])
router.include_router(users.router, prefix="/users")


@router.get("/", tags=["API"])
async def api_root():
    """API root — returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/workspaces",
            "/workspaces/{workspace_id}/tasks",
            "/workspaces/{workspace_id}/goals",
            "/workspaces/{workspace_id}/activities",
            "/tasks",
            "/goals",
            "/activities",
            "/users",
        ],
    }
