"""
API package for the Project Activity Feed.

This package contains all API routes and dependencies.
"""

from fastapi import APIRouter

from project_feed.api.routes import feed, health, statuses

# Create main API router
api_router = APIRouter()

api_router.include_router(
    health.router,
    prefix="/health",
    tags=["health"],
)

api_router.include_router(
    statuses.router,
    prefix="/statuses",
    tags=["statuses"],
)

# Feed routes are nested under projects
api_router.include_router(
    feed.router,
    prefix="/projects/{project_id}",
    tags=["feed"],
)

__all__ = ["api_router"]
