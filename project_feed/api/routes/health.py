"""
Health check endpoints.

Provides system health and readiness checks.
"""

import logging
from collections import deque
from datetime import datetime

from fastapi import APIRouter
from pydantic import BaseModel, Field

from project_feed.config import get_settings
from project_feed.models.common import HealthResponse
from project_feed.services.database import check_database_connection
from project_feed.services.taxonomy import STATUS_TABLE

logger = logging.getLogger(__name__)

# In-memory buffers for diagnostics
_recent_errors: deque = deque(maxlen=100)
_recent_requests: deque = deque(maxlen=100)


def log_error(error: dict) -> None:
    """Add an error to the recent errors buffer."""
    error["timestamp"] = datetime.utcnow().isoformat()
    _recent_errors.append(error)


def log_request(request: dict) -> None:
    """Add a request to the recent requests buffer."""
    request["timestamp"] = datetime.utcnow().isoformat()
    _recent_requests.append(request)


router = APIRouter()


@router.get(
    "",
    response_model=HealthResponse,
    summary="Health check",
    description="Check if the API is healthy and return service status.",
)
async def health_check() -> HealthResponse:
    """
    Check API health status.

    Reports the database connection and how many statuses the taxonomy
    knows about.
    """
    settings = get_settings()

    db_healthy = await check_database_connection()

    return HealthResponse(
        status="healthy" if db_healthy else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        timestamp=datetime.utcnow(),
        database="healthy" if db_healthy else "unhealthy",
        statuses_loaded=len(STATUS_TABLE),
    )


@router.get(
    "/live",
    summary="Liveness check",
    description="Check if the API process is alive.",
)
async def liveness_check() -> dict:
    """If this fails, restart the container."""
    return {"alive": True}


class DiagnosticsResponse(BaseModel):
    """Recent activity for debugging."""
    timestamp: datetime
    version: str
    environment: str
    recent_errors: list[dict] = Field(default_factory=list)
    request_logs: list[dict] = Field(default_factory=list)


@router.get(
    "/diagnostics",
    response_model=DiagnosticsResponse,
    summary="System diagnostics",
    description="Recent errors and requests recorded by the logging middleware.",
)
async def get_diagnostics() -> DiagnosticsResponse:
    settings = get_settings()
    return DiagnosticsResponse(
        timestamp=datetime.utcnow(),
        version=settings.app_version,
        environment=settings.environment,
        recent_errors=list(_recent_errors),
        request_logs=list(_recent_requests)[-50:],  # Last 50 requests
    )
