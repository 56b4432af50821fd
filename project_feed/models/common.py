"""
Common Pydantic models used across the application.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Error response model."""

    success: bool = False
    error: str
    detail: Optional[str] = None
    code: Optional[str] = None
    reason: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "healthy"
    version: str
    environment: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    # Service status
    database: str = "unknown"
    statuses_loaded: int = 0


class UserContext(BaseModel):
    """User context extracted from JWT token."""

    user_id: str
    email: Optional[str] = None
    role: str = "authenticated"

    # Token metadata
    token_exp: Optional[datetime] = None
    token_iat: Optional[datetime] = None
