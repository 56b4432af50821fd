"""
FastAPI dependencies.

Common dependencies used across API routes.
"""

from typing import Annotated, AsyncIterator

from fastapi import Depends

from project_feed.config import Settings, get_settings
from project_feed.models.common import UserContext
from project_feed.services.auth import get_current_user
from project_feed.services.chat_transport import SupabaseChatTransport
from project_feed.services.content_policy import ContentPolicyValidator
from project_feed.services.database import (
    AsyncSupabaseClient,
    SupabaseClient,
    get_async_supabase_client,
    get_supabase_client,
)
from project_feed.services.feed_controller import ProjectFeedController
from project_feed.services.timeline_repository import TimelineRepository

# Type aliases for cleaner dependency injection
SettingsDep = Annotated[Settings, Depends(get_settings)]
CurrentUser = Annotated[UserContext, Depends(get_current_user)]


def get_db() -> SupabaseClient:
    """Get Supabase client for database operations."""
    return get_supabase_client()


DatabaseDep = Annotated[SupabaseClient, Depends(get_db)]


async def get_realtime() -> AsyncSupabaseClient:
    """Async Supabase client used for realtime channels."""
    return await get_async_supabase_client()


RealtimeDep = Annotated[AsyncSupabaseClient, Depends(get_realtime)]

_validator = ContentPolicyValidator()


def get_validator() -> ContentPolicyValidator:
    """Shared content policy validator (patterns compile once)."""
    return _validator


ValidatorDep = Annotated[ContentPolicyValidator, Depends(get_validator)]


async def get_feed_controller(
    project_id: str,
    user: CurrentUser,
    db: DatabaseDep,
    settings: SettingsDep,
    validator: ValidatorDep,
) -> AsyncIterator[ProjectFeedController]:
    """
    Request-scoped feed controller.

    HTTP requests get a loaded snapshot without a realtime subscription;
    the controller is disposed when the request finishes.
    """
    controller = await ProjectFeedController.create(
        project_id,
        transport=SupabaseChatTransport(db, sender_id=user.user_id, settings=settings),
        timeline=TimelineRepository(db, settings=settings),
        subscribe=False,
        validator=validator,
        current_user_id=user.user_id,
        settings=settings,
    )
    try:
        yield controller
    finally:
        await controller.dispose()


FeedControllerDep = Annotated[ProjectFeedController, Depends(get_feed_controller)]
