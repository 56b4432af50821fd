"""
Pydantic models for the project activity feed.

This package contains all request/response models and domain records.
"""

from project_feed.models.common import (
    ErrorResponse,
    HealthResponse,
    UserContext,
)
from project_feed.models.status import (
    ProjectStatus,
    StatusCode,
    StatusListItem,
    StepProgress,
    TrackStep,
    TrackStepState,
)
from project_feed.models.timeline import (
    TimelineEvent,
    TimelineEventKind,
)
from project_feed.models.chat import (
    Attachment,
    ChatMessage,
    ChatMessageCreate,
    MessagePage,
    MessageType,
)
from project_feed.models.feed import (
    Alignment,
    FeedEntry,
    FeedEntryKind,
    FeedResponse,
    RenderHint,
    RenderStyle,
)

__all__ = [
    # Common
    "ErrorResponse",
    "HealthResponse",
    "UserContext",
    # Status
    "ProjectStatus",
    "StatusCode",
    "StatusListItem",
    "StepProgress",
    "TrackStep",
    "TrackStepState",
    # Timeline
    "TimelineEvent",
    "TimelineEventKind",
    # Chat
    "Attachment",
    "ChatMessage",
    "ChatMessageCreate",
    "MessagePage",
    "MessageType",
    # Feed
    "Alignment",
    "FeedEntry",
    "FeedEntryKind",
    "FeedResponse",
    "RenderHint",
    "RenderStyle",
]
