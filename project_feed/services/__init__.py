"""
Service layer for the Project Activity Feed.

Contains the status taxonomy, progress resolution, feed merging and the
Supabase-backed transport.
"""

from project_feed.services.database import get_supabase_client, SupabaseClient
from project_feed.services.auth import (
    verify_token,
    get_current_user,
    AuthError,
)
from project_feed.services.errors import (
    FeedError,
    UnknownStatusError,
    ContentPolicyViolation,
    AttachmentRejected,
    InvalidMessage,
    TransportError,
    StaleFetchDiscarded,
    ControllerDisposed,
)
from project_feed.services.taxonomy import (
    STATUS_TABLE,
    TRACK_STEPS,
    TOTAL_STEPS,
    status_for,
    require_status,
    step_index_of,
    all_statuses,
)
from project_feed.services.progress import (
    StepIndexResolver,
    resolve,
)
from project_feed.services.merger import merge
from project_feed.services.render_hints import (
    hint_for_event,
    hint_for_message,
)
from project_feed.services.content_policy import (
    ContentPolicyValidator,
    PolicyResult,
)
from project_feed.services.chat_transport import (
    ChatTransport,
    SupabaseChatTransport,
)
from project_feed.services.timeline_repository import TimelineRepository
from project_feed.services.feed_controller import ProjectFeedController

__all__ = [
    # Database
    "get_supabase_client",
    "SupabaseClient",
    # Auth
    "verify_token",
    "get_current_user",
    "AuthError",
    # Errors
    "FeedError",
    "UnknownStatusError",
    "ContentPolicyViolation",
    "AttachmentRejected",
    "InvalidMessage",
    "TransportError",
    "StaleFetchDiscarded",
    "ControllerDisposed",
    # Taxonomy
    "STATUS_TABLE",
    "TRACK_STEPS",
    "TOTAL_STEPS",
    "status_for",
    "require_status",
    "step_index_of",
    "all_statuses",
    # Progress
    "StepIndexResolver",
    "resolve",
    # Feed
    "merge",
    "hint_for_event",
    "hint_for_message",
    # Content policy
    "ContentPolicyValidator",
    "PolicyResult",
    # Transport
    "ChatTransport",
    "SupabaseChatTransport",
    "TimelineRepository",
    "ProjectFeedController",
]
