"""
Feed Pydantic models.

The feed is a derived view over messages and timeline events; nothing
here is persisted.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from project_feed.models.chat import ChatMessage
from project_feed.models.status import StepProgress, TrackStep
from project_feed.models.timeline import TimelineEvent


class FeedEntryKind(str, Enum):
    """What a feed entry wraps."""

    MESSAGE = "message"
    EVENT = "event"


class Alignment(str, Enum):
    """Horizontal placement of a feed entry."""

    LEFT = "left"
    RIGHT = "right"
    CENTER = "center"


class RenderStyle(str, Enum):
    """How a UI layer should draw an entry."""

    BUBBLE = "bubble"
    SYSTEM_NOTICE = "system_notice"
    CELEBRATION = "celebration"
    ALERT = "alert"
    ASSIGNMENT = "assignment"
    QUOTE_CARD = "quote_card"


class RenderHint(BaseModel):
    """Presentation hint derived from the entry payload."""

    model_config = ConfigDict(frozen=True)

    style: RenderStyle
    alignment: Alignment
    label: str
    description: str = ""
    emoji: Optional[str] = None
    color_class: str = "neutral"


class FeedEntry(BaseModel):
    """One row of the merged feed."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    kind: FeedEntryKind
    payload: Union[TimelineEvent, ChatMessage]
    render_hint: RenderHint

    @property
    def entry_id(self) -> str:
        return f"{self.kind.value}-{self.payload.id}"


class FeedResponse(BaseModel):
    """Merged feed for a project along with its progress."""

    project_id: str
    status: str
    entries: list[FeedEntry] = Field(default_factory=list)
    progress: StepProgress
    track: list[TrackStep] = Field(default_factory=list)
    has_more_messages: bool = False
    generated_at: datetime = Field(default_factory=datetime.utcnow)
