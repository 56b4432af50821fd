"""
Timeline event models.

Server-recorded facts about status and quote changes on a project.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class TimelineEventKind(str, Enum):
    """Kinds of timeline events."""

    STATUS_CHANGE = "status_change"
    QUOTE = "quote"
    MESSAGE = "message"


class TimelineEvent(BaseModel):
    """
    Immutable timeline event.

    A status_change must name the status it moved to and a quote must
    carry a positive amount.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    project_id: Optional[str] = None
    timestamp: datetime
    kind: TimelineEventKind
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    amount: Optional[float] = None
    valid_until: Optional[datetime] = None
    notes: Optional[str] = None
    changed_by: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_kind_fields(self) -> "TimelineEvent":
        if self.kind == TimelineEventKind.STATUS_CHANGE and not self.to_status:
            raise ValueError("status_change events require to_status")
        if self.kind == TimelineEventKind.QUOTE and (self.amount is None or self.amount <= 0):
            raise ValueError("quote events require a positive amount")
        return self
