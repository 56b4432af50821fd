"""
Models for project chat messages.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Chat Messages
# ============================================================================

class MessageType(str, Enum):
    """Chat message types."""
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"


class Attachment(BaseModel):
    """File attached to a chat message (already uploaded to storage)."""
    url: str
    name: str
    size_bytes: int = Field(..., ge=0)
    mime_type: str

    @property
    def message_type(self) -> MessageType:
        if self.mime_type.startswith("image/"):
            return MessageType.IMAGE
        return MessageType.FILE


class ChatMessage(BaseModel):
    """Persisted chat message."""
    model_config = ConfigDict(frozen=True)

    id: str
    project_id: str
    room_id: Optional[str] = None
    sender_id: str
    sender_name: Optional[str] = None
    content: str = ""
    message_type: MessageType = MessageType.TEXT
    timestamp: datetime
    attachment: Optional[Attachment] = None
    is_deleted: bool = False
    is_edited: bool = False


class ChatMessageCreate(BaseModel):
    """Request to send a chat message."""
    content: str = Field(default="", max_length=10000)
    attachment: Optional[Attachment] = None


class MessagePage(BaseModel):
    """One page of chat history, oldest first."""
    messages: list[ChatMessage] = Field(default_factory=list)
    next_cursor: Optional[int] = None
    has_more: bool = False
