"""
Chat transport.

Fetches, sends and subscribes to chat messages for one project. The feed
controller only depends on the ChatTransport protocol; the Supabase
implementation below reads the chat_rooms/chat_messages tables and uses a
realtime channel per room for live inserts.
"""

import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, Protocol, Union

from pydantic import ValidationError

from project_feed.config import Settings, get_settings
from project_feed.models.chat import Attachment, ChatMessage, MessagePage, MessageType
from project_feed.services.database import (
    AsyncSupabaseClient,
    CallbackTasks,
    SupabaseClient,
    execute_query,
    record_from_payload,
)
from project_feed.services.errors import TransportError

logger = logging.getLogger(__name__)

MessageCallback = Callable[[ChatMessage], Union[None, Awaitable[None]]]
Unsubscribe = Callable[[], Awaitable[None]]


class ChatTransport(Protocol):
    """What the feed controller needs from a chat backend."""

    async def fetch_page(self, project_id: str, offset: int = 0, limit: int = 50) -> MessagePage:
        ...

    async def send(
        self,
        project_id: str,
        content: str,
        attachment: Optional[Attachment] = None,
    ) -> ChatMessage:
        ...

    async def subscribe(self, project_id: str, callback: MessageCallback) -> Unsubscribe:
        ...


def message_from_row(row: dict[str, Any], project_id: str) -> ChatMessage:
    """
    Convert a chat_messages row into a ChatMessage.

    Rows fetched with the ``profiles(full_name)`` join carry the sender
    name; realtime payloads do not.
    """
    profile = row.get("profiles") or row.get("sender") or {}
    attachment = None
    if row.get("file_url"):
        attachment = Attachment(
            url=row["file_url"],
            name=row.get("file_name") or "attachment",
            size_bytes=row.get("file_size") or 0,
            mime_type=row.get("file_type") or "application/octet-stream",
        )

    return ChatMessage(
        id=str(row["id"]),
        project_id=project_id,
        room_id=row.get("chat_room_id"),
        sender_id=str(row.get("sender_id") or ""),
        sender_name=profile.get("full_name") if isinstance(profile, dict) else None,
        content=row.get("content") or "",
        message_type=row.get("message_type") or MessageType.TEXT,
        timestamp=row["created_at"],
        attachment=attachment,
        is_deleted=bool(row.get("is_deleted")),
        is_edited=bool(row.get("is_edited")),
    )


class SupabaseChatTransport:
    """
    ChatTransport backed by Supabase tables and realtime.

    Usage:
        transport = SupabaseChatTransport(get_supabase_client(), sender_id=user.user_id)
        page = await transport.fetch_page(project_id)
    """

    def __init__(
        self,
        db: SupabaseClient,
        sender_id: str,
        realtime: Optional[AsyncSupabaseClient] = None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.sender_id = sender_id
        self.realtime = realtime
        self.settings = settings or get_settings()
        self._rooms: dict[str, str] = {}

    async def room_id_for(self, project_id: str) -> str:
        """Look up (and cache) the chat room of a project."""
        if project_id in self._rooms:
            return self._rooms[project_id]

        result = execute_query(
            self.db.table(self.settings.chat_rooms_table)
            .select("id")
            .eq("project_id", project_id)
            .limit(1),
            "Chat room lookup",
        )
        if not result.data:
            raise TransportError(
                f"No chat room for project {project_id}",
                status_code=404,
            )

        room_id = str(result.data[0]["id"])
        self._rooms[project_id] = room_id
        return room_id

    async def fetch_page(self, project_id: str, offset: int = 0, limit: int = 50) -> MessagePage:
        """
        Fetch one page of history.

        Pages are counted back from the newest message; the returned
        messages are oldest first.
        """
        room_id = await self.room_id_for(project_id)
        result = execute_query(
            self.db.table(self.settings.messages_table)
            .select("*, profiles(full_name)")
            .eq("chat_room_id", room_id)
            .order("created_at", desc=True)
            .range(offset, offset + limit - 1),
            "Message fetch",
        )

        rows = list(reversed(result.data or []))
        messages = []
        for row in rows:
            try:
                messages.append(message_from_row(row, project_id))
            except (KeyError, ValidationError) as e:
                logger.warning(f"Skipping malformed message row {row.get('id')}: {e}")

        has_more = len(rows) == limit
        return MessagePage(
            messages=messages,
            next_cursor=offset + len(rows) if has_more else None,
            has_more=has_more,
        )

    async def send(
        self,
        project_id: str,
        content: str,
        attachment: Optional[Attachment] = None,
    ) -> ChatMessage:
        """Insert a message and bump the room's last_message_at."""
        room_id = await self.room_id_for(project_id)
        record: dict[str, Any] = {
            "chat_room_id": room_id,
            "sender_id": self.sender_id,
            "content": content,
            "message_type": MessageType.TEXT.value,
        }
        if attachment is not None:
            record.update({
                "message_type": attachment.message_type.value,
                "file_url": attachment.url,
                "file_name": attachment.name,
                "file_size": attachment.size_bytes,
                "file_type": attachment.mime_type,
            })

        result = execute_query(
            self.db.table(self.settings.messages_table).insert(record),
            "Message send",
        )
        if not result.data:
            raise TransportError("Message send returned no row")

        execute_query(
            self.db.table(self.settings.chat_rooms_table)
            .update({"last_message_at": datetime.utcnow().isoformat()})
            .eq("id", room_id),
            "Room update",
        )

        try:
            message = message_from_row(result.data[0], project_id)
        except (KeyError, ValidationError) as e:
            raise TransportError(f"Message send returned a malformed row: {e}", original=e) from e
        logger.info(f"Sent message {message.id} to room {room_id}")
        return message

    async def subscribe(self, project_id: str, callback: MessageCallback) -> Unsubscribe:
        """
        Listen for inserts in the project's room.

        Returns:
            Coroutine function that removes the channel.
        """
        if self.realtime is None:
            raise TransportError("Realtime client not configured")

        room_id = await self.room_id_for(project_id)
        channel = self.realtime.channel(f"room_{room_id}")
        tasks = CallbackTasks(f"room_{room_id}")

        def on_insert(payload: dict[str, Any]) -> None:
            record = record_from_payload(payload)
            if record is None:
                logger.warning(f"Ignoring realtime payload without record on room {room_id}")
                return
            try:
                message = message_from_row(record, project_id)
            except (KeyError, ValidationError) as e:
                logger.warning(f"Ignoring malformed realtime message on room {room_id}: {e}")
                return
            tasks.run(callback, message)

        channel.on_postgres_changes(
            "INSERT",
            schema="public",
            table=self.settings.messages_table,
            filter=f"chat_room_id=eq.{room_id}",
            callback=on_insert,
        )
        await channel.subscribe()
        logger.info(f"Subscribed to room_{room_id}")

        async def unsubscribe() -> None:
            tasks.cancel()
            await self.realtime.remove_channel(channel)
            logger.info(f"Unsubscribed from room_{room_id}")

        return unsubscribe
