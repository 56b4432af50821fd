"""
Timeline repository.

Reads the server-recorded history of a project: status transitions from
project_status_history and quotes from project_quotes. Events are
read-only; the feed never writes them. New rows can also be followed
through a realtime channel per project.
"""

import logging
from typing import Any, Awaitable, Callable, Optional, Union

from pydantic import ValidationError

from project_feed.config import Settings, get_settings
from project_feed.models.timeline import TimelineEvent, TimelineEventKind
from project_feed.services.database import (
    AsyncSupabaseClient,
    CallbackTasks,
    SupabaseClient,
    execute_query,
    record_from_payload,
)
from project_feed.services.errors import TransportError
from project_feed.services.merger import sort_key

logger = logging.getLogger(__name__)

EventCallback = Callable[[TimelineEvent], Union[None, Awaitable[None]]]
Unsubscribe = Callable[[], Awaitable[None]]


def status_event_from_row(row: dict[str, Any], project_id: str) -> TimelineEvent:
    """Convert a project_status_history row into a status-change event."""
    return TimelineEvent(
        id=str(row["id"]),
        project_id=project_id,
        timestamp=row["created_at"],
        kind=TimelineEventKind.STATUS_CHANGE,
        from_status=row.get("from_status"),
        to_status=row.get("to_status"),
        notes=row.get("notes"),
        changed_by=row.get("changed_by"),
        metadata=row.get("metadata") or {},
    )


def quote_event_from_row(row: dict[str, Any], project_id: str) -> TimelineEvent:
    """Convert a project_quotes row into a quote event."""
    return TimelineEvent(
        id=f"quote-{row['id']}",
        project_id=project_id,
        timestamp=row["created_at"],
        kind=TimelineEventKind.QUOTE,
        amount=row.get("user_amount"),
        valid_until=row.get("valid_until"),
        notes=row.get("notes"),
        metadata={"quote_id": str(row["id"])},
    )


class TimelineRepository:
    """Fetches timeline events and the current status for a project."""

    def __init__(
        self,
        db: SupabaseClient,
        settings: Optional[Settings] = None,
        realtime: Optional[AsyncSupabaseClient] = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.realtime = realtime

    async def fetch_status(self, project_id: str) -> str:
        """
        Current status code of a project.

        Raises:
            TransportError: 404 if the project does not exist.
        """
        result = execute_query(
            self.db.table(self.settings.projects_table)
            .select("id, status")
            .eq("id", project_id)
            .limit(1),
            "Project status fetch",
        )
        if not result.data:
            raise TransportError(f"Project {project_id} not found", status_code=404)
        return result.data[0].get("status") or "draft"

    async def fetch_events(self, project_id: str) -> list[TimelineEvent]:
        """All status-change and quote events, oldest first."""
        events = self._status_events(project_id) + self._quote_events(project_id)
        events.sort(key=lambda e: sort_key(e.timestamp))
        logger.debug(f"Fetched {len(events)} timeline events for project {project_id}")
        return events

    def _rows_to_events(self, rows, project_id: str, convert, label: str) -> list[TimelineEvent]:
        events = []
        for row in rows or []:
            try:
                events.append(convert(row, project_id))
            except (KeyError, ValidationError) as e:
                logger.warning(f"Skipping invalid {label} row {row.get('id')}: {e}")
        return events

    def _status_events(self, project_id: str) -> list[TimelineEvent]:
        result = execute_query(
            self.db.table(self.settings.status_history_table)
            .select("*")
            .eq("project_id", project_id)
            .order("created_at"),
            "Status history fetch",
        )
        return self._rows_to_events(result.data, project_id, status_event_from_row, "status history")

    def _quote_events(self, project_id: str) -> list[TimelineEvent]:
        result = execute_query(
            self.db.table(self.settings.quotes_table)
            .select("*")
            .eq("project_id", project_id)
            .order("created_at"),
            "Quote fetch",
        )
        return self._rows_to_events(result.data, project_id, quote_event_from_row, "quote")

    async def subscribe_events(self, project_id: str, callback: EventCallback) -> Unsubscribe:
        """
        Listen for new status history and quote rows of a project.

        Returns:
            Coroutine function that removes the channel.

        Raises:
            TransportError: If no realtime client is configured.
        """
        if self.realtime is None:
            raise TransportError("Realtime client not configured")

        channel_name = f"project_{project_id}_timeline"
        channel = self.realtime.channel(channel_name)
        tasks = CallbackTasks(channel_name)

        def listener(convert, label: str):
            def on_insert(payload: dict[str, Any]) -> None:
                record = record_from_payload(payload)
                if record is None:
                    logger.warning(f"Ignoring {label} payload without record on {channel_name}")
                    return
                try:
                    event = convert(record, project_id)
                except (KeyError, ValidationError) as e:
                    logger.warning(f"Ignoring malformed {label} row on {channel_name}: {e}")
                    return
                tasks.run(callback, event)
            return on_insert

        for table, convert, label in (
            (self.settings.status_history_table, status_event_from_row, "status history"),
            (self.settings.quotes_table, quote_event_from_row, "quote"),
        ):
            channel.on_postgres_changes(
                "INSERT",
                schema="public",
                table=table,
                filter=f"project_id=eq.{project_id}",
                callback=listener(convert, label),
            )
        await channel.subscribe()
        logger.info(f"Subscribed to {channel_name}")

        async def unsubscribe() -> None:
            tasks.cancel()
            await self.realtime.remove_channel(channel)
            logger.info(f"Unsubscribed from {channel_name}")

        return unsubscribe
