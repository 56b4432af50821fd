"""
Event stream merger.

Combines chat messages and timeline events into one chronological feed.
Both inputs are re-sorted before interleaving since they come from
independent fetches. On equal timestamps an event sorts before a message.
The function is pure; callers rebuild the whole feed on every update.
"""

from datetime import datetime, timezone
from typing import Iterable, Optional

from project_feed.models.chat import ChatMessage
from project_feed.models.feed import FeedEntry, FeedEntryKind
from project_feed.models.timeline import TimelineEvent
from project_feed.services.render_hints import hint_for_event, hint_for_message


def sort_key(ts: datetime) -> datetime:
    # naive timestamps are treated as UTC so mixed sources stay comparable
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def _event_entry(event: TimelineEvent) -> FeedEntry:
    return FeedEntry(
        timestamp=event.timestamp,
        kind=FeedEntryKind.EVENT,
        payload=event,
        render_hint=hint_for_event(event),
    )


def _message_entry(message: ChatMessage, current_user_id: Optional[str]) -> FeedEntry:
    return FeedEntry(
        timestamp=message.timestamp,
        kind=FeedEntryKind.MESSAGE,
        payload=message,
        render_hint=hint_for_message(message, current_user_id),
    )


def merge(
    messages: Iterable[ChatMessage],
    events: Iterable[TimelineEvent],
    current_user_id: Optional[str] = None,
) -> list[FeedEntry]:
    """
    Merge messages and timeline events into a single ascending feed.

    Args:
        messages: Chat messages in any order.
        events: Timeline events in any order.
        current_user_id: Viewer id, used to align message bubbles.

    Returns:
        len(messages) + len(events) entries ordered by timestamp. Entries
        with the same timestamp and kind keep their input order.
    """
    sorted_messages = sorted(messages, key=lambda m: sort_key(m.timestamp))
    sorted_events = sorted(events, key=lambda e: sort_key(e.timestamp))

    feed: list[FeedEntry] = []
    i = j = 0
    while i < len(sorted_events) and j < len(sorted_messages):
        event = sorted_events[i]
        message = sorted_messages[j]
        if sort_key(event.timestamp) <= sort_key(message.timestamp):
            feed.append(_event_entry(event))
            i += 1
        else:
            feed.append(_message_entry(message, current_user_id))
            j += 1

    feed.extend(_event_entry(e) for e in sorted_events[i:])
    feed.extend(_message_entry(m, current_user_id) for m in sorted_messages[j:])
    return feed
