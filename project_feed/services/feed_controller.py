"""
Per-project feed controller.

Owns the message and event collections of one project, rebuilds the
merged feed whenever either changes, and guards fetches with a
monotonic request token so a superseded fetch never overwrites newer
state. Both collections are immutable tuples replaced wholesale on
every update.

Usage:
    controller = await ProjectFeedController.create(
        project_id,
        transport=SupabaseChatTransport(db, sender_id=user.user_id, realtime=client),
        timeline=TimelineRepository(db),
        current_user_id=user.user_id,
    )
    controller.add_listener(lambda feed: render(feed))
    await controller.send("Can you share the draft?")
    await controller.dispose()
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from project_feed.config import Settings, get_settings
from project_feed.models.chat import Attachment, ChatMessage
from project_feed.models.feed import FeedEntry, FeedResponse
from project_feed.models.status import StepProgress, TrackStep
from project_feed.models.timeline import TimelineEvent, TimelineEventKind
from project_feed.services.chat_transport import ChatTransport, Unsubscribe
from project_feed.services.content_policy import ContentPolicyValidator
from project_feed.services.errors import (
    AttachmentRejected,
    ContentPolicyViolation,
    ControllerDisposed,
    InvalidMessage,
    StaleFetchDiscarded,
    TransportError,
)
from project_feed.services.merger import merge
from project_feed.services.progress import StepIndexResolver
from project_feed.services.timeline_repository import TimelineRepository

logger = logging.getLogger(__name__)

FeedListener = Callable[[tuple[FeedEntry, ...]], None]

ALLOWED_MIME_TYPES = frozenset({
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "text/plain",
    "application/zip",
})


def _utc(ts: datetime) -> datetime:
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


class ProjectFeedController:
    """Feed state for a single project, with explicit create/dispose lifecycle."""

    def __init__(
        self,
        project_id: str,
        transport: ChatTransport,
        timeline: TimelineRepository,
        validator: Optional[ContentPolicyValidator] = None,
        current_user_id: Optional[str] = None,
        resolver: Optional[StepIndexResolver] = None,
        settings: Optional[Settings] = None,
    ):
        self.project_id = project_id
        self.transport = transport
        self.timeline = timeline
        self.validator = validator or ContentPolicyValidator()
        self.current_user_id = current_user_id
        self.resolver = resolver or StepIndexResolver()
        self.settings = settings or get_settings()

        self._messages: tuple[ChatMessage, ...] = ()
        self._events: tuple[TimelineEvent, ...] = ()
        self._status: Optional[str] = None
        self._feed: tuple[FeedEntry, ...] = ()
        self._progress: StepProgress = self.resolver.resolve("draft")
        self._track: list[TrackStep] = self.resolver.track_for(self._progress)
        self._has_more = False
        self._offset = 0

        self._token = 0
        self._pending = 0
        self._disposed = False
        self._unsubscribers: list[Unsubscribe] = []
        self._listeners: list[FeedListener] = []

    @classmethod
    async def create(
        cls,
        project_id: str,
        transport: ChatTransport,
        timeline: TimelineRepository,
        subscribe: bool = True,
        **kwargs,
    ) -> "ProjectFeedController":
        """Build a controller, load the first page and optionally go live."""
        controller = cls(project_id, transport, timeline, **kwargs)
        try:
            await controller.start(subscribe=subscribe)
        except Exception:
            await controller.dispose()
            raise
        return controller

    async def start(self, subscribe: bool = True) -> None:
        await self.refresh()
        if subscribe and not self._disposed:
            self._unsubscribers.append(
                await self.transport.subscribe(self.project_id, self.handle_incoming)
            )
            self._unsubscribers.append(
                await self.timeline.subscribe_events(self.project_id, self.handle_timeline_event)
            )

    async def dispose(self) -> None:
        """Unsubscribe and drop listeners. In-flight fetches become stale."""
        if self._disposed:
            return
        self._disposed = True
        self._token += 1
        self._listeners.clear()
        unsubscribers, self._unsubscribers = self._unsubscribers, []
        for unsubscribe in unsubscribers:
            await unsubscribe()
        logger.info(f"Feed controller disposed for project {self.project_id}")

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def feed(self) -> tuple[FeedEntry, ...]:
        return self._feed

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        return self._messages

    @property
    def events(self) -> tuple[TimelineEvent, ...]:
        return self._events

    @property
    def status(self) -> Optional[str]:
        return self._status

    @property
    def progress(self) -> StepProgress:
        return self._progress

    @property
    def track(self) -> list[TrackStep]:
        return self._track

    @property
    def has_more(self) -> bool:
        return self._has_more

    @property
    def is_loading(self) -> bool:
        return self._pending > 0

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    def snapshot(self) -> FeedResponse:
        return FeedResponse(
            project_id=self.project_id,
            status=self._progress.status_code,
            entries=list(self._feed),
            progress=self._progress,
            track=self._track,
            has_more_messages=self._has_more,
        )

    def add_listener(self, listener: FeedListener) -> Callable[[], None]:
        """Register a callback for feed rebuilds; returns a remover."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    def _ensure_active(self) -> None:
        if self._disposed:
            raise ControllerDisposed(self.project_id)

    def _check_token(self, token: int) -> None:
        if token != self._token:
            raise StaleFetchDiscarded(token, self._token)

    async def refresh(self) -> bool:
        """
        Re-fetch the newest message page, the timeline and the status.

        Returns:
            True if the results were applied, False if a newer request
            superseded this one.

        Raises:
            TransportError: If a current (not superseded) fetch failed.
        """
        self._ensure_active()
        self._token += 1
        token = self._token
        self._pending += 1
        try:
            try:
                page, events, status = await asyncio.gather(
                    self.transport.fetch_page(self.project_id, 0, self.settings.message_page_size),
                    self.timeline.fetch_events(self.project_id),
                    self.timeline.fetch_status(self.project_id),
                )
            except TransportError:
                self._check_token(token)
                raise
            self._check_token(token)
        except StaleFetchDiscarded as e:
            logger.debug(f"Discarded stale fetch for project {self.project_id}: {e.message}")
            return False
        finally:
            self._pending -= 1

        self._messages = self._with_live_messages(page.messages)
        self._events = tuple(events)
        self._status = status
        self._has_more = page.has_more
        self._offset = len(page.messages)
        self._rebuild()
        logger.debug(
            f"Feed refreshed for project {self.project_id}: "
            f"{len(self._messages)} messages, {len(self._events)} events"
        )
        return True

    def _with_live_messages(self, fetched: Iterable[ChatMessage]) -> tuple[ChatMessage, ...]:
        # keep realtime arrivals newer than the fetched page that it may not include yet
        fetched = tuple(fetched)
        if not fetched:
            return fetched
        ids = {m.id for m in fetched}
        oldest = min(_utc(m.timestamp) for m in fetched)
        live = tuple(
            m for m in self._messages
            if m.id not in ids and _utc(m.timestamp) > oldest
        )
        return fetched + live

    async def load_more(self) -> bool:
        """
        Fetch the next older page and prepend it.

        Returns:
            True if a page was applied. False when there is nothing more,
            another fetch is in flight or the page was superseded.
        """
        self._ensure_active()
        if not self._has_more or self.is_loading:
            return False

        token = self._token
        self._pending += 1
        try:
            try:
                page = await self.transport.fetch_page(
                    self.project_id, self._offset, self.settings.message_page_size
                )
            except TransportError:
                self._check_token(token)
                raise
            self._check_token(token)
        except StaleFetchDiscarded as e:
            logger.debug(f"Discarded stale page for project {self.project_id}: {e.message}")
            return False
        finally:
            self._pending -= 1

        known = {m.id for m in self._messages}
        older = tuple(m for m in page.messages if m.id not in known)
        self._messages = older + self._messages
        self._offset += len(page.messages)
        self._has_more = page.has_more
        self._rebuild()
        return True

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    def check_attachment(self, attachment: Attachment) -> None:
        """
        Raises:
            AttachmentRejected: If the type or size is not allowed.
        """
        if attachment.mime_type not in ALLOWED_MIME_TYPES:
            raise AttachmentRejected(f"Files of type {attachment.mime_type} cannot be sent")
        if attachment.size_bytes > self.settings.max_attachment_bytes:
            limit_mb = self.settings.max_attachment_bytes / (1024 * 1024)
            raise AttachmentRejected(f"File is too large. Maximum size is {limit_mb:g} MB")

    async def send(self, content: str, attachment: Optional[Attachment] = None) -> ChatMessage:
        """
        Validate and send a message. Not retried on failure.

        Raises:
            InvalidMessage: If the message is empty or too long.
            ContentPolicyViolation: If the text fails the content policy.
            AttachmentRejected: If the attachment is not allowed.
            TransportError: If the backend rejects the send.
        """
        self._ensure_active()
        text = (content or "").strip()
        if not text and attachment is None:
            raise InvalidMessage("Message content is empty")
        if len(text) > self.settings.max_message_length:
            raise InvalidMessage(
                f"Message exceeds {self.settings.max_message_length} characters"
            )

        if text:
            result = self.validator.validate(text)
            if not result.allowed:
                logger.warning(
                    f"Content policy rejected message for project {self.project_id}: "
                    f"reason={result.reason}"
                )
                raise ContentPolicyViolation(
                    result.reason,
                    message=result.message or None,
                    violations=[v.type for v in result.violations],
                )

        if attachment is not None:
            self.check_attachment(attachment)

        message = await self.transport.send(self.project_id, text, attachment)
        if not self._disposed:
            self.handle_incoming(message)
        return message

    # ------------------------------------------------------------------
    # Incoming
    # ------------------------------------------------------------------

    def handle_incoming(self, message: ChatMessage) -> None:
        """Insert or replace a message by id and rebuild the feed."""
        if self._disposed:
            logger.debug(f"Ignoring message {message.id} on disposed controller")
            return
        if message.project_id != self.project_id:
            return

        existing = [m for m in self._messages if m.id != message.id]
        self._messages = tuple(existing) + (message,)
        self._rebuild()

    def handle_timeline_event(self, event: TimelineEvent) -> None:
        """Apply a newly observed timeline event."""
        if self._disposed:
            return
        if any(e.id == event.id for e in self._events):
            return
        self._events = self._events + (event,)
        if event.kind == TimelineEventKind.STATUS_CHANGE:
            self._status = event.to_status
        self._rebuild()

    def _rebuild(self) -> None:
        self._feed = tuple(merge(self._messages, self._events, self.current_user_id))
        self._progress = self.resolver.resolve_events(self._status, self._events)
        self._track = self.resolver.track_for(self._progress)
        for listener in list(self._listeners):
            try:
                listener(self._feed)
            except Exception:
                logger.exception(f"Feed listener failed for project {self.project_id}")
