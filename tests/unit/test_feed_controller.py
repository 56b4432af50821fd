"""
Unit tests for the per-project feed controller.

Tests:
- Refresh and stale fetch discarding
- Send path (content policy, attachments, transport errors)
- Realtime message handling
- Lifecycle (create/dispose)
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

import pytest

from project_feed.config import Settings
from project_feed.models.chat import Attachment, ChatMessage, MessagePage
from project_feed.models.feed import FeedEntryKind
from project_feed.services.errors import (
    AttachmentRejected,
    ContentPolicyViolation,
    ControllerDisposed,
    InvalidMessage,
    TransportError,
)
from project_feed.services.feed_controller import ProjectFeedController

pytestmark = pytest.mark.unit


# =============================================================================
# Fakes
# =============================================================================

class FakeTransport:
    """In-memory ChatTransport."""

    def __init__(self, pages: Optional[dict[int, MessagePage]] = None, page_gate: Optional[asyncio.Event] = None):
        self.pages = pages or {}
        self.page_gate = page_gate
        self.page_entered = asyncio.Event()
        self.fetch_offsets: list[int] = []
        self.sent: list[ChatMessage] = []
        self.send_error: Optional[Exception] = None
        self.callbacks = []
        self.unsubscribed = False

    async def fetch_page(self, project_id, offset=0, limit=50):
        self.fetch_offsets.append(offset)
        if offset > 0 and self.page_gate is not None:
            self.page_entered.set()
            await self.page_gate.wait()
        return self.pages.get(offset, MessagePage())

    async def send(self, project_id, content, attachment=None):
        if self.send_error is not None:
            raise self.send_error
        message = ChatMessage(
            id=f"sent-{len(self.sent)}",
            project_id=project_id,
            sender_id="client-1",
            content=content,
            timestamp=datetime.now(timezone.utc),
            attachment=attachment,
        )
        self.sent.append(message)
        return message

    async def subscribe(self, project_id, callback):
        self.callbacks.append(callback)

        async def unsubscribe():
            self.unsubscribed = True

        return unsubscribe


class FakeTimeline:
    """Timeline repository whose first status fetch can be held open."""

    def __init__(self, status="submitted", events=None, gate: Optional[asyncio.Event] = None):
        self.status = status
        self.events = list(events or [])
        self.gate = gate
        self.entered = asyncio.Event()
        self.calls = 0
        self.fail_first_with: Optional[Exception] = None
        self.event_callbacks = []
        self.unsubscribed = False
        self.subscribe_error: Optional[Exception] = None

    async def fetch_events(self, project_id):
        return list(self.events)

    async def fetch_status(self, project_id):
        self.calls += 1
        status = self.status
        if self.calls == 1 and self.gate is not None:
            self.entered.set()
            await self.gate.wait()
            if self.fail_first_with is not None:
                raise self.fail_first_with
        return status

    async def subscribe_events(self, project_id, callback):
        if self.subscribe_error is not None:
            raise self.subscribe_error
        self.event_callbacks.append(callback)

        async def unsubscribe():
            self.unsubscribed = True

        return unsubscribe


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://test-project.supabase.co",
        supabase_anon_key="test-anon-key",
        message_page_size=2,
        max_message_length=200,
        max_attachment_bytes=1024,
    )


@pytest.fixture
def make_controller(settings):
    def _make(transport=None, timeline=None, **kwargs):
        return ProjectFeedController(
            "project-1",
            transport=transport or FakeTransport(),
            timeline=timeline or FakeTimeline(),
            current_user_id="client-1",
            settings=settings,
            **kwargs,
        )
    return _make


# =============================================================================
# Refresh
# =============================================================================

class TestRefresh:
    """Loading messages, events and status."""

    @pytest.mark.asyncio
    async def test_refresh_builds_feed(self, make_controller, message_factory, status_event_factory):
        transport = FakeTransport({0: MessagePage(messages=[message_factory(10, "hi"), message_factory(30, "thanks")])})
        timeline = FakeTimeline(status="paid", events=[status_event_factory(20, "paid", from_status="quoted")])
        controller = make_controller(transport, timeline)

        applied = await controller.refresh()

        assert applied
        assert [e.kind for e in controller.feed] == [
            FeedEntryKind.MESSAGE,
            FeedEntryKind.EVENT,
            FeedEntryKind.MESSAGE,
        ]
        assert controller.status == "paid"
        assert controller.progress.step_index == 3
        assert not controller.is_loading

    @pytest.mark.asyncio
    async def test_cancelled_project_progress(self, make_controller, status_event_factory):
        timeline = FakeTimeline(status="cancelled", events=[
            status_event_factory(10, "analyzing", from_status="submitted"),
            status_event_factory(20, "quoted", from_status="analyzing"),
            status_event_factory(30, "cancelled", from_status="quoted"),
        ])
        controller = make_controller(timeline=timeline)
        await controller.refresh()

        assert controller.progress.step_index == 2
        assert controller.progress.halted

    @pytest.mark.asyncio
    async def test_stale_fetch_is_discarded(self, make_controller):
        """An older fetch that resolves late never overwrites newer state."""
        gate = asyncio.Event()
        timeline = FakeTimeline(status="quoted", gate=gate)
        controller = make_controller(timeline=timeline)

        first = asyncio.create_task(controller.refresh())
        await timeline.entered.wait()
        assert controller.is_loading

        timeline.status = "paid"
        assert await controller.refresh()
        assert controller.status == "paid"

        gate.set()
        assert await first is False
        assert controller.status == "paid"
        assert not controller.is_loading

    @pytest.mark.asyncio
    async def test_stale_fetch_logged_at_debug_only(self, make_controller, caplog):
        gate = asyncio.Event()
        timeline = FakeTimeline(gate=gate)
        controller = make_controller(timeline=timeline)

        with caplog.at_level(logging.DEBUG, logger="project_feed.services.feed_controller"):
            first = asyncio.create_task(controller.refresh())
            await timeline.entered.wait()
            await controller.refresh()
            gate.set()
            await first

        discarded = [r for r in caplog.records if "stale" in r.getMessage().lower()]
        assert discarded
        assert all(r.levelno == logging.DEBUG for r in discarded)

    @pytest.mark.asyncio
    async def test_stale_transport_error_is_dropped(self, make_controller):
        gate = asyncio.Event()
        timeline = FakeTimeline(gate=gate)
        timeline.fail_first_with = TransportError("timeout")
        controller = make_controller(timeline=timeline)

        first = asyncio.create_task(controller.refresh())
        await timeline.entered.wait()
        await controller.refresh()
        gate.set()

        assert await first is False

    @pytest.mark.asyncio
    async def test_current_transport_error_propagates(self, make_controller):
        class FailingTimeline(FakeTimeline):
            async def fetch_events(self, project_id):
                raise TransportError("server error", status_code=500)

        controller = make_controller(timeline=FailingTimeline())
        with pytest.raises(TransportError):
            await controller.refresh()
        assert not controller.is_loading

    @pytest.mark.asyncio
    async def test_refresh_keeps_live_messages(self, make_controller, message_factory):
        transport = FakeTransport({0: MessagePage(messages=[message_factory(10, message_id="a")])})
        controller = make_controller(transport)
        await controller.refresh()

        controller.handle_incoming(message_factory(50, message_id="live"))
        await controller.refresh()

        assert [m.id for m in controller.messages] == ["a", "live"]


class TestLoadMore:
    """Paging older history."""

    @pytest.mark.asyncio
    async def test_load_more_prepends_older_page(self, make_controller, message_factory):
        transport = FakeTransport({
            0: MessagePage(messages=[message_factory(30, message_id="c"), message_factory(40, message_id="d")], has_more=True),
            2: MessagePage(messages=[message_factory(10, message_id="a"), message_factory(20, message_id="b")], has_more=False),
        })
        controller = make_controller(transport)
        await controller.refresh()
        assert controller.has_more

        assert await controller.load_more()

        assert [m.id for m in controller.messages] == ["a", "b", "c", "d"]
        assert [e.payload.id for e in controller.feed] == ["a", "b", "c", "d"]
        assert transport.fetch_offsets == [0, 2]
        assert not controller.has_more
        assert await controller.load_more() is False

    @pytest.mark.asyncio
    async def test_load_more_skips_duplicates(self, make_controller, message_factory):
        shared = message_factory(30, message_id="c")
        transport = FakeTransport({
            0: MessagePage(messages=[shared, message_factory(40, message_id="d")], has_more=True),
            2: MessagePage(messages=[message_factory(20, message_id="b"), shared]),
        })
        controller = make_controller(transport)
        await controller.refresh()
        await controller.load_more()

        assert [m.id for m in controller.messages] == ["b", "c", "d"]

    @pytest.mark.asyncio
    async def test_overlapping_load_more_fetches_once(self, make_controller, message_factory):
        """A second load_more while one is in flight does not skip a page."""
        gate = asyncio.Event()
        transport = FakeTransport({
            0: MessagePage(messages=[message_factory(30, message_id="c"), message_factory(40, message_id="d")], has_more=True),
            2: MessagePage(messages=[message_factory(10, message_id="a"), message_factory(20, message_id="b")], has_more=True),
        }, page_gate=gate)
        controller = make_controller(transport)
        await controller.refresh()

        first = asyncio.create_task(controller.load_more())
        await transport.page_entered.wait()
        assert await controller.load_more() is False

        gate.set()
        assert await first
        assert transport.fetch_offsets == [0, 2]
        assert [m.id for m in controller.messages] == ["a", "b", "c", "d"]

        await controller.load_more()
        assert transport.fetch_offsets == [0, 2, 4]


# =============================================================================
# Send
# =============================================================================

class TestSend:
    """Outgoing messages."""

    @pytest.mark.asyncio
    async def test_send_appends_to_feed(self, make_controller):
        transport = FakeTransport()
        controller = make_controller(transport)
        await controller.refresh()
        seen = []
        controller.add_listener(seen.append)

        message = await controller.send("  Can you share the draft?  ")

        assert message.content == "Can you share the draft?"
        assert controller.feed[-1].payload.id == message.id
        assert seen and seen[-1] == controller.feed

    @pytest.mark.asyncio
    async def test_policy_violation_blocks_send(self, make_controller, caplog):
        transport = FakeTransport()
        controller = make_controller(transport)

        with caplog.at_level(logging.WARNING, logger="project_feed.services.feed_controller"):
            with pytest.raises(ContentPolicyViolation) as exc_info:
                await controller.send("call me on 9876543210")

        assert exc_info.value.reason == "phone"
        assert transport.sent == []
        assert "reason=phone" in caplog.text
        assert "9876543210" not in caplog.text

    @pytest.mark.asyncio
    async def test_injected_validator_is_used(self, make_controller):
        class AllowAll:
            def validate(self, content):
                from project_feed.services.content_policy import PolicyResult
                return PolicyResult(allowed=True)

        transport = FakeTransport()
        controller = make_controller(transport, validator=AllowAll())
        await controller.send("call me on 9876543210")
        assert len(transport.sent) == 1

    @pytest.mark.asyncio
    async def test_empty_message_rejected(self, make_controller):
        controller = make_controller()
        with pytest.raises(InvalidMessage):
            await controller.send("   ")

    @pytest.mark.asyncio
    async def test_too_long_message_rejected(self, make_controller):
        controller = make_controller()
        with pytest.raises(InvalidMessage):
            await controller.send("a" * 201)

    @pytest.mark.asyncio
    async def test_attachment_only_message(self, make_controller):
        transport = FakeTransport()
        controller = make_controller(transport)
        attachment = Attachment(url="https://files/brief.pdf", name="brief.pdf", size_bytes=512, mime_type="application/pdf")

        message = await controller.send("", attachment)

        assert message.attachment == attachment

    @pytest.mark.asyncio
    async def test_attachment_type_rejected(self, make_controller):
        controller = make_controller()
        attachment = Attachment(url="https://files/x.exe", name="x.exe", size_bytes=10, mime_type="application/x-msdownload")
        with pytest.raises(AttachmentRejected):
            await controller.send("here", attachment)

    @pytest.mark.asyncio
    async def test_attachment_size_rejected(self, make_controller):
        controller = make_controller()
        attachment = Attachment(url="https://files/big.png", name="big.png", size_bytes=4096, mime_type="image/png")
        with pytest.raises(AttachmentRejected) as exc_info:
            await controller.send("here", attachment)
        assert "too large" in exc_info.value.user_message

    @pytest.mark.asyncio
    async def test_transport_error_propagates_without_retry(self, make_controller):
        transport = FakeTransport()
        transport.send_error = TransportError("Message send failed", status_code=500)
        controller = make_controller(transport)

        with pytest.raises(TransportError) as exc_info:
            await controller.send("hello")

        assert exc_info.value is transport.send_error
        assert controller.messages == ()


# =============================================================================
# Incoming
# =============================================================================

class TestIncoming:
    """Realtime arrivals."""

    @pytest.mark.asyncio
    async def test_out_of_order_arrival_is_placed_by_timestamp(self, make_controller, message_factory):
        transport = FakeTransport({0: MessagePage(messages=[message_factory(10, message_id="a"), message_factory(30, message_id="c")])})
        controller = make_controller(transport)
        await controller.refresh()

        controller.handle_incoming(message_factory(20, message_id="b"))

        assert [e.payload.id for e in controller.feed] == ["a", "b", "c"]

    def test_duplicate_delivery_is_deduplicated(self, make_controller, message_factory):
        controller = make_controller()
        message = message_factory(10, "hi", message_id="m1")
        controller.handle_incoming(message)
        controller.handle_incoming(message.model_copy(update={"is_edited": True}))

        assert len(controller.feed) == 1
        assert controller.messages[0].is_edited

    def test_other_project_ignored(self, make_controller, message_factory):
        controller = make_controller()
        controller.handle_incoming(message_factory(10, project_id="project-2"))
        assert controller.feed == ()

    def test_collections_replaced_not_mutated(self, make_controller, message_factory):
        controller = make_controller()
        controller.handle_incoming(message_factory(10, message_id="a"))
        before = controller.messages
        controller.handle_incoming(message_factory(20, message_id="b"))
        assert len(before) == 1
        assert len(controller.messages) == 2

    def test_timeline_event_updates_status(self, make_controller, status_event_factory):
        controller = make_controller()
        event = status_event_factory(10, "delivered", from_status="qc_approved")
        controller.handle_timeline_event(event)
        controller.handle_timeline_event(event)

        assert controller.status == "delivered"
        assert len(controller.events) == 1
        assert controller.progress.step_index == 7

    def test_listener_failure_does_not_break_feed(self, make_controller, message_factory):
        controller = make_controller()

        def broken(feed):
            raise RuntimeError("render failed")

        controller.add_listener(broken)
        controller.handle_incoming(message_factory(10))
        assert len(controller.feed) == 1

    def test_removed_listener_not_called(self, make_controller, message_factory):
        controller = make_controller()
        seen = []
        remove = controller.add_listener(seen.append)
        remove()
        controller.handle_incoming(message_factory(10))
        assert seen == []


# =============================================================================
# Lifecycle
# =============================================================================

class TestLifecycle:
    """create/dispose."""

    @pytest.mark.asyncio
    async def test_create_subscribes_and_dispose_unsubscribes(self, settings, message_factory):
        transport = FakeTransport()
        controller = await ProjectFeedController.create(
            "project-1",
            transport=transport,
            timeline=FakeTimeline(),
            settings=settings,
        )
        assert len(transport.callbacks) == 1

        transport.callbacks[0](message_factory(10, message_id="pushed"))
        assert controller.messages[0].id == "pushed"

        await controller.dispose()
        assert transport.unsubscribed
        assert controller.is_disposed

    @pytest.mark.asyncio
    async def test_create_follows_timeline_events(self, settings, status_event_factory):
        timeline = FakeTimeline(status="qc_approved")
        controller = await ProjectFeedController.create(
            "project-1",
            transport=FakeTransport(),
            timeline=timeline,
            settings=settings,
        )
        assert len(timeline.event_callbacks) == 1
        seen = []
        controller.add_listener(seen.append)

        timeline.event_callbacks[0](status_event_factory(10, "delivered", from_status="qc_approved"))

        assert controller.status == "delivered"
        assert controller.progress.step_index == 7
        assert len(seen) == 1

        await controller.dispose()
        assert timeline.unsubscribed

    @pytest.mark.asyncio
    async def test_failed_subscription_releases_channels(self, settings):
        transport = FakeTransport()
        timeline = FakeTimeline()
        timeline.subscribe_error = TransportError("Realtime client not configured")

        with pytest.raises(TransportError):
            await ProjectFeedController.create(
                "project-1",
                transport=transport,
                timeline=timeline,
                settings=settings,
            )
        assert transport.unsubscribed

    @pytest.mark.asyncio
    async def test_create_without_subscription(self, settings):
        transport = FakeTransport()
        controller = await ProjectFeedController.create(
            "project-1",
            transport=transport,
            timeline=FakeTimeline(),
            subscribe=False,
            settings=settings,
        )
        assert transport.callbacks == []
        await controller.dispose()
        assert not transport.unsubscribed

    @pytest.mark.asyncio
    async def test_operations_after_dispose(self, make_controller, message_factory):
        controller = make_controller()
        await controller.dispose()
        await controller.dispose()

        with pytest.raises(ControllerDisposed):
            await controller.refresh()
        with pytest.raises(ControllerDisposed):
            await controller.send("hello")

        controller.handle_incoming(message_factory(10))
        assert controller.feed == ()

    @pytest.mark.asyncio
    async def test_dispose_during_fetch_discards_result(self, make_controller):
        gate = asyncio.Event()
        timeline = FakeTimeline(gate=gate)
        controller = make_controller(timeline=timeline)

        pending = asyncio.create_task(controller.refresh())
        await timeline.entered.wait()
        await controller.dispose()
        gate.set()

        assert await pending is False
        assert controller.status is None

    @pytest.mark.asyncio
    async def test_snapshot(self, make_controller, message_factory):
        transport = FakeTransport({0: MessagePage(messages=[message_factory(10)], has_more=True)})
        controller = make_controller(transport, FakeTimeline(status="in_progress"))
        await controller.refresh()

        snapshot = controller.snapshot()
        assert snapshot.project_id == "project-1"
        assert snapshot.status == "in_progress"
        assert snapshot.has_more_messages
        assert len(snapshot.entries) == 1
        assert len(snapshot.track) == 9
