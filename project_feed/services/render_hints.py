"""
Render hints for feed entries.

Classification of events is a static lookup keyed by status code. Adding
a high-salience status means adding a row to HIGH_SALIENCE_EVENTS.
Event alignment is from the client's point of view: client-initiated
cards sit on the right, supervisor and system cards on the left.
"""

from typing import Optional

from project_feed.models.chat import ChatMessage, MessageType
from project_feed.models.feed import Alignment, RenderHint, RenderStyle
from project_feed.models.timeline import TimelineEvent, TimelineEventKind
from project_feed.services.taxonomy import status_for

# code: (style, emoji, color class)
HIGH_SALIENCE_EVENTS: dict[str, tuple[RenderStyle, str, str]] = {
    "paid": (RenderStyle.CELEBRATION, "🎉", "success"),
    "completed": (RenderStyle.CELEBRATION, "🏁", "success"),
    "auto_approved": (RenderStyle.CELEBRATION, "🏁", "success"),
    "delivered": (RenderStyle.CELEBRATION, "📦", "success"),
    "qc_rejected": (RenderStyle.ALERT, "⚠️", "danger"),
    "assigned": (RenderStyle.ASSIGNMENT, "👤", "info"),
}

QUOTE_HINT = (RenderStyle.QUOTE_CARD, "💳", "primary")


def format_amount(amount: float) -> str:
    """Format a quote amount in rupees: 12500.0 -> '₹12,500'."""
    if float(amount).is_integer():
        return f"₹{amount:,.0f}"
    return f"₹{amount:,.2f}"


def hint_for_event(event: TimelineEvent) -> RenderHint:
    """Render hint for a timeline event; unknown codes get a generic notice."""
    if event.kind == TimelineEventKind.QUOTE:
        style, emoji, color = QUOTE_HINT
        return RenderHint(
            style=style,
            alignment=Alignment.LEFT,
            label="Quote Ready",
            description=f"Total amount {format_amount(event.amount)}",
            emoji=emoji,
            color_class=color,
        )

    if event.kind == TimelineEventKind.MESSAGE:
        return RenderHint(
            style=RenderStyle.SYSTEM_NOTICE,
            alignment=Alignment.CENTER,
            label=event.notes or "Update",
        )

    status = status_for(event.to_status)
    salient = HIGH_SALIENCE_EVENTS.get(status.code)
    if salient is None:
        return RenderHint(
            style=RenderStyle.SYSTEM_NOTICE,
            alignment=Alignment.CENTER,
            label=status.display_label,
            description=status.description,
        )

    style, emoji, color = salient
    return RenderHint(
        style=style,
        alignment=Alignment.RIGHT if status.user_initiated else Alignment.LEFT,
        label=status.display_label,
        description=status.description,
        emoji=emoji,
        color_class=color,
    )


def hint_for_message(message: ChatMessage, current_user_id: Optional[str] = None) -> RenderHint:
    """Chat bubble: right-aligned for the current user, left otherwise."""
    mine = current_user_id is not None and message.sender_id == current_user_id
    if mine:
        label = "You"
    else:
        label = message.sender_name or "Supervisor"

    description = ""
    if message.is_deleted:
        description = "This message was deleted"
    elif message.attachment is not None:
        description = message.attachment.name
    emoji = None
    if message.message_type == MessageType.IMAGE:
        emoji = "🖼️"
    elif message.message_type == MessageType.FILE:
        emoji = "📎"

    return RenderHint(
        style=RenderStyle.BUBBLE,
        alignment=Alignment.RIGHT if mine else Alignment.LEFT,
        label=label,
        description=description,
        emoji=emoji,
        color_class="primary" if mine else "neutral",
    )
