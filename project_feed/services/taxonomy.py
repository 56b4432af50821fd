"""
Project status taxonomy.

A closed, data-driven table mapping backend status codes onto a fixed
visual progress track. New statuses are additions to STATUS_TABLE, not new
code paths. Lookups by code never fail: codes the backend adds later fall
back to a sentinel status on step 0 with a humanized label.
"""

import logging
from functools import lru_cache
from typing import Union

from project_feed.models.status import ProjectStatus, StatusCode
from project_feed.services.errors import UnknownStatusError

logger = logging.getLogger(__name__)

StatusLike = Union[ProjectStatus, StatusCode, str]


# Visual track: (key, short label, explanation title, explanation description)
TRACK_STEPS: tuple[tuple[str, str, str, str], ...] = (
    ("submitted", "Submitted", "In Queue",
     "Your project is being reviewed. You'll be notified when the quote is ready."),
    ("analyzing", "Under Review", "Under Review",
     "An expert is analyzing your requirements to prepare an accurate quote."),
    ("quoted", "Quote Ready", "Quote Ready",
     "Your quote is ready. Complete the payment to get started."),
    ("paid", "Paid", "Payment Received",
     "We're assigning the best expert for your project."),
    ("assigned", "Assigned", "Expert Assigned",
     "Your expert is preparing to start work on your project."),
    ("in_progress", "In Progress", "Work in Progress",
     "Your expert is actively working on your project."),
    ("qc", "Quality Check", "Quality Check",
     "Our QC team is reviewing your work to ensure quality standards."),
    ("delivered", "Delivered", "Delivered",
     "Your project is complete. Review the deliverables below."),
    ("completed", "Completed", "Completed",
     "This project is closed. Thank you!"),
)

TOTAL_STEPS = len(TRACK_STEPS)


# code: (label, description, step, active, requires_action, terminal, user_initiated)
_STATUS_ROWS: dict[StatusCode, tuple[str, str, int, bool, bool, bool, bool]] = {
    StatusCode.DRAFT: (
        "Draft", "Project has not been submitted yet", 0, False, True, False, False),
    StatusCode.SUBMITTED: (
        "Project Submitted", "Your project has been submitted for review", 0, True, False, False, True),
    StatusCode.ANALYZING: (
        "Under Review", "Our team is reviewing your requirements", 1, True, False, False, False),
    StatusCode.QUOTED: (
        "Quote Prepared", "Your quote is ready for review", 2, True, True, False, False),
    StatusCode.PAYMENT_PENDING: (
        "Awaiting Payment", "Please complete the payment to proceed", 2, True, True, False, False),
    StatusCode.PAID: (
        "Payment Successful", "Your payment has been received", 3, True, False, False, True),
    StatusCode.ASSIGNING: (
        "Assigning Expert", "We're finding the best expert for your project", 4, True, False, False, False),
    StatusCode.ASSIGNED: (
        "Expert Assigned", "An expert has been assigned to your project", 4, True, False, False, False),
    StatusCode.IN_PROGRESS: (
        "Work Started", "Your expert has started working", 5, True, False, False, False),
    StatusCode.SUBMITTED_FOR_QC: (
        "Submitted for Quality Check", "The work was submitted for quality review", 6, True, False, False, False),
    StatusCode.QC_IN_PROGRESS: (
        "Quality Check", "Your work is being reviewed for quality", 6, True, False, False, False),
    StatusCode.QC_APPROVED: (
        "Quality Check Passed", "Your work passed the quality review", 6, True, False, False, False),
    StatusCode.QC_REJECTED: (
        "Returned for Rework", "Quality review requested changes from the expert", 5, True, True, False, False),
    StatusCode.DELIVERED: (
        "Delivered", "Your project has been delivered", 7, True, True, False, False),
    StatusCode.REVISION_REQUESTED: (
        "Revision Requested", "You requested changes to the delivery", 7, True, True, False, True),
    StatusCode.IN_REVISION: (
        "In Revision", "Your expert is making the requested changes", 5, True, False, False, False),
    StatusCode.COMPLETED: (
        "Marked Complete", "You marked this project as complete", 8, False, False, True, True),
    StatusCode.AUTO_APPROVED: (
        "Auto Approved", "The delivery was approved automatically", 8, False, False, True, False),
    # Cancelled and refunded projects carry their last productive step
    # forward at resolve time; the static index is only a floor.
    StatusCode.CANCELLED: (
        "Cancelled", "This project was cancelled", 0, False, False, True, False),
    StatusCode.REFUNDED: (
        "Refunded", "Your payment has been refunded", 0, False, False, True, False),
}

STATUS_TABLE: dict[str, ProjectStatus] = {
    code.value: ProjectStatus(
        code=code.value,
        display_label=label,
        description=description,
        step_index=step,
        is_active=active,
        requires_action=requires_action,
        is_terminal=terminal,
        user_initiated=user_initiated,
    )
    for code, (label, description, step, active, requires_action, terminal, user_initiated)
    in _STATUS_ROWS.items()
}

# Canonical forward path, submitted through completion
HAPPY_PATH: tuple[str, ...] = (
    "draft",
    "submitted",
    "analyzing",
    "quoted",
    "payment_pending",
    "paid",
    "assigning",
    "assigned",
    "in_progress",
    "submitted_for_qc",
    "qc_in_progress",
    "qc_approved",
    "delivered",
    "completed",
)

@lru_cache(maxsize=256)
def _warn_unknown(code: str) -> None:
    # one warning per code while it stays cached
    logger.warning(f"Unknown project status: {code!r}; rendering with fallback label")


def humanize_code(code: str) -> str:
    """Turn a raw status code into a readable label: 'on_hold' -> 'On Hold'."""
    words = [w for w in code.replace("-", "_").split("_") if w]
    if not words:
        return "Unknown"
    return " ".join(w.capitalize() for w in words)


def unknown_status(code: str) -> ProjectStatus:
    """Sentinel status used for codes missing from the taxonomy."""
    return ProjectStatus(
        code=code,
        display_label=humanize_code(code),
        description="Status updated",
        step_index=0,
        is_active=False,
        requires_action=False,
        is_terminal=False,
        is_known=False,
    )


def require_status(code: str) -> ProjectStatus:
    """
    Strict lookup.

    Raises:
        UnknownStatusError: If code is not in the taxonomy.
    """
    try:
        return STATUS_TABLE[code]
    except KeyError:
        raise UnknownStatusError(code) from None


def status_for(code: StatusLike) -> ProjectStatus:
    """Look up a status by code, falling back to the unknown sentinel."""
    if isinstance(code, ProjectStatus):
        return code
    if isinstance(code, StatusCode):
        code = code.value
    code = (code or "").strip().lower()
    try:
        return require_status(code)
    except UnknownStatusError:
        _warn_unknown(code)
        return unknown_status(code)


def step_index_of(status: StatusLike) -> int:
    """Position of a status on the visual track."""
    return status_for(status).step_index


def is_visually_equivalent(a: StatusLike, b: StatusLike) -> bool:
    """True when a transition from a to b would not move the progress track."""
    return step_index_of(a) == step_index_of(b)


def step_for_index(index: int) -> tuple[str, str, str, str]:
    """Track step row for an index, clamped to the track."""
    return TRACK_STEPS[max(0, min(index, TOTAL_STEPS - 1))]


def all_statuses() -> list[ProjectStatus]:
    """Every known status, in lifecycle order."""
    return list(STATUS_TABLE.values())
