"""
Project status Pydantic models.

Models for the project lifecycle taxonomy and the visual progress track.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class StatusCode(str, Enum):
    """Project status codes as stored by the backend."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    ANALYZING = "analyzing"
    QUOTED = "quoted"
    PAYMENT_PENDING = "payment_pending"
    PAID = "paid"
    ASSIGNING = "assigning"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    SUBMITTED_FOR_QC = "submitted_for_qc"
    QC_IN_PROGRESS = "qc_in_progress"
    QC_APPROVED = "qc_approved"
    QC_REJECTED = "qc_rejected"
    DELIVERED = "delivered"
    REVISION_REQUESTED = "revision_requested"
    IN_REVISION = "in_revision"
    COMPLETED = "completed"
    AUTO_APPROVED = "auto_approved"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class ProjectStatus(BaseModel):
    """
    One entry of the status taxonomy.

    Several codes may share a step_index: business-level states such as
    the QC sub-states collapse onto a single visual step.
    """

    model_config = ConfigDict(frozen=True)

    code: str
    display_label: str
    description: str = ""
    step_index: int = Field(..., ge=0)
    is_active: bool = False
    requires_action: bool = False
    is_terminal: bool = False
    user_initiated: bool = False
    is_known: bool = True

    @property
    def is_abnormal_end(self) -> bool:
        """Terminal without reaching delivery (cancelled or refunded)."""
        return self.is_terminal and self.code in (
            StatusCode.CANCELLED.value,
            StatusCode.REFUNDED.value,
        )


class StepProgress(BaseModel):
    """Position of a project on the visual progress track."""

    status_code: str
    step_index: int
    total_steps: int
    halted: bool = False

    @property
    def percent(self) -> int:
        """Completion percentage for progress bars."""
        if self.total_steps <= 1:
            return 0
        return round(self.step_index * 100 / (self.total_steps - 1))


class TrackStepState(str, Enum):
    """Display state of one step on the progress track."""

    COMPLETED = "completed"
    CURRENT = "current"
    PENDING = "pending"
    HALTED = "halted"


class TrackStep(BaseModel):
    """A single step of the visual track, annotated for display."""

    index: int
    key: str
    label: str
    title: str
    description: str
    state: TrackStepState


class StatusListItem(BaseModel):
    """Taxonomy entry as exposed by the statuses endpoint."""

    code: str
    display_label: str
    step_index: int
    step_label: Optional[str] = None
    is_active: bool
    requires_action: bool
    is_terminal: bool
