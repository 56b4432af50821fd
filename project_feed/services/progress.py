"""
Step-index resolver.

Maps a project status onto the fixed visual progress track. Cancelled and
refunded projects keep the step they had reached when they stopped: the
resolver walks the transition history backwards to the last productive
status and reports that step with ``halted=True``.
"""

import logging
from typing import Iterable, Optional

from project_feed.models.status import StepProgress, TrackStep, TrackStepState
from project_feed.models.timeline import TimelineEvent, TimelineEventKind
from project_feed.services.taxonomy import (
    TOTAL_STEPS,
    TRACK_STEPS,
    StatusLike,
    status_for,
)

logger = logging.getLogger(__name__)


def history_from_events(events: Iterable[TimelineEvent]) -> list[str]:
    """
    Status codes a project passed through, oldest first.

    The first transition contributes its from_status too, so a history
    that starts mid-flow still knows where the project came from.
    """
    changes = sorted(
        (e for e in events if e.kind == TimelineEventKind.STATUS_CHANGE),
        key=lambda e: e.timestamp,
    )
    history: list[str] = []
    for event in changes:
        if event.from_status and (not history or history[-1] != event.from_status):
            history.append(event.from_status)
        history.append(event.to_status)
    return history


class StepIndexResolver:
    """
    Resolves statuses to {step_index, total_steps}.

    Usage:
        resolver = StepIndexResolver()
        progress = resolver.resolve("qc_in_progress")
        halted = resolver.resolve("cancelled", previous=["submitted", "quoted"])
    """

    def __init__(self, total_steps: int = TOTAL_STEPS):
        self.total_steps = total_steps

    def last_productive_step(self, previous: Iterable[StatusLike]) -> int:
        """Step of the most recent status that was not an abnormal end."""
        for code in reversed(list(previous)):
            status = status_for(code)
            if not status.is_abnormal_end:
                return status.step_index
        return 0

    def resolve(
        self,
        status: StatusLike,
        previous: Optional[Iterable[StatusLike]] = None,
    ) -> StepProgress:
        """
        Resolve a status to its track position.

        Args:
            status: Current status (code or record).
            previous: Statuses the project passed through, oldest first.
                Only consulted for cancelled/refunded projects.

        Returns:
            StepProgress; never raises.
        """
        current = status_for(status)
        if current.is_abnormal_end:
            step = self.last_productive_step(previous or ())
            return StepProgress(
                status_code=current.code,
                step_index=step,
                total_steps=self.total_steps,
                halted=True,
            )
        return StepProgress(
            status_code=current.code,
            step_index=min(current.step_index, self.total_steps - 1),
            total_steps=self.total_steps,
        )

    def resolve_events(
        self,
        status: Optional[StatusLike],
        events: Iterable[TimelineEvent],
    ) -> StepProgress:
        """Resolve using the status-change events of a project as history."""
        history = history_from_events(events)
        if status is None:
            status = history[-1] if history else "draft"
        current = status_for(status).code
        # the current status is usually the tail of the history
        if history and history[-1] == current:
            history = history[:-1]
        return self.resolve(current, history)

    def track(
        self,
        status: StatusLike,
        previous: Optional[Iterable[StatusLike]] = None,
    ) -> list[TrackStep]:
        """Annotate every track step as completed, current, pending or halted."""
        return self.track_for(self.resolve(status, previous))

    def track_for(self, progress: StepProgress) -> list[TrackStep]:
        finished = progress.step_index == self.total_steps - 1 and not progress.halted
        steps = []
        for index, (key, label, title, description) in enumerate(TRACK_STEPS[: self.total_steps]):
            if index < progress.step_index or finished:
                state = TrackStepState.COMPLETED
            elif index == progress.step_index:
                state = TrackStepState.HALTED if progress.halted else TrackStepState.CURRENT
            else:
                state = TrackStepState.PENDING
            steps.append(TrackStep(
                index=index,
                key=key,
                label=label,
                title=title,
                description=description,
                state=state,
            ))
        return steps


_default_resolver = StepIndexResolver()


def resolve(status: StatusLike, previous: Optional[Iterable[StatusLike]] = None) -> StepProgress:
    """Resolve with the default nine-step track."""
    return _default_resolver.resolve(status, previous)
