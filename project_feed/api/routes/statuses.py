"""
Status taxonomy endpoints.

Read-only listing of the known project statuses and the progress track,
so clients can render labels without hardcoding codes.
"""

from fastapi import APIRouter

from project_feed.models.status import ProjectStatus, StatusListItem
from project_feed.services.taxonomy import all_statuses, status_for, step_for_index

router = APIRouter()


def _list_item(status: ProjectStatus) -> StatusListItem:
    return StatusListItem(
        code=status.code,
        display_label=status.display_label,
        step_index=status.step_index,
        step_label=step_for_index(status.step_index)[1],
        is_active=status.is_active,
        requires_action=status.requires_action,
        is_terminal=status.is_terminal,
    )


@router.get(
    "",
    response_model=list[StatusListItem],
    summary="List statuses",
    description="Every known project status with its position on the progress track.",
)
async def list_statuses() -> list[StatusListItem]:
    return [_list_item(s) for s in all_statuses()]


@router.get(
    "/{code}",
    response_model=StatusListItem,
    summary="Get status",
    description="Look up one status. Unknown codes return the generic fallback.",
)
async def get_status(code: str) -> StatusListItem:
    return _list_item(status_for(code))
