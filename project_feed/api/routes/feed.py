"""
Project feed endpoints.

Merged activity feed, progress track and message sending for a project.
Feed errors (content policy, attachments, transport) are translated into
responses by the handlers registered in main.py.
"""

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from pydantic import BaseModel

from project_feed.api.deps import (
    CurrentUser,
    DatabaseDep,
    FeedControllerDep,
    RealtimeDep,
    SettingsDep,
    ValidatorDep,
)
from project_feed.models.chat import ChatMessage, ChatMessageCreate
from project_feed.models.feed import FeedResponse
from project_feed.models.status import StepProgress, TrackStep
from project_feed.services.auth import AuthError, extract_user_context, verify_token
from project_feed.services.chat_transport import SupabaseChatTransport
from project_feed.services.errors import TransportError
from project_feed.services.feed_controller import ProjectFeedController
from project_feed.services.timeline_repository import TimelineRepository

router = APIRouter()
logger = logging.getLogger(__name__)


class ProgressResponse(BaseModel):
    """Current position on the progress track."""
    project_id: str
    progress: StepProgress
    track: list[TrackStep]


@router.get(
    "/feed",
    response_model=FeedResponse,
    summary="Get project feed",
    description="Chat messages and timeline events merged in chronological order.",
)
async def get_feed(
    project_id: str,
    controller: FeedControllerDep,
    pages: int = 1,
) -> FeedResponse:
    """
    Get the merged feed.

    ``pages`` loads additional older message pages before merging.
    """
    for _ in range(max(0, pages - 1)):
        if not await controller.load_more():
            break
    return controller.snapshot()


@router.get(
    "/progress",
    response_model=ProgressResponse,
    summary="Get project progress",
    description="Step index on the progress track and the state of each step.",
)
async def get_progress(
    project_id: str,
    controller: FeedControllerDep,
) -> ProgressResponse:
    return ProgressResponse(
        project_id=project_id,
        progress=controller.progress,
        track=controller.track,
    )


@router.post(
    "/messages",
    response_model=ChatMessage,
    status_code=status.HTTP_201_CREATED,
    summary="Send a message",
    description="Send a chat message after content policy validation.",
)
async def send_message(
    project_id: str,
    request: ChatMessageCreate,
    user: CurrentUser,
    controller: FeedControllerDep,
) -> ChatMessage:
    """
    Send a message to the project's chat room.

    Messages containing contact details are rejected with 422.
    """
    message = await controller.send(request.content, request.attachment)
    logger.info(f"User {user.user_id} sent message {message.id} on project {project_id}")
    return message


@router.websocket("/feed/live")
async def feed_live(
    websocket: WebSocket,
    project_id: str,
    token: str,
    db: DatabaseDep,
    realtime: RealtimeDep,
    settings: SettingsDep,
    validator: ValidatorDep,
) -> None:
    """
    Stream the feed over a WebSocket.

    Sends a full FeedResponse on connect and again after every change
    picked up from the realtime channels. Browsers cannot set headers on
    WebSocket requests, so the JWT travels in the ``token`` query param.
    """
    try:
        user = extract_user_context(verify_token(token))
    except AuthError as e:
        logger.warning(f"Live feed authentication failed: {e.message}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.message)
        return

    await websocket.accept()
    try:
        controller = await ProjectFeedController.create(
            project_id,
            transport=SupabaseChatTransport(db, sender_id=user.user_id, realtime=realtime, settings=settings),
            timeline=TimelineRepository(db, settings=settings, realtime=realtime),
            validator=validator,
            current_user_id=user.user_id,
            settings=settings,
        )
    except TransportError as e:
        logger.error(f"Live feed for project {project_id} failed to load: {e.message}")
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR, reason=e.user_message)
        return

    updates: asyncio.Queue = asyncio.Queue()
    controller.add_listener(lambda feed: updates.put_nowait(controller.snapshot()))
    logger.info(f"Live feed opened for project {project_id} by {user.user_id}")

    async def push_updates() -> None:
        while True:
            snapshot = await updates.get()
            await websocket.send_json(snapshot.model_dump(mode="json"))

    pusher = None
    try:
        await websocket.send_json(controller.snapshot().model_dump(mode="json"))
        pusher = asyncio.create_task(push_updates())
        # inbound frames are ignored; receiving only detects the disconnect
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info(f"Live feed closed for project {project_id}")
    finally:
        if pusher is not None:
            pusher.cancel()
        await controller.dispose()
