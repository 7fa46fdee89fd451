"""Reload notification endpoints: WebSocket and Server-Sent Events."""

from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

import structlog
from fastapi import APIRouter, HTTPException, Request, WebSocket
from sse_starlette import ServerSentEvent
from sse_starlette.sse import EventSourceResponse
from starlette.background import BackgroundTask

from devreload.errors import CapacityError
from devreload.events.connection import ConnectionHandler, WebSocketTransport

if TYPE_CHECKING:
    from devreload.config import Settings
    from devreload.events.broadcaster import Broadcaster

logger = structlog.get_logger()

router = APIRouter(tags=["reload"])


@router.websocket("/")
@router.websocket("/ws")
async def reload_socket(websocket: WebSocket) -> None:
    """Push one frame per debounced change over a WebSocket.

    Args:
        websocket: Incoming WebSocket connection.
    """
    broadcaster: Broadcaster = websocket.app.state.broadcaster
    handler = ConnectionHandler(broadcaster)
    await handler.serve(WebSocketTransport(websocket))


async def _sse_frames(handler: ConnectionHandler) -> AsyncIterator[ServerSentEvent]:
    try:
        async for notification in handler.notifications():
            yield ServerSentEvent(event="reload", data=notification.frame)
    finally:
        await handler.close()


@router.get("/events")
async def reload_events(request: Request) -> EventSourceResponse:
    """Stream reload notifications via Server-Sent Events.

    Args:
        request: FastAPI request object.

    Returns:
        SSE response emitting a ``reload`` event per debounced change.

    Raises:
        HTTPException: 503 if the client limit is reached.
    """
    broadcaster: Broadcaster = request.app.state.broadcaster
    settings: Settings = request.app.state.settings

    handler = ConnectionHandler(broadcaster)
    try:
        client = await handler.open()
    except CapacityError as e:
        raise HTTPException(status_code=503, detail="Too many clients") from e

    logger.info(
        "client_connected",
        client_id=client.id,
        transport="sse",
        clients=broadcaster.client_count,
    )

    # The generator's finally never runs if the client leaves before the
    # stream starts, or runs inside a cancelled scope; close again after.
    return EventSourceResponse(
        _sse_frames(handler),
        ping=max(1, int(settings.heartbeat_interval)),
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
        background=BackgroundTask(handler.close),
    )
