"""Websocket endpoint streaming live progress events."""

import asyncio
from typing import Optional

from fastapi import APIRouter, WebSocket
from starlette.status import WS_1008_POLICY_VIOLATION

from ..auth import check_credentials, parse_basic_header
from backup_dashboard.progress import Subscription
from backup_dashboard._utils import logger

router = APIRouter(tags=["progress"])


async def _forward(websocket: WebSocket, subscription: Subscription) -> None:
    async for event in subscription:
        await websocket.send_json({"event": "progress", "data": event.model_dump(mode="json")})


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/ws/progress")
async def progress_updates(websocket: WebSocket, operation_id: Optional[str] = None):
    """Send ``progress`` events to the client.

    With ``operation_id`` only that operation's events are sent and the socket
    closes after its terminal event; without it every event is sent.
    """
    credentials = parse_basic_header(websocket.headers.get("authorization"))
    settings = websocket.app.state.settings
    if credentials is None or not check_credentials(settings, credentials.username, credentials.password):
        await websocket.close(code=WS_1008_POLICY_VIOLATION)
        return

    channel = websocket.app.state.progress
    subscription = channel.subscribe(operation_id) if operation_id else channel.subscribe_all()

    try:
        await websocket.accept()
        websocket.app.state.audit.record("Client connected for real-time updates")

        forward = asyncio.create_task(_forward(websocket, subscription))
        disconnect = asyncio.create_task(_wait_for_disconnect(websocket))
        done, pending = await asyncio.wait({forward, disconnect}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        if disconnect in done and disconnect.exception() is not None:
            logger.debug(f"Progress client dropped: {disconnect.exception()}")
        if forward in done:
            error = forward.exception()
            if error is None:
                await websocket.close()
            else:
                logger.debug(f"Progress stream ended: {error}")
    finally:
        subscription.close()
        logger.info("Client disconnected from real-time updates")
