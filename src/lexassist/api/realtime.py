"""WebSocket endpoint for live document and message updates.

A connection is inert until the client sends {"type": "auth", "userId": ...};
after that it receives document_update and message_update events for that
user only.
"""

import json
import uuid

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from lexassist.adapters.notification_bus import NotificationBus
from lexassist.observability import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["realtime"])


def _parse_user_id(value: object) -> uuid.UUID | None:
    if not isinstance(value, str):
        return None
    try:
        return uuid.UUID(value)
    except ValueError:
        return None


@router.websocket("/ws")
async def realtime_channel(websocket: WebSocket) -> None:
    """Register the connection with the bus and handle auth handshakes."""
    bus: NotificationBus = websocket.app.state.notification_bus
    users = websocket.app.state.user_repository

    await websocket.accept()
    connection_id = await bus.register(websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                data = json.loads(raw)
            except ValueError:
                logger.warning("Ignoring non-JSON frame", connection_id=connection_id)
                continue
            if not isinstance(data, dict) or data.get("type") != "auth":
                continue

            user_id = _parse_user_id(data.get("userId"))
            if user_id is None or await users.get_by_id(user_id) is None:
                await bus.send(connection_id, {"type": "auth", "status": "error", "message": "Unknown user"})
                continue
            bound = await bus.authenticate(connection_id, user_id)
            await bus.send(connection_id, {"type": "auth", "status": "success" if bound else "error"})
    except WebSocketDisconnect:
        logger.debug("Connection closed by client", connection_id=connection_id)
    finally:
        await bus.unregister(connection_id)
