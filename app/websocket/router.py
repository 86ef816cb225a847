from __future__ import annotations

import json
import uuid

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.logging import get_logger
from app.websocket.events import (
    EventType,
    InboundMessage,
    InboundMessageType,
    MONITORING_CHANNEL,
    WebSocketEvent,
)
from app.websocket.manager import ConnectionManager

logger = get_logger(__name__)

router = APIRouter(tags=["websocket"])


@router.websocket("/ws/monitoring")
async def monitoring_websocket(websocket: WebSocket):
    """
    WebSocket endpoint for real-time device monitoring events.

    Clients are subscribed to the monitoring channel on connect.

    Client actions:
    - subscribe: Subscribe to a channel
    - unsubscribe: Unsubscribe from a channel
    - ping: Keep-alive ping
    """
    await websocket.accept()

    manager: ConnectionManager = websocket.app.state.connection_manager
    client_id = uuid.uuid4().hex

    await manager.register_connection(client_id, websocket)
    await manager.subscribe(client_id, MONITORING_CHANNEL)

    try:
        while True:
            data = await websocket.receive_text()
            await _handle_client_message(client_id, data, manager)
    except WebSocketDisconnect:
        logger.debug("websocket_disconnected client_id=%s", client_id)
    except Exception as exc:
        logger.warning("websocket_error client_id=%s error=%s", client_id, exc)
    finally:
        await manager.unregister_connection(client_id)


async def _handle_client_message(client_id: str, raw_data: str, manager: ConnectionManager):
    """Process incoming client message."""
    try:
        data = json.loads(raw_data)
        message = InboundMessage(**data)

        if message.type == InboundMessageType.SUBSCRIBE:
            await manager.subscribe(client_id, message.channel)
            await manager.send_event(
                client_id,
                WebSocketEvent(event=EventType.SUBSCRIBED, data={"channel": message.channel}),
            )

        elif message.type == InboundMessageType.UNSUBSCRIBE:
            await manager.unsubscribe(client_id, message.channel)
            await manager.send_event(
                client_id,
                WebSocketEvent(
                    event=EventType.UNSUBSCRIBED, data={"channel": message.channel}
                ),
            )

        elif message.type == InboundMessageType.PING:
            await manager.send_heartbeat(client_id)

    except json.JSONDecodeError:
        logger.warning("websocket_invalid_json client_id=%s", client_id)
    except Exception as exc:
        logger.warning("websocket_message_error client_id=%s error=%s", client_id, exc)
