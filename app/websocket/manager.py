from __future__ import annotations

import asyncio
import json
import uuid

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from app.config import settings
from app.logging import get_logger
from app.websocket.events import EventType, WebSocketEvent

logger = get_logger(__name__)

CHANNEL_PREFIX = "acs_ws:"


class ConnectionManager:
    """
    Manages WebSocket connections with Redis pub/sub for horizontal scaling.

    Local connection pool: client_id -> WebSocket
    Channel subscriptions: channel -> set[client_id]

    Messages this instance publishes to Redis carry its ``instance_id`` so the
    listener does not deliver them to local subscribers a second time.
    """

    def __init__(self, redis_url: str | None = None):
        self.instance_id = uuid.uuid4().hex
        self._redis_url = redis_url or settings.redis_url
        self._connections: dict[str, WebSocket] = {}
        self._subscriptions: dict[str, set[str]] = {}
        self._redis_client = None
        self._pubsub = None
        self._listener_task: asyncio.Task | None = None
        self._running = False

    async def connect(self):
        """Initialize Redis connection and start listener."""
        try:
            import redis.asyncio as aioredis

            self._redis_client = aioredis.from_url(self._redis_url, decode_responses=True)
            self._pubsub = self._redis_client.pubsub()
            await self._pubsub.psubscribe(f"{CHANNEL_PREFIX}*")
            self._running = True
            self._listener_task = asyncio.create_task(self._redis_listener())
            logger.info("websocket_manager_connected redis=%s", self._redis_url)
        except Exception as exc:
            self._redis_client = None
            self._pubsub = None
            logger.warning("websocket_manager_redis_failed error=%s", exc)

    async def disconnect(self):
        """Cleanup Redis connection and stop listener."""
        self._running = False
        if self._listener_task:
            self._listener_task.cancel()
            try:
                await self._listener_task
            except asyncio.CancelledError:
                pass
            self._listener_task = None
        if self._pubsub:
            await self._pubsub.punsubscribe()
            await self._pubsub.aclose()
            self._pubsub = None
        if self._redis_client:
            await self._redis_client.aclose()
            self._redis_client = None
        logger.info("websocket_manager_disconnected")

    async def _redis_listener(self):
        """Listen for messages from Redis pub/sub and dispatch to local connections."""
        try:
            while self._running:
                message = await self._pubsub.get_message(
                    ignore_subscribe_messages=True, timeout=1.0
                )
                if message and message["type"] == "pmessage":
                    await self._handle_redis_message(message["channel"], message["data"])
        except asyncio.CancelledError:
            pass
        except Exception as exc:
            logger.error("websocket_redis_listener_error error=%s", exc)

    async def _handle_redis_message(self, redis_channel: str, data: str):
        """Process incoming Redis message and dispatch to local connections."""
        try:
            payload = json.loads(data)
            if payload.get("origin") == self.instance_id:
                return
            channel = payload.get("channel")
            event_data = payload.get("event")

            if channel and event_data:
                await self._dispatch_to_subscribers(channel, event_data)
        except Exception as exc:
            logger.warning(
                "websocket_redis_message_error channel=%s error=%s", redis_channel, exc
            )

    async def _dispatch_to_subscribers(self, channel: str, event_data: dict):
        """Send event to every client subscribed to a channel, in order."""
        for client_id in list(self._subscriptions.get(channel, set())):
            ws = self._connections.get(client_id)
            if ws is None:
                continue
            try:
                if ws.client_state == WebSocketState.CONNECTED:
                    await ws.send_json(event_data)
            except Exception:
                await self._remove_connection(client_id)

    async def register_connection(self, client_id: str, websocket: WebSocket):
        """Register a new WebSocket connection."""
        self._connections[client_id] = websocket
        logger.debug("websocket_registered client_id=%s", client_id)

        ack_event = WebSocketEvent(
            event=EventType.CONNECTION_ACK,
            data={"client_id": client_id, "status": "connected"},
        )
        await websocket.send_json(ack_event.model_dump(mode="json"))

    async def unregister_connection(self, client_id: str):
        """Remove a WebSocket connection."""
        await self._remove_connection(client_id)

    async def _remove_connection(self, client_id: str):
        """Drop a connection and all of its subscriptions."""
        self._connections.pop(client_id, None)
        for channel in list(self._subscriptions.keys()):
            self._subscriptions[channel].discard(client_id)
            if not self._subscriptions[channel]:
                del self._subscriptions[channel]
        logger.debug("websocket_unregistered client_id=%s", client_id)

    async def subscribe(self, client_id: str, channel: str):
        self._subscriptions.setdefault(channel, set()).add(client_id)
        logger.debug("websocket_subscribed client_id=%s channel=%s", client_id, channel)

    async def unsubscribe(self, client_id: str, channel: str):
        if channel in self._subscriptions:
            self._subscriptions[channel].discard(client_id)
            if not self._subscriptions[channel]:
                del self._subscriptions[channel]
        logger.debug("websocket_unsubscribed client_id=%s channel=%s", client_id, channel)

    def subscriber_count(self, channel: str) -> int:
        return len(self._subscriptions.get(channel, ()))

    async def broadcast(self, channel: str, event_data: dict):
        """Broadcast an event to all subscribers of a channel via Redis."""
        if self._redis_client:
            try:
                payload = json.dumps(
                    {"origin": self.instance_id, "channel": channel, "event": event_data}
                )
                await self._redis_client.publish(f"{CHANNEL_PREFIX}{channel}", payload)
            except Exception as exc:
                logger.warning("websocket_broadcast_redis_error error=%s", exc)

        # Also dispatch locally for same-instance delivery
        await self._dispatch_to_subscribers(channel, event_data)

    async def send_event(self, client_id: str, event: WebSocketEvent):
        """Send a connection-level event to a single client."""
        websocket = self._connections.get(client_id)
        if websocket is None:
            return
        try:
            await websocket.send_json(event.model_dump(mode="json"))
        except Exception:
            await self._remove_connection(client_id)

    async def send_heartbeat(self, client_id: str):
        await self.send_event(
            client_id, WebSocketEvent(event=EventType.HEARTBEAT, data={"status": "ok"})
        )
