"""Publish side of the monitoring channel.

Engine components only depend on ``Broadcaster.publish``; which transport
carries the message (local queues, WebSocket clients, Redis) is decided by
whoever builds the engine.
"""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod

from app.config import settings
from app.logging import get_logger
from app.websocket.events import MONITORING_CHANNEL, MonitoringEvent
from app.websocket.manager import CHANNEL_PREFIX, ConnectionManager

logger = get_logger(__name__)


class Broadcaster(ABC):
    @abstractmethod
    async def publish(self, channel: str, message: dict) -> None:
        """Deliver ``message`` to every subscriber of ``channel``."""


class InMemoryBroadcaster(Broadcaster):
    """Fan-out to local asyncio queues, one per subscriber."""

    def __init__(self):
        self._subscribers: dict[str, list[asyncio.Queue]] = {}

    def subscribe(self, channel: str = MONITORING_CHANNEL) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.setdefault(channel, []).append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue, channel: str = MONITORING_CHANNEL) -> None:
        queues = self._subscribers.get(channel, [])
        if queue in queues:
            queues.remove(queue)
        if not queues:
            self._subscribers.pop(channel, None)

    async def publish(self, channel: str, message: dict) -> None:
        for queue in list(self._subscribers.get(channel, [])):
            queue.put_nowait(message)


class ConnectionBroadcaster(Broadcaster):
    """Deliver to WebSocket clients through the connection manager."""

    def __init__(self, manager: ConnectionManager):
        self.manager = manager

    async def publish(self, channel: str, message: dict) -> None:
        await self.manager.broadcast(channel, message)


class RedisBroadcaster(Broadcaster):
    """Publish straight to Redis, for processes without WebSocket clients.

    Celery workers use this; the web process's connection manager picks the
    messages up and delivers them. ``close`` must run on the same event loop
    that published.
    """

    def __init__(self, redis_url: str | None = None):
        self._redis_url = redis_url or settings.redis_url
        self._client = None

    async def publish(self, channel: str, message: dict) -> None:
        if self._client is None:
            import redis.asyncio as aioredis

            self._client = aioredis.from_url(self._redis_url, decode_responses=True)
        payload = json.dumps({"origin": "worker", "channel": channel, "event": message})
        await self._client.publish(f"{CHANNEL_PREFIX}{channel}", payload)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


async def publish_safely(
    broadcaster: Broadcaster | None,
    event: MonitoringEvent,
    channel: str = MONITORING_CHANNEL,
) -> None:
    """Publish an event; transport failures are logged, never raised."""
    if broadcaster is None:
        return
    try:
        await broadcaster.publish(channel, event.to_message())
        logger.debug(
            "monitoring_event_published type=%s device_id=%s",
            event.type.value,
            event.device_id,
        )
    except Exception as exc:
        logger.warning(
            "monitoring_event_publish_error type=%s device_id=%s error=%s",
            event.type.value,
            event.device_id,
            exc,
        )
