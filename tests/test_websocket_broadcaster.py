"""Tests for monitoring event publishing and WebSocket fan-out."""

import json

import pytest

from app.websocket.broadcaster import (
    Broadcaster,
    ConnectionBroadcaster,
    InMemoryBroadcaster,
    publish_safely,
)
from app.websocket.events import (
    MONITORING_CHANNEL,
    InboundMessage,
    InboundMessageType,
    MonitoringEvent,
    MonitoringEventType,
)
from app.websocket.manager import ConnectionManager
from tests.mocks import FailingBroadcaster, FakeWebSocket, drain


def _event(**kwargs) -> MonitoringEvent:
    return MonitoringEvent(
        type=MonitoringEventType.DEVICE_STATUS_CHANGED,
        device_id="dev-1",
        **kwargs,
    )


# =============================================================================
# Events
# =============================================================================


def test_event_message_uses_camel_case_and_drops_unset_fields():
    message = _event(device_type="olt", status="offline").to_message()

    assert message["type"] == "device-status-changed"
    assert message["deviceId"] == "dev-1"
    assert message["deviceType"] == "olt"
    assert message["status"] == "offline"
    assert "metrics" not in message
    assert "timestamp" in message


def test_inbound_message_defaults_to_monitoring_channel():
    message = InboundMessage(type="ping")
    assert message.type == InboundMessageType.PING
    assert message.channel == MONITORING_CHANNEL


# =============================================================================
# Broadcasters
# =============================================================================


def test_broadcaster_requires_publish():
    class Silent(Broadcaster):
        pass

    with pytest.raises(TypeError):
        Broadcaster()
    with pytest.raises(TypeError):
        Silent()


@pytest.mark.asyncio
async def test_in_memory_fan_out():
    broadcaster = InMemoryBroadcaster()
    first = broadcaster.subscribe()
    second = broadcaster.subscribe()
    other = broadcaster.subscribe("other")

    await publish_safely(broadcaster, _event(status="online"))

    assert drain(first) == drain(second)
    assert other.empty()

    broadcaster.unsubscribe(second)
    await publish_safely(broadcaster, _event(status="offline"))
    assert len(drain(first)) == 1
    assert second.empty()


@pytest.mark.asyncio
async def test_publish_safely_swallows_transport_errors():
    broadcaster = FailingBroadcaster()

    await publish_safely(broadcaster, _event())

    assert broadcaster.attempts == 1


@pytest.mark.asyncio
async def test_publish_safely_without_broadcaster():
    await publish_safely(None, _event())


# =============================================================================
# Connection Manager
# =============================================================================


@pytest.mark.asyncio
async def test_register_sends_ack():
    manager = ConnectionManager()
    ws = FakeWebSocket()

    await manager.register_connection("client-1", ws)

    assert ws.sent[0]["event"] == "connection_ack"
    assert ws.sent[0]["data"] == {"client_id": "client-1", "status": "connected"}


@pytest.mark.asyncio
async def test_broadcast_reaches_subscribers_only():
    manager = ConnectionManager()
    subscribed, bystander = FakeWebSocket(), FakeWebSocket()
    await manager.register_connection("client-1", subscribed)
    await manager.register_connection("client-2", bystander)
    await manager.subscribe("client-1", MONITORING_CHANNEL)

    await ConnectionBroadcaster(manager).publish(
        MONITORING_CHANNEL, _event(status="online").to_message()
    )

    assert subscribed.sent[-1]["status"] == "online"
    assert len(bystander.sent) == 1


@pytest.mark.asyncio
async def test_failed_send_drops_connection():
    manager = ConnectionManager()
    await manager.register_connection("client-1", FakeWebSocket())
    manager._connections["client-1"].fail = True
    await manager.subscribe("client-1", MONITORING_CHANNEL)

    await manager.broadcast(MONITORING_CHANNEL, {"type": "heartbeat"})

    assert manager.subscriber_count(MONITORING_CHANNEL) == 0


@pytest.mark.asyncio
async def test_redis_messages_from_own_instance_are_skipped():
    manager = ConnectionManager()
    ws = FakeWebSocket()
    await manager.register_connection("client-1", ws)
    await manager.subscribe("client-1", MONITORING_CHANNEL)
    event = _event(status="warning").to_message()

    own = json.dumps({"origin": manager.instance_id, "channel": MONITORING_CHANNEL, "event": event})
    await manager._handle_redis_message("acs_ws:monitoring", own)
    assert len(ws.sent) == 1

    foreign = json.dumps({"origin": "worker", "channel": MONITORING_CHANNEL, "event": event})
    await manager._handle_redis_message("acs_ws:monitoring", foreign)
    assert ws.sent[-1] == event


@pytest.mark.asyncio
async def test_unsubscribe_stops_delivery():
    manager = ConnectionManager()
    ws = FakeWebSocket()
    await manager.register_connection("client-1", ws)
    await manager.subscribe("client-1", MONITORING_CHANNEL)
    await manager.unsubscribe("client-1", MONITORING_CHANNEL)

    await manager.broadcast(MONITORING_CHANNEL, {"type": "alert-created"})

    assert len(ws.sent) == 1
