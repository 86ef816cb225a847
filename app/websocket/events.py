from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

MONITORING_CHANNEL = "monitoring"


class EventType(str, Enum):
    """Connection-level WebSocket event types."""

    CONNECTION_ACK = "connection_ack"
    SUBSCRIBED = "subscribed"
    UNSUBSCRIBED = "unsubscribed"
    HEARTBEAT = "heartbeat"


class WebSocketEvent(BaseModel):
    """Outbound connection-level event sent to clients."""

    event: EventType
    data: dict[str, Any]
    timestamp: datetime | None = None

    def model_post_init(self, __context: Any) -> None:
        if self.timestamp is None:

            object.__setattr__(self, "timestamp", datetime.now(UTC))


class MonitoringEventType(str, Enum):
    """Events published by the monitoring engine on the monitoring channel."""

    DEVICE_STATUS_CHANGED = "device-status-changed"
    DEVICE_METRICS_UPDATED = "device-metrics-updated"
    ALERT_CREATED = "alert-created"
    METRIC_LOGGED = "metric-logged"


class MonitoringEvent(BaseModel):
    """Device state-change notification.

    Serialized with camelCase keys; optional fields are left out of the
    message when unset.
    """

    model_config = ConfigDict(populate_by_name=True)

    type: MonitoringEventType
    device_id: str = Field(alias="deviceId")
    device_type: str | None = Field(default=None, alias="deviceType")
    status: str | None = None
    metrics: dict[str, Any] | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def to_message(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class InboundMessageType(str, Enum):
    """Types of messages clients can send."""

    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"
    PING = "ping"


class InboundMessage(BaseModel):
    """Message received from WebSocket client."""

    type: InboundMessageType
    channel: str = MONITORING_CHANNEL
    data: dict[str, Any] | None = None
