"""Mock utilities for testing external dependencies."""

from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
from starlette.websockets import WebSocketState

from app.services.genieacs import GenieACSClient

ACS_BASE_URL = "http://genieacs:7557"

OLT_ID = "00259E-MA5800-HWTC0001"
ONU_ID = "00E0FC-HG8245-ALCL0001"

TEMPERATURE_PATH = "InternetGatewayDevice.DeviceInfo.Temperature.Value"
PROCESSOR_LOAD_PATH = "InternetGatewayDevice.DeviceInfo.ProcessorStatus.Load"


def minutes_ago(minutes: float) -> datetime:
    return datetime.now(UTC) - timedelta(minutes=minutes)


class FakeACS:
    """In-process GenieACS NBI served through ``httpx.MockTransport``."""

    def __init__(self):
        self.devices: dict[str, dict] = {}
        self.parameters: dict[str, dict[str, Any]] = {}
        self.failing_devices: set[str] = set()
        self.list_status: int | None = None
        self.health_status: int = 200
        self.requests: list[httpx.Request] = []

    def add_device(
        self,
        device_id: str,
        serial_number: str | None = None,
        manufacturer: str | None = None,
        product_id: str | None = None,
        last_inform: datetime | None = None,
        uptime: float | None = None,
        parameters: dict[str, Any] | None = None,
    ) -> dict:
        document: dict[str, Any] = {"_id": device_id}
        if serial_number is not None:
            document["_serialNumber"] = serial_number
        if manufacturer is not None:
            document["_manufacturer"] = manufacturer
        if product_id is not None:
            document["_productId"] = product_id
        if last_inform is not None:
            document["_lastInform"] = last_inform.isoformat()
        if uptime is not None:
            document["_uptime"] = uptime
        self.devices[device_id] = document
        self.parameters[device_id] = dict(parameters or {})
        return document

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        parts = [part for part in request.url.path.split("/") if part]

        if parts == ["health"]:
            return httpx.Response(self.health_status)
        if parts == ["devices"]:
            if self.list_status is not None:
                return httpx.Response(self.list_status, text="ACS unavailable")
            return httpx.Response(200, json=list(self.devices.values()))
        if len(parts) >= 2 and parts[0] == "devices":
            device_id = parts[1]
            if device_id not in self.devices:
                return httpx.Response(404, text="Device not found")
            if len(parts) == 2:
                return httpx.Response(200, json=self.devices[device_id])
            if parts[2] == "parameters":
                if device_id in self.failing_devices:
                    return httpx.Response(500, text="Device busy")
                return httpx.Response(200, json=self._parameter_rows(device_id, request))
        return httpx.Response(404, text="Not found")

    def _parameter_rows(self, device_id: str, request: httpx.Request) -> list[dict]:
        wanted = request.url.params.get("parameter")
        paths = wanted.split(",") if wanted else list(self.parameters[device_id])
        rows = []
        for path in paths:
            if path not in self.parameters[device_id]:
                continue
            rows.append(
                {
                    "path": path,
                    "value": self.parameters[device_id][path],
                    "type": "xsd:string",
                    "writable": False,
                }
            )
        return rows

    def client(self, base_url: str = ACS_BASE_URL) -> GenieACSClient:
        return GenieACSClient(base_url, timeout=5.0, transport=httpx.MockTransport(self.handler))


class FakeWebSocket:
    """Mock WebSocket recording everything sent to it."""

    def __init__(self, fail: bool = False):
        self.client_state = WebSocketState.CONNECTED
        self.sent: list[dict] = []
        self.fail = fail

    async def send_json(self, data: dict) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)


class FailingBroadcaster:
    """Broadcaster whose transport is down."""

    def __init__(self):
        self.attempts = 0

    async def publish(self, channel: str, message: dict) -> None:
        self.attempts += 1
        raise ConnectionError("redis unavailable")


def drain(queue) -> list[dict]:
    """Pop every message currently queued."""
    messages = []
    while not queue.empty():
        messages.append(queue.get_nowait())
    return messages
