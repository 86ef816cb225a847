"""Tests for genieacs service."""

import base64
import json

import httpx
import pytest

from app.services.genieacs import GenieACSClient, GenieACSError
from tests.mocks import ACS_BASE_URL


def _client(handler, **kwargs) -> GenieACSClient:
    return GenieACSClient(ACS_BASE_URL, transport=httpx.MockTransport(handler), **kwargs)


# =============================================================================
# Client Initialization Tests
# =============================================================================


class TestGenieACSClientInit:
    """Tests for GenieACSClient initialization."""

    def test_strips_trailing_slash(self):
        client = GenieACSClient("http://localhost:7557/")
        assert client.base_url == "http://localhost:7557"

    def test_sets_default_timeout(self):
        client = GenieACSClient("http://localhost:7557")
        assert client.timeout == 30.0

    def test_auth_requires_both_credentials(self):
        assert GenieACSClient("http://localhost:7557", username="admin").auth is None
        client = GenieACSClient("http://localhost:7557", username="admin", password="secret")
        assert client.auth == ("admin", "secret")

    def test_from_config_uses_config_values(self, monitoring_config):
        client = GenieACSClient.from_config(monitoring_config)
        assert client.base_url == ACS_BASE_URL
        assert client.timeout == monitoring_config.timeout_seconds


# =============================================================================
# Request Error Handling Tests
# =============================================================================


class TestRequestErrorHandling:
    """Tests for _request error handling."""

    @pytest.mark.asyncio
    async def test_raises_on_http_error_with_status(self):
        client = _client(lambda request: httpx.Response(503, text="Service Unavailable"))

        with pytest.raises(GenieACSError) as exc_info:
            await client.list_devices()

        assert exc_info.value.status_code == 503
        assert "API error: 503" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_raises_on_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("Connection refused", request=request)

        client = _client(handler)

        with pytest.raises(GenieACSError) as exc_info:
            await client.get_device("device-1")

        assert exc_info.value.status_code is None
        assert "Request error" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_raises_on_invalid_json(self):
        client = _client(lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(GenieACSError, match="Invalid JSON"):
            await client.list_devices()

    @pytest.mark.asyncio
    async def test_health_check_false_on_error(self):
        client = _client(lambda request: httpx.Response(500))
        assert await client.health_check() is False

    @pytest.mark.asyncio
    async def test_health_check_true_on_success(self):
        client = _client(lambda request: httpx.Response(200))
        assert await client.health_check() is True


# =============================================================================
# Device Operations Tests
# =============================================================================


class TestDeviceOperations:
    """Tests for device operations."""

    @pytest.mark.asyncio
    async def test_list_devices_parses_documents(self):
        documents = [
            {
                "_id": "device-1",
                "_serialNumber": "SN001",
                "_manufacturer": "Huawei",
                "_productId": "MA5800",
                "_lastInform": "2026-10-19T10:00:00Z",
            },
            {"_id": "device-2", "_deviceId": {"_SerialNumber": "SN002"}},
        ]
        client = _client(lambda request: httpx.Response(200, json=documents))

        devices = await client.list_devices()

        assert [d.id for d in devices] == ["device-1", "device-2"]
        assert devices[0].serial_number == "SN001"
        assert devices[0].manufacturer == "Huawei"
        assert devices[0].model == "MA5800"
        assert devices[0].last_inform.tzinfo is not None
        assert devices[1].serial_number == "SN002"
        assert devices[1].manufacturer is None

    @pytest.mark.asyncio
    async def test_list_devices_encodes_dict_query(self):
        seen = {}

        def handler(request):
            seen["query"] = request.url.params.get("query")
            return httpx.Response(200, json=[])

        client = _client(handler)
        await client.list_devices({"_tags": "core"})

        assert json.loads(seen["query"]) == {"_tags": "core"}

    @pytest.mark.asyncio
    async def test_get_device_by_serial_returns_none_when_absent(self):
        client = _client(lambda request: httpx.Response(200, json=[]))
        assert await client.get_device_by_serial("missing") is None

    @pytest.mark.asyncio
    async def test_sends_basic_auth(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, json=[])

        client = _client(handler, username="admin", password="secret")
        await client.list_devices()

        expected = base64.b64encode(b"admin:secret").decode()
        assert seen["auth"] == f"Basic {expected}"


# =============================================================================
# Parameter and Task Operations Tests
# =============================================================================


class TestParameterOperations:
    """Tests for parameter reads and tasks."""

    @pytest.mark.asyncio
    async def test_get_parameters_skips_missing_values(self):
        seen = {}

        def handler(request):
            seen["parameter"] = request.url.params.get("parameter")
            return httpx.Response(
                200,
                json=[
                    {"path": "A.B.Load", "value": "42", "type": "xsd:unsignedInt"},
                    {"path": "A.B.Free", "value": None},
                    {"value": "orphan"},
                ],
            )

        client = _client(handler)
        parameters = await client.get_parameters("device-1", ["A.B.Load", "A.B.Free"])

        assert seen["parameter"] == "A.B.Load,A.B.Free"
        assert [p.path for p in parameters] == ["A.B.Load"]
        assert parameters[0].value == "42"
        assert parameters[0].type == "xsd:unsignedInt"

    @pytest.mark.asyncio
    async def test_create_task_default_name(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"_id": "task-1", "name": seen["body"]["name"]})

        client = _client(handler)
        task = await client.create_task("device-1", "reboot()")

        assert seen["body"] == {
            "name": "Task for device-1",
            "device": "device-1",
            "script": "reboot()",
        }
        assert task.id == "task-1"

    def test_extract_parameter_value(self):
        document = {"InternetGatewayDevice": {"DeviceInfo": {"UpTime": {"_value": 3600}}}}

        assert (
            GenieACSClient.extract_parameter_value(document, "InternetGatewayDevice.DeviceInfo.UpTime")
            == 3600
        )
        assert (
            GenieACSClient.extract_parameter_value(document, "InternetGatewayDevice.Missing")
            is None
        )
