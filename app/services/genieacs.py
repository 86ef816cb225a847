"""GenieACS API client for TR-069 device management.

This module provides an async client for the GenieACS NBI (Northbound
Interface). Each call is a single round trip bounded by the configured
timeout; retry policy belongs to the caller.
"""

import json
import logging
from datetime import UTC, datetime, timedelta
from typing import Any
from urllib.parse import quote

import httpx

from app.schemas.acs import AcsParameter, AcsTask, RemoteDevice

logger = logging.getLogger(__name__)

ONLINE_WINDOW = timedelta(minutes=5)


class GenieACSError(Exception):
    """Raised when the ACS rejects a request or cannot be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class GenieACSClient:
    """Async HTTP client for the GenieACS NBI.

    One instance belongs to one monitoring config; components receive it
    explicitly rather than looking up a shared client.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        username: str | None = None,
        password: str | None = None,
        headers: dict | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize GenieACS client.

        Args:
            base_url: GenieACS NBI base URL (e.g., http://genieacs:7557)
            timeout: Request timeout in seconds
            username: Optional basic-auth user
            password: Optional basic-auth password
            transport: Optional httpx transport (tests inject a mock)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = {"Content-Type": "application/json", **(headers or {})}
        self.auth = (username, password) if username and password else None
        self._transport = transport

    @classmethod
    def from_config(cls, config, **kwargs) -> "GenieACSClient":
        """Build a client from a MonitoringConfig row."""
        return cls(
            config.base_url,
            timeout=config.timeout_seconds or 30.0,
            username=config.username,
            password=config.password,
            **kwargs,
        )

    async def _request(
        self,
        method: str,
        path: str,
        params: dict | None = None,
        json_data: Any = None,
    ) -> httpx.Response:
        """Make HTTP request to GenieACS NBI.

        Raises:
            GenieACSError: On request failure, carrying the upstream status
        """
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                headers=self.headers,
                auth=self.auth,
                transport=self._transport,
            ) as client:
                response = await client.request(method, url, params=params, json=json_data)
                response.raise_for_status()
                return response
        except httpx.HTTPStatusError as e:
            logger.error(
                "GenieACS API error: %s - %s", e.response.status_code, e.response.text
            )
            raise GenieACSError(
                f"API error: {e.response.status_code} {e.response.text}".strip(),
                status_code=e.response.status_code,
            ) from e
        except httpx.RequestError as e:
            logger.error("GenieACS request error: %s", e)
            raise GenieACSError(f"Request error: {e}") from e

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise GenieACSError(
                "Invalid JSON from ACS", status_code=response.status_code
            ) from e

    # -------------------------------------------------------------------------
    # Device Operations
    # -------------------------------------------------------------------------

    async def list_devices(self, query: str | dict | None = None) -> list[RemoteDevice]:
        """List devices with optional filtering.

        Args:
            query: ACS query filter, either a raw string or a dict that is
                sent JSON-encoded

        Returns:
            List of device summaries
        """
        params = {}
        if query:
            params["query"] = query if isinstance(query, str) else json.dumps(query)
        response = await self._request("GET", "/devices", params=params or None)
        return [RemoteDevice.model_validate(item) for item in self._json(response) or []]

    async def get_device(self, device_id: str) -> RemoteDevice:
        encoded_id = quote(device_id, safe="")
        response = await self._request("GET", f"/devices/{encoded_id}")
        return RemoteDevice.model_validate(self._json(response))

    async def get_device_by_serial(self, serial_number: str) -> RemoteDevice | None:
        devices = await self.list_devices(f'_serialNumber:"{serial_number}"')
        return devices[0] if devices else None

    async def get_online_devices(self) -> list[RemoteDevice]:
        cutoff = (datetime.now(UTC) - ONLINE_WINDOW).isoformat()
        return await self.list_devices(f"_lastInform:[{cutoff} TO *]")

    async def get_offline_devices(self) -> list[RemoteDevice]:
        cutoff = (datetime.now(UTC) - ONLINE_WINDOW).isoformat()
        return await self.list_devices(f"_lastInform:[* TO {cutoff}]")

    # -------------------------------------------------------------------------
    # Parameter Operations
    # -------------------------------------------------------------------------

    async def get_parameters(
        self, device_id: str, paths: list[str] | None = None
    ) -> list[AcsParameter]:
        """Read parameter values from a device.

        Parameters the device has no value for are simply missing from the
        result; that is not an error.

        Args:
            device_id: Device ID
            paths: Parameter paths to read (all when omitted)
        """
        encoded_id = quote(device_id, safe="")
        params = {"parameter": ",".join(paths)} if paths else None
        response = await self._request(
            "GET", f"/devices/{encoded_id}/parameters", params=params
        )
        parameters = []
        for item in self._json(response) or []:
            if not isinstance(item, dict) or not item.get("path"):
                continue
            if item.get("value") is None:
                continue
            parameters.append(AcsParameter.model_validate(item))
        return parameters

    async def get_parameter_map(
        self, device_id: str, paths: list[str] | None = None
    ) -> dict[str, AcsParameter]:
        return {p.path: p for p in await self.get_parameters(device_id, paths)}

    async def set_parameter(self, device_id: str, path: str, value: Any) -> None:
        await self.set_parameters(device_id, {path: value})

    async def set_parameters(self, device_id: str, parameters: dict[str, Any]) -> None:
        encoded_id = quote(device_id, safe="")
        await self._request(
            "PUT", f"/devices/{encoded_id}/parameters", json_data=parameters
        )

    # -------------------------------------------------------------------------
    # Task Operations
    # -------------------------------------------------------------------------

    async def create_task(
        self, device_id: str, script: str, name: str | None = None
    ) -> AcsTask:
        """Create a scripted task for a device.

        Args:
            device_id: Device ID
            script: Task script
            name: Optional task name (defaults to "Task for <device>")
        """
        payload = {
            "name": name or f"Task for {device_id}",
            "device": device_id,
            "script": script,
        }
        response = await self._request("POST", "/tasks", json_data=payload)
        return AcsTask.model_validate(self._json(response) or {})

    async def list_tasks(self, query: str | None = None) -> list[AcsTask]:
        params = {"query": query} if query else None
        response = await self._request("GET", "/tasks", params=params)
        return [AcsTask.model_validate(item) for item in self._json(response) or []]

    async def delete_task(self, task_id: str) -> None:
        await self._request("DELETE", f"/tasks/{quote(task_id, safe='')}")

    async def connection_request(
        self,
        device_id: str,
        username: str | None = None,
        password: str | None = None,
    ) -> None:
        """Ask the ACS to trigger a connection request to the device."""
        encoded_id = quote(device_id, safe="")
        payload: dict[str, str] = {"command": "connection_request"}
        if username and password:
            payload["username"] = username
            payload["password"] = password
        await self._request("POST", f"/devices/{encoded_id}/tasks", json_data=payload)

    # -------------------------------------------------------------------------
    # Fault Operations
    # -------------------------------------------------------------------------

    async def list_faults(self, query: str | None = None) -> list[dict]:
        params = {"query": query} if query else None
        response = await self._request("GET", "/faults", params=params)
        return self._json(response) or []

    async def delete_fault(self, fault_id: str) -> None:
        await self._request("DELETE", f"/faults/{quote(fault_id, safe='')}")

    # -------------------------------------------------------------------------
    # Server Operations
    # -------------------------------------------------------------------------

    async def get_statistics(self) -> dict:
        response = await self._request("GET", "/statistics")
        return self._json(response) or {}

    async def health_check(self) -> bool:
        """Return True when the ACS answers its health endpoint."""
        try:
            await self._request("GET", "/health")
            return True
        except GenieACSError as e:
            logger.warning("GenieACS health check failed: %s", e)
            return False

    # -------------------------------------------------------------------------
    # Helper Methods
    # -------------------------------------------------------------------------

    @staticmethod
    def extract_parameter_value(device: dict, parameter_path: str) -> Any:
        """Extract parameter value from a full device document.

        GenieACS stores parameters in a nested structure with the leaf value
        under ``_value``.

        Returns:
            Parameter value or None if not found
        """
        current: Any = device
        for part in parameter_path.split("."):
            if not isinstance(current, dict):
                return None
            current = current.get(part)
            if current is None:
                return None

        if isinstance(current, dict) and "_value" in current:
            return current["_value"]
        return current
