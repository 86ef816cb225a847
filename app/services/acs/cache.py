"""Latest-snapshot parameter cache keyed by ACS device id.

Each device has its own entry and its own asyncio lock, so devices polled
concurrently never wait on each other. Entries older than ``ttl_seconds``
are treated as absent and are dropped by ``evict_expired``; a device that
leaves the fleet therefore stops occupying memory after one TTL.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from app.models.acs import DeviceClass


@dataclass(frozen=True)
class DeviceParameter:
    """One typed parameter value read during a poll."""

    device_id: str
    path: str
    value: Any
    type: str = "string"
    writable: bool = False
    notification: int = 0
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def metric(self) -> str:
        return self.path.rsplit(".", 1)[-1] or self.path

    def numeric_value(self) -> float | None:
        return parse_number(self.value)


@dataclass
class CacheEntry:
    device_class: DeviceClass
    parameters: list[DeviceParameter]
    updated_at: datetime


def parse_number(value: Any) -> float | None:
    """Parse a parameter value as a float, None when it is not numeric."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if value is None:
        return None
    try:
        parsed = float(str(value).strip())
    except ValueError:
        return None
    if parsed != parsed:  # NaN
        return None
    return parsed


class ParameterCache:
    def __init__(self, ttl_seconds: int = 3600):
        self.ttl = timedelta(seconds=ttl_seconds)
        self._entries: dict[str, CacheEntry] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def lock(self, device_id: str) -> asyncio.Lock:
        lock = self._locks.get(device_id)
        if lock is None:
            lock = self._locks[device_id] = asyncio.Lock()
        return lock

    def set(
        self,
        device_id: str,
        parameters: list[DeviceParameter],
        device_class: DeviceClass = DeviceClass.unknown,
        now: datetime | None = None,
    ) -> None:
        self._entries[device_id] = CacheEntry(
            device_class=device_class,
            parameters=list(parameters),
            updated_at=now or datetime.now(UTC),
        )

    def entry(self, device_id: str, now: datetime | None = None) -> CacheEntry | None:
        entry = self._entries.get(device_id)
        if entry is None:
            return None
        if (now or datetime.now(UTC)) - entry.updated_at > self.ttl:
            return None
        return entry

    def get(self, device_id: str, now: datetime | None = None) -> list[DeviceParameter]:
        entry = self.entry(device_id, now)
        return list(entry.parameters) if entry else []

    def as_mapping(self, device_id: str) -> dict[str, DeviceParameter]:
        return {p.path: p for p in self.get(device_id)}

    def evict_expired(self, now: datetime | None = None) -> list[str]:
        now = now or datetime.now(UTC)
        expired = [
            device_id
            for device_id, entry in self._entries.items()
            if now - entry.updated_at > self.ttl
        ]
        for device_id in expired:
            del self._entries[device_id]
            lock = self._locks.get(device_id)
            if lock is not None and not lock.locked():
                del self._locks[device_id]
        return expired

    def device_ids(self) -> list[str]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()
        self._locks.clear()
