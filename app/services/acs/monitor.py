"""Recurring critical-parameter polling for one monitoring config.

A tick lists the devices the ACS knows about and processes them
concurrently, bounded by a semaphore. Each device's own sequence (fetch,
cache write, sample insert, threshold pass, health score, status update)
runs under that device's cache lock, so later steps always see the
snapshot written earlier in the same tick. A device that fails is logged
and counted; the rest of the tick carries on.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import UTC, datetime

from sqlalchemy.orm import Session

from app.config import settings
from app.metrics import ACS_DEVICE_POLLS, ACS_TICK_DURATION
from app.models.acs import DeviceClass, MonitoringConfig, ParameterSample
from app.schemas.acs import RemoteDevice
from app.services.acs.cache import DeviceParameter, ParameterCache
from app.services.acs.classifier import classify_remote, effective_class
from app.services.acs.configs import validate_config
from app.services.acs.errors import AcsConfigurationError
from app.services.acs.health import HealthScorer
from app.services.acs.scheduler import RecurringScheduler
from app.services.acs.store import MonitoringStore
from app.services.acs.sync import apply_device_status, is_online
from app.services.acs.thresholds import ThresholdEngine
from app.services.genieacs import GenieACSClient
from app.websocket.broadcaster import Broadcaster, publish_safely
from app.websocket.events import MonitoringEvent, MonitoringEventType

logger = logging.getLogger(__name__)

OLT_CRITICAL_PARAMETERS = [
    "InternetGatewayDevice.DeviceInfo.HardwareVersion",
    "InternetGatewayDevice.DeviceInfo.SoftwareVersion",
    "InternetGatewayDevice.DeviceInfo.UpTime",
    "InternetGatewayDevice.DeviceInfo.ProcessorStatus.Load",
    "InternetGatewayDevice.DeviceInfo.MemoryStatus.Total",
    "InternetGatewayDevice.DeviceInfo.MemoryStatus.Free",
    "InternetGatewayDevice.DeviceInfo.Temperature.Status",
    "InternetGatewayDevice.DeviceInfo.Temperature.Value",
    "InternetGatewayDevice.LANDevice.1.Hosts.HostNumberOfEntries",
    "InternetGatewayDevice.WANDevice.1.WANConnectionDevice.1.WANIPConnection.1.ExternalIPAddress",
    "InternetGatewayDevice.WANDevice.1.WANConnectionDevice.1.WANIPConnection.1.Stats",
    "InternetGatewayDevice.ManagementServer.ConnectionRequestURL",
    "InternetGatewayDevice.Layer2Bridging.BridgeNumberOfEntries",
    "InternetGatewayDevice.QueueManagement.NumberOfQueues",
]

ONU_CRITICAL_PARAMETERS = [
    "InternetGatewayDevice.DeviceInfo.HardwareVersion",
    "InternetGatewayDevice.DeviceInfo.SoftwareVersion",
    "InternetGatewayDevice.DeviceInfo.UpTime",
    "InternetGatewayDevice.WANDevice.1.WANConnectionDevice.1.WANIPConnection.1.ExternalIPAddress",
    "InternetGatewayDevice.WANDevice.1.WANConnectionDevice.1.WANIPConnection.1.Stats",
    "InternetGatewayDevice.LANDevice.1.LANHostConfigManagement.IPInterface.1.IPInterfaceIPAddress",
    "InternetGatewayDevice.DeviceInfo.X_CT-COM_MgtDevIp",
    "InternetGatewayDevice.DeviceInfo.X_CT-COM_UplinkRate",
    "InternetGatewayDevice.DeviceInfo.X_CT-COM_DownlinkRate",
    "InternetGatewayDevice.DeviceInfo.X_CT-COM_OpticalSignal",
    "InternetGatewayDevice.DeviceInfo.X_CT-COM_Temperature",
    "InternetGatewayDevice.DeviceInfo.X_CT-COM_Voltage",
    "InternetGatewayDevice.DeviceInfo.X_CT-COM_BiasCurrent",
    "InternetGatewayDevice.DeviceInfo.X_CT-COM_TransmitPower",
    "InternetGatewayDevice.DeviceInfo.X_CT-COM_ReceivePower",
]

# Checked in order; first substring hit wins.
_UNIT_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("Temperature",), "°C"),
    (("Voltage",), "V"),
    (("Power",), "dBm"),
    (("Rate", "Speed"), "Mbps"),
    (("Memory",), "MB"),
    (("Time", "UpTime"), "seconds"),
)


def critical_parameters(device_class: DeviceClass) -> list[str]:
    if effective_class(device_class) == DeviceClass.olt:
        return list(OLT_CRITICAL_PARAMETERS)
    return list(ONU_CRITICAL_PARAMETERS)


def parameter_unit(path: str) -> str:
    for needles, unit in _UNIT_RULES:
        if any(needle in path for needle in needles):
            return unit
    return ""


def insert_samples(
    db: Session, device_class: DeviceClass, parameters: list[DeviceParameter]
) -> int:
    """Insert one sample row per parameter, skipping rows already stored.

    Returns the number of rows inserted.
    """
    if not parameters:
        return 0
    device_ids = {p.device_id for p in parameters}
    timestamps = {p.timestamp for p in parameters}
    existing = {
        (row.device_id, row.parameter_path)
        for row in db.query(ParameterSample.device_id, ParameterSample.parameter_path)
        .filter(ParameterSample.device_id.in_(device_ids))
        .filter(ParameterSample.recorded_at.in_(timestamps))
        .all()
    }
    inserted = 0
    for parameter in parameters:
        key = (parameter.device_id, parameter.path)
        if key in existing:
            continue
        existing.add(key)
        numeric = parameter.numeric_value()
        db.add(
            ParameterSample(
                device_id=parameter.device_id,
                device_class=device_class,
                parameter_path=parameter.path,
                metric=parameter.metric,
                value_numeric=numeric,
                value_text=None if parameter.value is None else str(parameter.value),
                unit=parameter_unit(parameter.path),
                recorded_at=parameter.timestamp,
            )
        )
        inserted += 1
    db.flush()
    return inserted


class ParameterMonitor:
    def __init__(
        self,
        client: GenieACSClient,
        cache: ParameterCache,
        store: MonitoringStore,
        thresholds: ThresholdEngine,
        health: HealthScorer,
        scheduler: RecurringScheduler,
        broadcaster: Broadcaster | None = None,
        max_concurrency: int | None = None,
        warning_score: int | None = None,
    ):
        self.client = client
        self.cache = cache
        self.store = store
        self.thresholds = thresholds
        self.health = health
        self.scheduler = scheduler
        self.broadcaster = broadcaster
        self.max_concurrency = max(1, max_concurrency or settings.acs_monitor_max_concurrency)
        self.warning_score = (
            settings.acs_health_warning_score if warning_score is None else warning_score
        )
        self.interval_minutes: int | None = None

    @staticmethod
    def session_key(config_id) -> str:
        return f"acs-monitor:{config_id}"

    def start(self, config: MonitoringConfig, interval_minutes: int | None = None) -> None:
        """Begin polling; any timer already running for the config is replaced.

        Raises:
            AcsConfigurationError: unusable or inactive config, or a
                non-positive interval
        """
        validate_config(config, require_active=True)
        interval = interval_minutes if interval_minutes is not None else config.poll_interval_minutes
        if not interval or interval <= 0:
            raise AcsConfigurationError(
                f"Monitoring interval must be positive, got {interval!r}"
            )
        self.scheduler.start(
            self.session_key(config.id), interval * 60, lambda: self.run_once(config)
        )
        self.interval_minutes = interval
        logger.info(
            "Started ACS parameter monitoring for config %s every %s minutes",
            config.id,
            interval,
        )

    async def stop(self, config_id) -> bool:
        stopped = await self.scheduler.stop(self.session_key(config_id))
        if stopped:
            logger.info("Stopped ACS parameter monitoring for config %s", config_id)
        return stopped

    def is_running(self, config_id) -> bool:
        return self.scheduler.is_running(self.session_key(config_id))

    async def run_once(self, config: MonitoringConfig) -> dict:
        """Run a single tick.

        Raises:
            GenieACSError: the device list could not be fetched
        """
        started = time.monotonic()
        evicted = self.cache.evict_expired()
        if evicted:
            logger.debug("Evicted %s stale parameter cache entries", len(evicted))

        remote_devices = await self.client.list_devices()
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def guarded(remote: RemoteDevice) -> bool:
            async with semaphore:
                return await self._process_device(remote)

        results = await asyncio.gather(*(guarded(remote) for remote in remote_devices))
        polled = sum(1 for ok in results if ok)
        ACS_TICK_DURATION.labels(config_id=str(config.id)).observe(time.monotonic() - started)
        summary = {
            "devices": len(remote_devices),
            "polled": polled,
            "errors": len(remote_devices) - polled,
        }
        logger.info("ACS monitoring tick for config %s: %s", config.id, summary)
        return summary

    async def monitor_device(self, device_id: str) -> list[DeviceParameter]:
        """Poll one device now and return its fresh snapshot.

        Raises:
            GenieACSError: the device could not be read
        """
        remote = await self.client.get_device(device_id)
        if not await self._process_device(remote, raise_errors=True):
            return []
        return self.cache.get(device_id)

    async def _process_device(self, remote: RemoteDevice, raise_errors: bool = False) -> bool:
        device_id = remote.id
        device_class = classify_remote(remote)
        try:
            async with self.cache.lock(device_id):
                parameters = await self._fetch(remote, device_class)
                await self._persist_samples(device_id, device_class, parameters)

                try:
                    await self.thresholds.evaluate_locked(device_id, device_class)
                except Exception:
                    logger.exception("Error checking parameter thresholds for %s", device_id)

                snapshot = await self.health.calculate_health(device_id, remote)
                await self._reconcile_status(remote, device_class, snapshot.overall_score)
        except Exception as exc:
            ACS_DEVICE_POLLS.labels(status="error").inc()
            logger.warning("Error monitoring device %s: %s", device_id, exc)
            if raise_errors:
                raise
            return False
        ACS_DEVICE_POLLS.labels(status="ok").inc()
        return True

    async def _fetch(
        self, remote: RemoteDevice, device_class: DeviceClass
    ) -> list[DeviceParameter]:
        now = datetime.now(UTC)
        values = await self.client.get_parameters(remote.id, critical_parameters(device_class))
        parameters = [
            DeviceParameter(
                device_id=remote.id,
                path=value.path,
                value=value.value,
                type=value.type or "string",
                writable=value.writable,
                notification=value.notification,
                timestamp=now,
            )
            for value in values
        ]
        self.cache.set(remote.id, parameters, device_class, now)
        return parameters

    async def _persist_samples(
        self, device_id: str, device_class: DeviceClass, parameters: list[DeviceParameter]
    ) -> None:
        try:
            inserted = await self.store.run(insert_samples, device_class, parameters)
        except Exception:
            logger.exception("Error storing parameter history for %s", device_id)
            return
        if not inserted:
            return
        await publish_safely(
            self.broadcaster,
            MonitoringEvent(
                type=MonitoringEventType.METRIC_LOGGED,
                device_id=device_id,
                device_type=effective_class(device_class).value,
                metrics={
                    p.metric: {"value": p.value, "unit": parameter_unit(p.path)}
                    for p in parameters
                },
                timestamp=parameters[0].timestamp,
            ),
        )

    async def _reconcile_status(
        self, remote: RemoteDevice, device_class: DeviceClass, health_score: int
    ) -> None:
        try:
            change = await self.store.run(
                apply_device_status,
                remote.id,
                is_online(remote.last_inform),
                health_score,
                self.warning_score,
                remote.last_inform,
            )
        except Exception:
            logger.exception("Error updating status for %s", remote.id)
            return
        if change is None:
            return
        previous, current = change
        if previous == current:
            return
        await publish_safely(
            self.broadcaster,
            MonitoringEvent(
                type=MonitoringEventType.DEVICE_STATUS_CHANGED,
                device_id=remote.id,
                device_type=effective_class(device_class).value,
                status=current.value,
            ),
        )
