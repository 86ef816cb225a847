"""Reconcile the ACS device inventory into local device records.

Each remote record is handled in its own transaction, so one bad record
only lands in ``errors`` and never rolls back the others. Local identity is
resolved by ACS device id first, then by a fallback key: the generated
``OLT-<serial>`` name for OLTs, the serial number for everything else.
Locally set names, models and IP addresses are never overwritten.
"""

from __future__ import annotations

import logging
import re
import uuid
from datetime import UTC, datetime, timedelta

from sqlalchemy.orm import Session

from app.metrics import ACS_SYNC_DEVICES
from app.models.acs import DeviceClass, DeviceRecord, DeviceStatus, MonitoringConfig
from app.schemas.acs import AcsParameter, RemoteDevice, SyncError, SyncResult
from app.services.acs.classifier import classify_remote, effective_class, matches_filter
from app.services.acs.configs import mark_config_synced, validate_config
from app.services.acs.errors import DeviceSyncError
from app.services.acs.store import MonitoringStore
from app.services.genieacs import GenieACSClient
from app.websocket.broadcaster import Broadcaster, publish_safely
from app.websocket.events import MonitoringEvent, MonitoringEventType

logger = logging.getLogger(__name__)

ONLINE_WINDOW = timedelta(minutes=5)

OLT_ENRICHMENT_PARAMETERS = [
    "InternetGatewayDevice.DeviceInfo.HardwareVersion",
    "InternetGatewayDevice.DeviceInfo.SoftwareVersion",
    "InternetGatewayDevice.ManagementServer.ConnectionRequestURL",
    "InternetGatewayDevice.LANDevice.1.Hosts.HostNumberOfEntries",
]
ONU_ENRICHMENT_PARAMETERS = [
    "InternetGatewayDevice.WANDevice.1.WANConnectionDevice.1.WANIPConnection.1.ExternalIPAddress",
    "InternetGatewayDevice.DeviceInfo.X_CT-COM_MgtDevIp",
    "InternetGatewayDevice.DeviceInfo.X_CT-COM_UplinkRate",
    "InternetGatewayDevice.DeviceInfo.X_CT-COM_DownlinkRate",
]

_URL_HOST_RE = re.compile(r"https?://([\d.]+):")


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def is_online(last_inform: datetime | None, now: datetime | None = None) -> bool:
    if last_inform is None:
        return False
    now = now or datetime.now(UTC)
    return now - _as_utc(last_inform) <= ONLINE_WINDOW


def display_name(device_class: DeviceClass, serial_number: str) -> str:
    prefix = "OLT" if device_class == DeviceClass.olt else "ONU"
    return f"{prefix}-{serial_number}"


def resolve_status(previous: DeviceStatus | None, online: bool) -> DeviceStatus:
    """Reachability from sync; a warning set by health scoring survives while online."""
    if not online:
        return DeviceStatus.offline
    if previous == DeviceStatus.warning:
        return DeviceStatus.warning
    return DeviceStatus.online


def find_device(
    db: Session, remote_id: str, device_class: DeviceClass, serial_number: str
) -> DeviceRecord | None:
    record = db.query(DeviceRecord).filter(DeviceRecord.acs_device_id == remote_id).first()
    if record is not None:
        return record
    query = db.query(DeviceRecord)
    if device_class == DeviceClass.olt:
        query = query.filter(DeviceRecord.name == display_name(device_class, serial_number))
    else:
        query = query.filter(DeviceRecord.serial_number == serial_number)
    return query.order_by(DeviceRecord.created_at.asc()).first()


def upsert_device(
    db: Session,
    config_id: uuid.UUID | None,
    remote: RemoteDevice,
    device_class: DeviceClass,
    now: datetime,
) -> tuple[DeviceRecord, DeviceStatus | None]:
    """Create or update the local record for a remote device.

    Returns the record and its status before this call (None when created).

    Raises:
        DeviceSyncError: the remote record has no serial number
    """
    serial_number = remote.serial_number
    if not serial_number:
        raise DeviceSyncError(remote.id, "Device has no serial number")

    online = is_online(remote.last_inform, now)
    record = find_device(db, remote.id, device_class, serial_number)
    previous = record.status if record is not None else None
    if record is None:
        record = DeviceRecord(
            name=display_name(device_class, serial_number),
            serial_number=serial_number,
        )
        db.add(record)

    record.name = record.name or display_name(device_class, serial_number)
    record.serial_number = record.serial_number or serial_number
    record.model = record.model or remote.model or "Unknown"
    record.manufacturer = remote.manufacturer or record.manufacturer or "Unknown"
    record.device_class = device_class
    record.status = resolve_status(previous, online)
    record.last_seen_at = remote.last_inform
    record.acs_device_id = remote.id
    record.config_id = config_id or record.config_id
    record.acs_synced = True
    record.acs_last_sync_at = now
    db.flush()
    return record, previous


def extract_ip_from_url(url: str | None) -> str | None:
    if not url:
        return None
    match = _URL_HOST_RE.search(str(url))
    return match.group(1) if match else None


def _parse_count(value) -> int:
    try:
        return max(0, int(float(str(value).strip())))
    except (TypeError, ValueError):
        return 0


def enrichment_updates(
    device_class: DeviceClass, parameters: list[AcsParameter], online: bool
) -> dict:
    """Derive record fields from the secondary parameter fetch."""
    updates: dict = {}
    if device_class == DeviceClass.olt:
        for parameter in parameters:
            if "ConnectionRequestURL" in parameter.path:
                ip_address = extract_ip_from_url(parameter.value)
                if ip_address:
                    updates["ip_address"] = ip_address
            if "HostNumberOfEntries" in parameter.path:
                count = _parse_count(parameter.value)
                updates["subordinate_count"] = count
                updates["active_subordinate_count"] = count if online else 0
        return updates
    for parameter in parameters:
        if "ExternalIPAddress" in parameter.path or "MgtDevIp" in parameter.path:
            if parameter.value not in (None, ""):
                updates["ip_address"] = str(parameter.value)
    return updates


def apply_enrichment(db: Session, record_id: uuid.UUID, updates: dict) -> None:
    record = db.get(DeviceRecord, record_id)
    if record is None:
        return
    for key, value in updates.items():
        if key == "ip_address" and record.ip_address:
            continue
        setattr(record, key, value)


def apply_device_status(
    db: Session,
    acs_device_id: str,
    online: bool,
    health_score: int | None,
    warning_score: int,
    last_seen_at: datetime | None = None,
) -> tuple[DeviceStatus | None, DeviceStatus] | None:
    """Set a synced device's status from reachability and health.

    Returns (previous, current), or None when the device is not in the
    local inventory yet.
    """
    record = db.query(DeviceRecord).filter(DeviceRecord.acs_device_id == acs_device_id).first()
    if record is None:
        return None
    if not online:
        status = DeviceStatus.offline
    elif health_score is not None and health_score < warning_score:
        status = DeviceStatus.warning
    else:
        status = DeviceStatus.online
    previous = record.status
    record.status = status
    if last_seen_at is not None:
        record.last_seen_at = last_seen_at
    return previous, status


class DeviceReconciler:
    def __init__(
        self,
        client: GenieACSClient,
        store: MonitoringStore,
        broadcaster: Broadcaster | None = None,
    ):
        self.client = client
        self.store = store
        self.broadcaster = broadcaster

    async def sync(self, config: MonitoringConfig, device_type: str = "all") -> SyncResult:
        """Pull the ACS device list and upsert it into the local inventory.

        Raises:
            AcsConfigurationError: unusable config
            GenieACSError: the device list itself could not be fetched
        """
        validate_config(config, require_active=True)
        remote_devices = await self.client.list_devices()

        result = SyncResult(total_count=len(remote_devices))
        for remote in remote_devices:
            device_class = classify_remote(remote)
            if not matches_filter(device_class, device_type):
                ACS_SYNC_DEVICES.labels(result="skipped").inc()
                continue
            try:
                await self._sync_device(config, remote, device_class)
                result.synced_count += 1
                ACS_SYNC_DEVICES.labels(result="synced").inc()
            except Exception as exc:
                logger.warning("Error syncing device %s: %s", remote.id, exc)
                result.errors.append(SyncError(device_id=remote.id, error=str(exc)))
                ACS_SYNC_DEVICES.labels(result="error").inc()

        await self.store.run(mark_config_synced, config.id)
        logger.info(
            "ACS sync for config %s: %s/%s devices synced, %s errors",
            config.id,
            result.synced_count,
            result.total_count,
            len(result.errors),
        )
        return result

    async def _sync_device(
        self, config: MonitoringConfig, remote: RemoteDevice, device_class: DeviceClass
    ) -> None:
        now = datetime.now(UTC)
        record, previous = await self.store.run(
            upsert_device, config.id, remote, device_class, now
        )
        await self._enrich(record, remote, device_class, is_online(remote.last_inform, now))
        if record.status != previous:
            await publish_safely(
                self.broadcaster,
                MonitoringEvent(
                    type=MonitoringEventType.DEVICE_STATUS_CHANGED,
                    device_id=remote.id,
                    device_type=effective_class(device_class).value,
                    status=record.status.value,
                    timestamp=now,
                ),
            )

    async def _enrich(
        self,
        record: DeviceRecord,
        remote: RemoteDevice,
        device_class: DeviceClass,
        online: bool,
    ) -> None:
        paths = (
            OLT_ENRICHMENT_PARAMETERS
            if device_class == DeviceClass.olt
            else ONU_ENRICHMENT_PARAMETERS
        )
        try:
            parameters = await self.client.get_parameters(remote.id, paths)
            updates = enrichment_updates(device_class, parameters, online)
            if updates:
                await self.store.run(apply_enrichment, record.id, updates)
        except Exception as exc:
            logger.warning("Could not fetch additional parameters for %s: %s", remote.id, exc)
