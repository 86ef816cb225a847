import logging
from datetime import UTC, datetime

from sqlalchemy.orm import Session

from app.config import settings
from app.models.acs import (
    FirmwareHistory,
    FirmwareHistoryStatus,
    FirmwareInfo,
    FirmwareUpdateStatus,
)
from app.schemas.acs import FirmwareHistoryRead, FirmwareInfoRead
from app.services.acs.store import MonitoringStore
from app.services.genieacs import GenieACSClient

logger = logging.getLogger(__name__)

FIRMWARE_PARAMETERS = [
    "InternetGatewayDevice.DeviceInfo.SoftwareVersion",
    "InternetGatewayDevice.DeviceInfo.HardwareVersion",
    "InternetGatewayDevice.DeviceInfo.ModelName",
]
HISTORY_LIMIT = 10


def update_status_for(current_version: str, available_version: str | None) -> FirmwareUpdateStatus:
    if available_version and available_version != current_version:
        return FirmwareUpdateStatus.available
    return FirmwareUpdateStatus.up_to_date


def save_firmware_info(
    db: Session,
    device_id: str,
    current_version: str,
    hardware_version: str,
    model_name: str,
    available_version: str | None,
    checked_at: datetime,
) -> FirmwareInfo:
    info = db.query(FirmwareInfo).filter(FirmwareInfo.device_id == device_id).first()
    if info is None:
        info = FirmwareInfo(device_id=device_id)
        db.add(info)
    info.current_version = current_version
    info.hardware_version = hardware_version
    info.model_name = model_name
    info.available_version = available_version
    info.update_status = update_status_for(current_version, available_version)
    info.last_checked_at = checked_at
    db.flush()
    return info


def list_history(db: Session, device_id: str, limit: int = HISTORY_LIMIT) -> list[FirmwareHistory]:
    return (
        db.query(FirmwareHistory)
        .filter(FirmwareHistory.device_id == device_id)
        .order_by(FirmwareHistory.recorded_at.desc())
        .limit(limit)
        .all()
    )


def add_history(
    db: Session,
    device_id: str,
    version: str,
    status: FirmwareHistoryStatus,
    duration_seconds: int | None,
) -> FirmwareHistory:
    entry = FirmwareHistory(
        device_id=device_id,
        version=version,
        status=status,
        duration_seconds=duration_seconds,
        recorded_at=datetime.now(UTC),
    )
    db.add(entry)
    info = db.query(FirmwareInfo).filter(FirmwareInfo.device_id == device_id).first()
    if info is not None:
        if status == FirmwareHistoryStatus.success:
            info.current_version = version
            info.update_status = update_status_for(version, info.available_version)
        else:
            info.update_status = FirmwareUpdateStatus.failed
    db.flush()
    return entry


class FirmwareService:
    """Firmware version bookkeeping; no images are ever pushed."""

    def __init__(
        self,
        client: GenieACSClient,
        store: MonitoringStore,
        catalog: dict[str, str] | None = None,
    ):
        self.client = client
        self.store = store
        self.catalog = settings.acs_firmware_catalog if catalog is None else catalog

    def available_version(self, model_name: str) -> str | None:
        return self.catalog.get(model_name)

    async def check_firmware(self, device_id: str) -> FirmwareInfoRead:
        """Read the device's versions and compare them against the catalog.

        Raises:
            GenieACSError: the device could not be read
        """
        parameters = await self.client.get_parameters(device_id, FIRMWARE_PARAMETERS)

        def find(fragment: str) -> str:
            for parameter in parameters:
                if fragment in parameter.path and parameter.value not in (None, ""):
                    return str(parameter.value)
            return "Unknown"

        current_version = find("SoftwareVersion")
        hardware_version = find("HardwareVersion")
        model_name = find("ModelName")
        available = self.available_version(model_name)

        info = await self.store.run(
            save_firmware_info,
            device_id,
            current_version,
            hardware_version,
            model_name,
            available,
            datetime.now(UTC),
        )
        history = await self.store.run(list_history, device_id)
        logger.info(
            "Firmware check for %s: current=%s available=%s",
            device_id,
            current_version,
            available,
        )
        result = FirmwareInfoRead.model_validate(info)
        result.update_history = [FirmwareHistoryRead.model_validate(h) for h in history]
        return result

    async def record_firmware_update(
        self,
        device_id: str,
        version: str,
        status: FirmwareHistoryStatus,
        duration_seconds: int | None = None,
    ) -> FirmwareHistory:
        return await self.store.run(add_history, device_id, version, status, duration_seconds)
