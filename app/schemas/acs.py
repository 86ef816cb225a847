from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.acs import (
    AlertSeverity,
    AlertStatus,
    DeviceClass,
    FirmwareHistoryStatus,
    FirmwareUpdateStatus,
    ThresholdCondition,
    ThresholdDeviceClass,
)

DeviceTypeFilter = Literal["all", "olt", "onu"]
AnalyticsRange = Literal["hour", "day", "week", "month"]


# -----------------------------------------------------------------------------
# ACS wire documents
# -----------------------------------------------------------------------------


class RemoteDevice(BaseModel):
    """Device summary document as returned by the ACS NBI."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(alias="_id")
    serial_number_raw: str | None = Field(default=None, alias="_serialNumber")
    manufacturer_raw: str | None = Field(default=None, alias="_manufacturer")
    product_id: str | None = Field(default=None, alias="_productId")
    oui: str | None = Field(default=None, alias="_oui")
    last_inform: datetime | None = Field(default=None, alias="_lastInform")
    registered: datetime | None = Field(default=None, alias="_registered")
    uptime: float | None = Field(default=None, alias="_uptime")
    tags: list[str] = Field(default_factory=list, alias="_tags")
    device_id_info: dict[str, Any] | None = Field(default=None, alias="_deviceId")

    def _identity_field(self, key: str) -> str | None:
        if not self.device_id_info:
            return None
        value = self.device_id_info.get(key)
        return str(value) if value not in (None, "") else None

    @property
    def serial_number(self) -> str | None:
        return self.serial_number_raw or self._identity_field("_SerialNumber")

    @property
    def manufacturer(self) -> str | None:
        return self.manufacturer_raw or self._identity_field("_Manufacturer")

    @property
    def model(self) -> str | None:
        return self.product_id or self._identity_field("_ProductClass")


class AcsParameter(BaseModel):
    model_config = ConfigDict(extra="ignore")

    path: str
    value: Any = None
    type: str | None = None
    writable: bool = False
    notification: int = 0


class AcsTask(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str | None = Field(default=None, alias="_id")
    name: str | None = None
    device: str | None = None
    status: str | None = None
    timestamp: str | None = None


# -----------------------------------------------------------------------------
# Monitoring configs
# -----------------------------------------------------------------------------


class MonitoringConfigBase(BaseModel):
    name: str = Field(min_length=1, max_length=160)
    base_url: str = Field(min_length=1, max_length=255)
    username: str | None = Field(default=None, max_length=120)
    timeout_seconds: float = Field(default=30.0, gt=0)
    poll_interval_minutes: int = Field(default=5, ge=1)
    is_active: bool = True


class MonitoringConfigCreate(MonitoringConfigBase):
    password: str | None = Field(default=None, max_length=255)


class MonitoringConfigUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=160)
    base_url: str | None = Field(default=None, min_length=1, max_length=255)
    username: str | None = Field(default=None, max_length=120)
    password: str | None = Field(default=None, max_length=255)
    timeout_seconds: float | None = Field(default=None, gt=0)
    poll_interval_minutes: int | None = Field(default=None, ge=1)
    is_active: bool | None = None


class MonitoringConfigRead(MonitoringConfigBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    last_sync_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


# -----------------------------------------------------------------------------
# Thresholds and alerts
# -----------------------------------------------------------------------------


class ParameterThresholdBase(BaseModel):
    parameter_path: str = Field(min_length=1, max_length=255)
    device_class: ThresholdDeviceClass = ThresholdDeviceClass.all
    condition: ThresholdCondition
    threshold_value: float | str
    severity: AlertSeverity = AlertSeverity.warning
    enabled: bool = True
    description: str | None = None


class ParameterThresholdCreate(ParameterThresholdBase):
    pass


class ParameterThresholdUpdate(BaseModel):
    parameter_path: str | None = Field(default=None, min_length=1, max_length=255)
    device_class: ThresholdDeviceClass | None = None
    condition: ThresholdCondition | None = None
    threshold_value: float | str | None = None
    severity: AlertSeverity | None = None
    enabled: bool | None = None
    description: str | None = None


class ParameterThresholdRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    parameter_path: str
    device_class: ThresholdDeviceClass
    condition: ThresholdCondition
    threshold_value: str
    severity: AlertSeverity
    enabled: bool
    description: str | None = None
    created_at: datetime
    updated_at: datetime


class AlertRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    threshold_id: UUID | None = None
    severity: AlertSeverity
    title: str
    description: str | None = None
    device_id: str
    device_class: DeviceClass
    status: AlertStatus
    created_at: datetime
    resolved_at: datetime | None = None


class ThresholdCheckRequest(BaseModel):
    config_id: UUID
    device_id: str = Field(min_length=1)


# -----------------------------------------------------------------------------
# Health, firmware, sync, monitoring control
# -----------------------------------------------------------------------------


class HealthFactors(BaseModel):
    uptime: float = 0
    response_time: float = 0
    error_rate: float = 0
    parameter_health: float = 0


class HealthSnapshotRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    device_id: str
    overall_score: int = Field(ge=0, le=100)
    connectivity_score: int = Field(ge=0, le=100)
    performance_score: int = Field(ge=0, le=100)
    stability_score: int = Field(ge=0, le=100)
    factors: HealthFactors
    calculated_at: datetime


class FirmwareHistoryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    version: str
    status: FirmwareHistoryStatus
    duration_seconds: int | None = None
    recorded_at: datetime


class FirmwareInfoRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    device_id: str
    current_version: str
    hardware_version: str | None = None
    model_name: str | None = None
    available_version: str | None = None
    update_status: FirmwareUpdateStatus
    last_checked_at: datetime
    update_history: list[FirmwareHistoryRead] = Field(default_factory=list)


class SyncRequest(BaseModel):
    config_id: UUID
    device_type: DeviceTypeFilter = "all"


class SyncError(BaseModel):
    device_id: str
    error: str


class SyncResult(BaseModel):
    synced_count: int = 0
    total_count: int = 0
    errors: list[SyncError] = Field(default_factory=list)


class MonitoringStartRequest(BaseModel):
    config_id: UUID
    interval_minutes: int | None = Field(default=None, ge=1)


class MonitoringStopRequest(BaseModel):
    config_id: UUID


class MonitoringRunRequest(BaseModel):
    config_id: UUID


class MonitoringStatus(BaseModel):
    config_id: UUID
    running: bool
    cached_devices: int = 0


class FirmwareUpdateRecord(BaseModel):
    version: str = Field(min_length=1, max_length=120)
    status: FirmwareHistoryStatus
    duration_seconds: int | None = Field(default=None, ge=0)


# -----------------------------------------------------------------------------
# Parameters and analytics
# -----------------------------------------------------------------------------


class DeviceParameterRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    device_id: str
    path: str
    value: Any = None
    type: str = "string"
    writable: bool = False
    timestamp: datetime


class ParameterSampleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    parameter_path: str
    metric: str
    value_numeric: float | None = None
    value_text: str | None = None
    unit: str = ""
    recorded_at: datetime


class MetricAggregate(BaseModel):
    min: float
    max: float
    avg: float
    count: int
    unit: str = ""


class DeviceAnalytics(BaseModel):
    device_id: str
    time_range: AnalyticsRange
    start: datetime
    end: datetime
    parameter_history: list[ParameterSampleRead] = Field(default_factory=list)
    health_trends: list[HealthSnapshotRead] = Field(default_factory=list)
    performance_metrics: dict[str, MetricAggregate] = Field(default_factory=dict)
    alert_history: list[AlertRead] = Field(default_factory=list)
