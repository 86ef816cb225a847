import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db import Base


class DeviceClass(enum.Enum):
    olt = "olt"
    onu = "onu"
    unknown = "unknown"


class ThresholdDeviceClass(enum.Enum):
    all = "all"
    olt = "olt"
    onu = "onu"


class DeviceStatus(enum.Enum):
    online = "online"
    offline = "offline"
    warning = "warning"


class ThresholdCondition(enum.Enum):
    greater_than = "greater_than"
    less_than = "less_than"
    equals = "equals"
    not_equals = "not_equals"
    contains = "contains"


class AlertSeverity(enum.Enum):
    info = "info"
    warning = "warning"
    critical = "critical"


class AlertStatus(enum.Enum):
    active = "active"
    resolved = "resolved"


class FirmwareUpdateStatus(enum.Enum):
    up_to_date = "up_to_date"
    available = "available"
    updating = "updating"
    failed = "failed"


class FirmwareHistoryStatus(enum.Enum):
    success = "success"
    failed = "failed"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class MonitoringConfig(Base):
    __tablename__ = "acs_monitoring_configs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    base_url: Mapped[str] = mapped_column(String(255), nullable=False)
    username: Mapped[str | None] = mapped_column(String(120))
    password: Mapped[str | None] = mapped_column(String(255))
    timeout_seconds: Mapped[float] = mapped_column(Float, default=30.0)
    poll_interval_minutes: Mapped[int] = mapped_column(Integer, default=5)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    last_sync_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    devices = relationship("DeviceRecord", back_populates="config")


class DeviceRecord(Base):
    __tablename__ = "acs_devices"
    __table_args__ = (
        UniqueConstraint("acs_device_id", name="uq_acs_devices_acs_device_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    config_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("acs_monitoring_configs.id")
    )
    parent_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("acs_devices.id"))
    acs_device_id: Mapped[str | None] = mapped_column(String(255))
    device_class: Mapped[DeviceClass] = mapped_column(
        Enum(DeviceClass), default=DeviceClass.unknown
    )
    name: Mapped[str | None] = mapped_column(String(160))
    serial_number: Mapped[str | None] = mapped_column(String(120), index=True)
    manufacturer: Mapped[str | None] = mapped_column(String(120))
    model: Mapped[str | None] = mapped_column(String(120))
    ip_address: Mapped[str | None] = mapped_column(String(64))
    status: Mapped[DeviceStatus] = mapped_column(
        Enum(DeviceStatus, name="acs_devicestatus"), default=DeviceStatus.offline
    )
    last_seen_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    subordinate_count: Mapped[int] = mapped_column(Integer, default=0)
    active_subordinate_count: Mapped[int] = mapped_column(Integer, default=0)
    acs_synced: Mapped[bool] = mapped_column(Boolean, default=False)
    acs_last_sync_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    config = relationship("MonitoringConfig", back_populates="devices")
    parent = relationship("DeviceRecord", remote_side=[id])


class ParameterSample(Base):
    __tablename__ = "acs_parameter_samples"
    __table_args__ = (
        UniqueConstraint(
            "device_id",
            "parameter_path",
            "recorded_at",
            name="uq_acs_parameter_samples_tick",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    device_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    device_class: Mapped[DeviceClass] = mapped_column(
        Enum(DeviceClass), default=DeviceClass.unknown
    )
    parameter_path: Mapped[str] = mapped_column(String(255), nullable=False)
    metric: Mapped[str] = mapped_column(String(160), nullable=False)
    value_numeric: Mapped[float | None] = mapped_column(Float)
    value_text: Mapped[str | None] = mapped_column(Text)
    unit: Mapped[str] = mapped_column(String(20), default="")
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class ParameterThreshold(Base):
    __tablename__ = "acs_parameter_thresholds"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    parameter_path: Mapped[str] = mapped_column(String(255), nullable=False)
    device_class: Mapped[ThresholdDeviceClass] = mapped_column(
        Enum(ThresholdDeviceClass), default=ThresholdDeviceClass.all
    )
    condition: Mapped[ThresholdCondition] = mapped_column(
        Enum(ThresholdCondition), nullable=False
    )
    threshold_value: Mapped[str] = mapped_column(String(255), nullable=False)
    severity: Mapped[AlertSeverity] = mapped_column(
        Enum(AlertSeverity, name="acs_alertseverity"), default=AlertSeverity.warning
    )
    enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    description: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    alerts = relationship("Alert", back_populates="threshold")


class Alert(Base):
    __tablename__ = "acs_alerts"
    __table_args__ = (
        Index(
            "uq_acs_alerts_active_title",
            "device_id",
            "title",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    threshold_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("acs_parameter_thresholds.id", ondelete="SET NULL")
    )
    severity: Mapped[AlertSeverity] = mapped_column(
        Enum(AlertSeverity, name="acs_alertseverity"), default=AlertSeverity.warning
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    device_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    device_class: Mapped[DeviceClass] = mapped_column(
        Enum(DeviceClass), default=DeviceClass.unknown
    )
    status: Mapped[AlertStatus] = mapped_column(
        Enum(AlertStatus, name="acs_alertstatus"), default=AlertStatus.active
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    threshold = relationship("ParameterThreshold", back_populates="alerts")


class HealthSnapshot(Base):
    __tablename__ = "acs_health_snapshots"
    __table_args__ = (
        UniqueConstraint("device_id", name="uq_acs_health_snapshots_device_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    device_id: Mapped[str] = mapped_column(String(255), nullable=False)
    overall_score: Mapped[int] = mapped_column(Integer, default=0)
    connectivity_score: Mapped[int] = mapped_column(Integer, default=0)
    performance_score: Mapped[int] = mapped_column(Integer, default=0)
    stability_score: Mapped[int] = mapped_column(Integer, default=0)
    factors: Mapped[dict | None] = mapped_column(JSON)
    calculated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class FirmwareInfo(Base):
    __tablename__ = "acs_firmware_info"
    __table_args__ = (
        UniqueConstraint("device_id", name="uq_acs_firmware_info_device_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    device_id: Mapped[str] = mapped_column(String(255), nullable=False)
    current_version: Mapped[str] = mapped_column(String(120), default="Unknown")
    hardware_version: Mapped[str | None] = mapped_column(String(120))
    model_name: Mapped[str | None] = mapped_column(String(160))
    available_version: Mapped[str | None] = mapped_column(String(120))
    update_status: Mapped[FirmwareUpdateStatus] = mapped_column(
        Enum(FirmwareUpdateStatus), default=FirmwareUpdateStatus.up_to_date
    )
    last_checked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )


class FirmwareHistory(Base):
    __tablename__ = "acs_firmware_history"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    device_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    version: Mapped[str] = mapped_column(String(120), nullable=False)
    status: Mapped[FirmwareHistoryStatus] = mapped_column(Enum(FirmwareHistoryStatus))
    duration_seconds: Mapped[int | None] = mapped_column(Integer)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
