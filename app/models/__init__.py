from app.models.acs import (  # noqa: F401
    Alert,
    AlertSeverity,
    AlertStatus,
    DeviceClass,
    DeviceRecord,
    DeviceStatus,
    FirmwareHistory,
    FirmwareHistoryStatus,
    FirmwareInfo,
    FirmwareUpdateStatus,
    HealthSnapshot,
    MonitoringConfig,
    ParameterSample,
    ParameterThreshold,
    ThresholdCondition,
    ThresholdDeviceClass,
)
