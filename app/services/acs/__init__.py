"""ACS fleet telemetry services.

This package provides the device telemetry engine built on top of the
GenieACS client:
- Device classification (OLT / ONU / Unknown)
- Parameter polling, caching and sample history
- Threshold rules and alerts
- Composite health scoring
- Inventory reconciliation (sync)
- Firmware version bookkeeping and device analytics
"""

from app.services.acs.alerts import Alerts, ParameterThresholds, alerts, parameter_thresholds
from app.services.acs.analytics import get_device_analytics
from app.services.acs.cache import DeviceParameter, ParameterCache
from app.services.acs.classifier import classify_device
from app.services.acs.configs import MonitoringConfigs, monitoring_configs, validate_config
from app.services.acs.engine import MonitoringEngine, MonitoringRegistry
from app.services.acs.errors import AcsConfigurationError, DeviceSyncError
from app.services.acs.firmware import FirmwareService
from app.services.acs.health import HealthScorer, StabilitySignals
from app.services.acs.monitor import ParameterMonitor
from app.services.acs.scheduler import RecurringScheduler
from app.services.acs.store import MonitoringStore
from app.services.acs.sync import DeviceReconciler
from app.services.acs.thresholds import ThresholdEngine, evaluate_condition

__all__ = [
    "AcsConfigurationError",
    "Alerts",
    "DeviceParameter",
    "DeviceReconciler",
    "DeviceSyncError",
    "FirmwareService",
    "HealthScorer",
    "MonitoringConfigs",
    "MonitoringEngine",
    "MonitoringRegistry",
    "MonitoringStore",
    "ParameterCache",
    "ParameterMonitor",
    "ParameterThresholds",
    "RecurringScheduler",
    "StabilitySignals",
    "ThresholdEngine",
    "alerts",
    "classify_device",
    "evaluate_condition",
    "get_device_analytics",
    "monitoring_configs",
    "parameter_thresholds",
    "validate_config",
]
