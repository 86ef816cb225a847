"""
ACS Monitoring API Endpoints

Provides REST API for:
- Monitoring config CRUD and ACS connection tests
- Inventory sync from the ACS
- Starting/stopping parameter monitoring
- Per-device health, parameters, firmware and analytics
- Parameter thresholds and alerts
"""
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.db import get_db
from app.schemas.acs import (
    AlertRead,
    AnalyticsRange,
    DeviceAnalytics,
    DeviceParameterRead,
    FirmwareHistoryRead,
    FirmwareInfoRead,
    FirmwareUpdateRecord,
    HealthSnapshotRead,
    MonitoringConfigCreate,
    MonitoringConfigRead,
    MonitoringConfigUpdate,
    MonitoringRunRequest,
    MonitoringStartRequest,
    MonitoringStatus,
    MonitoringStopRequest,
    ParameterThresholdCreate,
    ParameterThresholdRead,
    ParameterThresholdUpdate,
    SyncRequest,
    SyncResult,
    ThresholdCheckRequest,
)
from app.services.acs.alerts import Alerts, ParameterThresholds
from app.services.acs.analytics import get_device_analytics
from app.services.acs.configs import MonitoringConfigs
from app.services.acs.engine import MonitoringRegistry

router = APIRouter(prefix="/acs", tags=["acs-monitoring"])


def get_registry(request: Request) -> MonitoringRegistry:
    return request.app.state.monitoring_registry


# =============================================================================
# MONITORING CONFIG ENDPOINTS
# =============================================================================

@router.get("/configs", response_model=dict)
def list_configs(
    db: Session = Depends(get_db),
    is_active: bool | None = None,
    order_by: str = Query("created_at"),
    order_dir: str = Query("desc", pattern="^(asc|desc)$"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """List monitoring configs."""
    return MonitoringConfigs.list_response(
        db,
        is_active,
        order_by,
        order_dir,
        limit,
        offset,
        read_schema=MonitoringConfigRead,
    )


@router.post("/configs", response_model=MonitoringConfigRead, status_code=201)
def create_config(payload: MonitoringConfigCreate, db: Session = Depends(get_db)):
    return MonitoringConfigs.create(db, payload)


@router.get("/configs/{config_id}", response_model=MonitoringConfigRead)
def get_config(config_id: UUID, db: Session = Depends(get_db)):
    return MonitoringConfigs.get(db, config_id)


@router.patch("/configs/{config_id}", response_model=MonitoringConfigRead)
async def update_config(
    config_id: UUID,
    payload: MonitoringConfigUpdate,
    db: Session = Depends(get_db),
    registry: MonitoringRegistry = Depends(get_registry),
):
    """Update a config; deactivating it stops its monitoring session."""
    config = MonitoringConfigs.update(db, config_id, payload)
    await registry.apply_config(config)
    return config


@router.delete("/configs/{config_id}", status_code=204)
async def delete_config(
    config_id: UUID,
    db: Session = Depends(get_db),
    registry: MonitoringRegistry = Depends(get_registry),
):
    """Deactivate a config and stop its monitoring session."""
    MonitoringConfigs.delete(db, config_id)
    await registry.stop_monitoring(config_id)


@router.post("/configs/{config_id}/test-connection", response_model=dict)
async def test_config_connection(
    config_id: UUID,
    db: Session = Depends(get_db),
    registry: MonitoringRegistry = Depends(get_registry),
):
    config = MonitoringConfigs.get(db, config_id)
    engine = registry.engine_for(config)
    connected = await MonitoringConfigs.test_connection(config, engine.client)
    return {"config_id": str(config_id), "connected": connected}


# =============================================================================
# SYNC AND MONITORING ENDPOINTS
# =============================================================================

@router.post("/sync", response_model=SyncResult)
async def sync_devices(
    payload: SyncRequest,
    db: Session = Depends(get_db),
    registry: MonitoringRegistry = Depends(get_registry),
):
    """Reconcile the ACS device list into the local inventory.

    Per-device failures are reported in ``errors`` with a 200 response.
    """
    config = MonitoringConfigs.get(db, payload.config_id)
    engine = registry.engine_for(config)
    return await engine.reconciler.sync(config, payload.device_type)


@router.post("/monitoring/start", response_model=MonitoringStatus)
async def start_monitoring(
    payload: MonitoringStartRequest,
    db: Session = Depends(get_db),
    registry: MonitoringRegistry = Depends(get_registry),
):
    config = MonitoringConfigs.get(db, payload.config_id)
    registry.start_monitoring(config, payload.interval_minutes)
    return registry.status(config.id)


@router.post("/monitoring/stop", response_model=MonitoringStatus)
async def stop_monitoring(
    payload: MonitoringStopRequest,
    registry: MonitoringRegistry = Depends(get_registry),
):
    await registry.stop_monitoring(payload.config_id)
    return registry.status(payload.config_id)


@router.get("/monitoring/status", response_model=MonitoringStatus)
def monitoring_status(
    config_id: UUID,
    registry: MonitoringRegistry = Depends(get_registry),
):
    return registry.status(config_id)


@router.post("/monitoring/run", response_model=dict)
async def run_monitoring_tick(
    payload: MonitoringRunRequest,
    db: Session = Depends(get_db),
    registry: MonitoringRegistry = Depends(get_registry),
):
    """Run one polling tick now, outside the schedule."""
    config = MonitoringConfigs.get(db, payload.config_id)
    engine = registry.engine_for(config)
    return await engine.monitor.run_once(config)


# =============================================================================
# DEVICE ENDPOINTS
# =============================================================================

@router.get("/devices/{device_id}/health", response_model=HealthSnapshotRead)
async def device_health(
    device_id: str,
    config_id: UUID,
    db: Session = Depends(get_db),
    registry: MonitoringRegistry = Depends(get_registry),
):
    config = MonitoringConfigs.get(db, config_id)
    engine = registry.engine_for(config)
    return await engine.health.calculate_health(device_id)


@router.get("/devices/{device_id}/parameters", response_model=list[DeviceParameterRead])
async def device_parameters(
    device_id: str,
    config_id: UUID,
    refresh: bool = False,
    db: Session = Depends(get_db),
    registry: MonitoringRegistry = Depends(get_registry),
):
    """Cached parameter snapshot; polls the device when empty or ``refresh`` is set."""
    config = MonitoringConfigs.get(db, config_id)
    engine = registry.engine_for(config)
    parameters = engine.cache.get(device_id)
    if refresh or not parameters:
        parameters = await engine.monitor.monitor_device(device_id)
    return parameters


@router.get("/devices/{device_id}/firmware", response_model=FirmwareInfoRead)
async def device_firmware(
    device_id: str,
    config_id: UUID,
    db: Session = Depends(get_db),
    registry: MonitoringRegistry = Depends(get_registry),
):
    config = MonitoringConfigs.get(db, config_id)
    engine = registry.engine_for(config)
    return await engine.firmware.check_firmware(device_id)


@router.post(
    "/devices/{device_id}/firmware/history",
    response_model=FirmwareHistoryRead,
    status_code=201,
)
async def record_firmware_update(
    device_id: str,
    config_id: UUID,
    payload: FirmwareUpdateRecord,
    db: Session = Depends(get_db),
    registry: MonitoringRegistry = Depends(get_registry),
):
    config = MonitoringConfigs.get(db, config_id)
    engine = registry.engine_for(config)
    return await engine.firmware.record_firmware_update(
        device_id, payload.version, payload.status, payload.duration_seconds
    )


@router.get("/devices/{device_id}/analytics", response_model=DeviceAnalytics)
async def device_analytics(
    device_id: str,
    time_range: AnalyticsRange = "day",
    registry: MonitoringRegistry = Depends(get_registry),
):
    return await get_device_analytics(registry.store, device_id, time_range)


# =============================================================================
# THRESHOLD ENDPOINTS
# =============================================================================

@router.get("/thresholds", response_model=dict)
def list_thresholds(
    db: Session = Depends(get_db),
    device_class: str | None = None,
    condition: str | None = None,
    enabled: bool | None = None,
    order_by: str = Query("created_at"),
    order_dir: str = Query("desc", pattern="^(asc|desc)$"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    return ParameterThresholds.list_response(
        db,
        device_class,
        condition,
        enabled,
        order_by,
        order_dir,
        limit,
        offset,
        read_schema=ParameterThresholdRead,
    )


@router.post("/thresholds", response_model=ParameterThresholdRead, status_code=201)
def create_threshold(payload: ParameterThresholdCreate, db: Session = Depends(get_db)):
    return ParameterThresholds.create(db, payload)


@router.post("/thresholds/check", response_model=list[AlertRead])
async def check_thresholds(
    payload: ThresholdCheckRequest,
    db: Session = Depends(get_db),
    registry: MonitoringRegistry = Depends(get_registry),
):
    """Evaluate thresholds for one device and return its active alerts."""
    config = MonitoringConfigs.get(db, payload.config_id)
    engine = registry.engine_for(config)
    if engine.cache.entry(payload.device_id) is None:
        await engine.monitor.monitor_device(payload.device_id)
    else:
        await engine.thresholds.check_device(payload.device_id)
    db.expire_all()
    return Alerts.list(db, payload.device_id, "active", None, "created_at", "desc", 200, 0)


@router.get("/thresholds/{threshold_id}", response_model=ParameterThresholdRead)
def get_threshold(threshold_id: UUID, db: Session = Depends(get_db)):
    return ParameterThresholds.get(db, threshold_id)


@router.patch("/thresholds/{threshold_id}", response_model=ParameterThresholdRead)
def update_threshold(
    threshold_id: UUID, payload: ParameterThresholdUpdate, db: Session = Depends(get_db)
):
    return ParameterThresholds.update(db, threshold_id, payload)


@router.delete("/thresholds/{threshold_id}", status_code=204)
def delete_threshold(threshold_id: UUID, db: Session = Depends(get_db)):
    ParameterThresholds.delete(db, threshold_id)


# =============================================================================
# ALERT ENDPOINTS
# =============================================================================

@router.get("/alerts", response_model=dict)
def list_alerts(
    db: Session = Depends(get_db),
    device_id: str | None = None,
    status: str | None = None,
    severity: str | None = None,
    order_by: str = Query("created_at"),
    order_dir: str = Query("desc", pattern="^(asc|desc)$"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    return Alerts.list_response(
        db,
        device_id,
        status,
        severity,
        order_by,
        order_dir,
        limit,
        offset,
        read_schema=AlertRead,
    )


@router.post("/alerts/{alert_id}/resolve", response_model=AlertRead)
def resolve_alert(alert_id: UUID, db: Session = Depends(get_db)):
    return Alerts.resolve(db, alert_id)
