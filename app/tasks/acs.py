"""Celery tasks for scheduled ACS inventory reconciliation."""

from __future__ import annotations

import asyncio
import logging
import time

from app.celery_app import celery_app
from app.db import SessionLocal
from app.metrics import observe_job
from app.services.acs.configs import MonitoringConfigs
from app.services.acs.errors import AcsConfigurationError
from app.services.acs.store import MonitoringStore
from app.services.acs.sync import DeviceReconciler
from app.services.genieacs import GenieACSClient, GenieACSError
from app.websocket.broadcaster import RedisBroadcaster

logger = logging.getLogger(__name__)


async def _sync_configs(configs, device_type: str = "all") -> dict[str, int]:
    stats = {"configs": len(configs), "synced": 0, "errors": 0, "failed_configs": 0}
    store = MonitoringStore()
    broadcaster = RedisBroadcaster()
    try:
        for config in configs:
            reconciler = DeviceReconciler(GenieACSClient.from_config(config), store, broadcaster)
            try:
                result = await reconciler.sync(config, device_type)
            except (AcsConfigurationError, GenieACSError) as exc:
                stats["failed_configs"] += 1
                logger.error("ACS sync failed for config %s: %s", config.id, exc)
                continue
            stats["synced"] += result.synced_count
            stats["errors"] += len(result.errors)
    finally:
        await broadcaster.close()
    return stats


@celery_app.task(name="app.tasks.acs.sync_all_active_configs")
def sync_all_active_configs() -> dict[str, int]:
    """Periodic task reconciling every active monitoring config with its ACS.

    Returns:
        Statistics dict with configs, synced, errors, failed_configs.
    """
    logger.info("Starting ACS inventory sync task")
    started = time.monotonic()
    status = "success"
    db = SessionLocal()
    try:
        configs = MonitoringConfigs.list_active(db)
        for config in configs:
            db.expunge(config)
        result = asyncio.run(_sync_configs(configs))
        logger.info(
            "ACS inventory sync complete: %d configs, %d synced, %d errors, %d failed configs",
            result["configs"],
            result["synced"],
            result["errors"],
            result["failed_configs"],
        )
        return result
    except Exception as e:
        status = "error"
        logger.error("ACS inventory sync task failed: %s", e)
        db.rollback()
        raise
    finally:
        db.close()
        observe_job("acs_inventory_sync", status, time.monotonic() - started)
