"""Tests for the scheduled inventory sync task."""

from types import SimpleNamespace

import pytest

from app.models.acs import DeviceRecord
from app.services.acs.store import MonitoringStore
from app.services.scheduler_config import build_beat_schedule, get_celery_config
from app.tasks import acs as acs_tasks
from app.websocket.broadcaster import InMemoryBroadcaster


class _ClosingBroadcaster(InMemoryBroadcaster):
    instances: list["_ClosingBroadcaster"] = []

    def __init__(self):
        super().__init__()
        self.closed = False
        _ClosingBroadcaster.instances.append(self)

    async def close(self):
        self.closed = True


@pytest.fixture()
def patched_task(monkeypatch, session_factory, fleet):
    _ClosingBroadcaster.instances.clear()
    monkeypatch.setattr(acs_tasks, "SessionLocal", session_factory)
    monkeypatch.setattr(acs_tasks, "MonitoringStore", lambda: MonitoringStore(session_factory))
    monkeypatch.setattr(acs_tasks, "RedisBroadcaster", _ClosingBroadcaster)
    monkeypatch.setattr(
        acs_tasks, "GenieACSClient", SimpleNamespace(from_config=lambda config: fleet.client())
    )
    return acs_tasks


def test_beat_schedule_registers_inventory_sync(monkeypatch):
    monkeypatch.delenv("ACS_SYNC_ENABLED", raising=False)

    schedule = build_beat_schedule()

    assert schedule["acs_inventory_sync"]["task"] == "app.tasks.acs.sync_all_active_configs"
    assert schedule["acs_inventory_sync"]["schedule"].total_seconds() > 0


def test_beat_schedule_can_be_disabled(monkeypatch):
    monkeypatch.setenv("ACS_SYNC_ENABLED", "false")
    assert build_beat_schedule() == {}


def test_celery_config_prefers_explicit_broker(monkeypatch):
    monkeypatch.setenv("CELERY_BROKER_URL", "redis://broker:6379/1")
    monkeypatch.setenv("CELERY_BEAT_MAX_LOOP_INTERVAL", "not-a-number")

    config = get_celery_config()

    assert config["broker_url"] == "redis://broker:6379/1"
    assert config["beat_max_loop_interval"] == 5


@pytest.mark.asyncio
async def test_sync_configs_counts_failed_configs(patched_task, monitoring_config, inactive_config):
    stats = await patched_task._sync_configs([monitoring_config, inactive_config])

    assert stats == {"configs": 2, "synced": 2, "errors": 0, "failed_configs": 1}
    assert _ClosingBroadcaster.instances[0].closed is True


def test_sync_all_active_configs(patched_task, db_session, monitoring_config, inactive_config):
    result = patched_task.sync_all_active_configs()

    assert result == {"configs": 1, "synced": 2, "errors": 0, "failed_configs": 0}
    assert db_session.query(DeviceRecord).count() == 2
