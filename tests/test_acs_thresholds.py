"""Tests for threshold evaluation and alert creation."""

import asyncio

import pytest

from app.models.acs import Alert, AlertSeverity, AlertStatus, DeviceClass, ThresholdCondition
from app.schemas.acs import ParameterThresholdCreate, ParameterThresholdUpdate
from app.services.acs.alerts import Alerts, ParameterThresholds, format_threshold_value
from app.services.acs.cache import DeviceParameter, ParameterCache
from app.services.acs.thresholds import (
    CONDITION_EVALUATORS,
    ThresholdEngine,
    alert_title,
    create_alert_if_absent,
    evaluate_condition,
)
from tests.mocks import OLT_ID, ONU_ID, PROCESSOR_LOAD_PATH, TEMPERATURE_PATH, drain


def _cache_with(device_id, path, value, device_class=DeviceClass.olt) -> ParameterCache:
    cache = ParameterCache()
    cache.set(device_id, [DeviceParameter(device_id=device_id, path=path, value=value)], device_class)
    return cache


# =============================================================================
# Condition Evaluators
# =============================================================================


def test_every_condition_has_an_evaluator():
    assert set(CONDITION_EVALUATORS) == set(ThresholdCondition)


@pytest.mark.parametrize(
    ("condition", "value", "threshold", "expected"),
    [
        ("greater_than", "82", "70", True),
        ("greater_than", "70", "70", False),
        ("greater_than", "hot", "70", False),
        ("less_than", "-31.2", "-30", True),
        ("less_than", "n/a", "-30", False),
        ("equals", "70.0", "70", True),
        ("equals", "Enabled", "Enabled", True),
        ("equals", True, "true", True),
        ("not_equals", "Up", "Down", True),
        ("not_equals", "5", "5.0", False),
        ("contains", "Error: LOS detected", "LOS", True),
        ("contains", "Normal", "LOS", False),
        ("contains", "123", "2", False),
    ],
)
def test_evaluate_condition(condition, value, threshold, expected):
    assert evaluate_condition(condition, value, threshold) is expected


def test_format_threshold_value():
    assert format_threshold_value(70.0) == "70"
    assert format_threshold_value(-27.5) == "-27.5"
    assert format_threshold_value("LOS") == "LOS"
    assert format_threshold_value(True) == "true"


# =============================================================================
# Threshold Engine
# =============================================================================


@pytest.mark.asyncio
async def test_triggered_threshold_creates_one_critical_alert(
    db_session, store, broadcaster, events, temperature_threshold
):
    engine = ThresholdEngine(_cache_with(OLT_ID, TEMPERATURE_PATH, "82"), store, broadcaster)

    created = await engine.check_device(OLT_ID)

    assert len(created) == 1
    alert = created[0]
    assert alert.severity == AlertSeverity.critical
    assert alert.title == alert_title(TEMPERATURE_PATH)
    assert TEMPERATURE_PATH in alert.title
    assert "Current value: 82, Threshold: 70" in alert.description
    assert alert.threshold_id == temperature_threshold.id

    messages = drain(events)
    assert len(messages) == 1
    assert messages[0]["type"] == "alert-created"
    assert messages[0]["deviceId"] == OLT_ID
    assert messages[0]["deviceType"] == "olt"
    assert messages[0]["metrics"]["parameterPath"] == TEMPERATURE_PATH


@pytest.mark.asyncio
async def test_repeat_pass_creates_no_duplicate(db_session, store, temperature_threshold):
    engine = ThresholdEngine(_cache_with(OLT_ID, TEMPERATURE_PATH, "82"), store)

    await engine.check_device(OLT_ID)
    assert await engine.check_device(OLT_ID) == []

    assert db_session.query(Alert).filter(Alert.device_id == OLT_ID).count() == 1


@pytest.mark.asyncio
async def test_concurrent_passes_create_one_alert(db_session, store, temperature_threshold):
    engine = ThresholdEngine(_cache_with(OLT_ID, TEMPERATURE_PATH, "82"), store)

    results = await asyncio.gather(*(engine.check_device(OLT_ID) for _ in range(8)))

    assert sum(len(created) for created in results) == 1
    active = db_session.query(Alert).filter(Alert.status == AlertStatus.active).count()
    assert active == 1


def test_active_alert_index_blocks_duplicate(db_session, store, temperature_threshold, monkeypatch):
    first = store.call(
        create_alert_if_absent, OLT_ID, DeviceClass.olt, temperature_threshold, "82"
    )
    assert first is not None

    # a pass that missed the existing row still cannot store a second one
    monkeypatch.setattr(Alerts, "find_active", staticmethod(lambda db, device_id, title: None))
    second = store.call(
        create_alert_if_absent, OLT_ID, DeviceClass.olt, temperature_threshold, "82"
    )

    assert second is None
    assert db_session.query(Alert).count() == 1


@pytest.mark.asyncio
async def test_resolved_alert_allows_a_new_one(db_session, store, temperature_threshold):
    engine = ThresholdEngine(_cache_with(OLT_ID, TEMPERATURE_PATH, "82"), store)
    [first] = await engine.check_device(OLT_ID)

    Alerts.resolve(db_session, first.id)
    created = await engine.check_device(OLT_ID)

    assert len(created) == 1
    assert created[0].id != first.id
    statuses = {a.status for a in db_session.query(Alert).all()}
    assert statuses == {AlertStatus.active, AlertStatus.resolved}


@pytest.mark.asyncio
async def test_value_within_threshold_creates_nothing(db_session, store, temperature_threshold):
    engine = ThresholdEngine(_cache_with(OLT_ID, TEMPERATURE_PATH, "55"), store)

    assert await engine.check_device(OLT_ID) == []
    assert db_session.query(Alert).count() == 0


@pytest.mark.asyncio
async def test_disabled_threshold_is_ignored(db_session, store, temperature_threshold):
    ParameterThresholds.update(
        db_session, temperature_threshold.id, ParameterThresholdUpdate(enabled=False)
    )
    engine = ThresholdEngine(_cache_with(OLT_ID, TEMPERATURE_PATH, "95"), store)

    assert await engine.check_device(OLT_ID) == []


@pytest.mark.asyncio
async def test_device_class_filter(db_session, store):
    ParameterThresholds.create(
        db_session,
        ParameterThresholdCreate(
            parameter_path=TEMPERATURE_PATH,
            device_class="onu",
            condition="greater_than",
            threshold_value=70,
        ),
    )

    olt_engine = ThresholdEngine(_cache_with(OLT_ID, TEMPERATURE_PATH, "90"), store)
    assert await olt_engine.check_device(OLT_ID) == []

    unknown_engine = ThresholdEngine(
        _cache_with(ONU_ID, TEMPERATURE_PATH, "90", DeviceClass.unknown), store
    )
    created = await unknown_engine.check_device(ONU_ID)
    assert len(created) == 1
    assert created[0].device_class == DeviceClass.unknown


@pytest.mark.asyncio
async def test_uncached_device_is_skipped(store, temperature_threshold):
    engine = ThresholdEngine(ParameterCache(), store)
    assert await engine.check_device(OLT_ID) == []


# =============================================================================
# Threshold and Alert CRUD
# =============================================================================


def test_list_thresholds_filters(db_session, temperature_threshold):
    ParameterThresholds.create(
        db_session,
        ParameterThresholdCreate(
            parameter_path="InternetGatewayDevice.DeviceInfo.X_CT-COM_ReceivePower",
            device_class="onu",
            condition="less_than",
            threshold_value=-28,
        ),
    )

    onu_rules = ParameterThresholds.list(
        db_session, "onu", None, None, "created_at", "asc", 10, 0
    )
    assert [t.threshold_value for t in onu_rules] == ["-28"]

    response = ParameterThresholds.list_response(
        db_session, None, "greater_than", True, "created_at", "asc", 10, 0
    )
    assert response["count"] == 1


def test_list_enabled_skips_disabled_rules(db_session, temperature_threshold):
    ParameterThresholds.create(
        db_session,
        ParameterThresholdCreate(
            parameter_path=PROCESSOR_LOAD_PATH,
            condition="greater_than",
            threshold_value=90,
            enabled=False,
        ),
    )

    enabled = ParameterThresholds.list_enabled(db_session)

    assert [t.id for t in enabled] == [temperature_threshold.id]


def test_resolve_is_idempotent(db_session):
    alert = Alert(
        title=alert_title(TEMPERATURE_PATH),
        device_id=OLT_ID,
        severity=AlertSeverity.warning,
    )
    db_session.add(alert)
    db_session.commit()

    resolved = Alerts.resolve(db_session, alert.id)
    resolved_at = resolved.resolved_at
    again = Alerts.resolve(db_session, alert.id)

    assert again.status == AlertStatus.resolved
    assert again.resolved_at == resolved_at


def test_delete_threshold_keeps_alerts(db_session, temperature_threshold):
    alert = Alert(
        threshold_id=temperature_threshold.id,
        title=alert_title(TEMPERATURE_PATH),
        device_id=OLT_ID,
    )
    db_session.add(alert)
    db_session.commit()

    ParameterThresholds.delete(db_session, temperature_threshold.id)
    db_session.expire_all()

    kept = db_session.get(Alert, alert.id)
    assert kept is not None
    assert kept.threshold_id is None
