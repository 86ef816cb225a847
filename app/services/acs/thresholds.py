"""Threshold rule evaluation against cached parameter snapshots.

Every ``ThresholdCondition`` member has exactly one evaluator. An evaluator
compares numerically when both sides parse as numbers and falls back to
text comparison otherwise; ordering conditions never match on text.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.metrics import ACS_ALERTS_CREATED
from app.models.acs import (
    Alert,
    AlertStatus,
    DeviceClass,
    ParameterThreshold,
    ThresholdCondition,
    ThresholdDeviceClass,
)
from app.services.acs.alerts import Alerts, ParameterThresholds
from app.services.acs.cache import ParameterCache, parse_number
from app.services.acs.classifier import effective_class
from app.services.acs.store import MonitoringStore
from app.websocket.broadcaster import Broadcaster, publish_safely
from app.websocket.events import MonitoringEvent, MonitoringEventType

logger = logging.getLogger(__name__)

ALERT_TITLE_PREFIX = "Parameter Threshold: "


def _as_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _numeric_pair(value: Any, threshold: Any) -> tuple[float, float] | None:
    left = parse_number(value)
    right = parse_number(threshold)
    if left is None or right is None:
        return None
    return left, right


def _greater_than(value: Any, threshold: Any) -> bool:
    pair = _numeric_pair(value, threshold)
    return pair is not None and pair[0] > pair[1]


def _less_than(value: Any, threshold: Any) -> bool:
    pair = _numeric_pair(value, threshold)
    return pair is not None and pair[0] < pair[1]


def _equals(value: Any, threshold: Any) -> bool:
    pair = _numeric_pair(value, threshold)
    if pair is not None:
        return pair[0] == pair[1]
    return _as_text(value) == _as_text(threshold)


def _not_equals(value: Any, threshold: Any) -> bool:
    pair = _numeric_pair(value, threshold)
    if pair is not None:
        return pair[0] != pair[1]
    return _as_text(value) != _as_text(threshold)


def _contains(value: Any, threshold: Any) -> bool:
    if _numeric_pair(value, threshold) is not None:
        return False
    return _as_text(threshold) in _as_text(value)


CONDITION_EVALUATORS: dict[ThresholdCondition, Callable[[Any, Any], bool]] = {
    ThresholdCondition.greater_than: _greater_than,
    ThresholdCondition.less_than: _less_than,
    ThresholdCondition.equals: _equals,
    ThresholdCondition.not_equals: _not_equals,
    ThresholdCondition.contains: _contains,
}


def evaluate_condition(
    condition: ThresholdCondition | str, value: Any, threshold: Any
) -> bool:
    return CONDITION_EVALUATORS[ThresholdCondition(condition)](value, threshold)


def alert_title(parameter_path: str) -> str:
    return f"{ALERT_TITLE_PREFIX}{parameter_path}"


def applies_to(threshold: ParameterThreshold, device_class: DeviceClass) -> bool:
    if threshold.device_class == ThresholdDeviceClass.all:
        return True
    return threshold.device_class.value == effective_class(device_class).value


def create_alert_if_absent(
    db: Session,
    device_id: str,
    device_class: DeviceClass,
    threshold: ParameterThreshold,
    current_value: Any,
) -> Alert | None:
    """Create the alert for a triggered rule unless one is already active.

    Returns the new alert, or None when an active one already exists.
    """
    title = alert_title(threshold.parameter_path)
    if Alerts.find_active(db, device_id, title) is not None:
        return None
    alert = Alert(
        threshold_id=threshold.id,
        severity=threshold.severity,
        title=title,
        description=(
            f"{threshold.description or title}. "
            f"Current value: {_as_text(current_value)}, "
            f"Threshold: {threshold.threshold_value}"
        ),
        device_id=device_id,
        device_class=device_class,
        status=AlertStatus.active,
    )
    db.add(alert)
    try:
        db.flush()
    except IntegrityError:
        # another pass stored the active alert first
        db.rollback()
        return None
    return alert


class ThresholdEngine:
    def __init__(
        self,
        cache: ParameterCache,
        store: MonitoringStore,
        broadcaster: Broadcaster | None = None,
    ):
        self.cache = cache
        self.store = store
        self.broadcaster = broadcaster

    async def check_device(
        self, device_id: str, device_class: DeviceClass | None = None
    ) -> list[Alert]:
        """Evaluate enabled thresholds against the device's cached snapshot.

        Returns the alerts created by this pass. Repeating the pass with the
        same inputs creates nothing new. Passes for one device run one at a
        time under its cache lock.
        """
        async with self.cache.lock(device_id):
            return await self.evaluate_locked(device_id, device_class)

    async def evaluate_locked(
        self, device_id: str, device_class: DeviceClass | None = None
    ) -> list[Alert]:
        """Same as ``check_device`` for callers already holding the device lock."""
        entry = self.cache.entry(device_id)
        if entry is None:
            return []
        device_class = device_class or entry.device_class
        snapshot = {parameter.path: parameter for parameter in entry.parameters}

        thresholds = await self.store.run(ParameterThresholds.list_enabled)
        created: list[Alert] = []
        for threshold in thresholds:
            if not applies_to(threshold, device_class):
                continue
            parameter = snapshot.get(threshold.parameter_path)
            if parameter is None:
                continue
            if not evaluate_condition(
                threshold.condition, parameter.value, threshold.threshold_value
            ):
                continue
            alert = await self.store.run(
                create_alert_if_absent, device_id, device_class, threshold, parameter.value
            )
            if alert is None:
                continue
            created.append(alert)
            ACS_ALERTS_CREATED.labels(severity=alert.severity.value).inc()
            logger.info(
                "Threshold alert created for %s: %s (%s)",
                device_id,
                alert.title,
                alert.severity.value,
            )
            await publish_safely(
                self.broadcaster,
                MonitoringEvent(
                    type=MonitoringEventType.ALERT_CREATED,
                    device_id=device_id,
                    device_type=effective_class(device_class).value,
                    status=alert.severity.value,
                    metrics={
                        "alertId": str(alert.id),
                        "title": alert.title,
                        "parameterPath": threshold.parameter_path,
                        "value": _as_text(parameter.value),
                        "threshold": threshold.threshold_value,
                    },
                ),
            )
        return created
