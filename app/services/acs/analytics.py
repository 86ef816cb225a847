from __future__ import annotations

from datetime import UTC, datetime, timedelta

from sqlalchemy.orm import Session

from app.models.acs import Alert, HealthSnapshot, ParameterSample
from app.schemas.acs import (
    AlertRead,
    DeviceAnalytics,
    HealthSnapshotRead,
    MetricAggregate,
    ParameterSampleRead,
)
from app.services.acs.store import MonitoringStore

RANGE_WINDOWS = {
    "hour": timedelta(hours=1),
    "day": timedelta(days=1),
    "week": timedelta(days=7),
    "month": timedelta(days=30),
}


def window_start(time_range: str, now: datetime) -> datetime:
    return now - RANGE_WINDOWS.get(time_range, RANGE_WINDOWS["day"])


def aggregate_metrics(samples: list[ParameterSample]) -> dict[str, MetricAggregate]:
    """min/max/avg/count per metric over the numeric samples."""
    buckets: dict[str, list[float]] = {}
    units: dict[str, str] = {}
    for sample in samples:
        if sample.value_numeric is None:
            continue
        buckets.setdefault(sample.metric, []).append(sample.value_numeric)
        units.setdefault(sample.metric, sample.unit or "")
    return {
        metric: MetricAggregate(
            min=min(values),
            max=max(values),
            avg=sum(values) / len(values),
            count=len(values),
            unit=units[metric],
        )
        for metric, values in buckets.items()
    }


def load_analytics(
    db: Session, device_id: str, time_range: str, now: datetime
) -> DeviceAnalytics:
    start = window_start(time_range, now)
    samples = (
        db.query(ParameterSample)
        .filter(ParameterSample.device_id == device_id)
        .filter(ParameterSample.recorded_at >= start)
        .filter(ParameterSample.recorded_at <= now)
        .order_by(ParameterSample.recorded_at.asc())
        .all()
    )
    health = (
        db.query(HealthSnapshot)
        .filter(HealthSnapshot.device_id == device_id)
        .filter(HealthSnapshot.calculated_at >= start)
        .filter(HealthSnapshot.calculated_at <= now)
        .order_by(HealthSnapshot.calculated_at.asc())
        .all()
    )
    alerts = (
        db.query(Alert)
        .filter(Alert.device_id == device_id)
        .filter(Alert.created_at >= start)
        .filter(Alert.created_at <= now)
        .order_by(Alert.created_at.desc())
        .all()
    )
    return DeviceAnalytics(
        device_id=device_id,
        time_range=time_range,
        start=start,
        end=now,
        parameter_history=[ParameterSampleRead.model_validate(s) for s in samples],
        health_trends=[HealthSnapshotRead.model_validate(h) for h in health],
        performance_metrics=aggregate_metrics(samples),
        alert_history=[AlertRead.model_validate(a) for a in alerts],
    )


async def get_device_analytics(
    store: MonitoringStore, device_id: str, time_range: str = "day"
) -> DeviceAnalytics:
    return await store.run(load_analytics, device_id, time_range, datetime.now(UTC))
