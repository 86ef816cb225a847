"""Composite 0-100 device health scoring.

overall = 0.3 * connectivity + 0.4 * performance + 0.3 * stability,
rounded half-up and clamped to [0, 100].

Connectivity is a step function of minutes since the last inform.
Performance averages a per-parameter score over the cached snapshot, where
known hot paths (processor load, free memory, temperature, optical receive
power) degrade through fixed bands. Stability averages three feeder signals
supplied by a ``StabilitySignals`` provider.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from app.models.acs import HealthSnapshot
from app.schemas.acs import HealthFactors, RemoteDevice
from app.services.acs.cache import DeviceParameter, ParameterCache
from app.services.acs.classifier import classify_remote, effective_class
from app.services.acs.store import MonitoringStore
from app.services.common import round_half_up
from app.services.genieacs import GenieACSClient
from app.websocket.broadcaster import Broadcaster, publish_safely
from app.websocket.events import MonitoringEvent, MonitoringEventType

logger = logging.getLogger(__name__)

CONNECTIVITY_WEIGHT = Decimal("0.3")
PERFORMANCE_WEIGHT = Decimal("0.4")
STABILITY_WEIGHT = Decimal("0.3")

UPTIME_WINDOW_SECONDS = 7 * 24 * 60 * 60


def _clamp(score: int) -> int:
    return max(0, min(100, score))


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def minutes_since(last_inform: datetime | None, now: datetime | None = None) -> float | None:
    if last_inform is None:
        return None
    now = now or datetime.now(UTC)
    return (now - _as_utc(last_inform)).total_seconds() / 60


def connectivity_score(minutes: float | None) -> int:
    if minutes is None:
        return 20
    if minutes < 5:
        return 100
    if minutes < 15:
        return 80
    if minutes < 60:
        return 60
    if minutes < 24 * 60:
        return 40
    return 20


def parameter_score(parameter: DeviceParameter) -> int:
    """Score one parameter; later matching bands override earlier ones."""
    path = parameter.path
    value = parameter.numeric_value()
    score = 100
    if value is None:
        return score

    if "Processor" in path and "Load" in path:
        if value > 90:
            score = 20
        elif value > 70:
            score = 50
        elif value > 50:
            score = 80

    if "Memory" in path and "Free" in path:
        if value < 10:
            score = 30
        elif value < 50:
            score = 60

    if "Temperature" in path and "Value" in path:
        if value > 80:
            score = 10
        elif value > 70:
            score = 40
        elif value > 60:
            score = 70

    if "OpticalSignal" in path or "ReceivePower" in path:
        if value < -30:
            score = 20
        elif value < -25:
            score = 50
        elif value < -20:
            score = 80

    return score


def performance_score(parameters: list[DeviceParameter]) -> int:
    if not parameters:
        return 100
    total = sum(parameter_score(parameter) for parameter in parameters)
    return round_half_up(Decimal(total) / Decimal(len(parameters)))


def uptime_percentage(uptime_seconds: float | None) -> int:
    if not uptime_seconds or uptime_seconds < 0:
        return 0
    return min(100, round_half_up(uptime_seconds / UPTIME_WINDOW_SECONDS * 100))


class StabilitySignals:
    """Feeder metrics for the stability score.

    No uptime history, response-time or error tracking is kept yet, so the
    defaults are fixed baselines. Subclass to supply measured values.
    """

    def uptime_score(self, device_id: str) -> float:
        return 85

    def error_rate(self, device_id: str) -> float:
        return 5

    def consistency_score(self, device_id: str) -> float:
        return 90

    def response_time_ms(self, device_id: str) -> float:
        return 150


def stability_score(signals: StabilitySignals, device_id: str) -> int:
    uptime = Decimal(str(signals.uptime_score(device_id)))
    errors = Decimal(100) - Decimal(str(signals.error_rate(device_id)))
    consistency = Decimal(str(signals.consistency_score(device_id)))
    return _clamp(round_half_up((uptime + errors + consistency) / 3))


def overall_score(connectivity: int, performance: int, stability: int) -> int:
    weighted = (
        CONNECTIVITY_WEIGHT * connectivity
        + PERFORMANCE_WEIGHT * performance
        + STABILITY_WEIGHT * stability
    )
    return _clamp(round_half_up(weighted))


def save_snapshot(
    db: Session,
    device_id: str,
    overall: int,
    connectivity: int,
    performance: int,
    stability: int,
    factors: dict,
    calculated_at: datetime,
) -> HealthSnapshot:
    snapshot = db.query(HealthSnapshot).filter(HealthSnapshot.device_id == device_id).first()
    if snapshot is None:
        snapshot = HealthSnapshot(device_id=device_id)
        db.add(snapshot)
    snapshot.overall_score = overall
    snapshot.connectivity_score = connectivity
    snapshot.performance_score = performance
    snapshot.stability_score = stability
    snapshot.factors = factors
    snapshot.calculated_at = calculated_at
    db.flush()
    return snapshot


def get_snapshot(db: Session, device_id: str) -> HealthSnapshot | None:
    return db.query(HealthSnapshot).filter(HealthSnapshot.device_id == device_id).first()


class HealthScorer:
    def __init__(
        self,
        client: GenieACSClient,
        cache: ParameterCache,
        store: MonitoringStore,
        broadcaster: Broadcaster | None = None,
        signals: StabilitySignals | None = None,
    ):
        self.client = client
        self.cache = cache
        self.store = store
        self.broadcaster = broadcaster
        self.signals = signals or StabilitySignals()

    async def calculate_health(
        self, device_id: str, remote: RemoteDevice | None = None
    ) -> HealthSnapshot:
        """Compute, persist and publish the device's health snapshot.

        Never raises: any failure yields an all-zero snapshot with a 100%
        error rate.
        """
        now = datetime.now(UTC)
        try:
            if remote is None:
                remote = await self.client.get_device(device_id)
            parameters = self.cache.get(device_id)

            connectivity = connectivity_score(minutes_since(remote.last_inform, now))
            performance = performance_score(parameters)
            stability = stability_score(self.signals, device_id)
            overall = overall_score(connectivity, performance, stability)
            factors = HealthFactors(
                uptime=uptime_percentage(remote.uptime),
                response_time=self.signals.response_time_ms(device_id),
                error_rate=self.signals.error_rate(device_id),
                parameter_health=performance,
            )
        except Exception:
            logger.exception("Error calculating health for device %s", device_id)
            return HealthSnapshot(
                device_id=device_id,
                overall_score=0,
                connectivity_score=0,
                performance_score=0,
                stability_score=0,
                factors=HealthFactors(error_rate=100).model_dump(),
                calculated_at=now,
            )

        factors_data = factors.model_dump()
        try:
            snapshot = await self.store.run(
                save_snapshot,
                device_id,
                overall,
                connectivity,
                performance,
                stability,
                factors_data,
                now,
            )
        except Exception:
            logger.exception("Error storing health score for device %s", device_id)
            snapshot = HealthSnapshot(
                device_id=device_id,
                overall_score=overall,
                connectivity_score=connectivity,
                performance_score=performance,
                stability_score=stability,
                factors=factors_data,
                calculated_at=now,
            )

        entry = self.cache.entry(device_id)
        device_class = entry.device_class if entry else classify_remote(remote)
        await publish_safely(
            self.broadcaster,
            MonitoringEvent(
                type=MonitoringEventType.DEVICE_METRICS_UPDATED,
                device_id=device_id,
                device_type=effective_class(device_class).value,
                metrics={
                    "overallScore": overall,
                    "connectivityScore": connectivity,
                    "performanceScore": performance,
                    "stabilityScore": stability,
                    "factors": factors_data,
                },
                timestamp=now,
            ),
        )
        return snapshot
