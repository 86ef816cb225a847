"""Per-config engine wiring.

Every component receives its ACS client, cache, store and broadcaster
explicitly; nothing looks them up globally. ``MonitoringRegistry`` keeps
one engine per monitoring config and owns the scheduler that drives their
polling timers, so two configs can be monitored side by side.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass

from app.config import settings
from app.models.acs import MonitoringConfig
from app.schemas.acs import MonitoringStatus
from app.services.acs.cache import ParameterCache
from app.services.acs.errors import AcsConfigurationError
from app.services.acs.firmware import FirmwareService
from app.services.acs.health import HealthScorer, StabilitySignals
from app.services.acs.monitor import ParameterMonitor
from app.services.acs.scheduler import RecurringScheduler
from app.services.acs.store import MonitoringStore
from app.services.acs.sync import DeviceReconciler
from app.services.acs.thresholds import ThresholdEngine
from app.services.common import coerce_uuid
from app.services.genieacs import GenieACSClient
from app.websocket.broadcaster import Broadcaster

logger = logging.getLogger(__name__)

ClientFactory = Callable[[MonitoringConfig], GenieACSClient]


def _fingerprint(config: MonitoringConfig) -> tuple:
    return (config.base_url, config.username, config.password, config.timeout_seconds)


@dataclass
class MonitoringEngine:
    config_id: uuid.UUID
    client: GenieACSClient
    cache: ParameterCache
    store: MonitoringStore
    thresholds: ThresholdEngine
    health: HealthScorer
    monitor: ParameterMonitor
    reconciler: DeviceReconciler
    firmware: FirmwareService
    fingerprint: tuple = ()

    @classmethod
    def build(
        cls,
        config: MonitoringConfig,
        store: MonitoringStore,
        scheduler: RecurringScheduler,
        broadcaster: Broadcaster | None = None,
        client: GenieACSClient | None = None,
        cache: ParameterCache | None = None,
        signals: StabilitySignals | None = None,
        max_concurrency: int | None = None,
    ) -> MonitoringEngine:
        client = client or GenieACSClient.from_config(config)
        cache = cache or ParameterCache(settings.acs_parameter_cache_ttl_seconds)
        thresholds = ThresholdEngine(cache, store, broadcaster)
        health = HealthScorer(client, cache, store, broadcaster, signals)
        monitor = ParameterMonitor(
            client,
            cache,
            store,
            thresholds,
            health,
            scheduler,
            broadcaster,
            max_concurrency=max_concurrency,
        )
        return cls(
            config_id=config.id,
            client=client,
            cache=cache,
            store=store,
            thresholds=thresholds,
            health=health,
            monitor=monitor,
            reconciler=DeviceReconciler(client, store, broadcaster),
            firmware=FirmwareService(client, store),
            fingerprint=_fingerprint(config),
        )


class MonitoringRegistry:
    def __init__(
        self,
        store: MonitoringStore | None = None,
        broadcaster: Broadcaster | None = None,
        scheduler: RecurringScheduler | None = None,
        client_factory: ClientFactory | None = None,
        max_concurrency: int | None = None,
    ):
        self.store = store or MonitoringStore()
        self.broadcaster = broadcaster
        self.scheduler = scheduler or RecurringScheduler()
        self.client_factory = client_factory or GenieACSClient.from_config
        self.max_concurrency = max_concurrency
        self._engines: dict[uuid.UUID, MonitoringEngine] = {}

    def engine_for(self, config: MonitoringConfig) -> MonitoringEngine:
        """Return the config's engine, rebuilding it when connection settings changed.

        A running session moves to the rebuilt engine with the same interval,
        or is cancelled when the edited config can no longer be monitored.
        """
        previous = self._engines.get(config.id)
        if previous is not None and previous.fingerprint == _fingerprint(config):
            return previous
        resume_interval = None
        if previous is not None:
            logger.info("Connection settings changed for config %s; rebuilding engine", config.id)
            if previous.monitor.is_running(config.id):
                resume_interval = previous.monitor.interval_minutes
        engine = MonitoringEngine.build(
            config,
            self.store,
            self.scheduler,
            self.broadcaster,
            client=self.client_factory(config),
            max_concurrency=self.max_concurrency,
        )
        self._engines[config.id] = engine
        if resume_interval is not None:
            try:
                engine.monitor.start(config, resume_interval)
            except AcsConfigurationError as exc:
                self.scheduler.cancel(engine.monitor.session_key(config.id))
                logger.warning("Stopped ACS monitoring for config %s: %s", config.id, exc)
        return engine

    async def apply_config(self, config: MonitoringConfig) -> None:
        """Bring a known engine in line with an edited config."""
        if not config.is_active:
            await self.stop_monitoring(config.id)
            return
        if config.id in self._engines:
            self.engine_for(config)

    def get(self, config_id) -> MonitoringEngine | None:
        return self._engines.get(coerce_uuid(config_id))

    def start_monitoring(
        self, config: MonitoringConfig, interval_minutes: int | None = None
    ) -> MonitoringEngine:
        engine = self.engine_for(config)
        engine.monitor.start(config, interval_minutes)
        return engine

    async def stop_monitoring(self, config_id) -> bool:
        engine = self.get(config_id)
        if engine is None:
            return False
        return await engine.monitor.stop(engine.config_id)

    async def stop_all(self) -> None:
        await self.scheduler.stop_all()
        logger.info("Stopped all ACS monitoring sessions")

    def is_running(self, config_id) -> bool:
        engine = self.get(config_id)
        return engine is not None and engine.monitor.is_running(engine.config_id)

    def status(self, config_id) -> MonitoringStatus:
        engine = self.get(config_id)
        return MonitoringStatus(
            config_id=coerce_uuid(config_id),
            running=self.is_running(config_id),
            cached_devices=len(engine.cache) if engine else 0,
        )
