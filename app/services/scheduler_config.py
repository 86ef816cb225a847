import logging
import os
from datetime import timedelta

from app.config import settings

logger = logging.getLogger(__name__)


def _env_value(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or value == "":
        return None
    return value


def _env_bool(name: str) -> bool | None:
    raw = _env_value(name)
    if raw is None:
        return None
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str) -> int | None:
    raw = _env_value(name)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r", name, raw)
        return None


def get_celery_config() -> dict:
    broker = _env_value("CELERY_BROKER_URL") or settings.redis_url
    backend = _env_value("CELERY_RESULT_BACKEND") or settings.redis_url
    timezone = _env_value("CELERY_TIMEZONE") or "UTC"
    config: dict[str, object] = {
        "broker_url": broker,
        "result_backend": backend,
        "timezone": timezone,
    }
    config["beat_max_loop_interval"] = _env_int("CELERY_BEAT_MAX_LOOP_INTERVAL") or 5
    return config


def build_beat_schedule() -> dict:
    schedule: dict[str, dict] = {}
    enabled = _env_bool("ACS_SYNC_ENABLED")
    if enabled is None:
        enabled = True
    interval_minutes = settings.acs_sync_interval_minutes
    if enabled:
        schedule["acs_inventory_sync"] = {
            "task": "app.tasks.acs.sync_all_active_configs",
            "schedule": timedelta(minutes=max(interval_minutes, 1)),
        }
    else:
        logger.info("ACS inventory sync schedule disabled")
    return schedule
