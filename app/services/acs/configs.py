from __future__ import annotations

import logging
from datetime import UTC, datetime
from urllib.parse import urlparse

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.models.acs import MonitoringConfig
from app.schemas.acs import MonitoringConfigCreate, MonitoringConfigUpdate
from app.services.acs.errors import AcsConfigurationError
from app.services.common import apply_ordering, apply_pagination, coerce_uuid
from app.services.genieacs import GenieACSClient
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


def validate_config(config: MonitoringConfig | None, require_active: bool = False) -> MonitoringConfig:
    """Fail fast on configs that can never work.

    Raises:
        AcsConfigurationError: missing config, missing or non-http(s) base
            URL, or an inactive config when ``require_active`` is set
    """
    if config is None:
        raise AcsConfigurationError("Monitoring config not found")
    base_url = (config.base_url or "").strip()
    if not base_url:
        raise AcsConfigurationError(f"Monitoring config {config.id} has no ACS base URL")
    parsed = urlparse(base_url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise AcsConfigurationError(
            f"Monitoring config {config.id} has an invalid ACS base URL: {base_url}"
        )
    if require_active and not config.is_active:
        raise AcsConfigurationError(f"Monitoring config {config.id} is not active")
    return config


def mark_config_synced(db: Session, config_id, synced_at: datetime | None = None) -> None:
    config = db.get(MonitoringConfig, coerce_uuid(config_id))
    if config is None:
        return
    config.last_sync_at = synced_at or datetime.now(UTC)


class MonitoringConfigs(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: MonitoringConfigCreate):
        config = MonitoringConfig(**payload.model_dump())
        db.add(config)
        db.commit()
        db.refresh(config)
        return config

    @staticmethod
    def get(db: Session, config_id: str):
        config = db.get(MonitoringConfig, coerce_uuid(config_id))
        if not config:
            raise HTTPException(status_code=404, detail="Monitoring config not found")
        return config

    @staticmethod
    def list(
        db: Session,
        is_active: bool | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ):
        query = db.query(MonitoringConfig)
        if is_active is None:
            query = query.filter(MonitoringConfig.is_active.is_(True))
        else:
            query = query.filter(MonitoringConfig.is_active == is_active)
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {"created_at": MonitoringConfig.created_at, "name": MonitoringConfig.name},
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def list_active(db: Session) -> list[MonitoringConfig]:
        return (
            db.query(MonitoringConfig)
            .filter(MonitoringConfig.is_active.is_(True))
            .order_by(MonitoringConfig.created_at.asc())
            .all()
        )

    @staticmethod
    def update(db: Session, config_id: str, payload: MonitoringConfigUpdate):
        config = db.get(MonitoringConfig, coerce_uuid(config_id))
        if not config:
            raise HTTPException(status_code=404, detail="Monitoring config not found")
        for key, value in payload.model_dump(exclude_unset=True).items():
            setattr(config, key, value)
        db.commit()
        db.refresh(config)
        return config

    @staticmethod
    def delete(db: Session, config_id: str):
        config = db.get(MonitoringConfig, coerce_uuid(config_id))
        if not config:
            raise HTTPException(status_code=404, detail="Monitoring config not found")
        config.is_active = False
        db.commit()

    @staticmethod
    async def test_connection(config: MonitoringConfig, client: GenieACSClient | None = None) -> bool:
        """Check that the ACS behind a config answers its health endpoint."""
        validate_config(config)
        client = client or GenieACSClient.from_config(config)
        healthy = await client.health_check()
        logger.info("ACS connection test for config %s: %s", config.id, healthy)
        return healthy


monitoring_configs = MonitoringConfigs()
