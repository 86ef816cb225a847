from __future__ import annotations

import logging
from datetime import UTC, datetime

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.models.acs import (
    Alert,
    AlertSeverity,
    AlertStatus,
    ParameterThreshold,
    ThresholdCondition,
    ThresholdDeviceClass,
)
from app.schemas.acs import ParameterThresholdCreate, ParameterThresholdUpdate
from app.services.common import apply_ordering, apply_pagination, coerce_uuid, validate_enum
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


def format_threshold_value(value: float | int | str) -> str:
    """Store threshold values as text; integral floats lose the trailing .0."""
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class ParameterThresholds(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: ParameterThresholdCreate):
        data = payload.model_dump()
        data["threshold_value"] = format_threshold_value(data["threshold_value"])
        threshold = ParameterThreshold(**data)
        db.add(threshold)
        db.commit()
        db.refresh(threshold)
        return threshold

    @staticmethod
    def get(db: Session, threshold_id: str):
        threshold = db.get(ParameterThreshold, coerce_uuid(threshold_id))
        if not threshold:
            raise HTTPException(status_code=404, detail="Parameter threshold not found")
        return threshold

    @staticmethod
    def list(
        db: Session,
        device_class: str | None,
        condition: str | None,
        enabled: bool | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ):
        query = db.query(ParameterThreshold)
        if device_class:
            query = query.filter(
                ParameterThreshold.device_class
                == validate_enum(device_class, ThresholdDeviceClass, "device_class")
            )
        if condition:
            query = query.filter(
                ParameterThreshold.condition
                == validate_enum(condition, ThresholdCondition, "condition")
            )
        if enabled is not None:
            query = query.filter(ParameterThreshold.enabled == enabled)
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {
                "created_at": ParameterThreshold.created_at,
                "parameter_path": ParameterThreshold.parameter_path,
            },
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def list_enabled(db: Session) -> list[ParameterThreshold]:
        return (
            db.query(ParameterThreshold)
            .filter(ParameterThreshold.enabled.is_(True))
            .order_by(ParameterThreshold.created_at.asc())
            .all()
        )

    @staticmethod
    def update(db: Session, threshold_id: str, payload: ParameterThresholdUpdate):
        threshold = db.get(ParameterThreshold, coerce_uuid(threshold_id))
        if not threshold:
            raise HTTPException(status_code=404, detail="Parameter threshold not found")
        data = payload.model_dump(exclude_unset=True)
        if data.get("threshold_value") is not None:
            data["threshold_value"] = format_threshold_value(data["threshold_value"])
        for key, value in data.items():
            if value is None and key in ("parameter_path", "condition", "threshold_value"):
                continue
            setattr(threshold, key, value)
        db.commit()
        db.refresh(threshold)
        return threshold

    @staticmethod
    def delete(db: Session, threshold_id: str):
        threshold = db.get(ParameterThreshold, coerce_uuid(threshold_id))
        if not threshold:
            raise HTTPException(status_code=404, detail="Parameter threshold not found")
        db.delete(threshold)
        db.commit()


class Alerts(ListResponseMixin):
    @staticmethod
    def get(db: Session, alert_id: str):
        alert = db.get(Alert, coerce_uuid(alert_id))
        if not alert:
            raise HTTPException(status_code=404, detail="Alert not found")
        return alert

    @staticmethod
    def list(
        db: Session,
        device_id: str | None,
        status: str | None,
        severity: str | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ):
        query = db.query(Alert)
        if device_id:
            query = query.filter(Alert.device_id == device_id)
        if status:
            query = query.filter(Alert.status == validate_enum(status, AlertStatus, "status"))
        if severity:
            query = query.filter(
                Alert.severity == validate_enum(severity, AlertSeverity, "severity")
            )
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {"created_at": Alert.created_at, "severity": Alert.severity},
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def find_active(db: Session, device_id: str, title: str) -> Alert | None:
        return (
            db.query(Alert)
            .filter(Alert.device_id == device_id)
            .filter(Alert.title == title)
            .filter(Alert.status == AlertStatus.active)
            .first()
        )

    @staticmethod
    def resolve(db: Session, alert_id: str):
        """Close an alert. Resolution only ever happens through this call."""
        alert = db.get(Alert, coerce_uuid(alert_id))
        if not alert:
            raise HTTPException(status_code=404, detail="Alert not found")
        if alert.status != AlertStatus.resolved:
            alert.status = AlertStatus.resolved
            alert.resolved_at = datetime.now(UTC)
            db.commit()
            db.refresh(alert)
            logger.info("Resolved alert %s for device %s", alert.id, alert.device_id)
        return alert


parameter_thresholds = ParameterThresholds()
alerts = Alerts()
