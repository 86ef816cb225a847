"""Common helper functions for service layer.

This module provides reusable utilities for:
- UUID handling
- Query ordering and pagination
- Enum validation
- Score rounding
"""

from __future__ import annotations

import uuid
from decimal import ROUND_HALF_UP, Decimal

from fastapi import HTTPException


def coerce_uuid(value):
    """Convert value to UUID, returning None if value is None.

    Raises:
        HTTPException: 400 if value is not a valid UUID
    """
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid identifier") from exc


def apply_ordering(query, order_by: str, order_dir: str, allowed_columns: dict):
    """Apply ordering to a query with validation.

    Raises:
        HTTPException: 400 if order_by is not in allowed_columns
    """
    if order_by not in allowed_columns:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid order_by. Allowed: {', '.join(sorted(allowed_columns))}",
        )
    column = allowed_columns[order_by]
    if order_dir == "desc":
        return query.order_by(column.desc())
    return query.order_by(column.asc())


def apply_pagination(query, limit: int, offset: int):
    return query.limit(limit).offset(offset)


def validate_enum(value, enum_cls, label: str):
    """Validate and convert a value to an enum member.

    Returns:
        Enum member or None if value is None

    Raises:
        HTTPException: 400 if value is not a valid enum member
    """
    if value is None:
        return None
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid {label}") from exc


def round_half_up(value: Decimal | int | float | str) -> int:
    """Round to the nearest integer, halves away from zero (2.5 -> 3)."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
