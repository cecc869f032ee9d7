"""Agregados de temperatura y últimos registros.

Se recalcula en cada request, sin cache.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import DateTime, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import QueryError

logger = logging.getLogger(__name__)

RECENT_LIMIT = 10
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class RecentRecord:
    id: int
    temperature: Optional[float]
    humidity: Optional[float]
    lux: Optional[float]
    formatted_timestamp: Optional[str]


@dataclass(frozen=True)
class AggregateSnapshot:
    max_temperature: Optional[float]
    min_temperature: Optional[float]
    avg_temperature: Optional[float]
    recent: List[RecentRecord] = field(default_factory=list)


def _as_float(value: Any) -> Optional[float]:
    # MySQL devuelve Decimal para ROUND(AVG(...))
    return float(value) if value is not None else None


def format_timestamp(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.strftime(TIMESTAMP_FORMAT)
    return str(value)


def get_temperature_stats(db: Session) -> tuple:
    """MAX, MIN y promedio redondeado a 2 decimales de suhu."""
    row = db.execute(
        text(
            """
            SELECT
              MAX(suhu) AS suhumax,
              MIN(suhu) AS suhumin,
              ROUND(AVG(suhu), 2) AS suhurata
            FROM data_sensor
            """
        )
    ).fetchone()

    if row is None:
        return None, None, None
    avg = _as_float(row.suhurata)
    return (
        _as_float(row.suhumax),
        _as_float(row.suhumin),
        round(avg, 2) if avg is not None else None,
    )


def get_recent_records(db: Session, limit: int = RECENT_LIMIT) -> List[RecentRecord]:
    """Últimos registros por id descendente."""
    rows = db.execute(
        text(
            """
            SELECT id, suhu, humidity, lux, timestamp
            FROM data_sensor
            ORDER BY id DESC
            LIMIT :limit
            """
        ).columns(timestamp=DateTime),
        {"limit": int(limit)},
    ).fetchall()

    return [
        RecentRecord(
            id=int(row.id),
            temperature=_as_float(row.suhu),
            humidity=_as_float(row.humidity),
            lux=_as_float(row.lux),
            formatted_timestamp=format_timestamp(row.timestamp),
        )
        for row in rows
    ]


def compute_snapshot(db: Session, limit: int = RECENT_LIMIT) -> AggregateSnapshot:
    """Calcula el snapshot completo.

    Raises:
        QueryError: ante cualquier fallo de la BD.
    """
    try:
        max_t, min_t, avg_t = get_temperature_stats(db)
        recent = get_recent_records(db, limit)
    except SQLAlchemyError as e:
        logger.error("[API] Aggregate query failed: %s", e)
        raise QueryError(str(e)) from e

    return AggregateSnapshot(
        max_temperature=max_t,
        min_temperature=min_t,
        avg_temperature=avg_t,
        recent=recent,
    )
