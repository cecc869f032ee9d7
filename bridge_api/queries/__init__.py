"""Módulo de queries para consultas a BD.

Contiene funciones de consulta sin lógica de negocio.
"""

from .aggregate import (
    AggregateSnapshot,
    RecentRecord,
    compute_snapshot,
    get_recent_records,
    get_temperature_stats,
)

__all__ = [
    "AggregateSnapshot",
    "RecentRecord",
    "compute_snapshot",
    "get_recent_records",
    "get_temperature_stats",
]
