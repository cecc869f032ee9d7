"""Escrituras sobre data_sensor.

Cada operación toma una conexión del pool con engine.begin(): commit al
salir, rollback ante excepción y devolución al pool en todos los casos.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)


class SensorRecordRepository:

    def __init__(self, engine: Engine):
        self._engine = engine

    def insert_temperature(self, temperature: float, humidity: float) -> Optional[int]:
        """Crea un registro nuevo con lux NULL. Retorna el id asignado."""
        with self._engine.begin() as conn:
            result = conn.execute(
                text("INSERT INTO data_sensor (suhu, humidity) VALUES (:suhu, :humidity)"),
                {"suhu": float(temperature), "humidity": float(humidity)},
            )
            return result.lastrowid

    def update_latest_lux(self, lux: float) -> int:
        """Actualiza lux del registro con id más alto.

        El "más reciente" lo decide la BD (ORDER BY id DESC LIMIT 1).
        Retorna filas afectadas: 0 si la tabla está vacía.
        """
        with self._engine.begin() as conn:
            row = conn.execute(
                text("SELECT id FROM data_sensor ORDER BY id DESC LIMIT 1")
            ).fetchone()
            if row is None:
                return 0

            result = conn.execute(
                text("UPDATE data_sensor SET lux = :lux WHERE id = :id"),
                {"lux": float(lux), "id": int(row.id)},
            )
            return result.rowcount
