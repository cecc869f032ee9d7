"""Handlers de ingesta por stream.

Contrato común: handle(payload) -> IngestResult. Ningún error sale del
handler; todo fallo se registra con stream, payload original y causa, y
el mensaje se descarta (entrega at-most-once, sin cola de reintentos).
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from ..domain import IngestResult, IngestStatus, Reading, StreamKind
from ..errors import MalformedPayload, PersistenceError
from ..mqtt.validators import parse_reading
from .repository import SensorRecordRepository
from .retry import RetryExecutor

logger = logging.getLogger(__name__)

_MAX_LOGGED_PAYLOAD = 1000


def _payload_preview(payload: bytes) -> str:
    return payload[:_MAX_LOGGED_PAYLOAD].decode("utf-8", errors="replace")


class IngestionHandler:
    """Base de los handlers: parseo, persistencia con retry y contadores."""

    stream: StreamKind

    def __init__(self, repository: SensorRecordRepository, retry: Optional[RetryExecutor] = None):
        self._repository = repository
        self._retry = retry or RetryExecutor()
        self._lock = threading.Lock()
        self._counts = {status: 0 for status in IngestStatus}

    def handle(self, payload: bytes) -> IngestResult:
        try:
            reading = parse_reading(self.stream, payload)
        except MalformedPayload as e:
            logger.error(
                "[INGEST] Malformed payload dropped stream=%s error=%s payload=%s",
                self.stream.value, e, _payload_preview(payload),
            )
            return self._record(IngestResult(self.stream, IngestStatus.MALFORMED, error=str(e)))

        try:
            result = self._persist(reading)
        except PersistenceError as e:
            logger.error(
                "[INGEST] Persistence failed, message dropped stream=%s error=%s payload=%s",
                self.stream.value, e, _payload_preview(payload),
            )
            return self._record(IngestResult(self.stream, IngestStatus.FAILED, error=str(e)))

        return self._record(result)

    def _persist(self, reading: Reading) -> IngestResult:
        raise NotImplementedError

    def _execute(self, func, *args):
        """Ejecuta la escritura con retry; envuelve fallos de BD en PersistenceError."""
        try:
            return self._retry.execute(func, *args)
        except SQLAlchemyError as e:
            raise PersistenceError(f"{type(e).__name__}: {e}") from e

    def _record(self, result: IngestResult) -> IngestResult:
        with self._lock:
            self._counts[result.status] += 1
        return result

    @property
    def stats(self) -> dict:
        with self._lock:
            return {status.value: count for status, count in self._counts.items()}


class TemperatureHandler(IngestionHandler):
    """Inserta un registro nuevo por cada lectura de temperatura/humedad."""

    stream = StreamKind.TEMPERATURE

    def _persist(self, reading: Reading) -> IngestResult:
        record_id = self._execute(
            self._repository.insert_temperature, reading.temperature, reading.humidity
        )
        logger.info(
            "[INGEST] Temperature stored id=%s temperature=%.2f humidity=%.2f",
            record_id, reading.temperature, reading.humidity,
        )
        return IngestResult(self.stream, IngestStatus.STORED, record_id=record_id, rows_affected=1)


class BrightnessHandler(IngestionHandler):
    """Actualiza lux del registro más reciente; sin registros es un no-op."""

    stream = StreamKind.BRIGHTNESS

    def _persist(self, reading: Reading) -> IngestResult:
        rows = self._execute(self._repository.update_latest_lux, reading.brightness)
        if rows == 0:
            logger.info(
                "[INGEST] Brightness %.2f ignored: no record to update", reading.brightness
            )
            return IngestResult(self.stream, IngestStatus.NO_OP)

        logger.info("[INGEST] Brightness updated lux=%.2f", reading.brightness)
        return IngestResult(self.stream, IngestStatus.UPDATED, rows_affected=rows)
