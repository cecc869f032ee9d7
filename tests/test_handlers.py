"""Tests de handlers de ingesta contra SQLite en memoria."""

import logging

import pytest
from sqlalchemy.exc import OperationalError

from bridge_api.domain import IngestStatus, StreamKind
from bridge_api.ingest import (
    BrightnessHandler,
    RetryConfig,
    RetryExecutor,
    SensorRecordRepository,
    TemperatureHandler,
)


@pytest.fixture
def temperature_handler(repository, retry):
    return TemperatureHandler(repository, retry)


@pytest.fixture
def brightness_handler(repository, retry):
    return BrightnessHandler(repository, retry)


# =============================================================================
# TEMPERATURA
# =============================================================================

class TestTemperatureHandler:
    """Cada lectura de temperatura crea un registro nuevo."""

    def test_creates_record_with_null_lux(self, temperature_handler, engine, fetch_rows):
        result = temperature_handler.handle(b'{"temperature": 27.5, "humidity": 70.1}')

        assert result.status == IngestStatus.STORED
        assert result.ok is True
        rows = fetch_rows(engine)
        assert len(rows) == 1
        assert rows[0].id == result.record_id
        assert rows[0].suhu == 27.5
        assert rows[0].humidity == 70.1
        assert rows[0].lux is None

    def test_each_message_creates_new_record(self, temperature_handler, engine, fetch_rows):
        for t in (10, 20, 30):
            temperature_handler.handle(f'{{"temperature": {t}, "humidity": 50}}'.encode())

        rows = fetch_rows(engine)
        assert [r.suhu for r in rows] == [10.0, 20.0, 30.0]
        assert rows[0].id < rows[1].id < rows[2].id

    def test_malformed_payload_writes_nothing(self, temperature_handler, engine, fetch_rows, caplog):
        with caplog.at_level(logging.ERROR):
            result = temperature_handler.handle(b'{"temperature": "hot"}')

        assert result.status == IngestStatus.MALFORMED
        assert result.ok is False
        assert fetch_rows(engine) == []
        assert any(
            r.levelno == logging.ERROR and "hot" in r.getMessage() for r in caplog.records
        )

    def test_out_of_range_number_is_malformed(self, temperature_handler, engine, fetch_rows):
        payload = b'{"temperature": 1' + b"0" * 400 + b', "humidity": 50}'

        result = temperature_handler.handle(payload)

        assert result.status == IngestStatus.MALFORMED
        assert fetch_rows(engine) == []

    def test_stats_count_by_status(self, temperature_handler):
        temperature_handler.handle(b'{"temperature": 20, "humidity": 50}')
        temperature_handler.handle(b"not json")

        stats = temperature_handler.stats
        assert stats["stored"] == 1
        assert stats["malformed"] == 1
        assert stats["failed"] == 0


# =============================================================================
# BRILLO
# =============================================================================

class TestBrightnessHandler:
    """Brillo actualiza lux del registro con id más alto."""

    def test_updates_only_latest_record(
        self, temperature_handler, brightness_handler, engine, fetch_rows
    ):
        for t in (21, 22, 23):
            temperature_handler.handle(f'{{"temperature": {t}, "humidity": 40}}'.encode())

        result = brightness_handler.handle(b'{"brightness": 480.0}')

        assert result.status == IngestStatus.UPDATED
        assert result.rows_affected == 1
        rows = fetch_rows(engine)
        assert [r.lux for r in rows] == [None, None, 480.0]
        assert [r.suhu for r in rows] == [21.0, 22.0, 23.0]

    def test_second_update_overwrites_latest(
        self, temperature_handler, brightness_handler, engine, fetch_rows
    ):
        temperature_handler.handle(b'{"temperature": 21, "humidity": 40}')
        brightness_handler.handle(b'{"brightness": 100}')
        brightness_handler.handle(b'{"brightness": 200}')

        rows = fetch_rows(engine)
        assert len(rows) == 1
        assert rows[0].lux == 200.0

    def test_no_records_is_noop(self, brightness_handler, engine, fetch_rows, caplog):
        with caplog.at_level(logging.ERROR):
            result = brightness_handler.handle(b'{"brightness": 300}')

        assert result.status == IngestStatus.NO_OP
        assert result.ok is True
        assert fetch_rows(engine) == []
        assert not [r for r in caplog.records if r.levelno >= logging.ERROR]

    def test_malformed_payload_leaves_records_untouched(
        self, temperature_handler, brightness_handler, engine, fetch_rows
    ):
        temperature_handler.handle(b'{"temperature": 21, "humidity": 40}')

        result = brightness_handler.handle(b'{"brightness": "bright"}')

        assert result.status == IngestStatus.MALFORMED
        assert fetch_rows(engine)[0].lux is None


# =============================================================================
# FALLOS DE PERSISTENCIA
# =============================================================================

class TestPersistenceFailures:
    """BD inalcanzable: el mensaje se descarta sin propagar excepciones."""

    def test_unreachable_db_drops_message(self, unreachable_engine, retry, sleeps, caplog):
        handler = TemperatureHandler(SensorRecordRepository(unreachable_engine), retry)

        with caplog.at_level(logging.ERROR):
            result = handler.handle(b'{"temperature": 20, "humidity": 50}')

        assert result.status == IngestStatus.FAILED
        assert result.stream == StreamKind.TEMPERATURE
        assert "OperationalError" in result.error
        # 3 intentos → 2 esperas
        assert len(sleeps) == 2
        dropped = [r for r in caplog.records if "message dropped" in r.getMessage()]
        assert dropped and '"temperature": 20' in dropped[0].getMessage()

    def test_transient_failure_then_success_stores_once(self, engine, fetch_rows, sleeps):
        calls = {"n": 0}
        repository = SensorRecordRepository(engine)
        real_insert = repository.insert_temperature

        def flaky_insert(temperature, humidity):
            calls["n"] += 1
            if calls["n"] == 1:
                raise OperationalError("INSERT", {}, Exception("connection lost"))
            return real_insert(temperature, humidity)

        repository.insert_temperature = flaky_insert
        handler = TemperatureHandler(
            repository,
            RetryExecutor(RetryConfig(max_attempts=3, base_delay=0, jitter=False), sleep=sleeps.append),
        )

        result = handler.handle(b'{"temperature": 19.5, "humidity": 55}')

        assert result.status == IngestStatus.STORED
        assert calls["n"] == 2
        assert [r.suhu for r in fetch_rows(engine)] == [19.5]

    def test_brightness_unreachable_db(self, unreachable_engine, retry):
        handler = BrightnessHandler(SensorRecordRepository(unreachable_engine), retry)

        result = handler.handle(b'{"brightness": 10}')

        assert result.status == IngestStatus.FAILED
        assert handler.stats["failed"] == 1
