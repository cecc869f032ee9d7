"""Fixtures compartidas: BD SQLite en memoria, settings y cliente MQTT falso."""

from __future__ import annotations

from typing import Iterator

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from bridge_api.ingest import RetryConfig, RetryExecutor, SensorRecordRepository
from common.config import DatabaseSettings, IngestSettings, MQTTSettings, Settings
from common.db import ensure_schema


class FakeMQTTClient:
    """Doble de paho.mqtt.client.Client: registra llamadas, no abre sockets."""

    def __init__(self, client_id: str):
        self.client_id = client_id
        self.credentials = None
        self.reconnect_delay = None
        self.connect_timeout = None
        self.connect_args = None
        self.loop_started = False
        self.loop_stopped = False
        self.disconnect_calls = 0
        self.subscriptions: list[list[tuple]] = []

    def username_pw_set(self, username, password=None):
        self.credentials = (username, password)

    def reconnect_delay_set(self, min_delay=1, max_delay=120):
        self.reconnect_delay = (min_delay, max_delay)

    def connect_async(self, host, port=1883, keepalive=60):
        self.connect_args = (host, port, keepalive)

    def loop_start(self):
        self.loop_started = True

    def loop_stop(self):
        self.loop_stopped = True

    def disconnect(self):
        self.disconnect_calls += 1

    def subscribe(self, topics):
        self.subscriptions.append(list(topics))
        return 0, len(self.subscriptions)

    # Helpers para simular eventos del broker
    def simulate_connect(self, rc=0):
        self.on_connect(self, None, {}, rc, None)

    def simulate_disconnect(self, rc=7):
        self.on_disconnect(self, None, {}, rc, None)

    def simulate_message(self, topic: str, payload: bytes):
        msg = type("Msg", (), {"topic": topic, "payload": payload})()
        self.on_message(self, None, msg)


@pytest.fixture
def engine() -> Iterator[Engine]:
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    ensure_schema(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def unreachable_engine() -> Iterator[Engine]:
    """Engine cuya conexión siempre falla (OperationalError)."""
    eng = create_engine("sqlite:////nonexistent-dir/for-tests/sensor.db", future=True)
    yield eng
    eng.dispose()


@pytest.fixture
def repository(engine) -> SensorRecordRepository:
    return SensorRecordRepository(engine)


@pytest.fixture
def sleeps() -> list:
    return []


@pytest.fixture
def retry(sleeps) -> RetryExecutor:
    return RetryExecutor(
        RetryConfig(max_attempts=3, base_delay=0.01, jitter=False),
        sleep=sleeps.append,
    )


@pytest.fixture
def mqtt_settings() -> MQTTSettings:
    return MQTTSettings(
        enabled=True,
        broker_host="broker.test",
        broker_port=1883,
        username=None,
        password=None,
        client_id_seed="test-bridge",
        reconnect_seconds=2.0,
        connect_timeout_seconds=10.0,
        keepalive_seconds=60,
        qos=0,
        topic_temperature="coba/suhu",
        topic_brightness="coba/ldr",
        fail_fast_on_auth=False,
        queue_max_size=100,
        num_workers=1,
        drop_oldest=True,
    )


@pytest.fixture
def settings(mqtt_settings) -> Settings:
    return Settings(
        mqtt=mqtt_settings,
        db=DatabaseSettings(
            url="sqlite://",
            host="localhost",
            port=3306,
            user="root",
            password="",
            name="db_sensor",
            pool_size=5,
            max_overflow=10,
            create_schema=True,
        ),
        ingest=IngestSettings(retry_attempts=2, retry_base_delay=0.0, retry_max_delay=0.0),
        http_host="127.0.0.1",
        http_port=3000,
        log_level="INFO",
    )


@pytest.fixture
def fetch_rows():
    """Lee todas las filas de data_sensor ordenadas por id."""

    def _fetch(eng: Engine) -> list:
        with eng.connect() as conn:
            return conn.execute(
                text("SELECT id, suhu, humidity, lux FROM data_sensor ORDER BY id")
            ).fetchall()

    return _fetch


@pytest.fixture
def fake_clients() -> list:
    return []


@pytest.fixture
def client_factory(fake_clients):
    def _factory(client_id: str) -> FakeMQTTClient:
        client = FakeMQTTClient(client_id)
        fake_clients.append(client)
        return client

    return _factory


@pytest.fixture
def db_override():
    """Fabrica una dependencia get_db ligada a un engine dado."""

    def _make(eng: Engine):
        factory = sessionmaker(bind=eng, autocommit=False, autoflush=False, future=True)

        def _get_db() -> Iterator[Session]:
            db = factory()
            try:
                yield db
            finally:
                db.close()

        return _get_db

    return _make
