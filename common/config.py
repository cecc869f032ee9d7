from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv


logger = logging.getLogger(__name__)


def _default_env_file() -> str:
    # .env junto al directorio de trabajo, igual que en despliegues con docker-compose.
    return str(Path.cwd() / ".env")


@dataclass(frozen=True)
class MQTTSettings:
    enabled: bool
    broker_host: str
    broker_port: int
    username: Optional[str]
    password: Optional[str]
    client_id_seed: str
    reconnect_seconds: float
    connect_timeout_seconds: float
    keepalive_seconds: int
    qos: int
    topic_temperature: str
    topic_brightness: str
    fail_fast_on_auth: bool
    queue_max_size: int
    num_workers: int
    drop_oldest: bool

    @property
    def topics(self) -> Tuple[str, str]:
        return (self.topic_temperature, self.topic_brightness)


@dataclass(frozen=True)
class DatabaseSettings:
    url: Optional[str]
    host: str
    port: int
    user: str
    password: str
    name: str
    pool_size: int
    max_overflow: int
    create_schema: bool


@dataclass(frozen=True)
class IngestSettings:
    retry_attempts: int
    retry_base_delay: float
    retry_max_delay: float


@dataclass(frozen=True)
class Settings:
    mqtt: MQTTSettings
    db: DatabaseSettings
    ingest: IngestSettings
    http_host: str
    http_port: int
    log_level: str


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _env_optional(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return None
    return value.strip() or None


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        parsed = int(value.strip())
    except ValueError:
        logger.warning("[CONFIG] %s=%r is not an integer, using %d", name, value, default)
        return default
    if parsed < minimum:
        logger.warning("[CONFIG] %s=%r is below %s, using %s", name, value, minimum, default)
        return default
    return parsed


def _env_float(name: str, default: float, minimum: float = 0.0) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        parsed = float(value.strip())
    except ValueError:
        logger.warning("[CONFIG] %s=%r is not a number, using %s", name, value, default)
        return default
    if parsed < minimum:
        logger.warning("[CONFIG] %s=%r is below %s, using %s", name, value, minimum, default)
        return default
    return parsed


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@lru_cache
def get_settings() -> Settings:
    # Carga el .env (si existe) pero las variables reales del entorno tienen prioridad.
    env_file = os.getenv("IOT_ENV_FILE", _default_env_file())
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)

    mqtt = MQTTSettings(
        enabled=_env_bool("FF_MQTT_INGEST_ENABLED", True),
        broker_host=_env_str("MQTT_BROKER_HOST", "broker.hivemq.com"),
        broker_port=_env_int("MQTT_BROKER_PORT", 1883, minimum=1),
        username=_env_optional("MQTT_USERNAME"),
        password=_env_optional("MQTT_PASSWORD"),
        client_id_seed=_env_str("MQTT_CLIENT_ID", "sensor-bridge"),
        reconnect_seconds=_env_float("MQTT_RECONNECT_SECONDS", 2.0, minimum=0.1),
        connect_timeout_seconds=_env_float("MQTT_CONNECT_TIMEOUT_SECONDS", 10.0, minimum=0.1),
        keepalive_seconds=_env_int("MQTT_KEEPALIVE_SECONDS", 60, minimum=1),
        qos=min(_env_int("MQTT_QOS", 0), 2),
        topic_temperature=_env_str("MQTT_TOPIC_TEMPERATURE", "coba/suhu"),
        topic_brightness=_env_str("MQTT_TOPIC_BRIGHTNESS", "coba/ldr"),
        fail_fast_on_auth=_env_bool("MQTT_FAIL_FAST_ON_AUTH", False),
        queue_max_size=_env_int("MQTT_QUEUE_MAX_SIZE", 10000, minimum=1),
        num_workers=_env_int("MQTT_NUM_WORKERS", 4, minimum=1),
        drop_oldest=_env_bool("MQTT_DROP_OLDEST", True),
    )

    db = DatabaseSettings(
        url=_env_optional("DATABASE_URL"),
        host=_env_str("DB_HOST", "localhost"),
        port=_env_int("DB_PORT", 3306, minimum=1),
        user=_env_str("DB_USER", "root"),
        password=os.getenv("DB_PASSWORD", ""),
        name=_env_str("DB_NAME", "db_sensor"),
        pool_size=_env_int("DB_POOL_SIZE", 5, minimum=1),
        max_overflow=_env_int("DB_MAX_OVERFLOW", 10),
        create_schema=_env_bool("DB_CREATE_SCHEMA", True),
    )

    ingest = IngestSettings(
        retry_attempts=_env_int("INGEST_RETRY_ATTEMPTS", 3, minimum=1),
        retry_base_delay=_env_float("INGEST_RETRY_BASE_DELAY", 0.5),
        retry_max_delay=_env_float("INGEST_RETRY_MAX_DELAY", 10.0),
    )

    return Settings(
        mqtt=mqtt,
        db=db,
        ingest=ingest,
        http_host=_env_str("HTTP_HOST", "0.0.0.0"),
        http_port=_env_int("PORT", 3000, minimum=1),
        log_level=_env_str("LOG_LEVEL", "INFO").upper(),
    )
