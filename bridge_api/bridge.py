"""Orquestación del bridge MQTT → BD.

Arma las piezas en orden de dependencia:
  engine → repositorio → handlers → router → dispatcher → supervisor

y las detiene en orden inverso: primero se deja de recibir, luego se
vacía la cola y por último se libera el pool de conexiones.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from sqlalchemy.engine import Engine

from common.config import Settings, get_settings
from common.db import engine_for, ensure_schema
from .errors import TransportError
from .ingest import (
    BrightnessHandler,
    RetryConfig,
    RetryExecutor,
    SensorRecordRepository,
    TemperatureHandler,
)
from .mqtt import AsyncMessageDispatcher, BackpressureConfig, ConnectionSupervisor, MessageRouter

logger = logging.getLogger(__name__)


class SensorBridge:
    """Ciclo de vida del bridge: start() / stop() / health_check()."""

    def __init__(
        self,
        settings: Settings,
        engine: Optional[Engine] = None,
        client_factory: Optional[Callable] = None,
    ):
        self._settings = settings
        self._owns_engine = engine is None
        self._engine = engine or engine_for(settings.db)
        self._running = False

        repository = SensorRecordRepository(self._engine)
        retry = RetryExecutor(RetryConfig.from_settings(settings.ingest))

        self.router = MessageRouter()
        self.router.register(settings.mqtt.topic_temperature, TemperatureHandler(repository, retry))
        self.router.register(settings.mqtt.topic_brightness, BrightnessHandler(repository, retry))
        self._retry = retry

        self.dispatcher = AsyncMessageDispatcher(
            self.router, BackpressureConfig.from_settings(settings.mqtt)
        )

        supervisor_kwargs = {}
        if client_factory is not None:
            supervisor_kwargs["client_factory"] = client_factory
        self.supervisor = ConnectionSupervisor(
            settings.mqtt,
            self.router.topics,
            self.dispatcher.enqueue,
            **supervisor_kwargs,
        )

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        if self._running:
            return

        if self._settings.db.create_schema:
            try:
                ensure_schema(self._engine)
            except Exception as e:
                # La BD puede levantar después; los handlers reintentan por mensaje.
                logger.error("[BRIDGE] Schema check failed, continuing: %s", e)

        self.dispatcher.start()
        try:
            self.supervisor.start()
        except TransportError:
            self.dispatcher.stop(drain=False)
            raise
        self._running = True
        logger.info("[BRIDGE] Started topics=%s", ", ".join(self.router.topics))

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False

        self.supervisor.stop()
        self.dispatcher.stop(drain=True)
        if self._owns_engine:
            self._engine.dispose()
        logger.info("[BRIDGE] Stopped")

    def health_check(self) -> dict:
        mqtt = self.supervisor.health_check()
        return {
            "healthy": self._running and mqtt["healthy"],
            "running": self._running,
            "mqtt": mqtt,
            "dispatcher": self.dispatcher.metrics,
            "router": self.router.stats,
            "retry": self._retry.stats,
        }


# Singleton
_bridge: Optional[SensorBridge] = None


def get_bridge() -> Optional[SensorBridge]:
    """Obtiene el bridge singleton."""
    return _bridge


def start_bridge(settings: Optional[Settings] = None) -> SensorBridge:
    """Inicia el bridge (idempotente)."""
    global _bridge

    if _bridge is not None:
        return _bridge

    bridge = SensorBridge(settings or get_settings())
    bridge.start()
    _bridge = bridge
    return bridge


def stop_bridge() -> None:
    """Detiene el bridge."""
    global _bridge

    if _bridge is not None:
        _bridge.stop()
        _bridge = None
