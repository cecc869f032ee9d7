from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI

from bridge_api import __version__
from common.config import Settings, get_settings
from common.db import get_db, session_dependency
from .bridge import start_bridge, stop_bridge
from .errors import TransportError
from .endpoints import health_router, sensor_api_router, status_page_router

logger = logging.getLogger(__name__)

_logging_configured = False


def configure_logging(level: str = "INFO") -> None:
    global _logging_configured
    if _logging_configured:
        return
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )
    _logging_configured = True


def create_app(settings: Optional[Settings] = None, start_ingest: Optional[bool] = None) -> FastAPI:
    explicit_settings = settings is not None
    settings = settings or get_settings()
    if start_ingest is None:
        start_ingest = settings.mqtt.enabled

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        if start_ingest:
            try:
                start_bridge(settings)
            except TransportError as e:
                # El API sigue sirviendo aunque el broker no sea alcanzable
                logger.error("[BRIDGE] MQTT ingest not started: %s", e)
        else:
            logger.info("[BRIDGE] MQTT ingest disabled (FF_MQTT_INGEST_ENABLED=false)")
        try:
            yield
        finally:
            stop_bridge()

    app = FastAPI(title="Sensor Bridge", version=__version__, lifespan=lifespan)
    app.include_router(status_page_router)
    app.include_router(sensor_api_router)
    app.include_router(health_router)

    if explicit_settings:
        app.dependency_overrides[get_settings] = lambda: settings
        app.dependency_overrides[get_db] = session_dependency(settings.db)
    return app


app = create_app()


def run() -> None:
    """Entry point: uvicorn en el puerto configurado (PORT)."""
    import uvicorn

    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info("[API] Listening on http://%s:%d", settings.http_host, settings.http_port)
    uvicorn.run(app, host=settings.http_host, port=settings.http_port, log_config=None)


if __name__ == "__main__":
    run()
