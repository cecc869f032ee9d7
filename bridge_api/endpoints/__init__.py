"""Módulo de endpoints HTTP."""

from .health import router as health_router
from .sensor_api import router as sensor_api_router
from .status_page import router as status_page_router

__all__ = [
    "health_router",
    "sensor_api_router",
    "status_page_router",
]
