"""Ingesta: handlers por stream, persistencia y retry."""

from .handlers import BrightnessHandler, IngestionHandler, TemperatureHandler
from .repository import SensorRecordRepository
from .retry import RetryConfig, RetryExecutor

__all__ = [
    "BrightnessHandler",
    "IngestionHandler",
    "TemperatureHandler",
    "SensorRecordRepository",
    "RetryConfig",
    "RetryExecutor",
]
