"""Recepción MQTT.

Estructura modular:
- supervisor.py: conexión, suscripción y reconexión (paho-mqtt)
- async_processor.py: cola acotada + workers entre paho y el router
- router.py: topic → handler
- validators.py: schemas de payload por stream
- receiver_stats.py: contadores del receptor
"""

from .async_processor import AsyncMessageDispatcher, BackpressureConfig
from .router import MessageRouter
from .supervisor import ConnectionSupervisor, build_client_id
from .validators import BrightnessPayload, TemperaturePayload, parse_reading

__all__ = [
    "AsyncMessageDispatcher",
    "BackpressureConfig",
    "MessageRouter",
    "ConnectionSupervisor",
    "build_client_id",
    "BrightnessPayload",
    "TemperaturePayload",
    "parse_reading",
]
