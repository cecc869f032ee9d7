"""Modelo de dominio para lecturas de sensores."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class StreamKind(Enum):
    """Stream lógico al que pertenece un mensaje."""
    TEMPERATURE = "temperature"
    BRIGHTNESS = "brightness"


@dataclass(frozen=True)
class Reading:
    """Lectura tipada construida a partir de un payload MQTT.

    TEMPERATURE lleva temperature + humidity; BRIGHTNESS lleva brightness.
    Inmutable: se descarta una vez terminado el intento de persistencia.
    """
    stream: StreamKind
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    brightness: Optional[float] = None
    received_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def temperature_reading(cls, temperature: float, humidity: float) -> "Reading":
        return cls(
            stream=StreamKind.TEMPERATURE,
            temperature=float(temperature),
            humidity=float(humidity),
        )

    @classmethod
    def brightness_reading(cls, brightness: float) -> "Reading":
        return cls(stream=StreamKind.BRIGHTNESS, brightness=float(brightness))
