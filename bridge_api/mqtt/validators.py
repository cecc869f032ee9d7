"""Validadores de payloads MQTT para ingesta.

Cada stream tiene su schema:
- temperatura: {"temperature": 25.1, "humidity": 61.0}
- brillo:      {"brightness": 312.0}

Los campos deben ser números JSON finitos; strings ("hot"), booleanos,
NaN o infinito se rechazan con MalformedPayload.
"""

from __future__ import annotations

import json
import logging
import math
from typing import Any, Type

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from ..domain import Reading, StreamKind
from ..errors import MalformedPayload

logger = logging.getLogger(__name__)


def _require_finite_number(v: Any) -> Any:
    # bool es subclase de int; un true/false no es una medición
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        raise ValueError(f"must be a number, got {type(v).__name__}")
    try:
        as_float = float(v)
    except OverflowError:
        # enteros JSON arbitrariamente grandes
        raise ValueError("value is out of float range")
    if math.isnan(as_float):
        raise ValueError("value is NaN")
    if math.isinf(as_float):
        raise ValueError("value is infinite")
    return v


class TemperaturePayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    temperature: float
    humidity: float

    @field_validator("temperature", "humidity", mode="before")
    @classmethod
    def validate_number(cls, v):
        return _require_finite_number(v)

    def to_reading(self) -> Reading:
        return Reading.temperature_reading(self.temperature, self.humidity)


class BrightnessPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    brightness: float

    @field_validator("brightness", mode="before")
    @classmethod
    def validate_number(cls, v):
        return _require_finite_number(v)

    def to_reading(self) -> Reading:
        return Reading.brightness_reading(self.brightness)


PAYLOAD_MODELS: dict[StreamKind, Type[BaseModel]] = {
    StreamKind.TEMPERATURE: TemperaturePayload,
    StreamKind.BRIGHTNESS: BrightnessPayload,
}


def _summarize(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "payload"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)


def decode_json(payload: bytes) -> Any:
    """Parsea el payload crudo como JSON (UTF-8)."""
    try:
        return json.loads(payload)
    except ValueError as e:
        raise MalformedPayload(f"Invalid JSON: {e}", payload) from e


def parse_reading(stream: StreamKind, payload: bytes) -> Reading:
    """Convierte un payload crudo en una Reading tipada.

    Raises:
        MalformedPayload: si el JSON es inválido o faltan campos numéricos.
    """
    data = decode_json(payload)
    if not isinstance(data, dict):
        raise MalformedPayload(
            f"Payload must be a JSON object, got {type(data).__name__}", payload
        )

    model = PAYLOAD_MODELS[stream]
    try:
        parsed = model.model_validate(data)
    except ValidationError as e:
        raise MalformedPayload(_summarize(e), payload) from e

    return parsed.to_reading()
