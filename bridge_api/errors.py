"""Taxonomía de errores del bridge.

Ninguno de estos errores termina el proceso: el supervisor reintenta los
de transporte, los handlers descartan el mensaje ante payloads inválidos o
fallos de persistencia, y la API convierte QueryError en una respuesta 500.
"""

from __future__ import annotations

from typing import Optional


class BridgeError(Exception):
    """Base de todos los errores del bridge."""


class TransportError(BridgeError):
    """Broker inalcanzable o conexión perdida."""


class MalformedPayload(BridgeError):
    """Payload que no es JSON válido o le faltan campos numéricos."""

    def __init__(self, message: str, payload: Optional[bytes] = None):
        super().__init__(message)
        self.payload = payload


class PersistenceError(BridgeError):
    """Fallo de conexión o escritura en la BD durante la ingesta."""


class QueryError(BridgeError):
    """Fallo de la BD en la ruta de lectura (API)."""
