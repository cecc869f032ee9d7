"""Estados de conexión y eventos de ciclo de vida del supervisor MQTT."""

from __future__ import annotations

from enum import Enum


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


class LifecycleEvent(Enum):
    """Eventos de observabilidad; ninguno es un error."""
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    OFFLINE = "offline"
    CLOSED = "closed"
