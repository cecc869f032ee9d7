"""Statistics for the MQTT connection supervisor."""

from __future__ import annotations

import threading


class ReceiverStats:
    """Estadísticas del receptor MQTT (actualizadas desde el thread de paho)."""

    def __init__(self):
        self._lock = threading.Lock()
        self.received = 0
        self.connects = 0
        self.reconnects = 0
        self.disconnects = 0
        self.connect_failures = 0
        self.last_message_at: float = 0
        self.last_connected_at: float = 0

    def incr(self, name: str, amount: int = 1) -> None:
        with self._lock:
            setattr(self, name, getattr(self, name) + amount)

    def mark(self, name: str, value: float) -> None:
        with self._lock:
            setattr(self, name, value)

    def __str__(self) -> str:
        return (
            f"Stats: received={self.received} connects={self.connects} "
            f"reconnects={self.reconnects} disconnects={self.disconnects}"
        )

    def to_dict(self) -> dict:
        """Convert stats to dictionary."""
        with self._lock:
            return {
                "received": self.received,
                "connects": self.connects,
                "reconnects": self.reconnects,
                "disconnects": self.disconnects,
                "connect_failures": self.connect_failures,
                "last_message_at": self.last_message_at,
                "last_connected_at": self.last_connected_at,
            }
