"""Modelos de dominio del bridge."""

from .reading import Reading, StreamKind
from .connection_state import ConnectionState, LifecycleEvent
from .result import IngestResult, IngestStatus

__all__ = [
    "Reading",
    "StreamKind",
    "ConnectionState",
    "LifecycleEvent",
    "IngestResult",
    "IngestStatus",
]
