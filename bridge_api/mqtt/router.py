"""Router de mensajes por topic.

Cada topic MQTT corresponde a un stream y a UN handler. Topics sin
handler se descartan con warning (no es un error).
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Optional, Protocol, Tuple

from ..domain import IngestResult, IngestStatus, StreamKind

logger = logging.getLogger(__name__)


class MessageHandler(Protocol):
    stream: StreamKind

    def handle(self, payload: bytes) -> IngestResult:
        ...


class MessageRouter:
    """Clasifica cada mensaje por topic y lo despacha a su handler.

    dispatch() es síncrono y seguro para llamarse desde varios workers a
    la vez; el registro de handlers se hace antes de arrancar el bridge.
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, MessageHandler] = {}
        self._lock = threading.Lock()
        self._unknown_topics = 0
        self._unexpected_errors = 0

    def register(self, topic: str, handler: MessageHandler) -> None:
        if not topic:
            raise ValueError("topic is required")
        if topic in self._handlers:
            logger.warning(
                "[ROUTER] Replacing handler for topic=%s (%s -> %s)",
                topic, type(self._handlers[topic]).__name__, type(handler).__name__,
            )
        self._handlers[topic] = handler
        logger.info("[ROUTER] topic=%s -> %s", topic, type(handler).__name__)

    @property
    def topics(self) -> Tuple[str, ...]:
        return tuple(self._handlers)

    def dispatch(self, topic: str, payload: bytes) -> Optional[IngestResult]:
        """Despacha un mensaje. Retorna None si el topic no tiene handler."""
        handler = self._handlers.get(topic)
        if handler is None:
            with self._lock:
                self._unknown_topics += 1
            logger.warning("[ROUTER] No handler for topic=%s, message discarded", topic)
            return None

        try:
            return handler.handle(payload)
        except Exception as e:
            # Los handlers no deberían lanzar; si lo hacen, el mensaje se descarta igual.
            with self._lock:
                self._unexpected_errors += 1
            logger.exception(
                "[ROUTER] Unexpected handler error topic=%s stream=%s payload=%r",
                topic, handler.stream.value, payload[:1000],
            )
            return IngestResult(handler.stream, IngestStatus.FAILED, error=str(e))

    @property
    def stats(self) -> dict:
        with self._lock:
            result = {
                "unknown_topics": self._unknown_topics,
                "unexpected_errors": self._unexpected_errors,
            }
        result["handlers"] = {
            topic: getattr(handler, "stats", {}) for topic, handler in self._handlers.items()
        }
        return result
