"""Async dispatcher: decouples the paho callback from blocking DB writes.

The paho network thread only enqueues (topic, payload) into a bounded
queue and returns; worker threads drain it through the MessageRouter.

Backpressure when the queue is full:
- drop_oldest=True  → discard the oldest queued message (default)
- drop_oldest=False → discard the incoming message
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass
from typing import Optional, Tuple

from common.config import MQTTSettings
from .router import MessageRouter

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 10000
DEFAULT_NUM_WORKERS = 4

Message = Tuple[str, bytes]


@dataclass
class BackpressureConfig:
    """Configuración de backpressure."""
    max_queue_size: int = DEFAULT_QUEUE_SIZE
    num_workers: int = DEFAULT_NUM_WORKERS
    drop_oldest: bool = True
    drain_timeout: float = 10.0  # segundos

    @classmethod
    def from_settings(cls, settings: MQTTSettings) -> "BackpressureConfig":
        return cls(
            max_queue_size=settings.queue_max_size,
            num_workers=settings.num_workers,
            drop_oldest=settings.drop_oldest,
        )


class AsyncMessageDispatcher:
    """Queue + worker threads in front of the MessageRouter.

    - paho callback → enqueue() returns immediately
    - workers → router.dispatch() blocks on the DB (in parallel)
    - no ordering guarantee across workers
    """

    def __init__(self, router: MessageRouter, config: Optional[BackpressureConfig] = None):
        self._router = router
        self._config = config or BackpressureConfig()
        self._queue: "queue.Queue[Message]" = queue.Queue(maxsize=self._config.max_queue_size)
        self._stop_event = threading.Event()
        self._workers: list[threading.Thread] = []

        # Metrics
        self._enqueued = 0
        self._dropped = 0
        self._processed = 0
        self._errors = 0
        self._lock = threading.Lock()

    def start(self) -> None:
        """Start worker threads."""
        if self._workers:
            return
        self._stop_event.clear()
        for i in range(self._config.num_workers):
            t = threading.Thread(
                target=self._worker_loop,
                args=(i,),
                daemon=True,
                name=f"mqtt-worker-{i}",
            )
            t.start()
            self._workers.append(t)
        logger.info(
            "[DISPATCH] Started workers=%d queue_max=%d drop_oldest=%s",
            self._config.num_workers, self._queue.maxsize, self._config.drop_oldest,
        )

    def stop(self, drain: bool = True) -> None:
        """Stop workers. If drain=True, process what is still queued first."""
        if drain and self._workers:
            deadline = time.monotonic() + self._config.drain_timeout
            while self._queue.unfinished_tasks and time.monotonic() < deadline:
                time.sleep(0.05)
            if self._queue.unfinished_tasks:
                logger.warning(
                    "[DISPATCH] Drain timeout, abandoning %d messages",
                    self._queue.unfinished_tasks,
                )
        self._stop_event.set()
        for t in self._workers:
            t.join(timeout=5.0)
        self._workers.clear()
        logger.info("[DISPATCH] Stopped. %s", self.metrics)

    def enqueue(self, topic: str, payload: bytes) -> bool:
        """Enqueue a message. Returns False if a message had to be dropped."""
        item = (topic, payload)
        try:
            self._queue.put_nowait(item)
            with self._lock:
                self._enqueued += 1
            return True
        except queue.Full:
            pass

        if not self._config.drop_oldest:
            self._count_drop(item, "newest")
            return False

        try:
            oldest = self._queue.get_nowait()
            self._queue.task_done()
            self._count_drop(oldest, "oldest")
        except queue.Empty:
            pass

        try:
            self._queue.put_nowait(item)
            with self._lock:
                self._enqueued += 1
        except queue.Full:
            self._count_drop(item, "newest")
        return False

    def _count_drop(self, item: Message, which: str) -> None:
        with self._lock:
            self._dropped += 1
        topic, payload = item
        logger.error(
            "[DISPATCH] Queue full, dropped %s message topic=%s payload=%r",
            which, topic, payload[:1000],
        )

    def _worker_loop(self, worker_id: int) -> None:
        while not self._stop_event.is_set():
            try:
                topic, payload = self._queue.get(timeout=0.5)
            except queue.Empty:
                continue

            try:
                result = self._router.dispatch(topic, payload)
                with self._lock:
                    self._processed += 1
                    if result is not None and not result.ok:
                        self._errors += 1
            except Exception as e:
                with self._lock:
                    self._errors += 1
                logger.error("[DISPATCH] Worker %d error: %s", worker_id, e)
            finally:
                self._queue.task_done()

    @property
    def queue_depth(self) -> int:
        return self._queue.qsize()

    @property
    def metrics(self) -> dict:
        with self._lock:
            return {
                "queue_depth": self._queue.qsize(),
                "queue_max": self._queue.maxsize,
                "enqueued": self._enqueued,
                "dropped": self._dropped,
                "processed": self._processed,
                "errors": self._errors,
                "workers": len(self._workers),
            }
