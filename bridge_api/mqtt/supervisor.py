"""Supervisor de la conexión MQTT.

Usa paho-mqtt (callback API v2) con su loop en un thread propio:
- connect_async + loop_start: el primer connect también se reintenta
- reconexión a intervalo fijo y sin límite (min_delay == max_delay)
- resuscripción a todos los topics en cada CONNACK exitoso
- eventos de ciclo de vida (connected, reconnecting, offline, closed)

Estados: DISCONNECTED → CONNECTING → CONNECTED ⇄ RECONNECTING → DISCONNECTED.
Solo el supervisor muta el estado.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from typing import Callable, List, Optional, Sequence

import paho.mqtt.client as mqtt

from common.config import MQTTSettings
from ..domain import ConnectionState, LifecycleEvent
from ..errors import TransportError
from .receiver_stats import ReceiverStats

logger = logging.getLogger(__name__)

# CONNACK de MQTT 3.1.1 (4, 5) y sus equivalentes como ReasonCode de paho 2 (134, 135)
_AUTH_FAILURE_CODES = (4, 5, 134, 135)

LifecycleListener = Callable[[LifecycleEvent, ConnectionState], None]
MessageCallback = Callable[[str, bytes], None]


def build_client_id(seed: str) -> str:
    """Identidad única por proceso: <seed>-<hex aleatorio>-<epoch ms>."""
    return f"{seed}-{uuid.uuid4().hex[:8]}-{int(time.time() * 1000)}"


def _default_client_factory(client_id: str) -> mqtt.Client:
    return mqtt.Client(
        callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
        client_id=client_id,
        protocol=mqtt.MQTTv311,
        clean_session=True,
    )


class ConnectionSupervisor:
    """Dueño único del cliente MQTT y de su ConnectionState.

    Uso:
        supervisor = ConnectionSupervisor(settings.mqtt, router.topics, dispatcher.enqueue)
        supervisor.start()
        ...
        supervisor.stop()
    """

    def __init__(
        self,
        settings: MQTTSettings,
        topics: Sequence[str],
        on_message: MessageCallback,
        client_factory: Callable[[str], mqtt.Client] = _default_client_factory,
    ):
        self._settings = settings
        self._topics = tuple(topics)
        self._on_message_cb = on_message
        self._client_factory = client_factory
        self.client_id = build_client_id(settings.client_id_seed)

        self._client: Optional[mqtt.Client] = None
        self._state = ConnectionState.DISCONNECTED
        self._state_lock = threading.Lock()
        self._listeners: List[LifecycleListener] = []
        self._stopping = False
        self._has_connected = False
        self._stats = ReceiverStats()

    # ------------------------------------------------------------------
    # Interfaz pública
    # ------------------------------------------------------------------

    def add_listener(self, listener: LifecycleListener) -> None:
        self._listeners.append(listener)

    def start(self) -> None:
        """Arranca el loop de paho. No bloquea esperando al broker."""
        if self._client is not None:
            return

        self._stopping = False
        client = self._client_factory(self.client_id)
        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        client.on_connect_fail = self._on_connect_fail
        client.on_subscribe = self._on_subscribe
        client.on_message = self._on_message

        if self._settings.username:
            client.username_pw_set(self._settings.username, self._settings.password)

        interval = self._settings.reconnect_seconds
        client.reconnect_delay_set(min_delay=interval, max_delay=interval)
        client.connect_timeout = self._settings.connect_timeout_seconds

        self._set_state(ConnectionState.CONNECTING)
        logger.info(
            "[MQTT] Connecting to %s:%d client_id=%s keepalive=%ds",
            self._settings.broker_host,
            self._settings.broker_port,
            self.client_id,
            self._settings.keepalive_seconds,
        )

        try:
            client.connect_async(
                self._settings.broker_host,
                self._settings.broker_port,
                keepalive=self._settings.keepalive_seconds,
            )
            client.loop_start()
        except (OSError, ValueError) as e:
            self._set_state(ConnectionState.DISCONNECTED)
            raise TransportError(f"Cannot start MQTT client: {e}") from e

        self._client = client

    def stop(self) -> None:
        """Desconecta y detiene el loop. Emite 'closed' una sola vez."""
        self._stopping = True
        client = self._client
        self._client = None

        if client is not None:
            try:
                client.disconnect()
                client.loop_stop()
            except Exception as e:
                logger.warning("[MQTT] Error stopping: %s", e)

        previous = self._set_state(ConnectionState.DISCONNECTED)
        if previous != ConnectionState.DISCONNECTED:
            self._emit(LifecycleEvent.CLOSED)
        logger.info("[MQTT] Stopped. %s", self._stats)

    @property
    def state(self) -> ConnectionState:
        with self._state_lock:
            return self._state

    @property
    def is_connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    @property
    def topics(self) -> tuple:
        return self._topics

    @property
    def stats(self) -> dict:
        result = self._stats.to_dict()
        result.update(
            {
                "state": self.state.value,
                "client_id": self.client_id,
                "broker": f"{self._settings.broker_host}:{self._settings.broker_port}",
                "topics": list(self._topics),
            }
        )
        return result

    def health_check(self) -> dict:
        stats = self._stats.to_dict()
        return {
            "healthy": self.is_connected,
            "state": self.state.value,
            "broker": f"{self._settings.broker_host}:{self._settings.broker_port}",
            "topics": list(self._topics),
            "reconnect_count": stats["reconnects"],
            "messages_received": stats["received"],
            "last_message_at": stats["last_message_at"],
        }

    # ------------------------------------------------------------------
    # Callbacks de paho (thread del loop)
    # ------------------------------------------------------------------

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code == 0:
            is_reconnect = self._has_connected
            self._has_connected = True
            self._stats.incr("connects")
            if is_reconnect:
                self._stats.incr("reconnects")
            self._stats.mark("last_connected_at", time.time())
            self._set_state(ConnectionState.CONNECTED)
            logger.info(
                "[MQTT] Connected to %s:%d%s",
                self._settings.broker_host,
                self._settings.broker_port,
                " (reconnected)" if is_reconnect else "",
            )
            self._subscribe(client)
            self._emit(LifecycleEvent.CONNECTED)
            return

        self._stats.incr("connect_failures")
        logger.error("[MQTT] Connection refused by broker: %s", reason_code)

        if self._settings.fail_fast_on_auth and reason_code in _AUTH_FAILURE_CODES:
            logger.error("[MQTT] Authentication rejected, not retrying (MQTT_FAIL_FAST_ON_AUTH)")
            self._stopping = True
            client.disconnect()
            self._set_state(ConnectionState.DISCONNECTED)
            self._emit(LifecycleEvent.CLOSED)
            return

        self._set_state(ConnectionState.RECONNECTING)
        self._emit(LifecycleEvent.RECONNECTING)

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties=None):
        self._stats.incr("disconnects")

        if self._stopping:
            previous = self._set_state(ConnectionState.DISCONNECTED)
            if previous != ConnectionState.DISCONNECTED:
                self._emit(LifecycleEvent.CLOSED)
            return

        logger.warning(
            "[MQTT] Disconnected (%s), retrying every %.1fs",
            reason_code, self._settings.reconnect_seconds,
        )
        self._set_state(ConnectionState.RECONNECTING)
        self._emit(LifecycleEvent.OFFLINE)
        self._emit(LifecycleEvent.RECONNECTING)

    def _on_connect_fail(self, client, userdata):
        self._stats.incr("connect_failures")
        if self._stopping:
            return
        logger.warning(
            "[MQTT] Broker %s:%d unreachable, retrying in %.1fs",
            self._settings.broker_host,
            self._settings.broker_port,
            self._settings.reconnect_seconds,
        )
        self._set_state(ConnectionState.RECONNECTING)
        self._emit(LifecycleEvent.RECONNECTING)

    def _on_subscribe(self, client, userdata, mid, reason_code_list, properties=None):
        for topic, rc in zip(self._topics, reason_code_list):
            if getattr(rc, "is_failure", False):
                logger.error("[MQTT] Subscription rejected topic=%s rc=%s", topic, rc)
            else:
                logger.debug("[MQTT] Subscription granted topic=%s rc=%s", topic, rc)

    def _on_message(self, client, userdata, msg):
        self._stats.incr("received")
        self._stats.mark("last_message_at", time.time())
        try:
            self._on_message_cb(msg.topic, msg.payload)
        except Exception:
            # Una excepción aquí detendría el loop de paho
            logger.exception("[MQTT] Message callback failed topic=%s", msg.topic)

    # ------------------------------------------------------------------
    # Internos
    # ------------------------------------------------------------------

    def _subscribe(self, client) -> None:
        if not self._topics:
            logger.warning("[MQTT] No topics configured, nothing to subscribe")
            return

        qos = self._settings.qos
        result, _mid = client.subscribe([(topic, qos) for topic in self._topics])
        if result != mqtt.MQTT_ERR_SUCCESS:
            logger.error("[MQTT] Subscribe failed rc=%s topics=%s", result, self._topics)
            return
        logger.info("[MQTT] Subscribed to %s (qos=%d)", ", ".join(self._topics), qos)

    def _set_state(self, new_state: ConnectionState) -> ConnectionState:
        with self._state_lock:
            previous = self._state
            self._state = new_state
        if previous != new_state:
            logger.debug("[MQTT] state %s -> %s", previous.value, new_state.value)
        return previous

    def _emit(self, event: LifecycleEvent) -> None:
        state = self.state
        if event == LifecycleEvent.OFFLINE:
            logger.warning("[MQTT] event=%s state=%s", event.value, state.value)
        else:
            logger.info("[MQTT] event=%s state=%s", event.value, state.value)

        for listener in list(self._listeners):
            try:
                listener(event, state)
            except Exception:
                logger.exception("[MQTT] Lifecycle listener failed event=%s", event.value)
