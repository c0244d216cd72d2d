"""Authenticated MQTT session with the robot's local broker."""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Iterator
from enum import Enum
from types import TracebackType
from typing import Any

import paho.mqtt.client as mqtt

from roombactl.config import SessionConfig
from roombactl.errors import ClosedError, ConnectError, DecodeError, SendError
from roombactl.models import IncomingEvent, OutgoingMessage, decode_event

from .tls import unverified_tls_context

logger = logging.getLogger(__name__)

_CLOSED = object()


class SessionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    CLOSED = "closed"


def _create_client(client_id: str) -> mqtt.Client:
    client = mqtt.Client(
        mqtt.CallbackAPIVersion.VERSION2,
        client_id=client_id,
        protocol=mqtt.MQTTv311,
    )
    client.enable_logger(logging.getLogger("paho.mqtt"))
    return client


class Session:
    """Commands out, telemetry in, over one MQTT connection.

    Use :meth:`connect` to create a session. After a dropped connection the
    network thread reconnects on its own every ``reconnect_delay`` seconds;
    :meth:`events` reports the drop as a ``None`` gap marker and simply
    resumes once the robot is back. Events missed meanwhile are lost.

    ``send`` must not be called from several threads at once. ``events`` may
    be consumed on another thread, and ``close`` is safe from any thread.
    """

    def __init__(self, address: str, identity: str, config: SessionConfig) -> None:
        self._address = address
        self._identity = identity
        self._config = config
        self._lock = threading.Lock()
        self._state = SessionState.DISCONNECTED
        self._ready = threading.Event()
        self._connect_error: str | None = None
        self._buffer_size = config.event_buffer_size
        self._events: queue.Queue[Any] = queue.Queue()

        self._client = _create_client(identity)
        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect
        self._client.on_subscribe = self._on_subscribe
        self._client.on_message = self._on_message

    @classmethod
    def connect(
        cls,
        address: str,
        identity: str,
        credential: str,
        config: SessionConfig | None = None,
    ) -> Session:
        """Connect, authenticate and subscribe to telemetry.

        The robot's certificate is NOT verified, see :mod:`roombactl.core.tls`.
        Raises :class:`ConnectError` if the broker refuses the credentials or
        the handshake and subscription do not finish within
        ``connect_timeout`` seconds.
        """
        session = cls(address, identity, config or SessionConfig())
        session._open(credential)
        return session

    @property
    def address(self) -> str:
        return self._address

    @property
    def identity(self) -> str:
        return self._identity

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    def _set_state(self, state: SessionState) -> None:
        with self._lock:
            if self._state is not SessionState.CLOSED:
                self._state = state

    def _open(self, credential: str) -> None:
        config = self._config
        self._client.username_pw_set(self._identity, credential)
        self._client.tls_set_context(unverified_tls_context())
        self._client.reconnect_delay_set(
            min_delay=config.reconnect_delay, max_delay=config.reconnect_delay
        )

        self._set_state(SessionState.CONNECTING)
        logger.debug(
            "Connecting to %s:%d as %s", self._address, config.port, self._identity
        )
        try:
            self._client.connect(
                self._address, config.port, keepalive=config.keepalive
            )
        except OSError as exc:
            self._set_state(SessionState.DISCONNECTED)
            raise ConnectError(
                f"Cannot connect to {self._address}:{config.port}: {exc}"
            ) from exc
        self._client.loop_start()

        if not self._ready.wait(config.connect_timeout):
            self.close()
            raise ConnectError(
                f"No answer from {self._address} within {config.connect_timeout}s"
            )
        if self._connect_error is not None:
            self.close()
            raise ConnectError(
                f"Robot at {self._address} refused the session: {self._connect_error}"
            )
        logger.info("Connected to robot at %s", self._address)

    def _fail_connect(self, reason: str) -> None:
        if not self._ready.is_set():
            self._connect_error = reason
            self._ready.set()

    def _on_connect(
        self,
        client: mqtt.Client,
        userdata: Any,
        flags: Any,
        reason_code: Any,
        properties: Any = None,
    ) -> None:
        if reason_code.is_failure:
            logger.warning("Robot refused connection: %s", reason_code)
            self._fail_connect(str(reason_code))
            return

        topic = self._config.telemetry_topic
        result, _mid = client.subscribe(topic, qos=0)
        if result != mqtt.MQTT_ERR_SUCCESS:
            logger.warning(
                "Subscribing to %s failed: %s", topic, mqtt.error_string(result)
            )
            self._fail_connect(mqtt.error_string(result))
            return
        logger.debug("Subscribing to %s", topic)

    def _on_subscribe(
        self,
        client: mqtt.Client,
        userdata: Any,
        mid: int,
        reason_code_list: list[Any],
        properties: Any = None,
    ) -> None:
        if any(code.is_failure for code in reason_code_list):
            logger.warning("Telemetry subscription rejected: %s", reason_code_list)
            self._fail_connect(f"subscription rejected: {reason_code_list}")
            return

        with self._lock:
            resumed = self._state is SessionState.RECONNECTING
        self._set_state(SessionState.CONNECTED)
        if resumed:
            logger.info("Reconnected to robot at %s", self._address)
        self._ready.set()

    def _on_disconnect(
        self,
        client: mqtt.Client,
        userdata: Any,
        flags: Any,
        reason_code: Any,
        properties: Any = None,
    ) -> None:
        with self._lock:
            dropped = self._state is SessionState.CONNECTED
            if dropped:
                self._state = SessionState.RECONNECTING
        if dropped:
            logger.warning(
                "Lost connection to robot (%s), retrying every %ds",
                reason_code,
                self._config.reconnect_delay,
            )
            self._offer(None)

    def _on_message(
        self, client: mqtt.Client, userdata: Any, message: mqtt.MQTTMessage
    ) -> None:
        if self.state is SessionState.CLOSED:
            return
        try:
            event: IncomingEvent | None = decode_event(message.topic, message.payload)
        except DecodeError as exc:
            logger.debug("Undecodable message on %s: %s", message.topic, exc)
            event = None
        self._offer(event)

    def _offer(self, event: IncomingEvent | None) -> None:
        if self._buffer_size and self._events.qsize() >= self._buffer_size:
            try:
                self._events.get_nowait()
            except queue.Empty:
                pass
            else:
                logger.warning("Event buffer full, dropping oldest event")
        self._events.put_nowait(event)

    def send(self, message: OutgoingMessage) -> None:
        state = self.state
        if state is SessionState.CLOSED:
            raise ClosedError("Session is closed")
        if state is not SessionState.CONNECTED:
            raise SendError(f"Not connected to robot ({state.value})")

        payload = message.payload()
        info = self._client.publish(message.topic, payload, qos=0)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise SendError(
                f"Publishing '{message.command.value}' failed: "
                f"{mqtt.error_string(info.rc)}"
            )
        logger.debug("Published to %s: %s", message.topic, payload)

    def events(self) -> Iterator[IncomingEvent | None]:
        """Telemetry as it arrives; ``None`` marks a gap, not the end.

        Blocks until the next event. Ends after :meth:`close`.
        """
        while True:
            item = self._events.get()
            if item is _CLOSED:
                self._events.put_nowait(_CLOSED)
                return
            yield item

    def __iter__(self) -> Iterator[IncomingEvent | None]:
        return self.events()

    def close(self) -> None:
        with self._lock:
            if self._state is SessionState.CLOSED:
                return
            self._state = SessionState.CLOSED

        logger.debug("Closing session with %s", self._address)
        self._client.disconnect()
        self._client.loop_stop()
        self._events.put_nowait(_CLOSED)

    def __enter__(self) -> Session:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
