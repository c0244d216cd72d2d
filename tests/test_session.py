from __future__ import annotations

import json
import ssl
import threading
from types import SimpleNamespace

import paho.mqtt.client as mqtt
import pytest
from paho.mqtt.packettypes import PacketTypes
from paho.mqtt.reasoncodes import ReasonCode

from roombactl.config import SessionConfig
from roombactl.core import session as session_module
from roombactl.core.session import Session, SessionState
from roombactl.errors import ClosedError, ConnectError, SendError
from roombactl.models import Command, OutgoingMessage

ADDRESS = "192.168.0.251"
IDENTITY = "3145C80C22404ABC"
CREDENTIAL = ":1:1700000000:secret"


def connack(name: str = "Success") -> ReasonCode:
    return ReasonCode(PacketTypes.CONNACK, name)


def suback(name: str = "Granted QoS 0") -> ReasonCode:
    return ReasonCode(PacketTypes.SUBACK, name)


class FakeClient:
    """Stands in for paho's client; answers the handshake from loop_start."""

    def __init__(self, client_id: str) -> None:
        self.client_id = client_id
        self.connack: ReasonCode | None = connack()
        self.suback: ReasonCode | None = suback()
        self.connect_error: OSError | None = None
        self.publish_rc = mqtt.MQTT_ERR_SUCCESS
        self.credentials: tuple[str, str] | None = None
        self.tls_context: ssl.SSLContext | None = None
        self.reconnect_delay: tuple[int, int] | None = None
        self.connected_to: tuple[str, int, int] | None = None
        self.subscriptions: list[tuple[str, int]] = []
        self.published: list[tuple[str, str, int]] = []
        self.loop_started = False
        self.loop_stopped = False
        self.disconnects = 0
        self.on_connect = None
        self.on_disconnect = None
        self.on_subscribe = None
        self.on_message = None
        self.disconnect_reason = ReasonCode(
            PacketTypes.DISCONNECT, "Unspecified error"
        )

    def username_pw_set(self, username: str, password: str) -> None:
        self.credentials = (username, password)

    def tls_set_context(self, context: ssl.SSLContext) -> None:
        self.tls_context = context

    def reconnect_delay_set(self, min_delay: int, max_delay: int) -> None:
        self.reconnect_delay = (min_delay, max_delay)

    def connect(self, host: str, port: int, keepalive: int) -> None:
        if self.connect_error is not None:
            raise self.connect_error
        self.connected_to = (host, port, keepalive)

    def loop_start(self) -> None:
        self.loop_started = True
        self.handshake()

    def handshake(self) -> None:
        if self.connack is None:
            return
        self.on_connect(self, None, {}, self.connack, None)
        if self.subscriptions and self.suback is not None:
            self.on_subscribe(self, None, 1, [self.suback], None)

    def subscribe(self, topic: str, qos: int) -> tuple[int, int]:
        self.subscriptions.append((topic, qos))
        return mqtt.MQTT_ERR_SUCCESS, len(self.subscriptions)

    def publish(self, topic: str, payload: str, qos: int) -> SimpleNamespace:
        self.published.append((topic, payload, qos))
        return SimpleNamespace(rc=self.publish_rc)

    def deliver(self, topic: str, payload: bytes) -> None:
        self.on_message(self, None, SimpleNamespace(topic=topic, payload=payload))

    def drop(self) -> None:
        self.on_disconnect(self, None, {}, self.disconnect_reason, None)

    def disconnect(self) -> None:
        self.disconnects += 1

    def loop_stop(self) -> None:
        self.loop_stopped = True


@pytest.fixture
def clients(monkeypatch: pytest.MonkeyPatch):
    created: list[FakeClient] = []
    setup: list = []

    def _create_client(client_id: str) -> FakeClient:
        client = FakeClient(client_id)
        for configure in setup:
            configure(client)
        created.append(client)
        return client

    monkeypatch.setattr(session_module, "_create_client", _create_client)
    return SimpleNamespace(created=created, setup=setup)


def test_connect_authenticates_and_subscribes(clients):
    session = Session.connect(ADDRESS, IDENTITY, CREDENTIAL)
    client = clients.created[0]

    assert session.state is SessionState.CONNECTED
    assert client.client_id == IDENTITY
    assert client.credentials == (IDENTITY, CREDENTIAL)
    assert client.connected_to == (ADDRESS, 8883, 60)
    assert client.reconnect_delay == (3, 3)
    assert client.subscriptions == [("#", 0)]
    assert client.tls_context is not None
    assert client.tls_context.verify_mode == ssl.CERT_NONE
    assert client.tls_context.check_hostname is False
    assert client.loop_started


def test_connect_refused(clients):
    clients.setup.append(
        lambda client: setattr(client, "connack", connack("Not authorized"))
    )

    with pytest.raises(ConnectError, match="refused"):
        Session.connect(ADDRESS, IDENTITY, "wrong")

    client = clients.created[0]
    assert client.disconnects == 1
    assert client.loop_stopped


def test_subscription_rejected(clients):
    clients.setup.append(
        lambda client: setattr(client, "suback", suback("Unspecified error"))
    )

    with pytest.raises(ConnectError, match="subscription rejected"):
        Session.connect(ADDRESS, IDENTITY, CREDENTIAL)


def test_connect_timeout(clients):
    clients.setup.append(lambda client: setattr(client, "connack", None))

    with pytest.raises(ConnectError, match="No answer"):
        Session.connect(
            ADDRESS, IDENTITY, CREDENTIAL, SessionConfig(connect_timeout=0.01)
        )


def test_connect_transport_error(clients):
    clients.setup.append(
        lambda client: setattr(client, "connect_error", ConnectionRefusedError())
    )

    with pytest.raises(ConnectError) as excinfo:
        Session.connect(ADDRESS, IDENTITY, CREDENTIAL)

    assert isinstance(excinfo.value.__cause__, ConnectionRefusedError)


def test_send_publishes_on_cmd_topic(clients):
    session = Session.connect(ADDRESS, IDENTITY, CREDENTIAL)
    message = OutgoingMessage(command=Command.DOCK, time=1700000000)

    session.send(message)

    topic, payload, qos = clients.created[0].published[0]
    assert (topic, qos) == ("cmd", 0)
    assert json.loads(payload) == {
        "command": "dock",
        "time": 1700000000,
        "initiator": "localApp",
    }


def test_sends_are_published_in_order(clients):
    session = Session.connect(ADDRESS, IDENTITY, CREDENTIAL)

    for command in (Command.STOP, Command.DOCK, Command.EVAC):
        session.send(OutgoingMessage(command=command))

    published = [json.loads(p)["command"] for _, p, _ in clients.created[0].published]
    assert published == ["stop", "dock", "evac"]


def test_send_reports_publish_failure(clients):
    session = Session.connect(ADDRESS, IDENTITY, CREDENTIAL)
    clients.created[0].publish_rc = mqtt.MQTT_ERR_NO_CONN

    with pytest.raises(SendError):
        session.send(OutgoingMessage(command=Command.PAUSE))


def test_send_after_close(clients):
    session = Session.connect(ADDRESS, IDENTITY, CREDENTIAL)
    session.close()

    with pytest.raises(ClosedError):
        session.send(OutgoingMessage(command=Command.START))
    assert clients.created[0].published == []


def test_close_is_idempotent(clients):
    session = Session.connect(ADDRESS, IDENTITY, CREDENTIAL)

    session.close()
    session.close()

    assert session.state is SessionState.CLOSED
    assert clients.created[0].disconnects == 1


def test_events_decode_and_mark_gaps(clients):
    session = Session.connect(ADDRESS, IDENTITY, CREDENTIAL)
    client = clients.created[0]

    client.deliver("wifistat", b'{"state": {"reported": {"batPct": 93}}}')
    client.deliver("wifistat", b"\xff\xfe")
    client.deliver("$aws/things/x/shadow/update", b'{"state": {}}')
    session.close()

    events = list(session.events())

    assert len(events) == 3
    assert events[0].topic == "wifistat"
    assert events[0].payload["state"]["reported"]["batPct"] == 93
    assert events[1] is None
    assert events[2].topic == "$aws/things/x/shadow/update"
    assert list(session.events()) == []


def test_dropped_connection_reconnects(clients):
    session = Session.connect(ADDRESS, IDENTITY, CREDENTIAL)
    client = clients.created[0]

    client.drop()

    assert session.state is SessionState.RECONNECTING
    with pytest.raises(SendError) as excinfo:
        session.send(OutgoingMessage(command=Command.START))
    assert not isinstance(excinfo.value, ClosedError)

    client.handshake()
    client.deliver("wifistat", b'{"state": {"reported": {"batPct": 50}}}')
    session.close()

    assert client.subscriptions == [("#", 0), ("#", 0)]
    events = list(session.events())
    assert events[0] is None
    assert events[1].payload["state"]["reported"]["batPct"] == 50


def test_full_buffer_drops_oldest(clients):
    session = Session.connect(
        ADDRESS, IDENTITY, CREDENTIAL, SessionConfig(event_buffer_size=2)
    )
    client = clients.created[0]

    for index in range(3):
        client.deliver("wifistat", json.dumps({"n": index}).encode())
    session.close()

    assert [event.payload["n"] for event in session.events()] == [1, 2]


def test_close_from_other_thread_ends_stream(clients):
    session = Session.connect(ADDRESS, IDENTITY, CREDENTIAL)
    received: list = []

    consumer = threading.Thread(target=lambda: received.extend(session.events()))
    consumer.start()
    clients.created[0].deliver("wifistat", b"{}")
    session.close()
    consumer.join(timeout=5)

    assert not consumer.is_alive()
    assert [event.payload for event in received] == [{}]


def test_context_manager_closes(clients):
    with Session.connect(ADDRESS, IDENTITY, CREDENTIAL) as session:
        assert session.state is SessionState.CONNECTED

    assert session.state is SessionState.CLOSED
