from __future__ import annotations

import ssl

import pytest

from roombactl.config import CredentialConfig
from roombactl.core import credentials as credentials_module
from roombactl.core.credentials import (
    CREDENTIAL_PROBE,
    parse_credential,
    retrieve_credential,
)
from roombactl.core.tls import unverified_tls_context
from roombactl.errors import DecodeError, TlsError, TransportError

REPLY = b"\xf0\x23\xef\xcc\x3b\x29\x00:1:1700000000:AbCdEfGhIjKlMnOp\x00"


class FakeSocket:
    def __init__(self) -> None:
        self.timeout: float | None = None
        self.closed = False

    def settimeout(self, timeout: float) -> None:
        self.timeout = timeout

    def close(self) -> None:
        self.closed = True


class FakeStream:
    """TLS stream answering each probe with the next scripted reply."""

    def __init__(self, replies: list[bytes | BaseException]) -> None:
        self.replies = list(replies)
        self.writes: list[bytes] = []
        self._pending: bytes | BaseException = b""
        self.closed = False

    def sendall(self, data: bytes) -> None:
        self.writes.append(data)
        self._pending = self.replies.pop(0)

    def recv(self, size: int) -> bytes:
        if isinstance(self._pending, BaseException):
            raise self._pending
        chunk, self._pending = self._pending[:size], self._pending[size:]
        return chunk

    def __enter__(self) -> FakeStream:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.closed = True


class FakeContext:
    def __init__(self, stream: FakeStream | None, error: Exception | None = None):
        self.stream = stream
        self.error = error
        self.handshakes = 0

    def wrap_socket(self, sock: FakeSocket, server_hostname: str) -> FakeStream:
        self.handshakes += 1
        if self.error is not None:
            raise self.error
        assert self.stream is not None
        return self.stream


@pytest.fixture
def connections(monkeypatch: pytest.MonkeyPatch):
    made: list[tuple[tuple[str, int], float, FakeSocket]] = []

    def _create_connection(address: tuple[str, int], timeout: float) -> FakeSocket:
        sock = FakeSocket()
        made.append((address, timeout, sock))
        return sock

    monkeypatch.setattr(credentials_module, "_create_connection", _create_connection)
    return made


def test_parse_credential_takes_last_segment():
    assert parse_credential(b"head\x00pass1\x00\x00pass2\x00") == "pass2"


def test_parse_credential_skips_invalid_utf8():
    assert parse_credential(b"good\x00\xff\xfe\x00\x00") == "good"


@pytest.mark.parametrize("data", [b"", b"\x00\x00\x00", b"\xff\x00\xfe"])
def test_parse_credential_without_password(data):
    assert parse_credential(data) is None


def test_retrieve_credential(connections):
    stream = FakeStream([REPLY])
    context = FakeContext(stream)

    password = retrieve_credential("192.168.0.251", tls_context=context)

    assert password == ":1:1700000000:AbCdEfGhIjKlMnOp"
    assert stream.writes == [CREDENTIAL_PROBE]
    assert len(CREDENTIAL_PROBE) == 7
    address, timeout, sock = connections[0]
    assert address == ("192.168.0.251", 8883)
    assert timeout == 3.0
    assert sock.timeout == 3.0
    assert stream.closed


def test_retries_after_read_failure(connections):
    stream = FakeStream([TimeoutError("timed out"), TimeoutError("timed out"), REPLY])

    password = retrieve_credential("192.168.0.251", tls_context=FakeContext(stream))

    assert password.endswith("AbCdEfGhIjKlMnOp")
    assert len(stream.writes) == 3


def test_gives_up_after_three_read_failures(connections):
    stream = FakeStream([TimeoutError("timed out")] * 4)

    with pytest.raises(TransportError) as excinfo:
        retrieve_credential("192.168.0.251", tls_context=FakeContext(stream))

    assert not isinstance(excinfo.value, TlsError)
    assert len(stream.writes) == 3


def test_unparseable_replies_exhaust_budget(connections):
    stream = FakeStream([b"\xff\xfe", b"", b"\x00\x00"])

    with pytest.raises(DecodeError):
        retrieve_credential("192.168.0.251", tls_context=FakeContext(stream))

    assert len(stream.writes) == 3


def test_handshake_failure_is_not_retried(connections):
    context = FakeContext(None, error=ssl.SSLError("handshake failure"))

    with pytest.raises(TlsError):
        retrieve_credential("192.168.0.251", tls_context=context)

    assert context.handshakes == 1
    assert len(connections) == 1
    assert connections[0][2].closed


def test_connection_refused(monkeypatch):
    def _refuse(address, timeout):
        raise ConnectionRefusedError("refused")

    monkeypatch.setattr(credentials_module, "_create_connection", _refuse)

    with pytest.raises(TransportError):
        retrieve_credential("192.168.0.251")


def test_configured_attempts_and_custom_parser(connections):
    stream = FakeStream([b"v2|secret", b"v2|secret"])
    config = CredentialConfig(port=18883, timeout=1.0, attempts=2)

    password = retrieve_credential(
        "192.168.0.251",
        config,
        tls_context=FakeContext(stream),
        parse=lambda data: data.split(b"|")[-1].decode(),
    )

    assert password == "secret"
    assert connections[0][0] == ("192.168.0.251", 18883)
    assert connections[0][1] == 1.0


def test_unverified_tls_context_skips_verification():
    context = unverified_tls_context()

    assert context.verify_mode == ssl.CERT_NONE
    assert context.check_hostname is False
