from __future__ import annotations

import logging
import socket
import ssl
from collections.abc import Callable

from roombactl.config import CredentialConfig
from roombactl.errors import DecodeError, TlsError, TransportError

from .tls import unverified_tls_context

logger = logging.getLogger(__name__)

CREDENTIAL_PROBE = bytes([0xF0, 0x05, 0xEF, 0xCC, 0x3B, 0x29, 0x00])
READ_CHUNK_SIZE = 1024

CredentialParser = Callable[[bytes], str | None]


def parse_credential(data: bytes) -> str | None:
    """Pick the password out of the robot's reply.

    The reply is a sequence of NUL separated segments. Searching from the
    end, the first non-empty segment that decodes as UTF-8 is the password.
    This rule comes from observed replies rather than a published format;
    pass a different ``parse`` to :func:`retrieve_credential` for firmware
    that answers otherwise.
    """
    for segment in reversed(data.split(b"\x00")):
        if not segment:
            continue
        try:
            return segment.decode("utf-8")
        except UnicodeDecodeError:
            continue
    return None


def _create_connection(address: tuple[str, int], timeout: float) -> socket.socket:
    return socket.create_connection(address, timeout=timeout)


def _read_to_end(stream: ssl.SSLSocket) -> bytes:
    chunks: list[bytes] = []
    while True:
        chunk = stream.recv(READ_CHUNK_SIZE)
        if not chunk:
            return b"".join(chunks)
        chunks.append(chunk)


def retrieve_credential(
    address: str,
    config: CredentialConfig | None = None,
    *,
    tls_context: ssl.SSLContext | None = None,
    parse: CredentialParser = parse_credential,
) -> str:
    """Ask the robot at ``address`` for its MQTT password.

    The robot only answers while its Home button is held (the ring blinks
    blue). The TLS connection does NOT verify the robot's certificate, see
    :mod:`roombactl.core.tls`.

    Raises :class:`TransportError` when the robot cannot be reached or every
    attempt failed to read a reply, :class:`TlsError` when the handshake
    fails and :class:`DecodeError` when no attempt returned a usable password.
    """
    config = config or CredentialConfig()
    context = tls_context or unverified_tls_context()

    logger.debug("Connecting to %s:%d", address, config.port)
    try:
        sock = _create_connection((address, config.port), config.timeout)
    except OSError as exc:
        raise TransportError(
            f"Cannot connect to {address}:{config.port}: {exc}"
        ) from exc

    try:
        sock.settimeout(config.timeout)
        logger.debug("Starting TLS handshake with %s", address)
        stream = context.wrap_socket(sock, server_hostname=address)
    except OSError as exc:
        sock.close()
        raise TlsError(f"TLS handshake with {address} failed: {exc}") from exc

    last_error: Exception | None = None
    with stream:
        for attempt in range(1, config.attempts + 1):
            try:
                stream.sendall(CREDENTIAL_PROBE)
                data = _read_to_end(stream)
            except OSError as exc:
                logger.debug(
                    "Error receiving password (attempt %d/%d): %s",
                    attempt,
                    config.attempts,
                    exc,
                )
                last_error = exc
                continue

            password = parse(data)
            if password is not None:
                logger.debug("Received password after %d attempt(s)", attempt)
                return password

            logger.debug(
                "Could not parse password reply (attempt %d/%d): %r",
                attempt,
                config.attempts,
                data,
            )
            last_error = None

    if last_error is not None:
        raise TransportError(
            f"Failed receiving password ({config.attempts} attempts made): "
            f"{last_error}"
        ) from last_error
    raise DecodeError(
        f"Robot reply did not contain a password ({config.attempts} attempts made)"
    )
