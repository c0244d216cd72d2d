from __future__ import annotations

import logging
import socket
from types import TracebackType
from typing import Union

from roombactl.config import DiscoveryConfig
from roombactl.errors import DecodeError, TransportError
from roombactl.models import DeviceAdvertisement

logger = logging.getLogger(__name__)

DISCOVERY_PROBE = b"irobotmcs"
RECEIVE_BUFFER_SIZE = 1024

DiscoveryResult = Union[DeviceAdvertisement, TransportError]


def _create_socket() -> socket.socket:
    return socket.socket(socket.AF_INET, socket.SOCK_DGRAM)


def _transport_error(message: str, exc: OSError) -> TransportError:
    error = TransportError(f"{message}: {exc}")
    error.__cause__ = exc
    return error


class DiscoveryScanner:
    """Broadcast discovery of robots on the local network.

    Iterating never stops on its own: every step broadcasts the probe and
    returns either the next robot not seen before, or the
    :class:`TransportError` that interrupted the step (for example a receive
    timeout when nothing answers). The caller decides when to stop.
    """

    def __init__(self, config: DiscoveryConfig | None = None) -> None:
        self._config = config or DiscoveryConfig()
        self._found: set[str] = set()
        self._sock = _create_socket()
        try:
            self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            self._sock.settimeout(self._config.timeout)
            self._sock.bind((self._config.bind_address, self._config.port))
        except OSError as exc:
            self._sock.close()
            raise TransportError(f"Cannot open discovery socket: {exc}") from exc

    @property
    def found(self) -> frozenset[str]:
        return frozenset(self._found)

    def __iter__(self) -> DiscoveryScanner:
        return self

    def __next__(self) -> DiscoveryResult:
        return self.step()

    def step(self) -> DiscoveryResult:
        target = (self._config.broadcast_address, self._config.port)
        logger.debug("Broadcasting discovery probe to %s:%d", *target)
        try:
            self._sock.sendto(DISCOVERY_PROBE, target)
        except OSError as exc:
            logger.debug("Error sending discovery probe: %s", exc)
            return _transport_error("Error sending discovery probe", exc)

        while True:
            try:
                data = self._sock.recv(RECEIVE_BUFFER_SIZE)
            except OSError as exc:
                logger.debug("Error receiving discovery reply: %s", exc)
                return _transport_error("Error receiving discovery reply", exc)

            if data == DISCOVERY_PROBE:
                continue

            try:
                device = DeviceAdvertisement.from_datagram(data)
            except DecodeError as exc:
                logger.debug("Ignoring malformed discovery reply: %s", exc)
                continue

            if device.ip in self._found:
                continue

            self._found.add(device.ip)
            logger.debug("Discovered robot '%s' at %s", device.hostname, device.ip)
            return device

    def close(self) -> None:
        self._sock.close()

    def __enter__(self) -> DiscoveryScanner:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def scan(config: DiscoveryConfig | None = None) -> DiscoveryScanner:
    """Start a fresh discovery run with its own socket and dedup state."""
    return DiscoveryScanner(config)
