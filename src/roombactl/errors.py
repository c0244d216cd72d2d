"""Exceptions raised by roombactl."""

from __future__ import annotations


class RoombaError(Exception):
    """Base class for all roombactl errors."""


class TransportError(RoombaError):
    """Socket or transport level failure (send, receive, connect, timeout)."""


class TlsError(TransportError):
    """TLS handshake with the robot failed. Never retried."""


class DecodeError(RoombaError):
    """Bytes received from the robot are not valid UTF-8, JSON or message shape."""


class ParseError(RoombaError, ValueError):
    """Invalid robot identity or region identifier."""


class SessionError(RoombaError):
    """Base class for MQTT session lifecycle errors."""


class ConnectError(SessionError):
    """Initial MQTT handshake or telemetry subscription did not complete."""


class SendError(SessionError):
    """Publishing a command failed."""


class ClosedError(SendError):
    """The session was closed."""
