"""roombactl - discover, pair with and command Roomba robots on the local network."""

from __future__ import annotations

from importlib.metadata import version

from .config import Settings, get_settings
from .core import Session, SessionState, retrieve_credential, scan
from .errors import (
    ClosedError,
    ConnectError,
    DecodeError,
    ParseError,
    RoombaError,
    SendError,
    TlsError,
    TransportError,
)
from .models import (
    Command,
    DeviceAdvertisement,
    IncomingEvent,
    OutgoingMessage,
    Region,
    RegionSelection,
)

__all__ = [
    "ClosedError",
    "Command",
    "ConnectError",
    "DecodeError",
    "DeviceAdvertisement",
    "IncomingEvent",
    "OutgoingMessage",
    "ParseError",
    "Region",
    "RegionSelection",
    "RoombaError",
    "SendError",
    "Session",
    "SessionState",
    "Settings",
    "TlsError",
    "TransportError",
    "__version__",
    "get_settings",
    "retrieve_credential",
    "scan",
]

__version__ = version("roombactl")
