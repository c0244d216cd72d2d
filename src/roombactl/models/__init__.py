"""Data models for roombactl."""

from roombactl.models.device import (
    IDENTITY_PREFIXES,
    DeviceAdvertisement,
    parse_identity,
)
from roombactl.models.message import (
    COMMAND_TOPIC,
    Command,
    IncomingEvent,
    OutgoingMessage,
    Region,
    RegionSelection,
    decode_event,
    parse_region_id,
)

__all__ = [
    "COMMAND_TOPIC",
    "IDENTITY_PREFIXES",
    "Command",
    "DeviceAdvertisement",
    "IncomingEvent",
    "OutgoingMessage",
    "Region",
    "RegionSelection",
    "decode_event",
    "parse_identity",
    "parse_region_id",
]
