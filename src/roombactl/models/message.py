"""Wire format of the robot's MQTT messages.

Commands are published on the ``cmd`` topic as a flat JSON object::

    {"command": "start", "time": 1700000000, "initiator": "localApp"}

A start command may carry a region selection whose fields are merged into
the same object (``pmap_id``, ``user_pmapv_id``, ``ordered``, ``regions``).
Telemetry arrives as arbitrary JSON documents and is kept undecoded.
"""

from __future__ import annotations

import json
import time
from enum import Enum
from typing import Any, ClassVar

from pydantic import (
    BaseModel,
    Field,
    ValidationError,
    field_serializer,
    model_validator,
)

from roombactl.errors import DecodeError, ParseError

COMMAND_TOPIC = "cmd"
INITIATOR = "localApp"
REGION_KIND = "rid"

_STRUCTURAL_FIELDS = ("command", "time", "initiator")


class Command(str, Enum):
    START = "start"
    CLEAN = "clean"
    PAUSE = "pause"
    STOP = "stop"
    RESUME = "resume"
    DOCK = "dock"
    EVAC = "evac"
    TRAIN = "train"


class Region(BaseModel):
    model_config = {"frozen": True, "populate_by_name": True}

    region_id: str
    kind: str = Field(default=REGION_KIND, alias="type")


class RegionSelection(BaseModel):
    """Regions of one stored map to clean, attached to a start command."""

    model_config = {"frozen": True}

    pmap_id: str
    user_pmapv_id: str
    ordered: bool = False
    regions: tuple[Region, ...] = Field(min_length=1)

    @field_serializer("ordered")
    def _serialize_ordered(self, value: bool) -> int:
        return int(value)


def _unix_time() -> int:
    return int(time.time())


class OutgoingMessage(BaseModel):
    model_config = {"frozen": True}

    topic: ClassVar[str] = COMMAND_TOPIC

    command: Command
    time: int = Field(default_factory=_unix_time)
    initiator: str = INITIATOR
    extra: RegionSelection | None = None

    @model_validator(mode="after")
    def _extra_only_on_start(self) -> OutgoingMessage:
        if self.extra is not None and self.command is not Command.START:
            raise ValueError(
                f"region selection cannot be attached to '{self.command.value}'"
            )
        return self

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "command": self.command.value,
            "time": self.time,
            "initiator": self.initiator,
        }
        if self.extra is not None:
            data.update(self.extra.model_dump(mode="json", by_alias=True))
        return data

    def payload(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_payload(cls, payload: str | bytes) -> OutgoingMessage:
        document = _load_json(payload)
        if not isinstance(document, dict):
            raise DecodeError(f"Command payload is not a JSON object: {document!r}")

        fields = {key: document[key] for key in _STRUCTURAL_FIELDS if key in document}
        selection = {
            key: value
            for key, value in document.items()
            if key not in _STRUCTURAL_FIELDS
        }
        try:
            if selection:
                fields["extra"] = RegionSelection.model_validate(selection)
            return cls.model_validate(fields)
        except ValidationError as exc:
            raise DecodeError(f"Invalid command payload: {exc}") from exc


class IncomingEvent(BaseModel):
    """A telemetry document and the topic it arrived on."""

    model_config = {"frozen": True}

    topic: str
    payload: Any


def _load_json(raw: str | bytes) -> Any:
    try:
        text = raw.decode("utf-8") if isinstance(raw, bytes) else raw
        return json.loads(text)
    except UnicodeDecodeError as exc:
        raise DecodeError(f"Payload is not UTF-8: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise DecodeError(f"Payload is not JSON: {exc}") from exc


def decode_event(topic: str, raw: bytes) -> IncomingEvent:
    return IncomingEvent(topic=topic, payload=_load_json(raw))


def parse_region_id(text: str) -> Region:
    """Build a ``rid`` region from user input such as ``"12"``."""
    value = text.strip()
    if not (value.isascii() and value.isdigit()):
        raise ParseError(
            f"Invalid region id {text!r}: expected a non-negative integer"
        )
    return Region(region_id=value.lstrip("0") or "0", kind=REGION_KIND)
