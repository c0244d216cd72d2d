from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from roombactl.errors import DecodeError, ParseError

IDENTITY_PREFIXES = ("iRobot", "Roomba")
IDENTITY_SEPARATOR = "-"


def parse_identity(hostname: str) -> str:
    """Derive the robot id (MQTT username) from an advertised hostname.

    ``iRobot-0123ABCD`` and ``Roomba-0123ABCD`` both yield ``0123ABCD``.
    """
    prefix, separator, robot_id = hostname.partition(IDENTITY_SEPARATOR)
    if not separator or prefix not in IDENTITY_PREFIXES or not robot_id:
        raise ParseError(
            f"Cannot derive robot id from hostname {hostname!r}: expected "
            f"one of {', '.join(p + IDENTITY_SEPARATOR for p in IDENTITY_PREFIXES)}"
            " followed by the id"
        )
    return robot_id


class DeviceAdvertisement(BaseModel):
    """A robot that answered the discovery broadcast."""

    model_config = {"frozen": True, "extra": "allow", "populate_by_name": True}

    ip: str
    hostname: str
    robot_id: str | None = Field(default=None, alias="robotid")

    @classmethod
    def from_datagram(cls, data: bytes) -> DeviceAdvertisement:
        try:
            document = json.loads(data.decode("utf-8"))
        except UnicodeDecodeError as exc:
            raise DecodeError(f"Discovery reply is not UTF-8: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise DecodeError(f"Discovery reply is not JSON: {exc}") from exc

        try:
            return cls.model_validate(document)
        except ValidationError as exc:
            raise DecodeError(f"Unexpected discovery reply: {exc}") from exc

    @property
    def attributes(self) -> dict[str, Any]:
        """Vendor attributes beyond ip, hostname and robotid."""
        return dict(self.model_extra or {})

    def identity(self) -> str:
        if self.robot_id:
            return self.robot_id
        return parse_identity(self.hostname)
