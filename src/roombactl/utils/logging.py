from __future__ import annotations

import logging
import os
from typing import Literal

import coloredlogs  # type: ignore[import]

LogLevel = Literal["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"]

DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
DEFAULT_DATE_FORMAT = "%H:%M:%S"

LEVEL_ENV_VAR = "LOGLEVEL"
PROTOCOL_LEVEL_ENV_VAR = "ROOMBA_PROTOCOL_LOGLEVEL"
PROTOCOL_LOGGER = "roombactl.core"
MQTT_LOGGER = "paho"


def setup_logging(
    level: LogLevel | None = None,
    protocol_level: LogLevel | None = None,
) -> None:
    """Install colored console logging.

    ``level`` (or ``LOGLEVEL``) applies to everything. ``protocol_level`` (or
    ``ROOMBA_PROTOCOL_LOGLEVEL``) overrides it for the discovery, credential
    and session traffic in ``roombactl.core``, so the wire chatter can be
    shown without debug output from the rest of the CLI. paho's own logger
    stays at WARNING unless the protocol level is DEBUG.
    """
    resolved = (level or os.environ.get(LEVEL_ENV_VAR, "INFO")).upper()
    protocol = (
        protocol_level or os.environ.get(PROTOCOL_LEVEL_ENV_VAR) or resolved
    ).upper()

    handler_level = min(
        logging.getLevelName(resolved), logging.getLevelName(protocol)
    )
    coloredlogs.install(
        level=handler_level,
        fmt=DEFAULT_FORMAT,
        datefmt=DEFAULT_DATE_FORMAT,
    )
    logging.getLogger().setLevel(resolved)
    logging.getLogger(PROTOCOL_LOGGER).setLevel(protocol)

    mqtt_level = logging.DEBUG if protocol == "DEBUG" else logging.WARNING
    logging.getLogger(MQTT_LOGGER).setLevel(mqtt_level)
