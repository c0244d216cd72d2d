from __future__ import annotations

import json
import logging
from typing import Any

import typer
from rich.console import Console

from roombactl.cli.helpers import (
    HostnameOption,
    Login,
    PasswordOption,
    UsernameOption,
    load_settings_or_exit,
    open_session,
)
from roombactl.models import IncomingEvent

logger = logging.getLogger(__name__)

REPORTED_PATH = ("state", "reported")
SUMMARY_FIELDS = (
    ("battery", "batPct"),
    ("last command", "lastCommand"),
    ("pmaps", "pmaps"),
)


def _reported_state(payload: Any) -> dict[str, Any]:
    node = payload
    for key in REPORTED_PATH:
        if not isinstance(node, dict) or key not in node:
            return {}
        node = node[key]
    return node if isinstance(node, dict) else {}


def summarize(event: IncomingEvent) -> list[str]:
    """Battery, last command and stored maps found in a state update."""
    reported = _reported_state(event.payload)
    lines: list[str] = []
    for label, key in SUMMARY_FIELDS:
        if key not in reported:
            continue
        value = reported[key]
        if key == "batPct":
            lines.append(f"{label}: {value}%")
        else:
            lines.append(f"{label}: {json.dumps(value)}")
    return lines


def watch(
    hostname: HostnameOption = None,
    username: UsernameOption = None,
    password: PasswordOption = None,
    raw: bool = typer.Option(False, "--raw", help="Print full JSON documents"),
) -> None:
    """Print telemetry from the robot until interrupted."""
    console = Console()
    settings = load_settings_or_exit()
    login = Login(hostname=hostname, username=username, password=password)

    session = open_session(settings, login)
    console.print(f"Watching robot at {session.address}, press Ctrl+C to stop")
    try:
        for event in session.events():
            if event is None:
                logger.debug("Telemetry gap")
                continue

            console.print(f"[cyan]{event.topic}[/cyan]")
            if raw:
                console.print_json(json.dumps(event.payload))
                continue

            lines = summarize(event)
            if not lines:
                console.print("  [dim](other state update)[/dim]")
            for line in lines:
                console.print(f"  {line}")
    except KeyboardInterrupt:
        pass
    finally:
        session.close()


def register(app: typer.Typer) -> None:
    app.command()(watch)
