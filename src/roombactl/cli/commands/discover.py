from __future__ import annotations

import logging

import typer
from rich.console import Console

from roombactl.cli.helpers import exit_with_error, load_settings_or_exit, save_settings
from roombactl.config import update_robot
from roombactl.core import scan
from roombactl.errors import ParseError, TransportError
from roombactl.utils.redaction import Redactor

logger = logging.getLogger(__name__)


def find_ip(
    no_save: bool = typer.Option(
        False,
        "--no-save",
        help="Keep listing robots instead of saving the first one to the config",
    ),
    redact: bool = typer.Option(
        False,
        "--redact",
        help="Redact sensitive values in output",
    ),
) -> None:
    """Find robots on the local network by UDP broadcast."""
    console = Console()
    settings = load_settings_or_exit()
    redactor = Redactor(enabled=redact)

    console.print("Searching for robots on the local network...")
    logger.info(
        "Discovery settings: port=%d, timeout=%.2fs",
        settings.discovery.port,
        settings.discovery.timeout,
    )

    try:
        scanner = scan(settings.discovery)
    except TransportError as exc:
        exit_with_error(str(exc))

    attempts = settings.discovery.attempts
    found = 0
    failures = 0
    with scanner:
        for result in scanner:
            if isinstance(result, TransportError):
                failures += 1
                if failures < attempts:
                    logger.info(
                        "No answer yet (%s), retrying (%d/%d)",
                        result,
                        failures,
                        attempts,
                    )
                    continue
                if found:
                    console.print(f"[dim]Discovery finished: {result}[/dim]")
                    return
                exit_with_error(f"Discovery failed: {result}")

            failures = 0
            found += 1
            try:
                identity: str | None = result.identity()
            except ParseError as exc:
                logger.warning("%s", exc)
                identity = None

            console.print(
                f"[green]✓[/green] Found [cyan]{result.hostname}[/cyan]\n"
                f"  IP address: {redactor.redact_ip(result.ip)}\n"
                f"  Robot ID (username): {redactor.redact_identity(identity)}"
            )

            if not no_save and identity is not None:
                settings = update_robot(settings, hostname=result.ip, username=identity)
                path = save_settings(settings)
                console.print(f"[green]✓[/green] Saved robot to {path}")
                return


def register(app: typer.Typer) -> None:
    app.command("find-ip")(find_ip)
