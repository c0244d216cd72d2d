from __future__ import annotations

import time

import typer
from rich.console import Console

from roombactl.cli.helpers import exit_with_error, load_settings_or_exit, save_settings
from roombactl.config import update_robot
from roombactl.core import retrieve_credential
from roombactl.errors import RoombaError
from roombactl.utils.redaction import Redactor


def get_password(
    hostname: str | None = typer.Argument(
        None, help="Robot IP address or hostname. Uses config if omitted."
    ),
    no_save: bool = typer.Option(
        False, "--no-save", help="Do not store the password in the config"
    ),
    retry_delay: float = typer.Option(
        3.0, "--retry-delay", min=0, help="Seconds to wait between attempts"
    ),
    redact: bool = typer.Option(
        False,
        "--redact",
        help="Redact sensitive values in output",
    ),
) -> None:
    """Retrieve the robot's password. Retries until the robot answers."""
    console = Console()
    settings = load_settings_or_exit()
    redactor = Redactor(enabled=redact)

    hostname = hostname or settings.robot.hostname
    if not hostname:
        exit_with_error(
            "Missing hostname in the configuration. Run 'roombactl find-ip' first."
        )

    console.print(
        "[yellow]Warning:[/yellow] please hold the Home button for 2 seconds and "
        "check that the ring led is blinking blue."
    )

    while True:
        try:
            password = retrieve_credential(hostname, settings.credentials)
            break
        except RoombaError as exc:
            console.print(f"[red]✗[/red] {exc}")
            time.sleep(retry_delay)

    console.print(f"Password: {redactor.redact_secret(password)}")

    if not no_save:
        settings = update_robot(settings, hostname=hostname, password=password)
        path = save_settings(settings)
        console.print(f"[green]✓[/green] Saved password to {path}")


def register(app: typer.Typer) -> None:
    app.command("get-password")(get_password)
