from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from roombactl.cli.helpers import (
    exit_with_error,
    load_settings_or_exit,
    resolve_config_path_or_exit,
    save_settings,
)
from roombactl.config import Room, render_settings_toml, update_robot
from roombactl.errors import ParseError
from roombactl.models import parse_region_id
from roombactl.utils.redaction import Redactor

app = typer.Typer(no_args_is_help=True, help="Show and edit the configuration")


@app.command("show")
def show_config(
    redact: bool = typer.Option(
        False,
        "--redact",
        help="Redact sensitive values in output",
    ),
) -> None:
    """Show current configuration."""
    settings = load_settings_or_exit()
    path, exists = resolve_config_path_or_exit(allow_missing=True)

    if redact:
        redactor = Redactor()
        robot = settings.robot
        settings = update_robot(
            settings,
            hostname=robot.hostname and redactor.redact_ip(robot.hostname),
            username=robot.username and redactor.redact_identity(robot.username),
            password=robot.password and redactor.redact_secret(robot.password),
        )

    source = str(path) if exists else "defaults"
    typer.echo(f"Config source: {source}")
    typer.echo(render_settings_toml(settings))


@app.command("rooms")
def list_rooms() -> None:
    """List named rooms."""
    settings = load_settings_or_exit()
    console = Console()

    if not settings.robot.rooms:
        console.print("No rooms defined.")
        console.print("Use 'roombactl config add-room NAME REGION_ID' to add one.")
        return

    table = Table()
    table.add_column("Room", style="cyan")
    table.add_column("Region ID", style="green")
    table.add_column("Type")

    for room in sorted(settings.robot.rooms, key=lambda room: room.name):
        table.add_row(room.name, room.region_id, room.kind)

    console.print(table)


@app.command("add-room")
def add_room(
    name: str = typer.Argument(..., help="Room name"),
    region_id: str = typer.Argument(..., help="Region id on the robot's map"),
) -> None:
    """Add or update a named room."""
    try:
        region = parse_region_id(region_id)
    except ParseError as exc:
        exit_with_error(str(exc))

    settings = load_settings_or_exit()
    rooms = [room for room in settings.robot.rooms if room.name != name]
    rooms.append(Room(name=name, region_id=region.region_id, kind=region.kind))
    save_settings(update_robot(settings, rooms=tuple(rooms)))

    console = Console()
    console.print(f"[green]✓[/green] Mapped '{name}' → region {region.region_id}")


@app.command("remove-room")
def remove_room(name: str = typer.Argument(..., help="Room name")) -> None:
    """Remove a named room."""
    settings = load_settings_or_exit()
    console = Console()

    if settings.robot.room(name) is None:
        console.print(f"[yellow]![/yellow] Room '{name}' not found")
        raise typer.Exit(1)

    rooms = tuple(room for room in settings.robot.rooms if room.name != name)
    save_settings(update_robot(settings, rooms=rooms))
    console.print(f"[green]✓[/green] Removed room '{name}'")
