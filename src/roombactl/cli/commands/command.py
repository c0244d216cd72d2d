from __future__ import annotations

from collections.abc import Callable

import typer
from rich.console import Console

from roombactl.cli.helpers import (
    HostnameOption,
    Login,
    PasswordOption,
    UsernameOption,
    exit_with_error,
    load_settings_or_exit,
    open_session,
)
from roombactl.config import Settings
from roombactl.errors import ParseError, SendError
from roombactl.models import (
    Command,
    OutgoingMessage,
    Region,
    RegionSelection,
    parse_region_id,
)

app = typer.Typer(no_args_is_help=True, help="Send a command to the robot")


@app.callback()
def command(
    ctx: typer.Context,
    hostname: HostnameOption = None,
    username: UsernameOption = None,
    password: PasswordOption = None,
) -> None:
    """Send a command to the robot."""
    ctx.obj = Login(hostname=hostname, username=username, password=password)


def send_message(ctx: typer.Context, message: OutgoingMessage) -> None:
    settings = load_settings_or_exit()
    login = ctx.obj if isinstance(ctx.obj, Login) else Login()

    with open_session(settings, login) as session:
        try:
            session.send(message)
        except SendError as exc:
            exit_with_error(f"Could not send '{message.command.value}': {exc}")

    console = Console()
    console.print(f"[green]✓[/green] Sent '{message.command.value}'")


def _simple_command(command: Command) -> Callable[[typer.Context], None]:
    def run(ctx: typer.Context) -> None:
        send_message(ctx, OutgoingMessage(command=command))

    run.__doc__ = f"Send the '{command.value}' command."
    return run


for _command in Command:
    app.command(_command.value)(_simple_command(_command))


def _region_selection(
    settings: Settings,
    regions: list[Region],
    ordered: bool,
    pmap_id: str | None,
    user_pmapv_id: str | None,
) -> RegionSelection:
    pmap_id = pmap_id or settings.robot.pmap_id
    user_pmapv_id = user_pmapv_id or settings.robot.user_pmapv_id
    if not pmap_id or not user_pmapv_id:
        exit_with_error(
            "Missing pmap_id or user_pmapv_id. Set them in the configuration or "
            "pass --pmap-id and --user-pmapv-id."
        )
    return RegionSelection(
        pmap_id=pmap_id,
        user_pmapv_id=user_pmapv_id,
        ordered=ordered,
        regions=tuple(regions),
    )


@app.command("start-regions")
def start_regions(
    ctx: typer.Context,
    region_ids: list[str] = typer.Argument(..., help="Region ids to clean"),
    ordered: bool = typer.Option(False, "--ordered", help="Clean in the given order"),
    pmap_id: str | None = typer.Option(None, "--pmap-id", help="Map id"),
    user_pmapv_id: str | None = typer.Option(
        None, "--user-pmapv-id", help="Map version id"
    ),
) -> None:
    """Start cleaning the given regions."""
    try:
        regions = [parse_region_id(region_id) for region_id in region_ids]
    except ParseError as exc:
        exit_with_error(str(exc))

    settings = load_settings_or_exit()
    selection = _region_selection(settings, regions, ordered, pmap_id, user_pmapv_id)
    send_message(ctx, OutgoingMessage(command=Command.START, extra=selection))


@app.command("start-rooms")
def start_rooms(
    ctx: typer.Context,
    names: list[str] = typer.Argument(..., help="Room names from the config"),
    ordered: bool = typer.Option(False, "--ordered", help="Clean in the given order"),
    pmap_id: str | None = typer.Option(None, "--pmap-id", help="Map id"),
    user_pmapv_id: str | None = typer.Option(
        None, "--user-pmapv-id", help="Map version id"
    ),
) -> None:
    """Start cleaning the named rooms."""
    settings = load_settings_or_exit()

    regions: list[Region] = []
    for name in names:
        room = settings.robot.room(name)
        if room is None:
            known = ", ".join(other.name for other in settings.robot.rooms) or "none"
            exit_with_error(f"Unknown room '{name}' (known rooms: {known})")
        regions.append(Region(region_id=room.region_id, kind=room.kind))

    selection = _region_selection(settings, regions, ordered, pmap_id, user_pmapv_id)
    send_message(ctx, OutgoingMessage(command=Command.START, extra=selection))
