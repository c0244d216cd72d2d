from __future__ import annotations

from typing import Annotated

import typer

from roombactl.utils.logging import setup_logging

from .commands import command as command_cmd
from .commands import config as config_cmd
from .commands.discover import register as register_discover
from .commands.init import register as register_init
from .commands.password import register as register_password
from .commands.watch import register as register_watch

app = typer.Typer(
    help="roombactl - control Roomba robots on the local network",
    no_args_is_help=True,
)

app.add_typer(config_cmd.app, name="config")
app.add_typer(command_cmd.app, name="command")

register_init(app)
register_discover(app)
register_password(app)
register_watch(app)


@app.callback(invoke_without_command=True)
def main(
    version: Annotated[
        bool,
        typer.Option("--version", "-v", help="Show version and exit"),
    ] = False,
) -> None:
    """roombactl CLI."""
    setup_logging()

    if version:
        from importlib.metadata import version as get_version

        typer.echo(f"roombactl version {get_version('roombactl')}")
        raise typer.Exit()
