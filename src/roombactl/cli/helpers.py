from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, NoReturn

import typer

from roombactl.config import (
    Settings,
    get_settings,
    resolve_config_path,
    write_settings,
)
from roombactl.core import Session
from roombactl.errors import ConnectError

HostnameOption = Annotated[
    str | None,
    typer.Option("--hostname", help="Robot IP address or hostname (default: config)"),
]
UsernameOption = Annotated[
    str | None,
    typer.Option("--username", help="Robot id used as MQTT username (default: config)"),
]
PasswordOption = Annotated[
    str | None,
    typer.Option("--password", help="Robot password (default: config)"),
]


@dataclass(frozen=True)
class Login:
    hostname: str | None = None
    username: str | None = None
    password: str | None = None


def exit_with_error(message: str) -> NoReturn:
    typer.echo(message, err=True)
    raise typer.Exit(1)


def load_settings_or_exit() -> Settings:
    try:
        return get_settings()
    except (FileNotFoundError, ValueError) as exc:
        exit_with_error(str(exc))


def resolve_config_path_or_exit(allow_missing: bool = False) -> tuple[Path, bool]:
    try:
        return resolve_config_path(allow_missing=allow_missing)
    except FileNotFoundError as exc:
        exit_with_error(str(exc))


def save_settings(settings: Settings) -> Path:
    path, _exists = resolve_config_path_or_exit(allow_missing=True)
    write_settings(settings, path)
    get_settings.cache_clear()
    return path


def open_session(settings: Settings, login: Login) -> Session:
    hostname = login.hostname or settings.robot.hostname
    username = login.username or settings.robot.username
    password = login.password or settings.robot.password

    if not hostname:
        exit_with_error(
            "Missing hostname in the configuration. Run 'roombactl find-ip' first."
        )
    if not username:
        exit_with_error(
            "Missing username in the configuration. Run 'roombactl find-ip' first."
        )
    if not password:
        exit_with_error(
            "Missing password in the configuration. "
            "Run 'roombactl get-password' first."
        )

    try:
        return Session.connect(hostname, username, password, settings.session)
    except ConnectError as exc:
        exit_with_error(str(exc))
