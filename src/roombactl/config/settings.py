from __future__ import annotations

import json
import os
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from roombactl.models import Region

from .paths import default_config_path, expand_path

CONFIG_ENV_VAR = "ROOMBA_CONFIG"


class Room(Region):
    """A named region of the robot's stored map."""

    model_config = {"frozen": True, "extra": "forbid", "populate_by_name": True}

    name: str


class RobotConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    hostname: str | None = None
    username: str | None = None
    password: str | None = None
    pmap_id: str | None = None
    user_pmapv_id: str | None = None
    rooms: tuple[Room, ...] = ()

    def room(self, name: str) -> Room | None:
        for room in self.rooms:
            if room.name == name:
                return room
        return None


class DiscoveryConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    port: int = Field(default=5678, ge=1, le=65535)
    broadcast_address: str = "255.255.255.255"
    bind_address: str = ""
    timeout: float = Field(default=3.0, gt=0)
    attempts: int = Field(default=3, ge=1)


class CredentialConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    port: int = Field(default=8883, ge=1, le=65535)
    timeout: float = Field(default=3.0, gt=0)
    attempts: int = Field(default=3, ge=1)


class SessionConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    port: int = Field(default=8883, ge=1, le=65535)
    keepalive: int = Field(default=60, ge=5)
    reconnect_delay: int = Field(default=3, ge=1)
    connect_timeout: float = Field(default=10.0, gt=0)
    event_buffer_size: int = Field(default=0, ge=0)
    telemetry_topic: str = "#"


class Settings(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    robot: RobotConfig = Field(default_factory=RobotConfig)
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    credentials: CredentialConfig = Field(default_factory=CredentialConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)


def resolve_config_path(allow_missing: bool = False) -> tuple[Path, bool]:
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        path = expand_path(env_path)
        if not allow_missing and not path.exists():
            raise FileNotFoundError(f"{CONFIG_ENV_VAR} points to missing file: {path}")
        return path, path.exists()

    path = default_config_path()
    return path, path.exists()


def load_settings(path: Path) -> Settings:
    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Invalid TOML in config file: {path}\n{exc}") from exc

    try:
        return Settings.model_validate(data or {})
    except ValidationError as exc:
        raise ValueError(f"Invalid config file: {path}\n{exc}") from exc


@lru_cache
def get_settings() -> Settings:
    path, exists = resolve_config_path(allow_missing=False)
    if exists:
        return load_settings(path)
    return Settings()


def update_robot(settings: Settings, **changes: Any) -> Settings:
    robot = settings.robot.model_copy(update=changes)
    return settings.model_copy(update={"robot": robot})


def _toml_string(value: str) -> str:
    return json.dumps(value)


def _render_robot(robot: RobotConfig) -> list[str]:
    lines = ["[robot]"]
    for key in ("hostname", "username", "password", "pmap_id", "user_pmapv_id"):
        value = getattr(robot, key)
        if value is not None:
            lines.append(f"{key} = {_toml_string(value)}")

    for room in robot.rooms:
        lines.extend(
            [
                "",
                "[[robot.rooms]]",
                f"name = {_toml_string(room.name)}",
                f"region_id = {_toml_string(room.region_id)}",
                f"type = {_toml_string(room.kind)}",
            ]
        )
    return lines


def render_settings_toml(settings: Settings) -> str:
    lines = [
        "# roombactl configuration",
        "",
        *_render_robot(settings.robot),
        "",
        "[discovery]",
        f"port = {settings.discovery.port}",
        f"broadcast_address = {_toml_string(settings.discovery.broadcast_address)}",
        f"bind_address = {_toml_string(settings.discovery.bind_address)}",
        f"timeout = {settings.discovery.timeout}",
        f"attempts = {settings.discovery.attempts}",
        "",
        "[credentials]",
        f"port = {settings.credentials.port}",
        f"timeout = {settings.credentials.timeout}",
        f"attempts = {settings.credentials.attempts}",
        "",
        "[session]",
        f"port = {settings.session.port}",
        f"keepalive = {settings.session.keepalive}",
        f"reconnect_delay = {settings.session.reconnect_delay}",
        f"connect_timeout = {settings.session.connect_timeout}",
        f"event_buffer_size = {settings.session.event_buffer_size}",
        f"telemetry_topic = {_toml_string(settings.session.telemetry_topic)}",
        "",
    ]
    return "\n".join(lines)


def write_settings(settings: Settings, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_settings_toml(settings))
