"""Bridge configuration loading and validation."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, ClassVar, Literal

import yaml
from pydantic import AnyUrl, Field, NonNegativeFloat, PositiveFloat, PositiveInt
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

CONFIG_FILE_ENV = "EDITOR_BRIDGE_CONFIG_FILE"

DEFAULT_CONFIG_LOCATIONS: tuple[Path, ...] = (
    Path("/etc/editor-bridge/bridge.yaml"),
    Path("/etc/editor-bridge/bridge.yml"),
    Path("./config/bridge.yaml"),
    Path("./config/bridge.yml"),
    Path("./config/bridge.json"),
)


class BridgeSettings(BaseSettings):
    """Validated settings for the editor connection."""

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_prefix="EDITOR_BRIDGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Endpoint
    editor_host: str = Field(
        default="127.0.0.1",
        description="Host the editor plugin listens on.",
    )
    editor_port: PositiveInt = Field(
        default=9080,
        description="Port of the editor plugin WebSocket server.",
    )
    editor_ws_url: AnyUrl | None = Field(
        default=None,
        description="Full WebSocket URL; overrides editor_host/editor_port when set.",
    )
    ws_subprotocol: str | None = Field(
        default="json",
        description="Subprotocol offered during the WebSocket handshake.",
    )
    transport: Literal["websocket", "dummy"] = Field(
        default="websocket",
        description="Transport implementation used to reach the editor.",
    )

    # Deadlines
    command_timeout_seconds: PositiveFloat = Field(
        default=10.0,
        description="Seconds to wait for the reply to a single command.",
    )
    connect_timeout_seconds: PositiveFloat = Field(
        default=5.0,
        description="Seconds allowed for the connection handshake.",
    )

    # Reconnection
    reconnect_base_delay_seconds: NonNegativeFloat = Field(
        default=1.0,
        description="Initial delay before reconnecting after the socket drops.",
    )
    reconnect_max_delay_seconds: NonNegativeFloat = Field(
        default=30.0,
        description="Maximum delay between reconnection attempts.",
    )
    reconnect_multiplier: float = Field(
        default=2.0,
        ge=1.0,
        description="Growth factor of the reconnection delay; 1.0 keeps a fixed cadence.",
    )
    reconnect_jitter_seconds: NonNegativeFloat = Field(
        default=1.0,
        description="Upper bound of the random delay added to each reconnection attempt.",
    )

    # Keepalive
    heartbeat_interval_seconds: NonNegativeFloat = Field(
        default=3.0,
        description="Interval between WebSocket pings; 0 disables pings.",
    )
    heartbeat_timeout_seconds: PositiveFloat = Field(
        default=10.0,
        description="Seconds to wait for a pong before the socket is considered dead.",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Minimum log level for the bridge process.",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        if isinstance(value, str):
            return value.upper()
        return value

    @model_validator(mode="after")
    def _check_backoff_bounds(self) -> "BridgeSettings":
        if self.reconnect_max_delay_seconds < self.reconnect_base_delay_seconds:
            raise ValueError("reconnect_max_delay_seconds must be >= reconnect_base_delay_seconds")
        return self

    config_path: Path | None = Field(
        default=None,
        description="Resolved path to the on-disk config that seeded the settings.",
        exclude=True,
    )

    @property
    def ws_url(self) -> str:
        if self.editor_ws_url is not None:
            return str(self.editor_ws_url)
        return f"ws://{self.editor_host}:{self.editor_port}"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BridgeSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            _read_config_file,
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )


def _candidate_files() -> list[Path]:
    """Config files to try, most specific first.

    A path named by ``EDITOR_BRIDGE_CONFIG_FILE`` must exist; the default
    locations are optional.
    """

    explicit = os.getenv(CONFIG_FILE_ENV)
    if explicit:
        path = Path(explicit).expanduser()
        if not path.is_file():
            raise RuntimeError(f"{CONFIG_FILE_ENV} points to a missing file: {path}")
        return [path]
    return [path for path in DEFAULT_CONFIG_LOCATIONS if path.is_file()]


def _read_config_file() -> dict[str, Any]:
    candidates = _candidate_files()
    if not candidates:
        return {}
    path = candidates[0]
    # JSON documents are valid YAML, so one parser covers both formats.
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise RuntimeError(f"Failed to read bridge config file {path}") from exc
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid bridge config file {path}: {exc}") from exc
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError(f"Bridge config file {path} must contain a mapping at top level.")
    return {"config_path": path, **raw}


@lru_cache()
def get_settings() -> BridgeSettings:
    """Return memoized bridge settings."""

    return BridgeSettings()
