"""Gateway client configuration loading and validation."""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, ClassVar, Dict, Iterable, Literal

import yaml
from pydantic import AnyUrl, Field, NonNegativeInt, PositiveFloat, PositiveInt
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONFIG_LOCATIONS: tuple[Path, ...] = (
    Path("/etc/tradegate/gateway.yaml"),
    Path("/etc/tradegate/gateway.yml"),
    Path("./config/gateway.yaml"),
    Path("./config/gateway.yml"),
)

# GUILDS | GUILD_MESSAGES
DEFAULT_INTENTS = (1 << 0) | (1 << 9)


class GatewaySettings(BaseSettings):
    """Validated settings for the gateway session client."""

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_prefix="TRADEGATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Identity
    token: str | None = Field(
        default=None,
        description="Bot token sent in identify/resume and REST Authorization headers.",
        repr=False,
    )
    intents: NonNegativeInt = Field(
        default=DEFAULT_INTENTS,
        description="Gateway intents bitfield declared during identify.",
    )
    os_name: str = Field(
        default="linux",
        description="properties.os reported during identify.",
    )
    browser: str = Field(
        default="tradegate",
        description="properties.browser reported during identify.",
    )
    device: str = Field(
        default="tradegate",
        description="properties.device reported during identify.",
    )

    # Endpoints
    api_base_url: AnyUrl = Field(
        default="https://discord.com/api/v10",
        description="REST base URL used for gateway discovery and interaction callbacks.",
    )
    api_version: PositiveInt = Field(
        default=10,
        description="Gateway protocol version appended to the connect URL.",
    )
    gateway_url: str | None = Field(
        default=None,
        description="Explicit gateway URL; skips the discovery request when set.",
    )
    transport: Literal["dummy", "websocket"] = Field(
        default="websocket",
        description="Gateway transport implementation to use.",
    )
    transport_recv_queue_max: NonNegativeInt = Field(
        default=0,
        description="Bound for the session inbox (0 = unbounded).",
    )
    rest_timeout_seconds: PositiveFloat = Field(
        default=10.0,
        description="Timeout applied to REST requests.",
    )

    # Reconnect policy
    reconnect_base_delay_seconds: float = Field(
        default=1.0,
        description="Base delay for reconnection backoff.",
    )
    reconnect_max_delay_seconds: float = Field(
        default=60.0,
        description="Maximum delay for reconnection backoff.",
    )
    reconnect_jitter: float = Field(
        default=0.2,
        description="Jitter factor applied to reconnection backoff (0.0-1.0).",
    )
    invalid_session_delay_min_seconds: float = Field(
        default=1.0,
        description="Lower bound of the pause before re-identifying after a non-resumable invalid session.",
    )
    invalid_session_delay_max_seconds: float = Field(
        default=5.0,
        description="Upper bound of the pause before re-identifying after a non-resumable invalid session.",
    )
    max_restarts: NonNegativeInt = Field(
        default=0,
        description="Consecutive failed restarts tolerated before giving up (0 = unlimited).",
    )
    close_timeout_seconds: PositiveFloat = Field(
        default=5.0,
        description="Seconds to wait for the transport to finish a close handshake.",
    )

    # Interaction dispatch
    interaction_timeout_seconds: PositiveFloat = Field(
        default=2.5,
        description="Deadline for a single application command handler.",
    )
    interaction_response_window_seconds: PositiveFloat = Field(
        default=3.0,
        description="Window the remote service allows before an interaction must be answered.",
    )
    interaction_failure_message: str = Field(
        default="Something went wrong while handling that command.",
        description="Content of the fallback response sent when a handler fails.",
    )
    interaction_max_workers: PositiveInt = Field(
        default=8,
        description="Threads reserved for synchronous command handlers.",
    )
    interaction_max_inflight: NonNegativeInt = Field(
        default=0,
        description="Handlers allowed to run at once (0 = unlimited).",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Minimum log level for the gateway process.",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        if isinstance(value, str):
            return value.upper()
        return value

    @field_validator("reconnect_jitter")
    @classmethod
    def _check_jitter(cls, value: float) -> float:
        if not 0.0 <= value <= 1.0:
            raise ValueError("reconnect_jitter must be between 0.0 and 1.0")
        return value

    @model_validator(mode="after")
    def _check_windows(self) -> "GatewaySettings":
        if self.interaction_timeout_seconds >= self.interaction_response_window_seconds:
            raise ValueError(
                "interaction_timeout_seconds must be strictly below interaction_response_window_seconds"
            )
        if self.invalid_session_delay_min_seconds > self.invalid_session_delay_max_seconds:
            raise ValueError("invalid_session_delay_min_seconds must not exceed the max delay")
        return self

    config_path: Path | None = Field(
        default=None,
        description="Resolved path to the on-disk config that seeded the settings.",
        exclude=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[GatewaySettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            cls._file_settings_source,
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )

    @staticmethod
    def _file_settings_source(settings_cls: type[GatewaySettings] | None = None) -> Dict[str, Any]:
        for path in GatewaySettings._resolve_candidate_paths():
            data = GatewaySettings._load_file(path)
            if data is not None:
                data.setdefault("config_path", path)
                return data
        return {}

    @staticmethod
    def _resolve_candidate_paths() -> Iterable[Path]:
        explicit = os.getenv("TRADEGATE_CONFIG_FILE")
        if explicit:
            yield Path(explicit).expanduser()
        yield from DEFAULT_CONFIG_LOCATIONS

    @staticmethod
    def _load_file(path: Path) -> Dict[str, Any] | None:
        if not path.is_file():
            return None
        suffix = path.suffix.lower()
        try:
            with path.open("r", encoding="utf-8") as handle:
                if suffix in {".yaml", ".yml"}:
                    raw = yaml.safe_load(handle)
                elif suffix == ".json":
                    raw = json.load(handle)
                else:
                    return None
        except OSError as exc:
            raise RuntimeError(f"Failed to read gateway config file {path}") from exc
        except (yaml.YAMLError, json.JSONDecodeError) as exc:
            raise ValueError(f"Invalid gateway config file {path}") from exc

        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise ValueError(f"Gateway config file {path} must contain a mapping at top level.")
        return raw

    def require_token(self) -> str:
        if not self.token:
            raise ValueError("A bot token is required (set TRADEGATE_TOKEN or token in the config file)")
        return self.token


@lru_cache()
def get_settings() -> GatewaySettings:
    """Return memoized gateway settings."""

    return GatewaySettings()
