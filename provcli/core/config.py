"""Invocation configuration loaded from the environment.

Settings are read once, when the CLI starts, and turned into an explicit
ClientConfig that is handed to the API client. Nothing deeper in the
pipeline looks at os.environ.
"""

from dataclasses import dataclass
from typing import Literal, Sequence

import pydantic
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from provcli.errors import ConfigurationError

# Used when neither -H nor PROVIDENCE_HOST is given
DEFAULT_HOST = "http://localhost"

# Version of the current stable server API
DEFAULT_API_VERSION = "1.0"


class Settings(BaseSettings):
    """Environment settings for the Providence CLI.

    PROVIDENCE_HOST          server address, e.g. tcp://10.0.0.5:2375
    PROVIDENCE_API_VERSION   API version to reach, blank means the default
    PROVIDENCE_CONNECT_TIMEOUT  seconds to wait for the TCP connection
    PROVIDENCE_LOG_FORMAT    "console" or "json"
    """

    model_config = SettingsConfigDict(
        env_prefix="PROVIDENCE_",
        case_sensitive=False,
    )

    host: str = ""
    api_version: str = DEFAULT_API_VERSION
    connect_timeout: float = 30.0
    log_format: Literal["console", "json"] = "console"

    @field_validator("api_version", mode="before")
    @classmethod
    def default_blank_version(cls, v: str) -> str:
        if v is None or not str(v).strip():
            return DEFAULT_API_VERSION
        return str(v).strip()


@dataclass(frozen=True)
class ClientConfig:
    """Resolved connection settings for a single invocation."""

    host: str
    api_version: str = DEFAULT_API_VERSION
    connect_timeout: float = 30.0


def get_settings() -> Settings:
    try:
        return Settings()
    except pydantic.ValidationError as exc:
        raise ConfigurationError(f"Invalid environment configuration: {exc}") from exc


def get_server_host(hosts: Sequence[str], settings: Settings) -> str:
    """Pick the server host from -H flags, falling back to the environment."""
    if len(hosts) > 1:
        raise ConfigurationError("Please specify only one -H")
    if hosts:
        return hosts[0]
    return settings.host or DEFAULT_HOST


def resolve_client_config(hosts: Sequence[str], settings: Settings) -> ClientConfig:
    return ClientConfig(
        host=get_server_host(hosts, settings),
        api_version=settings.api_version,
        connect_timeout=settings.connect_timeout,
    )
