"""Settings and configuration management for bubble-bot.

Priority (highest wins): CLI flags (init kwargs) > BUBBLE_* env vars >
.env > project .bubble-bot.toml > global ~/.config/bubble-bot/config.toml.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from bubble_bot.utils.exceptions import ConfigError

PROJECT_CONFIG_FILE = ".bubble-bot.toml"

SUPPORTED_PHP_VERSIONS = ("8.1", "8.2", "8.3")
SUPPORTED_NODE_VERSIONS = ("18", "20", "22")
SUPPORTED_GO_VERSIONS = ("1.22", "1.23")


def global_config_path() -> Path:
    """Path of the per-user config file."""
    base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / "bubble-bot" / "config.toml"


def _check_version(kind: str, value: Optional[str], supported: tuple[str, ...]) -> Optional[str]:
    if value is not None and value not in supported:
        raise ValueError(
            f"unsupported {kind} version '{value}': supported versions are {', '.join(supported)}"
        )
    return value


class RuntimeConfig(BaseModel):
    """Language runtimes layered into the dev image."""

    php: Optional[str] = None
    node: Optional[str] = None
    rust: Optional[bool] = None
    go: Optional[str] = None

    @field_validator("php")
    @classmethod
    def _validate_php(cls, v: Optional[str]) -> Optional[str]:
        return _check_version("PHP", v, SUPPORTED_PHP_VERSIONS)

    @field_validator("node")
    @classmethod
    def _validate_node(cls, v: Optional[str]) -> Optional[str]:
        return _check_version("Node.js", v, SUPPORTED_NODE_VERSIONS)

    @field_validator("go")
    @classmethod
    def _validate_go(cls, v: Optional[str]) -> Optional[str]:
        return _check_version("Go", v, SUPPORTED_GO_VERSIONS)


class MysqlConfig(BaseModel):
    """MySQL service settings."""

    version: str = "8.0"
    database: str = "app"
    username: str = "root"
    password: str = "password"


class PostgresConfig(BaseModel):
    """PostgreSQL service settings."""

    version: str = "16"
    database: str = "app"
    username: str = "postgres"
    password: str = "password"


class ServiceConfig(BaseModel):
    """Backing services started next to the dev container."""

    mysql: Optional[MysqlConfig] = None
    redis: Optional[bool] = None
    postgres: Optional[PostgresConfig] = None


class HookConfig(BaseModel):
    """Commands run inside the dev container around the session."""

    post_start: List[str] = Field(default_factory=list)
    pre_stop: List[str] = Field(default_factory=list)


class ShellConfig(BaseModel):
    """Shell integration settings."""

    mount_configs: bool = False


class ContainerConfig(BaseModel):
    """Dev container naming overrides."""

    network: Optional[str] = None
    name: Optional[str] = None
    shell: Optional[str] = None


class Settings(BaseSettings):
    """Resolved settings for one bubble-bot invocation."""

    model_config = SettingsConfigDict(
        env_prefix="BUBBLE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    runtimes: RuntimeConfig = Field(default_factory=RuntimeConfig)
    services: ServiceConfig = Field(default_factory=ServiceConfig)
    hooks: HookConfig = Field(default_factory=HookConfig)
    shell: ShellConfig = Field(default_factory=ShellConfig)
    container: ContainerConfig = Field(default_factory=ContainerConfig)

    # Docker configuration
    docker_host: str | None = Field(
        default=None,
        description="Docker daemon host URL (defaults to Docker's standard detection)",
    )

    docker_cli: str = Field(
        default="docker",
        description="Docker CLI binary used for interactive and piped execs",
    )

    # Container lifecycle configuration
    stop_timeout_s: int = Field(
        default=5,
        description="Grace period in seconds before a stopping container is killed",
    )

    readiness_attempts: int = Field(
        default=30,
        description="Maximum readiness probe attempts per service",
    )

    readiness_interval_s: float = Field(
        default=2.0,
        description="Seconds to wait between readiness probe attempts",
    )

    sweep_stale: bool = Field(
        default=False,
        description="Remove this project's containers left behind by crashed sessions",
    )

    # Logging configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    log_format: Literal["json", "text"] = Field(
        default="text",
        description="Log format (json or text)",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Priority: init > env vars > .env > project toml > global toml."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls, toml_file=Path(PROJECT_CONFIG_FILE)),
            TomlConfigSettingsSource(settings_cls, toml_file=global_config_path()),
            file_secret_settings,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def load_settings(**overrides) -> Settings:
    """
    Resolve settings with command-line overrides applied on top.

    Args:
        **overrides: Highest-priority values, nested as in the TOML file

    Returns:
        Settings instance

    Raises:
        ConfigError: If any layer holds an invalid value
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        messages = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigError(f"invalid configuration: {messages}") from e
