"""Configuration module for bubble-bot."""

from .settings import (
    ContainerConfig,
    HookConfig,
    MysqlConfig,
    PostgresConfig,
    RuntimeConfig,
    ServiceConfig,
    Settings,
    ShellConfig,
    get_settings,
    load_settings,
)

__all__ = [
    "ContainerConfig",
    "HookConfig",
    "MysqlConfig",
    "PostgresConfig",
    "RuntimeConfig",
    "ServiceConfig",
    "Settings",
    "ShellConfig",
    "get_settings",
    "load_settings",
]
