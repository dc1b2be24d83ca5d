"""Value types for bubble-bot."""

from .naming import (
    default_container_name,
    default_network_name,
    project_name,
    resource_prefix,
)
from .runtimes import Runtime, collect_runtimes
from .services import (
    MysqlService,
    PostgresService,
    SERVICE_NAMES,
    RedisService,
    Service,
    VolumeSpec,
    collect_service_env_vars,
    collect_services,
)

__all__ = [
    "MysqlService",
    "PostgresService",
    "RedisService",
    "SERVICE_NAMES",
    "Runtime",
    "Service",
    "VolumeSpec",
    "collect_runtimes",
    "collect_service_env_vars",
    "collect_services",
    "default_container_name",
    "default_network_name",
    "project_name",
    "resource_prefix",
]
