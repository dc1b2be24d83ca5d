"""Backing-service descriptors (MySQL, PostgreSQL, Redis).

The variant set is closed: ``Service`` is a union of the three descriptor
types, each carrying its own configuration payload.
"""

from dataclasses import dataclass, field
from typing import ClassVar, List, Optional, Union

from bubble_bot.config import MysqlConfig, PostgresConfig, ServiceConfig
from bubble_bot.models.naming import service_container_name, service_volume_name
from bubble_bot.utils import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class VolumeSpec:
    """Named volume mounted into a service container."""

    source: str
    target: str

    def __str__(self) -> str:
        return f"{self.source}:{self.target}"


@dataclass(frozen=True)
class MysqlService:
    """MySQL service container."""

    project: str
    config: MysqlConfig = field(default_factory=MysqlConfig)

    name: ClassVar[str] = "mysql"
    port: ClassVar[int] = 3306

    @property
    def image(self) -> str:
        return f"mysql:{self.config.version}"

    @property
    def container_name(self) -> str:
        return service_container_name(self.project, self.name)

    def container_env(self) -> List[str]:
        env = [
            f"MYSQL_ROOT_PASSWORD={self.config.password}",
            f"MYSQL_DATABASE={self.config.database}",
        ]
        # The image creates root itself; MYSQL_USER=root is rejected.
        if self.config.username != "root":
            env.append(f"MYSQL_USER={self.config.username}")
            env.append(f"MYSQL_PASSWORD={self.config.password}")
        return env

    def dev_env(self) -> List[str]:
        return [
            f"DB_HOST={self.name}",
            f"DB_PORT={self.port}",
            f"DB_DATABASE={self.config.database}",
            f"DB_USERNAME={self.config.username}",
            f"DB_PASSWORD={self.config.password}",
        ]

    def volume(self) -> Optional[VolumeSpec]:
        return VolumeSpec(service_volume_name(self.project, self.name), "/var/lib/mysql")

    def readiness_cmd(self) -> List[str]:
        return ["mysqladmin", "ping", "-h", "127.0.0.1", "--silent"]


@dataclass(frozen=True)
class PostgresService:
    """PostgreSQL service container."""

    project: str
    config: PostgresConfig = field(default_factory=PostgresConfig)

    name: ClassVar[str] = "postgres"
    port: ClassVar[int] = 5432

    @property
    def image(self) -> str:
        return f"postgres:{self.config.version}"

    @property
    def container_name(self) -> str:
        return service_container_name(self.project, self.name)

    def container_env(self) -> List[str]:
        return [
            f"POSTGRES_USER={self.config.username}",
            f"POSTGRES_PASSWORD={self.config.password}",
            f"POSTGRES_DB={self.config.database}",
        ]

    def dev_env(self) -> List[str]:
        return [
            f"DB_HOST={self.name}",
            f"DB_PORT={self.port}",
            f"DB_DATABASE={self.config.database}",
            f"DB_USERNAME={self.config.username}",
            f"DB_PASSWORD={self.config.password}",
        ]

    def volume(self) -> Optional[VolumeSpec]:
        return VolumeSpec(
            service_volume_name(self.project, self.name), "/var/lib/postgresql/data"
        )

    def readiness_cmd(self) -> List[str]:
        return ["pg_isready", "-U", self.config.username]


@dataclass(frozen=True)
class RedisService:
    """Redis service container (no persistence)."""

    project: str

    name: ClassVar[str] = "redis"
    port: ClassVar[int] = 6379

    @property
    def image(self) -> str:
        return "redis:alpine"

    @property
    def container_name(self) -> str:
        return service_container_name(self.project, self.name)

    def container_env(self) -> List[str]:
        return []

    def dev_env(self) -> List[str]:
        return [f"REDIS_HOST={self.name}", f"REDIS_PORT={self.port}"]

    def volume(self) -> Optional[VolumeSpec]:
        return None

    def readiness_cmd(self) -> List[str]:
        return ["redis-cli", "ping"]


Service = Union[MysqlService, PostgresService, RedisService]

SERVICE_NAMES = (MysqlService.name, PostgresService.name, RedisService.name)


def collect_services(config: ServiceConfig, project: str) -> List[Service]:
    """
    Build the configured service descriptors in a fixed order.

    SQL engines come first (MySQL, then PostgreSQL), then Redis. Later
    services' dev-container variables shadow earlier ones with the same key.

    Args:
        config: Resolved service configuration
        project: Project identity

    Returns:
        Service descriptors in startup order
    """
    services: List[Service] = []
    if config.mysql is not None:
        services.append(MysqlService(project, config.mysql))
    if config.postgres is not None:
        services.append(PostgresService(project, config.postgres))
    if config.redis:
        services.append(RedisService(project))

    if config.mysql is not None and config.postgres is not None:
        logger.warning(
            "Both MySQL and PostgreSQL are enabled; their DB_* variables collide "
            "and PostgreSQL's values take effect in the dev container",
            extra={"services": [s.name for s in services]},
        )

    return services


def collect_service_env_vars(services: List[Service]) -> List[str]:
    """
    Concatenate dev-container environment entries of all services.

    Duplicate keys are kept; the engine applies the last occurrence.

    Args:
        services: Service descriptors in startup order

    Returns:
        KEY=VALUE strings
    """
    env: List[str] = []
    for service in services:
        env.extend(service.dev_env())
    return env
