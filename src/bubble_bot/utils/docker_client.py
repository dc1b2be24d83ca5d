"""Docker client utilities for bubble-bot."""

import docker
from docker import DockerClient
from docker.errors import DockerException

from bubble_bot.config import Settings, get_settings
from bubble_bot.utils import get_logger
from bubble_bot.utils.exceptions import DockerDaemonUnreachableError

logger = get_logger(__name__)


class DockerClientManager:
    """Manages the Docker client connection for one CLI invocation."""

    def __init__(self, settings: Settings | None = None) -> None:
        """
        Initialize Docker client manager.

        Args:
            settings: Resolved settings (defaults to the cached settings)
        """
        self._client: DockerClient | None = None
        self.settings = settings or get_settings()

    def get_client(self) -> DockerClient:
        """
        Get or create Docker client instance.

        Returns:
            DockerClient instance

        Raises:
            DockerDaemonUnreachableError: If unable to connect to Docker daemon
        """
        if self._client is None:
            try:
                if self.settings.docker_host:
                    client = docker.DockerClient(base_url=self.settings.docker_host)
                else:
                    client = docker.from_env()

                client.ping()
                logger.debug(
                    "Connected to Docker daemon",
                    extra={"docker_version": client.version().get("Version")},
                )
            except DockerException as e:
                logger.error("Failed to connect to Docker daemon", extra={"error": str(e)})
                raise DockerDaemonUnreachableError(
                    f"failed to connect to Docker: {e}", e
                ) from e
            self._client = client

        return self._client

    def close(self) -> None:
        """Close Docker client connection."""
        if self._client:
            self._client.close()
            self._client = None
            logger.debug("Docker client connection closed")


# Global instance
_docker_manager: DockerClientManager | None = None


def get_docker_client(settings: Settings | None = None) -> DockerClient:
    """
    Get global Docker client instance.

    Args:
        settings: Settings used when the client is first created

    Returns:
        DockerClient instance
    """
    global _docker_manager
    if _docker_manager is None:
        _docker_manager = DockerClientManager(settings)
    return _docker_manager.get_client()


def close_docker_client() -> None:
    """Close global Docker client connection."""
    global _docker_manager
    if _docker_manager:
        _docker_manager.close()
        _docker_manager = None
