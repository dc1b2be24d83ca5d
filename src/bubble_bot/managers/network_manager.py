"""Bridge network manager for service discovery between containers."""

import asyncio

from docker import DockerClient
from docker.errors import DockerException

from bubble_bot.utils import get_logger
from bubble_bot.utils.docker_client import get_docker_client
from bubble_bot.utils.exceptions import NetworkError

logger = get_logger(__name__)


def matches_network_prefix(network_name: str, prefix: str) -> bool:
    """
    Check whether a network belongs to the given project prefix.

    Args:
        network_name: Network name as reported by Docker
        prefix: Project prefix, e.g. ``bubble-myproject``

    Returns:
        True if the name equals the prefix or starts with ``prefix-``
    """
    return network_name == prefix or network_name.startswith(f"{prefix}-")


class NetworkManager:
    """Manager for the per-session bridge network."""

    def __init__(self, docker_client: DockerClient | None = None) -> None:
        """
        Initialize network manager.

        Args:
            docker_client: Docker client (defaults to the global client)
        """
        self.docker_client: DockerClient = docker_client or get_docker_client()

    async def network_exists(self, name: str) -> bool:
        """
        Check whether a network with exactly this name exists.

        Args:
            name: Network name

        Returns:
            True on an exact name match

        Raises:
            NetworkError: If networks cannot be listed
        """
        try:
            networks = await asyncio.to_thread(self.docker_client.networks.list, names=[name])
        except DockerException as e:
            raise NetworkError(f"failed to list networks: {e}", e) from e

        # The name filter also returns partial matches
        return any(network.name == name for network in networks)

    async def ensure_network(self, name: str) -> str:
        """
        Create a bridge network, or reuse an existing one with the same name.

        Args:
            name: Network name

        Returns:
            The network name

        Raises:
            NetworkError: If the network cannot be listed or created
        """
        if await self.network_exists(name):
            logger.info("Network already exists, reusing", extra={"network": name})
            return name

        try:
            await asyncio.to_thread(self.docker_client.networks.create, name, driver="bridge")
        except DockerException as e:
            raise NetworkError(f"failed to create network {name}: {e}", e) from e

        logger.info("Bridge network created", extra={"network": name})
        return name

    async def remove_network(self, name: str) -> None:
        """
        Remove a network, logging instead of raising on failure.

        Args:
            name: Network name
        """
        try:
            await asyncio.to_thread(self.docker_client.api.remove_network, name)
            logger.info("Network removed", extra={"network": name})
        except DockerException as e:
            logger.warning(
                "Failed to remove network (may already be removed)",
                extra={"network": name, "error": str(e)},
            )

    async def cleanup_stale(self, prefix: str) -> int:
        """
        Remove networks left behind by earlier sessions of this project.

        Args:
            prefix: Project prefix, e.g. ``bubble-myproject``

        Returns:
            Number of networks removed

        Raises:
            NetworkError: If networks cannot be listed
        """
        try:
            networks = await asyncio.to_thread(self.docker_client.networks.list, names=[prefix])
        except DockerException as e:
            raise NetworkError(f"failed to list networks for stale detection: {e}", e) from e

        removed = 0
        for network in networks:
            if not matches_network_prefix(network.name, prefix):
                continue

            logger.warning(
                "Removing stale network from previous session",
                extra={"network": network.name},
            )
            try:
                await asyncio.to_thread(self.docker_client.api.remove_network, network.name)
                removed += 1
            except DockerException as e:
                logger.warning(
                    "Failed to remove stale network (may have active endpoints)",
                    extra={"network": network.name, "error": str(e)},
                )

        return removed
