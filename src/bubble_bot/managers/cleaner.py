"""Removal of all bubble-bot containers, images, networks and volumes on the host."""

import asyncio
from dataclasses import dataclass, field
from typing import List

from docker import DockerClient
from docker.errors import DockerException

from bubble_bot.config import Settings
from bubble_bot.managers.container_manager import ContainerManager
from bubble_bot.models.naming import IMAGE_REPOSITORY, RESOURCE_PREFIX
from bubble_bot.utils import get_logger
from bubble_bot.utils.docker_client import get_docker_client
from bubble_bot.utils.exceptions import DockerAPIError

logger = get_logger(__name__)


@dataclass
class CleanReport:
    """Names of the resources a clean run removed."""

    containers: int = 0
    images: List[str] = field(default_factory=list)
    networks: List[str] = field(default_factory=list)
    volumes: List[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.containers or self.images or self.networks or self.volumes)

    def render(self) -> str:
        """Human-readable summary for the terminal."""
        if self.is_empty():
            return "Nothing to clean."

        lines: List[str] = []
        if self.containers:
            lines.append(f"Removed {self.containers} leftover container(s)")
        for title, names in (
            ("Removed images:", self.images),
            ("Removed networks:", self.networks),
            ("Removed volumes:", self.volumes),
        ):
            if names:
                lines.append(title)
                lines.extend(f"  {name}" for name in names)
        return "\n".join(lines)


class Cleaner:
    """Removes every image and network bubble-bot created, optionally with containers and volumes.

    Individual removal failures are logged and skipped; only a failure to
    list resources is raised.
    """

    def __init__(
        self, docker_client: DockerClient | None = None, settings: Settings | None = None
    ) -> None:
        self.docker_client: DockerClient = docker_client or get_docker_client()
        self.settings = settings
        self._name_prefix = f"{RESOURCE_PREFIX}-"

    async def clean(
        self, remove_volumes: bool = False, remove_containers: bool = False
    ) -> CleanReport:
        """
        Remove bubble-bot resources.

        Args:
            remove_volumes: Also remove service data volumes
            remove_containers: First remove every bubble-bot container, running or not

        Returns:
            CleanReport listing what was removed

        Raises:
            DockerAPIError: If a resource list cannot be retrieved
            ContainerError: If containers cannot be listed
        """
        report = CleanReport()
        if remove_containers:
            # Containers hold the networks and volumes removed below
            containers = ContainerManager(self.docker_client, self.settings)
            report.containers = await containers.cleanup_stale(RESOURCE_PREFIX)
        report.images = await self._remove_images()
        report.networks = await self._remove_networks()
        if remove_volumes:
            report.volumes = await self._remove_volumes()

        logger.info(
            "Clean completed",
            extra={
                "containers": report.containers,
                "images": len(report.images),
                "networks": len(report.networks),
                "volumes": len(report.volumes),
            },
        )
        return report

    async def _remove_images(self) -> List[str]:
        try:
            images = await asyncio.to_thread(self.docker_client.images.list, name=IMAGE_REPOSITORY)
        except DockerException as e:
            raise DockerAPIError(f"failed to list images: {e}", e) from e

        removed = []
        for image in images:
            ref = image.tags[0] if image.tags else image.id
            try:
                await asyncio.to_thread(self.docker_client.images.remove, ref, force=True)
                logger.info("Image removed", extra={"image": ref})
                removed.append(ref)
            except DockerException as e:
                logger.warning("Failed to remove image", extra={"image": ref, "error": str(e)})
        return removed

    async def _remove_networks(self) -> List[str]:
        try:
            networks = await asyncio.to_thread(
                self.docker_client.networks.list, names=[self._name_prefix]
            )
        except DockerException as e:
            raise DockerAPIError(f"failed to list networks: {e}", e) from e

        removed = []
        for network in networks:
            if not network.name.startswith(self._name_prefix):
                continue
            try:
                await asyncio.to_thread(self.docker_client.api.remove_network, network.name)
                logger.info("Network removed", extra={"network": network.name})
                removed.append(network.name)
            except DockerException as e:
                logger.warning(
                    "Failed to remove network", extra={"network": network.name, "error": str(e)}
                )
        return removed

    async def _remove_volumes(self) -> List[str]:
        try:
            volumes = await asyncio.to_thread(
                self.docker_client.volumes.list, filters={"name": self._name_prefix}
            )
        except DockerException as e:
            raise DockerAPIError(f"failed to list volumes: {e}", e) from e

        removed = []
        for volume in volumes:
            if not volume.name.startswith(self._name_prefix):
                continue
            try:
                await asyncio.to_thread(self.docker_client.api.remove_volume, volume.name)
                logger.info("Volume removed", extra={"volume": volume.name})
                removed.append(volume.name)
            except DockerException as e:
                logger.warning(
                    "Failed to remove volume", extra={"volume": volume.name, "error": str(e)}
                )
        return removed
