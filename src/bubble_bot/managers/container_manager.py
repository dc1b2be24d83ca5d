"""Container lifecycle manager for Docker operations."""

import asyncio
import os
import subprocess
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from docker import DockerClient
from docker.errors import DockerException
from docker.types import Mount

from bubble_bot.config import Settings, get_settings
from bubble_bot.models.services import Service
from bubble_bot.utils import get_logger
from bubble_bot.utils.docker_client import get_docker_client
from bubble_bot.utils.exceptions import ContainerError, CredentialsError, ServiceNotReadyError

logger = get_logger(__name__)

WORKSPACE_PATH = "/workspace"
KEEPALIVE_CMD = ["sleep", "infinity"]
CREDENTIALS_SCRIPT = (
    'mkdir -p "${HOME}/.claude" && '
    'cat > "${HOME}/.claude/.credentials.json" && '
    'chmod 600 "${HOME}/.claude/.credentials.json"'
)
CLAUDE_CONFIG_SCRIPT = 'cat > "${HOME}/.claude.json" && chmod 600 "${HOME}/.claude.json"'


def matches_stale_prefix(container_name: str, prefix: str) -> bool:
    """
    Check whether a container belongs to the given project prefix.

    Container names reported by Docker carry a leading ``/``.

    Args:
        container_name: Name as listed by Docker, e.g. ``/bubble-app-mysql``
        prefix: Project prefix, e.g. ``bubble-app``

    Returns:
        True if the name is exactly ``/prefix`` or starts with ``/prefix-``
    """
    rooted = f"/{prefix}"
    return container_name == rooted or container_name.startswith(f"{rooted}-")


@dataclass
class ContainerOpts:
    """Options for creating the dev container."""

    image_tag: str
    container_name: str
    shell: str
    project_dir: str
    env_vars: List[str] = field(default_factory=list)
    network: Optional[str] = None
    extra_binds: List[str] = field(default_factory=list)


class ContainerManager:
    """Manager for dev and service container lifecycle operations."""

    def __init__(
        self,
        docker_client: DockerClient | None = None,
        settings: Settings | None = None,
    ) -> None:
        """
        Initialize container manager.

        Args:
            docker_client: Docker client (defaults to the global client)
            settings: Resolved settings (defaults to the cached settings)
        """
        self.settings = settings or get_settings()
        self.docker_client: DockerClient = docker_client or get_docker_client()

    # ------------------------------------------------------------------
    # Engine API operations
    # ------------------------------------------------------------------

    async def _list_by_name(self, name: str) -> List[Dict]:
        try:
            return await asyncio.to_thread(
                self.docker_client.api.containers, all=True, filters={"name": name}
            )
        except DockerException as e:
            raise ContainerError(f"failed to list containers: {e}", e) from e

    async def _stop_quietly(self, container_id: str) -> None:
        try:
            await asyncio.to_thread(
                self.docker_client.api.stop, container_id, timeout=self.settings.stop_timeout_s
            )
        except DockerException as e:
            logger.debug(
                "Stop failed, container may already be stopped",
                extra={"container_id": container_id, "error": str(e)},
            )

    async def _force_remove(self, container_id: str) -> None:
        await asyncio.to_thread(self.docker_client.api.remove_container, container_id, force=True)

    async def _discard_unstarted(self, container_id: str) -> None:
        try:
            await self._force_remove(container_id)
        except DockerException as e:
            logger.warning(
                "Failed to remove container that did not start",
                extra={"container_id": container_id, "error": str(e)},
            )

    async def cleanup_existing(self, name: str) -> None:
        """
        Stop and remove any container with exactly this name.

        Args:
            name: Container name (without the leading ``/``)

        Raises:
            ContainerError: If listing or removal fails
        """
        exact_name = f"/{name}"
        for container in await self._list_by_name(name):
            if exact_name not in (container.get("Names") or []):
                continue

            container_id = container["Id"]
            logger.warning(
                "Removing existing container",
                extra={"container_name": name, "container_id": container_id},
            )
            await self._stop_quietly(container_id)
            try:
                await self._force_remove(container_id)
            except DockerException as e:
                raise ContainerError(f"failed to remove existing container {name}: {e}", e) from e

    async def cleanup_stale(self, prefix: str) -> int:
        """
        Remove dev and service containers left behind by crashed sessions.

        Args:
            prefix: Project prefix, e.g. ``bubble-myproject``

        Returns:
            Number of containers removed

        Raises:
            ContainerError: If containers cannot be listed
        """
        removed = 0
        for container in await self._list_by_name(prefix):
            names = container.get("Names") or []
            if not any(matches_stale_prefix(n, prefix) for n in names):
                continue

            container_id = container["Id"]
            name = names[0] if names else "unknown"
            logger.warning(
                "Removing stale container from previous session",
                extra={"container_name": name, "container_id": container_id},
            )
            await self._stop_quietly(container_id)
            try:
                await self._force_remove(container_id)
                removed += 1
            except DockerException as e:
                logger.warning(
                    "Failed to remove stale container",
                    extra={"container_name": name, "container_id": container_id, "error": str(e)},
                )

        return removed

    async def create_and_start(self, opts: ContainerOpts) -> str:
        """
        Create and start the dev container.

        The container runs ``sleep infinity`` as the invoking host user with
        the project directory bound at ``/workspace``.

        Args:
            opts: Container options

        Returns:
            Docker container ID

        Raises:
            ContainerError: If creation or start fails
        """
        api = self.docker_client.api
        binds = [f"{opts.project_dir}:{WORKSPACE_PATH}", *opts.extra_binds]

        host_config = api.create_host_config(binds=binds, network_mode=opts.network)
        networking_config = None
        if opts.network:
            # The container's own name doubles as its DNS alias on the network
            networking_config = api.create_networking_config(
                {opts.network: api.create_endpoint_config(aliases=[opts.container_name])}
            )

        try:
            response = await asyncio.to_thread(
                api.create_container,
                image=opts.image_tag,
                command=KEEPALIVE_CMD,
                name=opts.container_name,
                user=f"{os.getuid()}:{os.getgid()}",
                working_dir=WORKSPACE_PATH,
                environment=opts.env_vars or None,
                host_config=host_config,
                networking_config=networking_config,
            )
        except DockerException as e:
            raise ContainerError(f"failed to create container {opts.container_name}: {e}", e) from e

        container_id = response["Id"]
        logger.info(
            "Container created",
            extra={"container_id": container_id, "container_name": opts.container_name},
        )

        try:
            await asyncio.to_thread(api.start, container_id)
        except DockerException as e:
            await self._discard_unstarted(container_id)
            raise ContainerError(f"failed to start container {opts.container_name}: {e}", e) from e

        logger.info("Container started", extra={"container_id": container_id})
        return container_id

    async def stop_and_remove(self, container_id: str) -> None:
        """
        Stop a container with the grace timeout, then force-remove it.

        Args:
            container_id: Docker container ID

        Raises:
            ContainerError: If removal fails (stop failures are tolerated)
        """
        logger.info("Stopping container", extra={"container_id": container_id})
        await self._stop_quietly(container_id)
        try:
            await self._force_remove(container_id)
        except DockerException as e:
            raise ContainerError(f"failed to remove container {container_id}: {e}", e) from e
        logger.info("Container removed", extra={"container_id": container_id})

    async def start_service(self, service: Service, network: str) -> str:
        """
        Start a backing-service container on the session network.

        Any same-named container is removed first. The service is reachable
        on the network under its short name.

        Args:
            service: Service descriptor
            network: Session network name

        Returns:
            Docker container ID

        Raises:
            ContainerError: If the container cannot be replaced, created or started
        """
        api = self.docker_client.api
        container_name = service.container_name

        await self.cleanup_existing(container_name)

        mounts = None
        volume = service.volume()
        if volume is not None:
            mounts = [Mount(target=volume.target, source=volume.source, type="volume")]

        host_config = api.create_host_config(network_mode=network, mounts=mounts)
        networking_config = api.create_networking_config(
            {network: api.create_endpoint_config(aliases=[service.name])}
        )

        try:
            response = await asyncio.to_thread(
                api.create_container,
                image=service.image,
                name=container_name,
                environment=service.container_env() or None,
                host_config=host_config,
                networking_config=networking_config,
            )
        except DockerException as e:
            raise ContainerError(f"failed to create {service.name} container: {e}", e) from e

        container_id = response["Id"]
        logger.info(
            "Service container created",
            extra={"service": service.name, "container_id": container_id},
        )

        try:
            await asyncio.to_thread(api.start, container_id)
        except DockerException as e:
            await self._discard_unstarted(container_id)
            raise ContainerError(f"failed to start {service.name} container: {e}", e) from e

        logger.info(
            "Service container started",
            extra={"service": service.name, "container_id": container_id},
        )
        return container_id

    async def wait_for_ready(
        self,
        container_id: str,
        service: Service,
        max_attempts: int | None = None,
        interval_s: float | None = None,
    ) -> None:
        """
        Run the service's readiness probe until it succeeds.

        Probes run synchronously through the Docker CLI; the loop suspends
        only while sleeping between attempts.

        Args:
            container_id: Service container ID
            service: Service descriptor
            max_attempts: Maximum probes (defaults to settings)
            interval_s: Seconds between probes (defaults to settings)

        Raises:
            ServiceNotReadyError: If every attempt fails
        """
        if max_attempts is None:
            max_attempts = self.settings.readiness_attempts
        if interval_s is None:
            interval_s = self.settings.readiness_interval_s

        cmd = [self.settings.docker_cli, "exec", container_id, *service.readiness_cmd()]
        logger.info(
            "Waiting for service to be ready",
            extra={"service": service.name, "container_id": container_id},
        )

        for attempt in range(1, max_attempts + 1):
            if self._probe(cmd):
                logger.info("Service is ready", extra={"service": service.name, "attempt": attempt})
                return

            if attempt < max_attempts:
                logger.info(
                    "Service not ready, retrying",
                    extra={
                        "service": service.name,
                        "attempt": attempt,
                        "max_attempts": max_attempts,
                    },
                )
                await asyncio.sleep(interval_s)

        raise ServiceNotReadyError(service.name, max_attempts)

    @staticmethod
    def _probe(cmd: List[str]) -> bool:
        try:
            result = subprocess.run(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                check=False,
            )
        except OSError as e:
            logger.debug("Readiness probe could not be spawned", extra={"error": str(e)})
            return False
        return result.returncode == 0

    # ------------------------------------------------------------------
    # Docker CLI execs (blocking)
    # ------------------------------------------------------------------

    def _run_inherited(self, args: List[str]) -> int:
        try:
            result = subprocess.run(args, check=False)
        except OSError as e:
            raise ContainerError(f"failed to exec into container: {e}", e) from e
        # Negative return codes mean the CLI itself was killed by a signal
        return result.returncode if result.returncode >= 0 else 1

    def exec_interactive_shell(self, container_id: str, shell: str) -> int:
        """
        Open an interactive TTY shell in the container.

        Blocks until the shell exits; stdio is inherited from this process.

        Args:
            container_id: Docker container ID
            shell: Shell binary, e.g. ``zsh``

        Returns:
            Exit code of the shell (1 if it cannot be determined)
        """
        logger.info("Launching interactive shell", extra={"container_id": container_id, "shell": shell})
        return self._run_inherited([self.settings.docker_cli, "exec", "-it", container_id, shell])

    def exec_interactive_command(self, container_id: str, cmd: List[str]) -> int:
        """
        Run a command in the container with a TTY attached.

        Args:
            container_id: Docker container ID
            cmd: Command and arguments

        Returns:
            Exit code of the command (1 if it cannot be determined)
        """
        logger.info("Launching interactive command", extra={"container_id": container_id, "cmd": cmd})
        return self._run_inherited([self.settings.docker_cli, "exec", "-it", container_id, *cmd])

    def exec_command(self, container_id: str, cmd: List[str]) -> int:
        """
        Run a command in the container without a TTY.

        Args:
            container_id: Docker container ID
            cmd: Command and arguments

        Returns:
            Exit code of the command (1 if it cannot be determined)
        """
        logger.info("Running command", extra={"container_id": container_id, "cmd": cmd})
        return self._run_inherited([self.settings.docker_cli, "exec", container_id, *cmd])

    def write_credentials(self, container_id: str, credentials: str) -> None:
        """
        Write the OAuth credentials file inside the container.

        The secret is piped over stdin so it never shows up in process listings.

        Args:
            container_id: Docker container ID
            credentials: Credentials file content

        Raises:
            CredentialsError: If the write fails
        """
        self._pipe_to_container(container_id, CREDENTIALS_SCRIPT, credentials)
        logger.info("OAuth credentials written", extra={"container_id": container_id})

    def write_claude_config(self, container_id: str, config: str) -> None:
        """
        Write ``~/.claude.json`` inside the container over stdin.

        Args:
            container_id: Docker container ID
            config: JSON document for the Claude Code user config

        Raises:
            CredentialsError: If the write fails
        """
        self._pipe_to_container(container_id, CLAUDE_CONFIG_SCRIPT, config)
        logger.info("Claude Code config written", extra={"container_id": container_id})

    def _pipe_to_container(self, container_id: str, script: str, content: str) -> None:
        args = [self.settings.docker_cli, "exec", "-i", container_id, "sh", "-c", script]
        try:
            result = subprocess.run(
                args,
                input=content.encode("utf-8"),
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                check=False,
            )
        except OSError as e:
            raise CredentialsError(container_id, str(e)) from e

        if result.returncode != 0:
            stderr = (result.stderr or b"").decode("utf-8", errors="replace").strip()
            raise CredentialsError(container_id, stderr or f"exit code {result.returncode}")
