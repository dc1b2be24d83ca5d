"""Session orchestration: build, provision, exec, tear down."""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from pydantic import BaseModel, Field

from bubble_bot.auth import (
    TOKEN_ENV_VAR,
    build_claude_config_json,
    build_credentials_json,
    resolve_oauth_token,
)
from bubble_bot.config import Settings
from bubble_bot.managers.cleanup_coordinator import SessionCleanupCoordinator
from bubble_bot.managers.container_manager import ContainerManager, ContainerOpts
from bubble_bot.managers.hook_runner import HookRunner
from bubble_bot.managers.image_builder import BuildResult, ImageBuilder
from bubble_bot.managers.network_manager import NetworkManager
from bubble_bot.models.naming import (
    default_container_name,
    default_network_name,
    project_name,
    service_container_name,
)
from bubble_bot.models.services import (
    SERVICE_NAMES,
    Service,
    collect_service_env_vars,
    collect_services,
)
from bubble_bot.shell import collect_dotfile_mounts, resolve_shell
from bubble_bot.templates import RenderResult, TemplateRenderer
from bubble_bot.utils import get_logger
from bubble_bot.utils.docker_client import get_docker_client

logger = get_logger(__name__)

CLAUDE_COMMAND = ["claude", "--permission-mode", "bypassPermissions"]
CHIEF_COMMAND = ["chief"]


class SessionPlan(BaseModel):
    """Everything a session will create, resolved before touching Docker."""

    project: str = Field(..., description="Project identity")
    project_dir: str = Field(..., description="Host directory mounted at /workspace")
    image_tag: str = Field(..., description="Content-addressed image tag")
    container_name: str = Field(..., description="Dev container name")
    network: str = Field(..., description="Session network name")
    shell: str = Field(..., description="Interactive shell")
    command: List[str] = Field(default_factory=list, description="Command to exec (empty for shell)")
    tty: bool = Field(default=True, description="Attach a TTY to the exec")
    services: List[str] = Field(default_factory=list, description="Service container names")
    env_keys: List[str] = Field(default_factory=list, description="Dev container env variable names")
    mounts: List[str] = Field(default_factory=list, description="Extra bind mounts")


@dataclass
class _PreparedSession:
    plan: SessionPlan
    render: RenderResult
    services: List[Service]
    env_vars: List[str]
    token: Optional[str]
    claude_config: Optional[str]


def claude_command(args: List[str]) -> List[str]:
    """Claude Code invocation with permission prompts disabled."""
    return [*CLAUDE_COMMAND, *args]


def chief_command(args: List[str]) -> List[str]:
    """Chief invocation with the given arguments."""
    return [*CHIEF_COMMAND, *args]


def _prepare(
    settings: Settings,
    command: Optional[List[str]],
    tty: bool,
    claude: bool,
    cwd: Optional[Path] = None,
    chief: bool = False,
) -> _PreparedSession:
    project_dir = cwd if cwd is not None else Path.cwd()
    project = project_name(project_dir)

    render = TemplateRenderer().render(settings, claude=claude, chief=chief)
    services = collect_services(settings.services, project)

    token = resolve_oauth_token()
    env_vars = [f"{TOKEN_ENV_VAR}={token}"] if token else []
    env_vars.extend(collect_service_env_vars(services))

    mounts = collect_dotfile_mounts() if settings.shell.mount_configs else []

    plan = SessionPlan(
        project=project,
        project_dir=str(project_dir),
        image_tag=ImageBuilder.compute_tag(render.dockerfile),
        container_name=settings.container.name or default_container_name(project),
        network=settings.container.network or default_network_name(project),
        shell=resolve_shell(settings.container.shell),
        command=list(command or []),
        tty=tty,
        services=[service.container_name for service in services],
        env_keys=[entry.split("=", 1)[0] for entry in env_vars],
        mounts=mounts,
    )
    claude_config = build_claude_config_json() if claude or chief else None
    return _PreparedSession(plan, render, services, env_vars, token, claude_config)


def plan_session(
    settings: Settings,
    command: Optional[List[str]] = None,
    tty: bool = True,
    claude: bool = False,
    cwd: Optional[Path] = None,
    chief: bool = False,
) -> SessionPlan:
    """
    Resolve a session without creating anything.

    Args:
        settings: Resolved settings
        command: Command to exec (None for an interactive shell)
        tty: Attach a TTY to the exec
        claude: Include the Claude Code layer
        cwd: Project directory (defaults to the current one)
        chief: Include the Chief layer

    Returns:
        SessionPlan describing the resources the session would create
    """
    return _prepare(settings, command, tty, claude, cwd, chief).plan


async def build_image(
    settings: Settings,
    claude: bool = False,
    no_cache: bool = False,
    chief: bool = False,
) -> BuildResult:
    """
    Build the dev image for the current configuration, or reuse it.

    Args:
        settings: Resolved settings
        claude: Include the Claude Code layer
        no_cache: Rebuild even if the tag exists
        chief: Include the Chief layer

    Returns:
        BuildResult with the tag and cache flag
    """
    docker_client = get_docker_client(settings)
    render = TemplateRenderer().render(settings, claude=claude, chief=chief)
    result = await ImageBuilder(docker_client).build(
        render.dockerfile, render.context_files, force_rebuild=no_cache
    )
    logger.info("Image ready", extra={"tag": result.tag, "cached": result.cached})
    return result


async def run_session(
    settings: Settings,
    command: Optional[List[str]] = None,
    *,
    tty: bool = True,
    claude: bool = False,
    chief: bool = False,
    no_cache: bool = False,
    cwd: Optional[Path] = None,
    exit_func: Callable[[int], None] | None = None,
) -> int:
    """
    Run one ephemeral dev container session.

    Builds or reuses the image, starts services and the dev container on a
    session network, runs the interactive exec, then removes everything.
    Teardown runs even when setup fails; a SIGINT or SIGTERM triggers the
    same teardown and exits the process with ``128 + signum``.

    Args:
        settings: Resolved settings
        command: Command to exec (None for an interactive shell)
        tty: Attach a TTY to the exec
        claude: Include the Claude Code layer
        chief: Include the Chief layer
        no_cache: Rebuild the image even if the tag exists
        cwd: Project directory (defaults to the current one)
        exit_func: Process exit hook used by the signal path

    Returns:
        Exit code of the exec

    Raises:
        BubbleError: If any setup step fails
    """
    docker_client = get_docker_client(settings)
    prepared = _prepare(settings, command, tty, claude, cwd, chief)
    plan = prepared.plan

    build = await ImageBuilder(docker_client).build(
        prepared.render.dockerfile,
        prepared.render.context_files,
        force_rebuild=no_cache,
    )
    logger.info("Image ready", extra={"tag": build.tag, "cached": build.cached})

    container_manager = ContainerManager(docker_client, settings)
    network_manager = NetworkManager(docker_client)
    coordinator = SessionCleanupCoordinator(
        container_manager, network_manager, exit_func=exit_func
    )
    coordinator.arm()

    try:
        if settings.sweep_stale:
            await _sweep_stale(container_manager, plan)

        await network_manager.ensure_network(plan.network)
        await coordinator.register_network(plan.network)

        for service in prepared.services:
            service_id = await container_manager.start_service(service, plan.network)
            await coordinator.register_service(service_id)
            await container_manager.wait_for_ready(service_id, service)

        await container_manager.cleanup_existing(plan.container_name)
        container_id = await container_manager.create_and_start(
            ContainerOpts(
                image_tag=build.tag,
                container_name=plan.container_name,
                shell=plan.shell,
                project_dir=plan.project_dir,
                env_vars=prepared.env_vars,
                network=plan.network,
                extra_binds=plan.mounts,
            )
        )
        await coordinator.register_dev_container(container_id)

        if prepared.token:
            await asyncio.to_thread(
                container_manager.write_credentials,
                container_id,
                build_credentials_json(prepared.token),
            )
        if prepared.claude_config is not None:
            await asyncio.to_thread(
                container_manager.write_claude_config, container_id, prepared.claude_config
            )

        hooks = HookRunner(container_id, settings.hooks, settings)
        await asyncio.to_thread(hooks.run_post_start)
        exit_code = await asyncio.to_thread(_exec, container_manager, container_id, plan)
        await asyncio.to_thread(hooks.run_pre_stop)
    finally:
        # Signal handlers stay installed until teardown has finished
        await coordinator.teardown()
        await coordinator.disarm()

    logger.info("Session finished", extra={"exit_code": exit_code})
    return exit_code


async def _sweep_stale(container_manager: ContainerManager, plan: SessionPlan) -> None:
    names = [plan.container_name]
    names.extend(service_container_name(plan.project, service) for service in SERVICE_NAMES)
    for name in names:
        await container_manager.cleanup_existing(name)
    logger.info("Swept leftover containers of this project", extra={"names": names})


def _exec(container_manager: ContainerManager, container_id: str, plan: SessionPlan) -> int:
    if not plan.command:
        return container_manager.exec_interactive_shell(container_id, plan.shell)
    if plan.tty:
        return container_manager.exec_interactive_command(container_id, plan.command)
    return container_manager.exec_command(container_id, plan.command)

