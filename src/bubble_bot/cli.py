"""Command-line interface for bubble-bot."""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import click

from bubble_bot import __version__
from bubble_bot.config import Settings, load_settings
from bubble_bot.managers.cleaner import Cleaner
from bubble_bot.managers.image_builder import ImageBuilder
from bubble_bot.session import (
    build_image,
    chief_command,
    claude_command,
    plan_session,
    run_session,
)
from bubble_bot.templates import TemplateRenderer
from bubble_bot.utils import get_logger, setup_logging
from bubble_bot.utils.docker_client import close_docker_client, get_docker_client
from bubble_bot.utils.exceptions import BubbleError, format_cause_chain

logger = get_logger(__name__)

PASSTHROUGH_CONTEXT = {"ignore_unknown_options": True, "allow_interspersed_args": False}


@dataclass
class CliState:
    """Options shared by every subcommand."""

    overrides: Dict[str, Any] = field(default_factory=dict)
    no_cache: bool = False
    dry_run: bool = False
    _settings: Optional[Settings] = None

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = load_settings(**self.overrides)
            setup_logging(self._settings.log_level, self._settings.log_format)
        return self._settings


def build_overrides(
    php: Optional[str] = None,
    node: Optional[str] = None,
    rust: bool = False,
    go: Optional[str] = None,
    mysql: Optional[str] = None,
    redis: bool = False,
    postgres: Optional[str] = None,
    network: Optional[str] = None,
    name: Optional[str] = None,
    shell: Optional[str] = None,
    sweep: bool = False,
) -> Dict[str, Any]:
    """
    Translate command-line flags into nested settings overrides.

    Only flags that were given appear in the result, so lower-priority
    layers keep their values for everything else. ``mysql`` and
    ``postgres`` may be an empty string, meaning "enable with the
    configured or default version".

    Returns:
        Keyword arguments for ``load_settings``
    """
    runtimes: Dict[str, Any] = {}
    if php is not None:
        runtimes["php"] = php
    if node is not None:
        runtimes["node"] = node
    if rust:
        runtimes["rust"] = True
    if go is not None:
        runtimes["go"] = go

    services: Dict[str, Any] = {}
    if mysql is not None:
        services["mysql"] = {"version": mysql} if mysql else {}
    if postgres is not None:
        services["postgres"] = {"version": postgres} if postgres else {}
    if redis:
        services["redis"] = True

    container = {
        key: value
        for key, value in (("network", network), ("name", name), ("shell", shell))
        if value is not None
    }

    overrides: Dict[str, Any] = {}
    for key, value in (("runtimes", runtimes), ("services", services), ("container", container)):
        if value:
            overrides[key] = value
    if sweep:
        overrides["sweep_stale"] = True
    return overrides


def _fail(error: BubbleError) -> None:
    logger.debug("Command failed", exc_info=error)
    click.echo(f"error: {format_cause_chain(error)}", err=True)
    raise click.exceptions.Exit(1)


def _run_session_command(
    state: CliState,
    command: Optional[List[str]],
    tty: bool = True,
    claude: bool = False,
    chief: bool = False,
) -> None:
    try:
        settings = state.settings
        if state.dry_run:
            plan = plan_session(settings, command, tty=tty, claude=claude, chief=chief)
            click.echo(plan.model_dump_json(indent=2))
            return
        exit_code = asyncio.run(
            run_session(
                settings,
                command,
                tty=tty,
                claude=claude,
                chief=chief,
                no_cache=state.no_cache,
            )
        )
    except BubbleError as e:
        _fail(e)
    finally:
        close_docker_client()

    raise click.exceptions.Exit(exit_code)


@click.group(invoke_without_command=True)
@click.version_option(__version__, prog_name="bubble-bot")
@click.option("--with-php", "php", metavar="VERSION", help="Include PHP runtime (8.1, 8.2, 8.3)")
@click.option("--with-node", "node", metavar="VERSION", help="Include Node.js runtime (18, 20, 22)")
@click.option("--with-rust", "rust", is_flag=True, help="Include Rust toolchain")
@click.option("--with-go", "go", metavar="VERSION", help="Include Go runtime (1.22, 1.23)")
@click.option(
    "--with-mysql",
    "mysql",
    is_flag=False,
    flag_value="",
    default=None,
    metavar="[VERSION]",
    help="Start a MySQL service container",
)
@click.option("--with-redis", "redis", is_flag=True, help="Start a Redis service container")
@click.option(
    "--with-postgres",
    "postgres",
    is_flag=False,
    flag_value="",
    default=None,
    metavar="[VERSION]",
    help="Start a PostgreSQL service container",
)
@click.option("--network", help="Docker network name")
@click.option("--name", help="Dev container name")
@click.option("--shell", help="Shell to use inside the container")
@click.option(
    "--sweep",
    is_flag=True,
    help="Remove this project's containers left behind by a crashed session",
)
@click.option("--no-cache", is_flag=True, help="Force an image rebuild")
@click.option("--dry-run", is_flag=True, help="Show what would be run without executing")
@click.pass_context
def cli(
    ctx: click.Context,
    php: Optional[str],
    node: Optional[str],
    rust: bool,
    go: Optional[str],
    mysql: Optional[str],
    redis: bool,
    postgres: Optional[str],
    network: Optional[str],
    name: Optional[str],
    shell: Optional[str],
    sweep: bool,
    no_cache: bool,
    dry_run: bool,
) -> None:
    """Ephemeral Docker dev containers."""
    ctx.obj = CliState(
        overrides=build_overrides(
            php=php,
            node=node,
            rust=rust,
            go=go,
            mysql=mysql,
            redis=redis,
            postgres=postgres,
            network=network,
            name=name,
            shell=shell,
            sweep=sweep,
        ),
        no_cache=no_cache,
        dry_run=dry_run,
    )

    if ctx.invoked_subcommand is None:
        _run_session_command(ctx.obj, None)


@cli.command()
@click.pass_obj
def shell(state: CliState) -> None:
    """Open an interactive shell in the container (default)."""
    _run_session_command(state, None)


@cli.command(context_settings=PASSTHROUGH_CONTEXT)
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.pass_obj
def claude(state: CliState, args: tuple[str, ...]) -> None:
    """Run Claude Code inside the container."""
    _run_session_command(state, claude_command(list(args)), claude=True)


@cli.command(context_settings=PASSTHROUGH_CONTEXT)
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.pass_obj
def chief(state: CliState, args: tuple[str, ...]) -> None:
    """Run Chief (autonomous Claude Code task runner) inside the container."""
    _run_session_command(state, chief_command(list(args)), chief=True)


@cli.command("exec", context_settings=PASSTHROUGH_CONTEXT)
@click.argument("cmd", nargs=-1, required=True, type=click.UNPROCESSED)
@click.pass_obj
def exec_(state: CliState, cmd: tuple[str, ...]) -> None:
    """Run a command inside the container and exit."""
    _run_session_command(state, list(cmd), tty=False)


@cli.command()
@click.pass_obj
def build(state: CliState) -> None:
    """Build the container image without starting a container."""
    try:
        settings = state.settings
        if state.dry_run:
            render = TemplateRenderer().render(settings)
            click.echo(ImageBuilder.compute_tag(render.dockerfile))
            return
        result = asyncio.run(build_image(settings, no_cache=state.no_cache))
    except BubbleError as e:
        _fail(e)
    finally:
        close_docker_client()

    status = "cached" if result.cached else "built"
    click.echo(f"{result.tag} ({status})")


@cli.command()
@click.pass_obj
def config(state: CliState) -> None:
    """Show the resolved configuration."""
    try:
        settings = state.settings
    except BubbleError as e:
        _fail(e)
    click.echo(settings.model_dump_json(indent=2))


@cli.command()
@click.option("--volumes", is_flag=True, help="Also remove named volumes")
@click.option(
    "--containers", is_flag=True, help="Also remove every bubble-bot container, including running ones"
)
@click.pass_obj
def clean(state: CliState, volumes: bool, containers: bool) -> None:
    """Remove bubble-bot images and networks, optionally containers and volumes."""
    if state.dry_run:
        raise click.UsageError("--dry-run is not supported by clean")

    try:
        cleaner = Cleaner(get_docker_client(state.settings), state.settings)
        report = asyncio.run(
            cleaner.clean(remove_volumes=volumes, remove_containers=containers)
        )
    except BubbleError as e:
        _fail(e)
    finally:
        close_docker_client()

    click.echo(report.render())


def main() -> None:
    """Console script entry point."""
    cli(prog_name="bubble-bot")
