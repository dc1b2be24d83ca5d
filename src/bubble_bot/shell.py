"""Shell detection and dotfile mounts for the dev container."""

import os
from pathlib import Path
from typing import List, Optional

from bubble_bot.utils import get_logger

logger = get_logger(__name__)

DEV_HOME = "/home/dev"
DEFAULT_SHELL = "bash"

DOTFILES = (
    ".zshrc",
    ".bashrc",
    ".bash_profile",
    ".profile",
    ".aliases",
    ".inputrc",
    ".vimrc",
    ".gitconfig",
    ".tmux.conf",
)


def detect_shell() -> str:
    """Base name of the host ``$SHELL``, or ``bash`` if unset."""
    shell = os.environ.get("SHELL")
    if not shell:
        return DEFAULT_SHELL
    return Path(shell).name or DEFAULT_SHELL


def resolve_shell(config_shell: Optional[str] = None) -> str:
    """Configured shell if set, otherwise the detected one."""
    return config_shell or detect_shell()


def collect_dotfile_mounts(home: Optional[Path] = None) -> List[str]:
    """
    Read-only bind mounts for the dotfiles present on the host.

    Args:
        home: Host home directory (defaults to the current user's)

    Returns:
        Bind strings of the form ``<host path>:/home/dev/<name>:ro``
    """
    try:
        home = home if home is not None else Path.home()
    except RuntimeError:
        logger.debug("Could not determine home directory, skipping dotfile mounts")
        return []

    mounts = []
    for dotfile in DOTFILES:
        host_path = home / dotfile
        if host_path.exists():
            logger.debug("Mounting dotfile", extra={"dotfile": dotfile})
            mounts.append(f"{host_path}:{DEV_HOME}/{dotfile}:ro")
    return mounts
