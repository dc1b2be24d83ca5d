"""Best-effort lifecycle hooks executed inside the dev container."""

import subprocess
from typing import List

from bubble_bot.config import HookConfig, Settings, get_settings
from bubble_bot.utils import get_logger

logger = get_logger(__name__)


class HookRunner:
    """Runs post_start and pre_stop hook commands in a container.

    Hook failures are logged and never raised; a failing command does not
    stop the ones after it.
    """

    def __init__(
        self,
        container_id: str,
        hooks: HookConfig,
        settings: Settings | None = None,
    ) -> None:
        self.container_id = container_id
        self.hooks = hooks
        self.settings = settings or get_settings()

    def run_post_start(self) -> None:
        """Run post_start hooks in declared order."""
        self._run_hooks("post_start", self.hooks.post_start)

    def run_pre_stop(self) -> None:
        """Run pre_stop hooks in declared order."""
        self._run_hooks("pre_stop", self.hooks.pre_stop)

    def _run_hooks(self, phase: str, commands: List[str]) -> None:
        for cmd in commands:
            logger.info("Running hook", extra={"phase": phase, "cmd": cmd})
            args = [self.settings.docker_cli, "exec", self.container_id, "sh", "-c", cmd]
            try:
                result = subprocess.run(args, stdin=subprocess.DEVNULL, check=False)
            except OSError as e:
                logger.warning(
                    "Hook could not be started",
                    extra={"phase": phase, "cmd": cmd, "error": str(e)},
                )
                continue

            if result.returncode == 0:
                logger.info("Hook succeeded", extra={"phase": phase, "cmd": cmd})
            else:
                logger.warning(
                    "Hook failed",
                    extra={"phase": phase, "cmd": cmd, "exit_code": result.returncode},
                )
