"""Language runtimes layered into the dev image."""

from dataclasses import dataclass
from typing import List, Optional

from bubble_bot.config import RuntimeConfig


@dataclass(frozen=True)
class Runtime:
    """A runtime layer and the version it installs."""

    name: str
    version: Optional[str] = None

    @property
    def template(self) -> str:
        """Template file holding this runtime's Dockerfile fragment."""
        return f"{self.name}.dockerfile"


def collect_runtimes(config: RuntimeConfig) -> List[Runtime]:
    """
    Runtimes enabled in the configuration, in fixed layering order.

    The order is part of the rendered Dockerfile, and therefore of the image tag.

    Args:
        config: Resolved runtime configuration

    Returns:
        Runtimes ordered php, node, rust, go
    """
    runtimes: List[Runtime] = []
    if config.php:
        runtimes.append(Runtime("php", config.php))
    if config.node:
        runtimes.append(Runtime("node", config.node))
    if config.rust:
        runtimes.append(Runtime("rust"))
    if config.go:
        runtimes.append(Runtime("go", config.go))
    return runtimes
