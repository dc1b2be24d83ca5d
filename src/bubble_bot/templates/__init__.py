"""Dockerfile template rendering."""

from dataclasses import dataclass, field
from importlib import resources
from typing import List

from jinja2 import Environment, PackageLoader, StrictUndefined

from bubble_bot.config import Settings
from bubble_bot.models.runtimes import collect_runtimes

ENTRYPOINT_TEMPLATE = "entrypoint.sh"


@dataclass(frozen=True)
class ContextFile:
    """Extra file shipped in the image build context."""

    path: str
    content: bytes
    mode: int = 0o644


@dataclass
class RenderResult:
    """Rendered Dockerfile plus the context files it references."""

    dockerfile: str
    context_files: List[ContextFile] = field(default_factory=list)


class TemplateRenderer:
    """Composes the dev image Dockerfile from the base template and runtime layers."""

    def __init__(self) -> None:
        self.env = Environment(
            loader=PackageLoader("bubble_bot", "templates"),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            autoescape=False,
        )

    def render(
        self, settings: Settings, claude: bool = False, chief: bool = False
    ) -> RenderResult:
        """
        Render the Dockerfile for the given settings.

        Args:
            settings: Resolved settings (runtimes are read from it)
            claude: Whether to add the Claude Code layer
            chief: Whether to add the Chief layer (implies Claude Code)

        Returns:
            RenderResult with the Dockerfile text and the entrypoint script
        """
        template = self.env.get_template("base.dockerfile")
        dockerfile = template.render(
            runtimes=collect_runtimes(settings.runtimes),
            claude=claude or chief,
            chief=chief,
        )
        entrypoint = (
            resources.files("bubble_bot.templates").joinpath(ENTRYPOINT_TEMPLATE).read_bytes()
        )
        return RenderResult(
            dockerfile=dockerfile,
            context_files=[ContextFile(ENTRYPOINT_TEMPLATE, entrypoint, 0o755)],
        )
