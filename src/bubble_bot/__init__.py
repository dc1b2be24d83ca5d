"""bubble-bot: ephemeral Docker dev containers."""

__version__ = "0.1.0"
