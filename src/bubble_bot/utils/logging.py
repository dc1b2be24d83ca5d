"""Logging utilities for bubble-bot."""

import logging
import sys

from pythonjsonlogger import jsonlogger

# Third-party loggers that are only useful when debugging
NOISY_LOGGERS = ("docker", "urllib3")

_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime", "taskName"}


class KeyValueFormatter(logging.Formatter):
    """Text formatter that appends ``extra`` fields as ``key=value`` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = [
            f"{key}={value}"
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        ]
        if extras:
            line = f"{line} ({', '.join(extras)})"
        return line


def setup_logging(log_level: str = "INFO", log_format: str = "text") -> None:
    """
    Setup logging for the CLI.

    Logs go to stderr so they never interleave with the output of the
    command running inside the dev container. Calling this again replaces
    the previous handler.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Format type (json or text)
    """
    level = getattr(logging, log_level.upper())
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    if log_format.lower() == "json":
        formatter: logging.Formatter = jsonlogger.JsonFormatter(
            "%(levelname)s %(name)s %(message)s",
            rename_fields={"levelname": "level"},
            timestamp=True,
        )
    else:
        formatter = KeyValueFormatter("bubble-bot: %(levelname)s: %(message)s")

    handler.setFormatter(formatter)
    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if level <= logging.DEBUG else logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for the given name."""
    return logging.getLogger(name)
