"""OAuth token discovery for Claude Code inside the dev container."""

import json
import os
import subprocess
import sys
from pathlib import Path

from bubble_bot.utils import get_logger

logger = get_logger(__name__)

TOKEN_ENV_VAR = "CLAUDE_CODE_OAUTH_TOKEN"
KEYCHAIN_SERVICE = "Claude Code-credentials"
KEYCHAIN_ACCOUNT = "oauth_token"
CLAUDE_CONFIG_FILE = ".claude.json"
CLAUDE_THEME = "dark-daltonized"


def resolve_oauth_token() -> str | None:
    """
    Find the Claude Code OAuth token on the host.

    Checks the ``CLAUDE_CODE_OAUTH_TOKEN`` environment variable first, then
    the macOS Keychain. A missing token is not an error.

    Returns:
        Token string, or None when none is available
    """
    token = os.environ.get(TOKEN_ENV_VAR)
    if token:
        logger.info("OAuth token found in environment variable")
        return token

    if sys.platform == "darwin":
        token = _keychain_token()
        if token:
            return token

    logger.warning(
        "No OAuth token found; Claude Code authentication may fail inside the container"
    )
    return None


def _keychain_token() -> str | None:
    try:
        result = subprocess.run(
            [
                "security",
                "find-generic-password",
                "-s",
                KEYCHAIN_SERVICE,
                "-a",
                KEYCHAIN_ACCOUNT,
                "-w",
            ],
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as e:
        logger.warning("Keychain lookup could not be started", extra={"error": str(e)})
        return None

    if result.returncode != 0:
        logger.warning(
            "Keychain lookup failed (normal if not configured)",
            extra={"exit_code": result.returncode},
        )
        return None

    token = result.stdout.strip()
    if not token:
        logger.warning("Keychain entry found but token is empty")
        return None

    logger.info("OAuth token extracted from macOS Keychain")
    return token


def build_credentials_json(token: str) -> str:
    """
    Render the credentials file Claude Code reads from ``~/.claude``.

    Args:
        token: OAuth token

    Returns:
        JSON document
    """
    return json.dumps({"claudeAiOauth": {"token": token}})


def build_claude_config_json(home: Path | None = None) -> str:
    """
    Render the ``~/.claude.json`` user config for the dev container.

    Onboarding is marked complete so Claude Code starts without the
    first-run prompts. The host's ``oauthAccount`` entry is carried over
    when the host file has one; a missing or malformed host file only
    drops that entry.

    Args:
        home: Host home directory (defaults to the current user's)

    Returns:
        JSON document
    """
    config = {"hasCompletedOnboarding": True, "theme": CLAUDE_THEME}

    path = (home if home is not None else Path.home()) / CLAUDE_CONFIG_FILE
    try:
        contents = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return json.dumps(config)

    try:
        host_config = json.loads(contents)
    except json.JSONDecodeError:
        host_config = None
    if not isinstance(host_config, dict):
        logger.warning("Host Claude config is not a JSON object", extra={"path": str(path)})
        return json.dumps(config)

    if "oauthAccount" in host_config:
        config["oauthAccount"] = host_config["oauthAccount"]
        logger.info("oauthAccount copied from host Claude config")
    return json.dumps(config)
