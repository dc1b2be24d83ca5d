"""Test configuration and fixtures."""

import os
from unittest.mock import MagicMock

import docker
import pytest
from docker.errors import DockerException

from bubble_bot.config import Settings


@pytest.fixture
def isolated_env(tmp_path, monkeypatch):
    """Run from an empty project directory with no config layers in scope."""
    project_dir = tmp_path / "myapp"
    project_dir.mkdir()
    monkeypatch.chdir(project_dir)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    for key in list(os.environ):
        if key.startswith("BUBBLE_"):
            monkeypatch.delenv(key)
    monkeypatch.delenv("CLAUDE_CODE_OAUTH_TOKEN", raising=False)
    monkeypatch.setattr("bubble_bot.auth._keychain_token", lambda: None)
    return project_dir


@pytest.fixture
def settings(isolated_env):
    """Settings with a short readiness budget."""
    return Settings(readiness_attempts=3, readiness_interval_s=0)


@pytest.fixture
def mock_docker_client():
    """Create a mock Docker client."""
    return MagicMock()


@pytest.fixture(scope="session")
def docker_available():
    """Check if Docker daemon is available."""
    try:
        client = docker.from_env()
        client.ping()
        client.close()
        return True
    except DockerException:
        return False


@pytest.fixture
def require_docker(docker_available):
    """Skip test if Docker is not available."""
    if not docker_available:
        pytest.skip("Docker daemon not available - skipping integration test")
