"""Deterministic resource names derived from the project directory."""

from pathlib import Path
from typing import Optional

RESOURCE_PREFIX = "bubble"
IMAGE_REPOSITORY = "bubble"


def project_name(cwd: Optional[Path] = None) -> str:
    """
    Project identity used in every resource name.

    Args:
        cwd: Directory to derive the name from (defaults to the current one)

    Returns:
        Base name of the directory, or "project" if it has none
    """
    path = cwd if cwd is not None else Path.cwd()
    return path.name or "project"


def resource_prefix(project: str) -> str:
    """Prefix shared by all containers and networks of a project."""
    return f"{RESOURCE_PREFIX}-{project}"


def default_container_name(project: str) -> str:
    """Default dev container name."""
    return resource_prefix(project)


def default_network_name(project: str) -> str:
    """Default session network name, matching the container convention."""
    return resource_prefix(project)


def service_container_name(project: str, service: str) -> str:
    """Name of a backing-service container."""
    return f"{resource_prefix(project)}-{service}"


def service_volume_name(project: str, service: str) -> str:
    """Name of the named volume backing a service's data directory."""
    return f"{resource_prefix(project)}-{service}-data"
