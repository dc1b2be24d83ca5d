"""Manager modules for container orchestration."""

from .cleaner import Cleaner, CleanReport
from .cleanup_coordinator import SessionCleanupCoordinator
from .container_manager import ContainerManager, ContainerOpts, matches_stale_prefix
from .hook_runner import HookRunner
from .image_builder import BuildResult, ImageBuilder
from .network_manager import NetworkManager, matches_network_prefix

__all__ = [
    "BuildResult",
    "CleanReport",
    "Cleaner",
    "ContainerManager",
    "ContainerOpts",
    "HookRunner",
    "ImageBuilder",
    "NetworkManager",
    "SessionCleanupCoordinator",
    "matches_network_prefix",
    "matches_stale_prefix",
]
