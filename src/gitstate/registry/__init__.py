"""Repository discovery, lifetime management and metadata watching."""

from gitstate.registry.discovery import discover_repositories, is_repository_root
from gitstate.registry.registry import RepositoryRegistry
from gitstate.registry.watcher import PollingWatcher

__all__ = [
    "PollingWatcher",
    "RepositoryRegistry",
    "discover_repositories",
    "is_repository_root",
]
