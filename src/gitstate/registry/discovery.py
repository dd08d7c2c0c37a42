"""Find git working copies under a folder."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List

logger = logging.getLogger(__name__)


def is_repository_root(path: Path) -> bool:
    """True when *path* has a ``.git`` directory, or a ``.git`` file (worktrees, submodules)."""
    marker = path / ".git"
    return marker.is_dir() or marker.is_file()


def discover_repositories(
    folder: Path,
    max_depth: int = 1,
    ignored_folders: Iterable[str] = ("node_modules",),
) -> List[Path]:
    """Return candidate roots at or below *folder*, at most *max_depth* levels down.

    Hidden directories and anything named in *ignored_folders* are not
    descended into. Candidates come back in sorted, depth-first order.
    """
    folder = folder.expanduser()
    if not folder.is_dir():
        return []

    ignored = set(ignored_folders)
    found: List[Path] = []

    def _walk(directory: Path, depth: int) -> None:
        if is_repository_root(directory):
            found.append(directory)
        if depth >= max_depth:
            return
        try:
            children = sorted(directory.iterdir())
        except OSError as exc:
            logger.debug("Cannot list %s: %s", directory, exc)
            return
        for child in children:
            if child.name.startswith(".") or child.name in ignored:
                continue
            if child.is_dir() and not child.is_symlink():
                _walk(child, depth + 1)

    _walk(folder, 0)
    return found
