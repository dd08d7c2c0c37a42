"""Polling watcher for a repository's ``.git`` metadata."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional

if TYPE_CHECKING:
    from gitstate.repository.repository import Repository

logger = logging.getLogger(__name__)

WATCHED_FILES = ("HEAD", "index", "FETCH_HEAD", "ORIG_HEAD", "MERGE_HEAD", "packed-refs")
WATCHED_DIRS = ("refs",)

Snapshot = Dict[Path, int]


def snapshot(git_dir: Path) -> Snapshot:
    """mtime (ns) of every watched path that currently exists."""
    result: Snapshot = {}
    for name in WATCHED_FILES:
        p = git_dir / name
        try:
            result[p] = p.stat().st_mtime_ns
        except OSError:
            continue
    for name in WATCHED_DIRS:
        for p in (git_dir / name).rglob("*"):
            try:
                if p.is_file():
                    result[p] = p.stat().st_mtime_ns
            except OSError:
                continue
    return result


def changed_paths(before: Snapshot, after: Snapshot) -> List[Path]:
    """Paths added, removed or touched between two snapshots."""
    return sorted(p for p in before.keys() | after.keys() if before.get(p) != after.get(p))


class PollingWatcher:
    """Reports ``.git`` metadata changes to :meth:`Repository.notify_file_change`."""

    def __init__(self, repository: "Repository", interval_ms: int = 2000) -> None:
        self.repository = repository
        self.interval = interval_ms / 1000
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        git_dir = await self.repository.adapter.git_dir()
        self._task = asyncio.get_running_loop().create_task(
            self._poll(git_dir), name=f"gitstate-watch-{self.repository.root.name}"
        )

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _poll(self, git_dir: Path) -> None:
        previous = await asyncio.to_thread(snapshot, git_dir)
        while True:
            await asyncio.sleep(self.interval)
            try:
                current = await asyncio.to_thread(snapshot, git_dir)
            except OSError as exc:
                logger.warning("Polling %s failed: %s", git_dir, exc)
                continue
            changed = changed_paths(previous, current)
            previous = current
            if changed:
                logger.debug("%s: %d metadata path(s) changed", self.repository.root, len(changed))
                self.repository.notify_file_change(changed)
