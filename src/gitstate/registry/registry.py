"""The set of open repositories and the git binary they share."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Literal, Optional, Union

from gitstate.config.schema import GitStateConfig
from gitstate.git.adapter import get_repo_root
from gitstate.git.errors import GitError
from gitstate.git.executor import GitExecutor
from gitstate.git.models import GitInfo
from gitstate.registry.discovery import discover_repositories
from gitstate.registry.watcher import PollingWatcher
from gitstate.repository.events import EventEmitter
from gitstate.repository.repository import Repository

logger = logging.getLogger(__name__)

RegistryState = Literal["uninitialized", "initialized"]


class RepositoryRegistry:
    """Opens, tracks and closes :class:`Repository` instances by root.

    Use as an async context manager, or call :meth:`initialize` and
    :meth:`close` explicitly.
    """

    def __init__(
        self,
        config: Optional[GitStateConfig] = None,
        executor: Optional[GitExecutor] = None,
        *,
        watch: Optional[bool] = None,
    ) -> None:
        self.config = config or GitStateConfig()
        self._executor = executor
        self._watch = self.config.watcher.enabled if watch is None else watch
        self._repositories: Dict[Path, Repository] = {}
        self._watchers: Dict[Path, PollingWatcher] = {}
        self._lock = asyncio.Lock()

        self.state: RegistryState = "uninitialized"
        self.git: Optional[GitInfo] = None
        self.on_did_change_state: EventEmitter[RegistryState] = EventEmitter("registry-state")
        self.on_did_open_repository: EventEmitter[Repository] = EventEmitter("repository-open")
        self.on_did_close_repository: EventEmitter[Repository] = EventEmitter("repository-close")

    async def __aenter__(self) -> "RepositoryRegistry":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @property
    def executor(self) -> GitExecutor:
        if self._executor is None:
            git = self.config.git
            self._executor = GitExecutor(
                git.path, timeout=git.timeout_s, spawn_retries=git.spawn_retries
            )
        return self._executor

    @property
    def repositories(self) -> List[Repository]:
        return list(self._repositories.values())

    async def initialize(self) -> None:
        """Resolve the git binary and its version."""
        if self.state == "initialized":
            return
        executor = self.executor
        version = await executor.version()
        self.git = GitInfo(path=executor.path, version=version)
        logger.info("Using git %s at %s", version, executor.path)
        self.state = "initialized"
        self.on_did_change_state.fire(self.state)

    # ---- open / close ----

    async def open_repository(self, path: Union[str, Path]) -> Repository:
        """Open the repository containing *path*, or return it if already open."""
        root = await get_repo_root(self.executor, Path(path).expanduser().resolve())
        async with self._lock:
            existing = self._repositories.get(root)
            if existing is not None:
                return existing

            repo = Repository(root, self.executor, self.config)
            try:
                await repo.status()
            except GitError as exc:
                logger.warning("Initial refresh of %s failed: %s", root, exc)
            self._repositories[root] = repo

            if self._watch:
                watcher = PollingWatcher(repo, self.config.watcher.interval_ms)
                await watcher.start()
                self._watchers[root] = watcher

        logger.info("Opened repository %s", root)
        self.on_did_open_repository.fire(repo)
        return repo

    async def close_repository(self, repo: Repository) -> None:
        async with self._lock:
            if self._repositories.get(repo.root) is not repo:
                return
            del self._repositories[repo.root]
            watcher = self._watchers.pop(repo.root, None)
        if watcher is not None:
            await watcher.stop()
        await repo.close()
        logger.info("Closed repository %s", repo.root)
        self.on_did_close_repository.fire(repo)

    def get_repository(self, path: Union[str, Path]) -> Optional[Repository]:
        """The open repository containing *path*; nested roots win over outer ones."""
        target = Path(path).expanduser().resolve()
        best: Optional[Repository] = None
        for root, repo in self._repositories.items():
            if target != root and root not in target.parents:
                continue
            if best is None or len(root.parts) > len(best.root.parts):
                best = repo
        return best

    async def scan_folder(self, folder: Union[str, Path]) -> List[Repository]:
        """Open every repository found under *folder*."""
        discovery = self.config.discovery
        candidates = await asyncio.to_thread(
            discover_repositories,
            Path(folder).expanduser().resolve(),
            discovery.max_depth,
            discovery.ignored_folders,
        )
        opened: List[Repository] = []
        for candidate in candidates:
            try:
                opened.append(await self.open_repository(candidate))
            except GitError as exc:
                logger.warning("Skipping %s: %s", candidate, exc)
        return opened

    async def close(self) -> None:
        for repo in self.repositories:
            await self.close_repository(repo)
        for emitter in (
            self.on_did_open_repository,
            self.on_did_close_repository,
            self.on_did_change_state,
        ):
            await emitter.close()
