"""One working copy: its live snapshot plus every operation on it.

Read-only operations share the repository; mutating operations run alone
and are followed by a refresh, whether they succeeded or not, so the
snapshot always reflects what is on disk afterwards.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from pathlib import Path
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence, TypeVar, Union

from gitstate.config.schema import GitStateConfig
from gitstate.git.adapter import GitAdapter
from gitstate.git.diff_parser import split_patches
from gitstate.git.errors import ErrorClassifier
from gitstate.git.executor import CancellationToken, GitExecutor
from gitstate.git.models import (
    Branch,
    Change,
    Commit,
    ConfigEntry,
    FilePatch,
    ObjectDetails,
    ObjectType,
    Status,
)
from gitstate.repository.classifier import classify_changes
from gitstate.repository.events import EventEmitter
from gitstate.repository.serializer import OperationSerializer
from gitstate.repository.state import InputBox, RefreshStatus, RepositoryState, RepositoryUIState

logger = logging.getLogger(__name__)

T = TypeVar("T")

PathLike = Union[str, Path]

CUSTOM_ERRORS_DIR = ".gitstate-errors"

_SNIFF_BYTES = 4096

_BOMS = (
    (b"\xef\xbb\xbf", "utf8"),
    (b"\xff\xfe", "utf16le"),
    (b"\xfe\xff", "utf16be"),
)

_SIGNATURES = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"%PDF-", "application/pdf"),
    (b"PK\x03\x04", "application/zip"),
    (b"\x1f\x8b", "application/gzip"),
    (b"\x7fELF", "application/x-executable"),
    (b"\x00\x00\x01\x00", "image/x-icon"),
)


def sniff_object_type(data: bytes) -> ObjectType:
    """Guess the mimetype of a blob from its leading bytes."""
    head = data[:_SNIFF_BYTES]
    for bom, encoding in _BOMS:
        if head.startswith(bom):
            return ObjectType(mimetype="text/plain", encoding=encoding)
    for magic, mimetype in _SIGNATURES:
        if head.startswith(magic):
            return ObjectType(mimetype=mimetype)
    if head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return ObjectType(mimetype="image/webp")
    if b"\x00" in head:
        return ObjectType(mimetype="application/octet-stream")
    return ObjectType(mimetype="text/plain")


def _is_lock_file(path: Path) -> bool:
    return path.name == "index.lock" and ".git" in path.parts


class Repository:
    """Live view of the working copy rooted at ``root``."""

    def __init__(
        self,
        root: Path,
        executor: GitExecutor,
        config: Optional[GitStateConfig] = None,
        classifier: Optional[ErrorClassifier] = None,
    ) -> None:
        self.root = root
        self.config = config or GitStateConfig()
        if classifier is None:
            classifier = ErrorClassifier()
            loaded = classifier.load_custom_patterns(root / CUSTOM_ERRORS_DIR)
            if loaded:
                logger.info("Loaded %d custom error pattern(s) for %s", loaded, root)
        self.adapter = GitAdapter(root, executor, classifier)

        self.input_box = InputBox()
        self.ui = RepositoryUIState()
        self.state = RepositoryState()
        self.refresh_status = RefreshStatus.STALE
        self.last_error: Optional[Exception] = None
        self.on_did_change: EventEmitter[RepositoryState] = EventEmitter("repository-change")

        self._serializer = OperationSerializer(str(root))
        self._refresh_lock = asyncio.Lock()
        self._debounce_deadline = 0.0
        self._debounce_task: Optional[asyncio.Task] = None
        self._closed = False

    def __repr__(self) -> str:
        return f"Repository({str(self.root)!r})"

    # ---- refresh ----

    async def status(self) -> RepositoryState:
        """Re-read the repository now and return the current snapshot."""
        async with self._serializer.read():
            return await self._refresh()

    async def _refresh(self) -> RepositoryState:
        async with self._refresh_lock:
            self.refresh_status = RefreshStatus.REFRESHING
            a = self.adapter
            try:
                head, refs, entries, remotes, submodules, rebase_commit = await asyncio.gather(
                    a.head(), a.refs(), a.status(), a.remotes(), a.submodules(), a.rebase_commit()
                )
                changes = classify_changes(entries, self.root)
                candidate = RepositoryState.build(
                    head=head,
                    refs=refs,
                    remotes=remotes,
                    submodules=submodules,
                    rebase_commit=rebase_commit,
                    merge_changes=changes.merge,
                    index_changes=changes.index,
                    working_tree_changes=changes.working_tree,
                )
            except Exception as exc:
                self.refresh_status = RefreshStatus.STALE
                self.last_error = exc
                raise

            self.refresh_status = RefreshStatus.CLEAN
            self.last_error = None

            if candidate != self.state:
                self.state = candidate
                logger.debug("%s: state changed", self.root)
                self.on_did_change.fire(candidate)
            return self.state

    def notify_file_change(self, paths: Iterable[PathLike]) -> None:
        """Schedule a debounced refresh for a batch of changed paths."""
        if self._closed:
            return
        relevant = [p for p in map(Path, paths) if not _is_lock_file(p)]
        if not relevant:
            return

        loop = asyncio.get_running_loop()
        self._debounce_deadline = loop.time() + self.config.refresh.debounce_ms / 1000
        if self._debounce_task is None:
            self._debounce_task = loop.create_task(
                self._debounced_refresh(), name=f"gitstate-refresh-{self.root.name}"
            )

    async def _debounced_refresh(self) -> None:
        loop = asyncio.get_running_loop()
        while (delay := self._debounce_deadline - loop.time()) > 0:
            await asyncio.sleep(delay)
        # signals arriving from here on schedule a fresh refresh
        self._debounce_task = None
        try:
            async with self._serializer.read():
                await self._refresh()
        except Exception as exc:
            logger.warning("Background refresh of %s failed: %s", self.root, exc)

    # ---- serialization helpers ----

    async def _read(self, fn: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        async with self._serializer.read():
            return await fn(*args, **kwargs)

    async def _write(self, fn: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        async with self._serializer.write():
            try:
                result = await fn(*args, **kwargs)
            except Exception:
                try:
                    await self._refresh()
                except Exception as refresh_exc:
                    logger.warning(
                        "Refresh after failed operation on %s also failed: %s",
                        self.root, refresh_exc,
                    )
                raise
            await self._refresh()
            return result

    def _absolute(self, path: PathLike) -> Path:
        return self.root / self.adapter.relative(path)

    # ---- config ----

    async def get_configs(self) -> List[ConfigEntry]:
        return await self._read(self.adapter.config_list)

    async def get_config(self, key: str) -> str:
        return await self._read(self.adapter.config_get, key)

    async def get_global_config(self, key: str) -> str:
        return await self._read(self.adapter.config_get, key, "global")

    async def set_config(self, key: str, value: str) -> str:
        return await self._write(self.adapter.config_set, key, value)

    # ---- objects ----

    async def get_object_details(self, treeish: str, path: PathLike) -> ObjectDetails:
        """Mode, object id and size of *path* in *treeish*; empty treeish reads the index."""
        if not treeish:
            return await self._read(self.adapter.ls_files_stage, str(path))
        return await self._read(self.adapter.ls_tree, treeish, str(path))

    async def detect_object_type(self, obj: str) -> ObjectType:
        data = await self._read(self.adapter.cat_file, obj)
        return sniff_object_type(data)

    async def buffer(self, ref: str, path: PathLike) -> bytes:
        return await self._read(self.adapter.show_bytes, ref, str(path))

    async def show(self, ref: str, path: PathLike) -> str:
        return await self._read(self.adapter.show_text, ref, str(path))

    async def get_commit(self, ref: str) -> Commit:
        return await self._read(self.adapter.get_commit, ref)

    async def hash_object(self, data: Union[str, bytes]) -> str:
        """Write *data* to the object store and return its id."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        return await self._read(self.adapter.hash_object, data)

    async def get_merge_base(self, ref1: str, ref2: str) -> str:
        return await self._read(self.adapter.merge_base, ref1, ref2)

    async def blame(self, path: PathLike) -> str:
        return await self._read(self.adapter.blame, str(path))

    async def log(self, max_entries: Optional[int] = None) -> List[Commit]:
        """Most recent commits reachable from HEAD, newest first."""
        n = max_entries if max_entries is not None else self.config.log.max_entries
        return await self._read(self.adapter.log, n)

    # ---- diff ----

    async def diff(self, cached: bool = False) -> str:
        return await self._read(self.adapter.diff, cached)

    async def diff_patches(self, cached: bool = False) -> List[FilePatch]:
        """The working tree (or index) diff split into per-file patches.

        A patch is also marked binary when ``--numstat`` reports it without
        line counts.
        """
        async with self._serializer.read():
            text, binaries = await asyncio.gather(
                self.adapter.diff(cached), self.adapter.binary_paths(cached)
            )
        return [
            dataclasses.replace(p, binary=True) if p.path in binaries and not p.binary else p
            for p in split_patches(text)
        ]

    async def diff_with_head(self) -> List[Change]:
        return await self._read(self.adapter.diff_files, False)

    async def diff_with_head_text(self, path: PathLike) -> str:
        return await self._read(self.adapter.diff_path, str(path), False)

    async def diff_with(self, ref: str) -> List[Change]:
        return await self._read(self.adapter.diff_files, False, ref)

    async def diff_with_text(self, ref: str, path: PathLike) -> str:
        return await self._read(self.adapter.diff_path, str(path), False, ref)

    async def diff_index_with_head(self) -> List[Change]:
        return await self._read(self.adapter.diff_files, True)

    async def diff_index_with_head_text(self, path: PathLike) -> str:
        return await self._read(self.adapter.diff_path, str(path), True)

    async def diff_index_with(self, ref: str) -> List[Change]:
        return await self._read(self.adapter.diff_files, True, ref)

    async def diff_index_with_text(self, ref: str, path: PathLike) -> str:
        return await self._read(self.adapter.diff_path, str(path), True, ref)

    async def diff_blobs(self, object1: str, object2: str) -> str:
        return await self._read(self.adapter.diff_blobs, object1, object2)

    async def diff_between(self, ref1: str, ref2: str) -> List[Change]:
        return await self._read(self.adapter.diff_between, ref1, ref2)

    async def diff_between_text(self, ref1: str, ref2: str, path: PathLike) -> str:
        return await self._read(self.adapter.diff_between_path, ref1, ref2, str(path))

    # ---- branches ----

    async def get_branch(self, name: str) -> Branch:
        return await self._read(self.adapter.get_branch, name)

    async def create_branch(self, name: str, checkout: bool, ref: Optional[str] = None) -> None:
        await self._write(self.adapter.create_branch, name, checkout, ref)

    async def delete_branch(self, name: str, force: bool = False) -> None:
        await self._write(self.adapter.delete_branch, name, force)

    async def set_branch_upstream(self, name: str, upstream: str) -> None:
        await self._write(self.adapter.set_branch_upstream, name, upstream)

    async def checkout(self, treeish: str) -> None:
        await self._write(self.adapter.checkout, treeish)

    # ---- working tree ----

    async def clean(self, paths: Sequence[PathLike]) -> None:
        """Discard changes: delete untracked paths, restore tracked ones from the index."""

        async def _clean() -> None:
            untracked = {
                c.uri for c in self.state.working_tree_changes if c.status is Status.UNTRACKED
            }
            to_clean: List[Path] = []
            to_restore: List[Path] = []
            for p in paths:
                absolute = self._absolute(p)
                (to_clean if absolute in untracked else to_restore).append(absolute)
            if to_clean:
                await self.adapter.clean([str(p) for p in to_clean])
            if to_restore:
                await self.adapter.checkout(None, [str(p) for p in to_restore])

        await self._write(_clean)

    async def apply(self, patch: PathLike, reverse: bool = False) -> None:
        """Apply the patch file at *patch* to the working tree."""
        await self._write(self.adapter.apply, str(patch), reverse)

    # ---- remotes ----

    async def add_remote(self, name: str, url: str) -> None:
        await self._write(self.adapter.add_remote, name, url)

    async def remove_remote(self, name: str) -> None:
        await self._write(self.adapter.remove_remote, name)

    async def fetch(
        self,
        remote: Optional[str] = None,
        ref: Optional[str] = None,
        depth: Optional[int] = None,
        *,
        cancellation: Optional[CancellationToken] = None,
    ) -> None:
        await self._write(self.adapter.fetch, remote, ref, depth, cancellation=cancellation)

    async def pull(
        self,
        unshallow: bool = False,
        *,
        cancellation: Optional[CancellationToken] = None,
    ) -> None:
        await self._write(self.adapter.pull, unshallow, cancellation=cancellation)

    async def push(
        self,
        remote: Optional[str] = None,
        branch: Optional[str] = None,
        set_upstream: bool = False,
        *,
        cancellation: Optional[CancellationToken] = None,
    ) -> None:
        await self._write(
            self.adapter.push, remote, branch, set_upstream, cancellation=cancellation
        )

    # ---- lifecycle ----

    async def close(self) -> None:
        """Stop background refreshes and drain pending notifications."""
        self._closed = True
        task, self._debounce_task = self._debounce_task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self.on_did_change.close()
        await self.ui.on_did_change.close()
