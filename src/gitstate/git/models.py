"""Data models for refs, commits, changes, and parsed git output."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple


class RefType(str, Enum):
    HEAD = "head"
    REMOTE_HEAD = "remote_head"
    TAG = "tag"


class Status(str, Enum):
    """Semantic status of a changed path."""

    INDEX_MODIFIED = "index_modified"
    INDEX_ADDED = "index_added"
    INDEX_DELETED = "index_deleted"
    INDEX_RENAMED = "index_renamed"
    INDEX_COPIED = "index_copied"

    MODIFIED = "modified"
    DELETED = "deleted"
    UNTRACKED = "untracked"
    IGNORED = "ignored"
    INTENT_TO_ADD = "intent_to_add"

    ADDED_BY_US = "added_by_us"
    ADDED_BY_THEM = "added_by_them"
    DELETED_BY_US = "deleted_by_us"
    DELETED_BY_THEM = "deleted_by_them"
    BOTH_ADDED = "both_added"
    BOTH_DELETED = "both_deleted"
    BOTH_MODIFIED = "both_modified"

    @property
    def is_conflict(self) -> bool:
        return self in _CONFLICT_STATUSES


_CONFLICT_STATUSES = frozenset({
    Status.ADDED_BY_US,
    Status.ADDED_BY_THEM,
    Status.DELETED_BY_US,
    Status.DELETED_BY_THEM,
    Status.BOTH_ADDED,
    Status.BOTH_DELETED,
    Status.BOTH_MODIFIED,
})


class FileStatus(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"
    MODE_CHANGED = "mode_changed"


@dataclass(frozen=True)
class Ref:
    """A named pointer to a commit. Identity is ``(type, name)``."""

    type: RefType
    name: Optional[str] = None
    commit: Optional[str] = None
    remote: Optional[str] = None


@dataclass(frozen=True)
class UpstreamRef:
    remote: str
    name: str


@dataclass(frozen=True)
class Branch(Ref):
    """A local branch, optionally tracking an upstream.

    ``ahead`` / ``behind`` are only set when ``upstream`` is.
    A detached HEAD is a Branch without a ``name``.
    """

    upstream: Optional[UpstreamRef] = None
    ahead: Optional[int] = None
    behind: Optional[int] = None


@dataclass(frozen=True)
class Commit:
    hash: str
    message: str
    parents: Tuple[str, ...] = ()
    author_email: Optional[str] = None


@dataclass(frozen=True)
class Submodule:
    name: str
    path: str
    url: str


@dataclass(frozen=True)
class Remote:
    name: str
    fetch_url: Optional[str] = None
    push_url: Optional[str] = None
    is_read_only: bool = False


@dataclass(frozen=True)
class Change:
    """A changed path. ``uri`` is the location to present."""

    original_uri: Path
    status: Status
    rename_uri: Optional[Path] = None

    @property
    def uri(self) -> Path:
        return self.rename_uri if self.rename_uri is not None else self.original_uri


@dataclass(frozen=True, slots=True)
class RawStatusEntry:
    """One porcelain status record: index code, worktree code, paths."""

    x: str
    y: str
    path: str
    rename: Optional[str] = None  # new path on R/C entries

    @property
    def code(self) -> str:
        return self.x + self.y


@dataclass(frozen=True)
class ConfigEntry:
    key: str
    value: str


@dataclass(frozen=True)
class ObjectDetails:
    mode: str
    object: str
    size: int


@dataclass(frozen=True)
class ObjectType:
    mimetype: str
    encoding: Optional[str] = None


@dataclass(frozen=True)
class FilePatch:
    """One file's section of a unified diff, text kept verbatim."""

    path: str
    text: str
    old_path: Optional[str] = None  # set on renames
    status: FileStatus = FileStatus.MODIFIED
    binary: bool = False


@dataclass(frozen=True)
class GitInfo:
    """The git binary the engine runs."""

    path: str
    version: str
