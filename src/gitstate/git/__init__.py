"""Git interface layer: process executor, command adapter and output parsers."""

from gitstate.git.adapter import COMMIT_FORMAT, DEFAULT_LOG_ENTRIES, GitAdapter, get_repo_root
from gitstate.git.diff_parser import DiffParser, split_patches
from gitstate.git.errors import (
    ErrorClassifier,
    GitError,
    GitErrorCode,
    MalformedOutputError,
    classify_error,
)
from gitstate.git.executor import CancellationToken, ExecResult, GitExecutor, find_git
from gitstate.git.models import (
    Branch,
    Change,
    Commit,
    ConfigEntry,
    FilePatch,
    FileStatus,
    GitInfo,
    ObjectDetails,
    ObjectType,
    RawStatusEntry,
    Ref,
    RefType,
    Remote,
    Status,
    Submodule,
    UpstreamRef,
)

__all__ = [
    "COMMIT_FORMAT",
    "DEFAULT_LOG_ENTRIES",
    "Branch",
    "CancellationToken",
    "Change",
    "Commit",
    "ConfigEntry",
    "DiffParser",
    "ErrorClassifier",
    "ExecResult",
    "FilePatch",
    "FileStatus",
    "GitAdapter",
    "GitError",
    "GitErrorCode",
    "GitExecutor",
    "GitInfo",
    "MalformedOutputError",
    "ObjectDetails",
    "ObjectType",
    "RawStatusEntry",
    "Ref",
    "RefType",
    "Remote",
    "Status",
    "Submodule",
    "UpstreamRef",
    "classify_error",
    "find_git",
    "get_repo_root",
    "split_patches",
]
