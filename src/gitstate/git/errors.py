"""Git error taxonomy and stderr classification.

Classification checks exit-code and per-command signals first, then falls
back to matching known message fragments. The child environment pins
``LC_ALL=C`` so the fragments below are the untranslated English messages.
Anything unmatched becomes ``COMMAND_FAILED`` with the raw stderr attached.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import yaml

logger = logging.getLogger(__name__)


class GitErrorCode(str, Enum):
    NOT_A_REPOSITORY = "NotARepository"
    NOT_AT_REPOSITORY_ROOT = "NotAtRepositoryRoot"
    REPOSITORY_NOT_FOUND = "RepositoryNotFound"
    REPOSITORY_LOCKED = "RepositoryLocked"
    AUTHENTICATION_FAILED = "AuthenticationFailed"
    NO_REMOTE_SPECIFIED = "NoRemoteSpecified"
    NO_REMOTE_REFERENCE = "NoRemoteReference"
    NO_UPSTREAM_BRANCH = "NoUpstreamBranch"
    PUSH_REJECTED = "PushRejected"
    REMOTE_CONNECTION_ERROR = "RemoteConnectionError"
    CANT_ACCESS_REMOTE = "CantAccessRemote"
    CONFLICT = "Conflict"
    STASH_CONFLICT = "StashConflict"
    UNMERGED_CHANGES = "UnmergedChanges"
    DIRTY_WORKING_TREE = "DirtyWorkingTree"
    LOCAL_CHANGES_OVERWRITTEN = "LocalChangesOverwritten"
    PATCH_DOES_NOT_APPLY = "PatchDoesNotApply"
    INVALID_BRANCH_NAME = "InvalidBranchName"
    BRANCH_ALREADY_EXISTS = "BranchAlreadyExists"
    BRANCH_NOT_FULLY_MERGED = "BranchNotFullyMerged"
    CANT_LOCK_REF = "CantLockRef"
    CANT_REBASE_MULTIPLE_BRANCHES = "CantRebaseMultipleBranches"
    BAD_CONFIG_FILE = "BadConfigFile"
    NO_USER_NAME_CONFIGURED = "NoUserNameConfigured"
    NO_USER_EMAIL_CONFIGURED = "NoUserEmailConfigured"
    NO_LOCAL_CHANGES = "NoLocalChanges"
    NO_STASH_FOUND = "NoStashFound"
    UNKNOWN_PATH = "UnknownPath"
    NO_PATH_FOUND = "NoPathFound"
    CANT_OPEN_RESOURCE = "CantOpenResource"
    IS_IN_SUBMODULE = "IsInSubmodule"
    WRONG_CASE = "WrongCase"
    CONFIG_KEY_NOT_FOUND = "ConfigKeyNotFound"
    BINARY_NOT_FOUND = "BinaryNotFound"
    CANT_CREATE_PIPE = "CantCreatePipe"
    CANCELLED = "Cancelled"
    MALFORMED_OUTPUT = "MalformedOutput"
    COMMAND_FAILED = "CommandFailed"

    @property
    def is_network(self) -> bool:
        return self in _NETWORK_CODES


_NETWORK_CODES = frozenset({
    GitErrorCode.AUTHENTICATION_FAILED,
    GitErrorCode.REMOTE_CONNECTION_ERROR,
    GitErrorCode.CANT_ACCESS_REMOTE,
    GitErrorCode.REPOSITORY_NOT_FOUND,
})


class GitError(Exception):
    """Raised for every failed git operation, with a classified ``code``."""

    def __init__(
        self,
        message: str,
        code: GitErrorCode = GitErrorCode.COMMAND_FAILED,
        *,
        exit_code: Optional[int] = None,
        stdout: str = "",
        stderr: str = "",
        command: Sequence[str] = (),
    ) -> None:
        super().__init__(message)
        self.code = code
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        self.command = list(command)

    def __str__(self) -> str:
        base = super().__str__()
        if self.code is GitErrorCode.COMMAND_FAILED and self.stderr:
            return f"{base}: {self.stderr.strip()}"
        return base


class MalformedOutputError(GitError):
    """Raised when a whole stream of git output cannot be parsed."""

    def __init__(self, message: str, line: str) -> None:
        super().__init__(message, GitErrorCode.MALFORMED_OUTPUT)
        self.line = line


# Order matters: the first matching pattern wins.
_PATTERNS: List[Tuple[GitErrorCode, re.Pattern[str]]] = [
    (
        GitErrorCode.REPOSITORY_LOCKED,
        re.compile(
            r"Another git process seems to be running in this repository"
            r"|If no other git process is currently running"
        ),
    ),
    (GitErrorCode.AUTHENTICATION_FAILED, re.compile(r"Authentication failed", re.I)),
    (GitErrorCode.NOT_A_REPOSITORY, re.compile(r"Not a git repository", re.I)),
    (GitErrorCode.BAD_CONFIG_FILE, re.compile(r"bad config (?:file|line)")),
    (
        GitErrorCode.CANT_CREATE_PIPE,
        re.compile(r"cannot make pipe for command substitution|cannot create standard input pipe"),
    ),
    (GitErrorCode.REPOSITORY_NOT_FOUND, re.compile(r"Repository not found")),
    (GitErrorCode.CANT_ACCESS_REMOTE, re.compile(r"unable to access")),
    (GitErrorCode.BRANCH_NOT_FULLY_MERGED, re.compile(r"branch '.+' is not fully merged")),
    (GitErrorCode.NO_REMOTE_REFERENCE, re.compile(r"Couldn't find remote ref")),
    (GitErrorCode.BRANCH_ALREADY_EXISTS, re.compile(r"A branch named '.+' already exists", re.I)),
    (GitErrorCode.INVALID_BRANCH_NAME, re.compile(r"'.+' is not a valid branch name")),
    (GitErrorCode.PUSH_REJECTED, re.compile(r"^error: failed to push some refs to\b", re.M)),
    (GitErrorCode.REMOTE_CONNECTION_ERROR, re.compile(r"Could not read from remote repository")),
    (
        GitErrorCode.NO_UPSTREAM_BRANCH,
        re.compile(r"^fatal: The current branch .+ has no upstream branch", re.M),
    ),
    (
        GitErrorCode.NO_REMOTE_SPECIFIED,
        re.compile(r"No configured push destination|No remote repository specified"),
    ),
    (GitErrorCode.STASH_CONFLICT, re.compile(r"Conflicts in index\. Try without --index|could not restore untracked files from stash")),
    (GitErrorCode.CONFLICT, re.compile(r"^CONFLICT \([^)]+\): \b", re.M)),
    (
        GitErrorCode.UNMERGED_CHANGES,
        re.compile(r"not possible because you have unmerged files|you need to resolve your current index first"),
    ),
    (
        GitErrorCode.LOCAL_CHANGES_OVERWRITTEN,
        re.compile(r"Your local changes to the following files would be overwritten by checkout"),
    ),
    (
        GitErrorCode.DIRTY_WORKING_TREE,
        re.compile(
            r"Please,? commit your changes or stash them"
            r"|Cannot pull with rebase: You have unstaged changes"
            r"|Your local changes to the following files would be overwritten"
            r"|Please, commit your changes before you can merge",
            re.I,
        ),
    ),
    (GitErrorCode.PATCH_DOES_NOT_APPLY, re.compile(r"patch does not apply|corrupt patch at line")),
    (GitErrorCode.CANT_LOCK_REF, re.compile(r"cannot lock ref|unable to update local ref", re.I)),
    (GitErrorCode.CANT_REBASE_MULTIPLE_BRANCHES, re.compile(r"cannot rebase onto multiple branches", re.I)),
    (GitErrorCode.NO_USER_NAME_CONFIGURED, re.compile(r"Please tell me who you are|empty ident name")),
    (GitErrorCode.NO_USER_EMAIL_CONFIGURED, re.compile(r"unable to auto-detect email address")),
    (GitErrorCode.NO_LOCAL_CHANGES, re.compile(r"No local changes to save")),
    (GitErrorCode.NO_STASH_FOUND, re.compile(r"No stash found|No stash entries found")),
    (GitErrorCode.IS_IN_SUBMODULE, re.compile(r"is in submodule")),
    (GitErrorCode.NOT_AT_REPOSITORY_ROOT, re.compile(r"must be run in a work tree|not at the top level")),
    (
        GitErrorCode.UNKNOWN_PATH,
        re.compile(r"did not match any file\(s\) known to git|is outside repository|pathspec '.+' did not match"),
    ),
    (GitErrorCode.NO_PATH_FOUND, re.compile(r"does not exist in '.+'|exists on disk, but not in '.+'")),
    (GitErrorCode.CANT_OPEN_RESOURCE, re.compile(r"unable to read|could not open '.+'")),
]


class ErrorClassifier:
    """Maps ``(exit_code, stderr, command)`` to a :class:`GitErrorCode`."""

    def __init__(self) -> None:
        self._patterns: List[Tuple[GitErrorCode, re.Pattern[str]]] = []

    # ---- registration ----

    def register(self, code: GitErrorCode, pattern: str) -> None:
        """Add a pattern checked before the built-in table."""
        self._patterns.append((code, re.compile(pattern, re.M)))

    def load_custom_patterns(self, directory: Path) -> int:
        """Load YAML pattern files from *directory*. Returns count loaded."""
        count = 0
        if not directory.is_dir():
            return 0
        for path in sorted(directory.iterdir()):
            if path.suffix in (".yaml", ".yml"):
                count += self._load_yaml_patterns(path)
        return count

    def _load_yaml_patterns(self, path: Path) -> int:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
        if data is None:
            return 0
        if not isinstance(data, list):
            data = [data]
        count = 0
        for entry in data:
            try:
                code = GitErrorCode(entry["code"])
                self.register(code, entry["pattern"])
            except (KeyError, TypeError, ValueError, re.error) as exc:
                logger.warning("Skipping invalid error pattern in %s: %s", path, exc)
                continue
            count += 1
        logger.debug("Loaded %d error pattern(s) from %s", count, path)
        return count

    # ---- classification ----

    def classify(
        self,
        exit_code: int,
        stderr: str,
        command: Optional[str] = None,
        stdout: str = "",
    ) -> GitErrorCode:
        signal = _exit_code_signal(exit_code, stderr, command)
        if signal is not None:
            return signal
        # merge and pull report CONFLICT lines on stdout
        text = f"{stderr}\n{stdout}" if stdout else stderr
        for code, pattern in self._patterns:
            if pattern.search(text):
                return code
        for code, pattern in _PATTERNS:
            if pattern.search(text):
                return code
        return GitErrorCode.COMMAND_FAILED


def _exit_code_signal(
    exit_code: int,
    stderr: str,
    command: Optional[str],
) -> Optional[GitErrorCode]:
    """Structured signals that do not depend on message text."""
    if exit_code == 127:
        return GitErrorCode.BINARY_NOT_FOUND
    if command == "config":
        # git-config documents these return codes.
        if exit_code == 1 and not stderr.strip():
            return GitErrorCode.CONFIG_KEY_NOT_FOUND
        if exit_code == 3:
            return GitErrorCode.BAD_CONFIG_FILE
    return None


_default = ErrorClassifier()


def classify_error(
    exit_code: int,
    stderr: str,
    command: Optional[str] = None,
    stdout: str = "",
) -> GitErrorCode:
    """Classify with the built-in pattern table only."""
    return _default.classify(exit_code, stderr, command, stdout)
