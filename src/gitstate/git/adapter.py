"""Git command surface: one coroutine per git invocation the engine needs.

Argument vectors live here and nowhere else. Every method either returns
parsed output or raises a classified :class:`GitError`.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Set, Union

from gitstate.git import parsers
from gitstate.git.errors import ErrorClassifier, GitError, GitErrorCode, classify_error
from gitstate.git.executor import CancellationToken, ExecResult, GitExecutor
from gitstate.git.models import (
    Branch,
    Change,
    Commit,
    ConfigEntry,
    ObjectDetails,
    RawStatusEntry,
    Ref,
    RefType,
    Remote,
    Submodule,
)

logger = logging.getLogger(__name__)

COMMIT_FORMAT = "%H%n%aE%n%P%n%B"
DEFAULT_LOG_ENTRIES = 32
_DIFF_FILTER = "--diff-filter=ADMR"


async def get_repo_root(executor: GitExecutor, path: Path) -> Path:
    """Return the top level of the working copy containing *path*."""
    cwd = path if path.is_dir() else path.parent
    result = await executor.run(["rev-parse", "--show-toplevel"], cwd=cwd)
    if not result.ok:
        stderr = result.stderr_text
        code = classify_error(result.exit_code, stderr, "rev-parse")
        raise GitError(
            f"Not a git repository: {path}",
            code,
            exit_code=result.exit_code,
            stderr=stderr,
            command=result.args,
        )
    return Path(result.stdout_text.strip()).resolve()


class GitAdapter:
    """Runs git commands against one working copy rooted at ``root``."""

    def __init__(
        self,
        root: Path,
        executor: GitExecutor,
        classifier: Optional[ErrorClassifier] = None,
    ) -> None:
        self.root = root
        self.executor = executor
        self.classifier = classifier or ErrorClassifier()
        self._git_dir: Optional[Path] = None

    # ---- plumbing ----

    async def run(
        self,
        args: Sequence[str],
        *,
        input: Optional[bytes] = None,
        cancellation: Optional[CancellationToken] = None,
        check: bool = True,
    ) -> ExecResult:
        """Run ``git <args>`` in the root; raise a classified error on failure."""
        result = await self.executor.run(
            args, self.root, input=input, cancellation=cancellation
        )
        if check and not result.ok:
            raise self.error_for(result)
        return result

    def error_for(self, result: ExecResult) -> GitError:
        command = result.args[1] if len(result.args) > 1 else None
        stderr = result.stderr_text
        stdout = result.stdout_text
        code = self.classifier.classify(result.exit_code, stderr, command, stdout)
        logger.debug("git %s failed with %s: %s", command, code.value, stderr.strip())
        return GitError(
            f"git {command} failed",
            code,
            exit_code=result.exit_code,
            stdout=stdout,
            stderr=stderr,
            command=result.args,
        )

    def relative(self, path: Union[str, Path]) -> str:
        """Path relative to the root, in git's slash-separated form."""
        p = Path(path)
        if p.is_absolute():
            try:
                p = p.resolve().relative_to(self.root)
            except ValueError as exc:
                raise GitError(
                    f"{path} is outside repository {self.root}", GitErrorCode.UNKNOWN_PATH
                ) from exc
        return p.as_posix()

    async def git_dir(self) -> Path:
        if self._git_dir is None:
            result = await self.run(["rev-parse", "--git-dir"])
            self._git_dir = (self.root / result.stdout_text.strip()).resolve()
        return self._git_dir

    # ---- state queries ----

    async def status(self) -> List[RawStatusEntry]:
        result = await self.run(["status", "-z", "-u"])
        return parsers.parse_status(result.stdout)

    async def refs(self) -> List[Ref]:
        result = await self.run([
            "for-each-ref",
            "--format", "%(refname) %(objectname) %(*objectname)",
            "--sort", "-committerdate",
        ])
        return parsers.parse_refs(result.stdout_text)

    async def remotes(self) -> List[Remote]:
        result = await self.run(["remote", "--verbose"])
        return parsers.parse_remotes(result.stdout_text)

    async def submodules(self) -> List[Submodule]:
        if not (self.root / ".gitmodules").is_file():
            return []
        result = await self.run(
            ["config", "-z", "-f", ".gitmodules", "--get-regexp", r"^submodule\."],
            check=False,
        )
        if result.exit_code == 1 and not result.stderr.strip():
            return []  # no matching keys
        if not result.ok:
            raise self.error_for(result)
        return parsers.parse_gitmodules(result.stdout)

    async def rebase_commit(self) -> Optional[Commit]:
        git_dir = await self.git_dir()
        in_rebase = (git_dir / "rebase-merge").is_dir() or (git_dir / "rebase-apply").is_dir()
        if not in_rebase or not (git_dir / "REBASE_HEAD").is_file():
            return None
        return await self.get_commit("REBASE_HEAD")

    async def head(self) -> Optional[Branch]:
        result = await self.run(["symbolic-ref", "--short", "HEAD"], check=False)
        if result.ok:
            name = result.stdout_text.strip()
            try:
                return await self.get_branch(name)
            except GitError:
                # unborn branch: the name exists, the ref does not yet
                return Branch(type=RefType.HEAD, name=name)

        result = await self.run(["rev-parse", "HEAD"], check=False)
        if result.ok:
            return Branch(type=RefType.HEAD, name=None, commit=result.stdout_text.strip())
        return None

    async def get_branch(self, name: str) -> Branch:
        if name == "HEAD":
            head = await self.head()
            if head is None:
                raise GitError("No such branch: HEAD", GitErrorCode.NO_PATH_FOUND)
            return head

        result = await self.run(["rev-parse", name])
        commit = result.stdout_text.strip()

        upstream_result = await self.run(
            ["rev-parse", "--symbolic-full-name", f"{name}@{{u}}"], check=False
        )
        upstream = parsers.parse_upstream(upstream_result.stdout_text) if upstream_result.ok else None
        if upstream is None:
            return Branch(type=RefType.HEAD, name=name, commit=commit)

        counts = await self.run(
            [
                "rev-list",
                "--left-right",
                "--count",
                f"{name}...{upstream.remote}/{upstream.name}",
            ],
            check=False,
        )
        ahead: Optional[int] = None
        behind: Optional[int] = None
        if counts.ok:
            ahead, behind = parsers.parse_ahead_behind(counts.stdout_text)
        return Branch(
            type=RefType.HEAD,
            name=name,
            commit=commit,
            upstream=upstream,
            ahead=ahead,
            behind=behind,
        )

    # ---- config ----

    async def config_list(self, scope: str = "local") -> List[ConfigEntry]:
        result = await self.run(["config", "-l", "-z", f"--{scope}"])
        return parsers.parse_config_list(result.stdout)

    async def config_get(self, key: str, scope: str = "local") -> str:
        result = await self.run(["config", "--get", f"--{scope}", key])
        return result.stdout_text.strip()

    async def config_set(self, key: str, value: str, scope: str = "local") -> str:
        result = await self.run(["config", f"--{scope}", key, value])
        return result.stdout_text.strip()

    # ---- objects ----

    async def ls_tree(self, treeish: str, path: str) -> ObjectDetails:
        result = await self.run(["ls-tree", "-l", treeish, "--", self.relative(path)])
        if not result.stdout.strip():
            raise GitError(f"Path not found in {treeish}: {path}", GitErrorCode.NO_PATH_FOUND)
        return parsers.parse_ls_tree(result.stdout_text)

    async def ls_files_stage(self, path: str) -> ObjectDetails:
        result = await self.run(["ls-files", "--stage", "--", self.relative(path)])
        if not result.stdout.strip():
            raise GitError(f"Path not found in index: {path}", GitErrorCode.NO_PATH_FOUND)
        mode, obj = parsers.parse_ls_files_stage(result.stdout_text)
        size = await self.run(["cat-file", "-s", obj])
        return ObjectDetails(mode=mode, object=obj, size=int(size.stdout_text.strip()))

    async def cat_file(self, obj: str) -> bytes:
        result = await self.run(["cat-file", "-p", obj])
        return result.stdout

    async def show_bytes(self, ref: str, path: str) -> bytes:
        result = await self.run(["show", f"{ref}:{self.relative(path)}"])
        return result.stdout

    async def show_text(self, ref: str, path: str) -> str:
        result = await self.run(["show", "--textconv", f"{ref}:{self.relative(path)}"])
        return result.stdout_text

    async def get_commit(self, ref: str) -> Commit:
        result = await self.run(["show", "-s", f"--format={COMMIT_FORMAT}", ref])
        commit = parsers.parse_commit(result.stdout_text)
        if commit is None:
            raise GitError(f"Unparseable commit: {ref}", GitErrorCode.MALFORMED_OUTPUT)
        return commit

    async def hash_object(self, data: bytes) -> str:
        result = await self.run(["hash-object", "-w", "--stdin"], input=data)
        return result.stdout_text.strip()

    async def merge_base(self, ref1: str, ref2: str) -> str:
        result = await self.run(["merge-base", ref1, ref2])
        return result.stdout_text.strip()

    async def blame(self, path: str) -> str:
        result = await self.run(["blame", "--", self.relative(path)])
        return result.stdout_text

    async def log(self, max_entries: int = DEFAULT_LOG_ENTRIES) -> List[Commit]:
        result = await self.run(
            ["log", f"-n{max_entries}", f"--format={COMMIT_FORMAT}", "-z", "--"],
            check=False,
        )
        if not result.ok:
            if "does not have any commits yet" in result.stderr_text:
                return []
            raise self.error_for(result)
        return parsers.parse_log(result.stdout_text)

    # ---- diff ----

    async def diff(self, cached: bool = False) -> str:
        args = ["diff"]
        if cached:
            args.append("--cached")
        result = await self.run(args)
        return result.stdout_text

    async def diff_files(self, cached: bool = False, ref: Optional[str] = None) -> List[Change]:
        args = ["diff"]
        if cached:
            args.append("--cached")
        args += ["--name-status", "-z", _DIFF_FILTER]
        if ref:
            args.append(ref)
        result = await self.run(args)
        return parsers.parse_name_status(result.stdout, self.root)

    async def diff_path(self, path: str, cached: bool = False, ref: Optional[str] = None) -> str:
        args = ["diff"]
        if cached:
            args.append("--cached")
        if ref:
            args.append(ref)
        args += ["--", self.relative(path)]
        result = await self.run(args)
        return result.stdout_text

    async def diff_blobs(self, object1: str, object2: str) -> str:
        result = await self.run(["diff", object1, object2])
        return result.stdout_text

    async def diff_between(self, ref1: str, ref2: str) -> List[Change]:
        result = await self.run(
            ["diff", "--name-status", "-z", _DIFF_FILTER, f"{ref1}...{ref2}"]
        )
        return parsers.parse_name_status(result.stdout, self.root)

    async def diff_between_path(self, ref1: str, ref2: str, path: str) -> str:
        result = await self.run(["diff", f"{ref1}...{ref2}", "--", self.relative(path)])
        return result.stdout_text

    async def binary_paths(self, cached: bool = False) -> Set[str]:
        args = ["diff", "--numstat", "-z"]
        if cached:
            args.insert(1, "--cached")
        result = await self.run(args)
        return parsers.parse_numstat(result.stdout)

    # ---- mutations ----

    async def apply(self, patch: str, reverse: bool = False) -> None:
        args = ["apply", patch]
        if reverse:
            args.append("-R")
        await self.run(args)

    async def clean(self, paths: Sequence[str]) -> None:
        await self.run(["clean", "-f", "-q", "--", *[self.relative(p) for p in paths]])

    async def checkout(self, treeish: Optional[str], paths: Sequence[str] = ()) -> None:
        args = ["checkout", "-q"]
        if treeish:
            args.append(treeish)
        if paths:
            args += ["--", *[self.relative(p) for p in paths]]
        await self.run(args)

    async def create_branch(self, name: str, checkout: bool, ref: Optional[str] = None) -> None:
        args = ["checkout", "-q", "-b", name] if checkout else ["branch", name]
        if ref:
            args.append(ref)
        await self.run(args)

    async def delete_branch(self, name: str, force: bool = False) -> None:
        await self.run(["branch", "-D" if force else "-d", name])

    async def set_branch_upstream(self, name: str, upstream: str) -> None:
        await self.run(["branch", "--set-upstream-to", upstream, name])

    async def add_remote(self, name: str, url: str) -> None:
        await self.run(["remote", "add", name, url])

    async def remove_remote(self, name: str) -> None:
        await self.run(["remote", "rm", name])

    async def fetch(
        self,
        remote: Optional[str] = None,
        ref: Optional[str] = None,
        depth: Optional[int] = None,
        *,
        cancellation: Optional[CancellationToken] = None,
    ) -> None:
        args = ["fetch"]
        if remote:
            args.append(remote)
            if ref:
                args.append(ref)
        if depth:
            args.append(f"--depth={depth}")
        await self.run(args, cancellation=cancellation)

    async def pull(
        self,
        unshallow: bool = False,
        *,
        cancellation: Optional[CancellationToken] = None,
    ) -> None:
        args = ["pull"]
        if unshallow:
            args.append("--unshallow")
        await self.run(args, cancellation=cancellation)

    async def push(
        self,
        remote: Optional[str] = None,
        branch: Optional[str] = None,
        set_upstream: bool = False,
        *,
        cancellation: Optional[CancellationToken] = None,
    ) -> None:
        args = ["push"]
        if set_upstream:
            args.append("-u")
        if remote:
            args.append(remote)
            if branch:
                args.append(branch)
        await self.run(args, cancellation=cancellation)

