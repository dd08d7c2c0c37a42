"""Async git subprocess runner with capture, cancellation and timeouts.

A non-zero exit status is a normal result here. Callers hand it to the
error classifier; only failures to launch the binary, cancellation and
timeouts raise from :meth:`GitExecutor.run`.
"""

from __future__ import annotations

import asyncio
import contextlib
import errno
import logging
import os
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from gitstate.git.errors import GitError, GitErrorCode

logger = logging.getLogger(__name__)

# errno values that mean "try again later" when creating pipes / forking
_TRANSIENT_SPAWN_ERRNOS = frozenset({errno.EAGAIN, errno.EMFILE, errno.ENFILE, errno.ENOMEM})

_CHILD_ENV = {
    "LC_ALL": "C",
    "GIT_TERMINAL_PROMPT": "0",
}


def find_git(configured: Optional[str] = None) -> str:
    """Locate the git binary: explicit setting, ``GITSTATE_GIT_PATH``, then PATH."""
    for candidate in (configured, os.environ.get("GITSTATE_GIT_PATH")):
        if candidate:
            resolved = shutil.which(candidate)
            if resolved is None:
                raise GitError(
                    f"git binary not found: {candidate}",
                    GitErrorCode.BINARY_NOT_FOUND,
                )
            return resolved
    resolved = shutil.which("git")
    if resolved is None:
        raise GitError("git is not installed or not on PATH", GitErrorCode.BINARY_NOT_FOUND)
    return resolved


class CancellationToken:
    """Cooperative cancellation signal passed into :meth:`GitExecutor.run`."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


@dataclass(frozen=True)
class ExecResult:
    """Captured outcome of one git invocation."""

    exit_code: int
    stdout: bytes
    stderr: bytes
    args: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def stdout_text(self) -> str:
        return self.stdout.decode("utf-8", errors="replace")

    @property
    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace")


class GitExecutor:
    """Runs the git binary. Holds configuration only, no per-call state."""

    def __init__(
        self,
        path: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        spawn_retries: int = 3,
        retry_delay: float = 0.05,
    ) -> None:
        self.path = path or find_git()
        self.timeout = timeout
        self.spawn_retries = max(0, spawn_retries)
        self.retry_delay = retry_delay
        self._version: Optional[str] = None

    async def version(self) -> str:
        """Return the ``git --version`` number, cached after the first call."""
        if self._version is None:
            result = await self.run(["--version"], cwd=Path.cwd())
            text = result.stdout_text.strip()
            self._version = text.removeprefix("git version ").strip() or text
        return self._version

    async def run(
        self,
        args: Sequence[str],
        cwd: Path,
        *,
        input: Optional[bytes] = None,
        cancellation: Optional[CancellationToken] = None,
        timeout: Optional[float] = None,
    ) -> ExecResult:
        """Run ``git <args>`` in *cwd* and capture its output."""
        argv = [self.path, *args]
        limit = timeout if timeout is not None else self.timeout
        if cancellation is not None and cancellation.is_cancelled:
            raise GitError(f"git {_name(args)} cancelled", GitErrorCode.CANCELLED, command=argv)

        start = time.perf_counter()
        proc = await self._spawn(argv, cwd, stdin=input is not None)
        communicate = asyncio.ensure_future(proc.communicate(input))
        waiters = {communicate}
        cancel_wait: Optional[asyncio.Future] = None
        if cancellation is not None:
            cancel_wait = asyncio.ensure_future(cancellation.wait())
            waiters.add(cancel_wait)

        try:
            done, _ = await asyncio.wait(
                waiters,
                timeout=limit or None,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            await _terminate(proc, communicate)
            raise
        finally:
            if cancel_wait is not None:
                cancel_wait.cancel()

        if communicate not in done:
            await _terminate(proc, communicate)
            if cancellation is not None and cancellation.is_cancelled:
                reason = "cancelled"
            else:
                reason = f"timed out after {limit}s"
            logger.info("git %s %s (cwd=%s)", _name(args), reason, cwd)
            raise GitError(f"git {_name(args)} {reason}", GitErrorCode.CANCELLED, command=argv)

        stdout, stderr = communicate.result()
        elapsed = (time.perf_counter() - start) * 1000
        logger.debug(
            "git %s -> %s in %.0fms (cwd=%s)", " ".join(args), proc.returncode, elapsed, cwd
        )
        return ExecResult(
            exit_code=proc.returncode if proc.returncode is not None else -1,
            stdout=stdout or b"",
            stderr=stderr or b"",
            args=argv,
        )

    async def _spawn(self, argv: List[str], cwd: Path, *, stdin: bool) -> asyncio.subprocess.Process:
        env = {**os.environ, **_CHILD_ENV}
        attempt = 0
        while True:
            try:
                return await asyncio.create_subprocess_exec(
                    *argv,
                    cwd=str(cwd),
                    env=env,
                    stdin=asyncio.subprocess.PIPE if stdin else asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except FileNotFoundError as exc:
                if not Path(cwd).is_dir():
                    raise GitError(
                        f"Working directory does not exist: {cwd}",
                        GitErrorCode.NOT_A_REPOSITORY,
                        command=argv,
                    ) from exc
                raise GitError(
                    f"git binary not found: {self.path}",
                    GitErrorCode.BINARY_NOT_FOUND,
                    command=argv,
                ) from exc
            except PermissionError as exc:
                raise GitError(
                    f"git binary cannot be executed: {self.path}",
                    GitErrorCode.BINARY_NOT_FOUND,
                    command=argv,
                ) from exc
            except OSError as exc:
                if exc.errno not in _TRANSIENT_SPAWN_ERRNOS or attempt >= self.spawn_retries:
                    raise GitError(
                        f"Failed to start git: {exc}",
                        GitErrorCode.CANT_CREATE_PIPE,
                        command=argv,
                    ) from exc
                attempt += 1
                logger.warning(
                    "Transient spawn failure (%s), retry %d/%d", exc, attempt, self.spawn_retries
                )
                await asyncio.sleep(self.retry_delay * attempt)


async def _terminate(proc: asyncio.subprocess.Process, communicate: asyncio.Future) -> None:
    """Kill the child and reap it so no zombie or open pipe is left behind."""
    with contextlib.suppress(ProcessLookupError):
        proc.kill()
    with contextlib.suppress(ProcessLookupError):
        await proc.wait()
    communicate.cancel()
    with contextlib.suppress(asyncio.CancelledError, OSError):
        await communicate


def _name(args: Sequence[str]) -> str:
    return args[0] if args else ""
