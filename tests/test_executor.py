"""Tests for the git process executor."""

import asyncio
import errno
import stat
import sys
from pathlib import Path

import pytest

from gitstate.git.errors import GitError, GitErrorCode
from gitstate.git.executor import CancellationToken, GitExecutor

from conftest import requires_git

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="uses a shell script stand-in")


def _fake_git(tmp_path: Path, body: str) -> str:
    script = tmp_path / "fake-git"
    script.write_text(f"#!/bin/sh\n{body}\n")
    script.chmod(script.stat().st_mode | stat.S_IEXEC)
    return str(script)


@requires_git
@pytest.mark.asyncio
async def test_runs_real_git(tmp_path: Path):
    executor = GitExecutor()
    result = await executor.run(["--version"], tmp_path)
    assert result.ok
    assert result.stdout_text.startswith("git version")
    assert (await executor.version())[0].isdigit()


@requires_git
@pytest.mark.asyncio
async def test_non_zero_exit_is_returned_not_raised(tmp_path: Path):
    result = await GitExecutor().run(["rev-parse", "HEAD"], tmp_path)
    assert not result.ok
    assert "not a git repository" in result.stderr_text.lower()


@posix_only
@pytest.mark.asyncio
async def test_child_environment(tmp_path: Path):
    executor = GitExecutor(_fake_git(tmp_path, 'echo "$LC_ALL $GIT_TERMINAL_PROMPT"'))
    result = await executor.run(["anything"], tmp_path)
    assert result.stdout_text.strip() == "C 0"


@posix_only
@pytest.mark.asyncio
async def test_stdin_is_delivered(tmp_path: Path):
    executor = GitExecutor(_fake_git(tmp_path, "cat"))
    result = await executor.run(["hash-object"], tmp_path, input=b"payload")
    assert result.stdout == b"payload"


@posix_only
@pytest.mark.asyncio
async def test_timeout_kills_child(tmp_path: Path):
    executor = GitExecutor(_fake_git(tmp_path, "sleep 30"))
    loop = asyncio.get_running_loop()
    start = loop.time()
    with pytest.raises(GitError) as exc_info:
        await executor.run(["fetch"], tmp_path, timeout=0.2)
    assert exc_info.value.code is GitErrorCode.CANCELLED
    assert loop.time() - start < 5


@posix_only
@pytest.mark.asyncio
async def test_cancellation_token(tmp_path: Path):
    executor = GitExecutor(_fake_git(tmp_path, "sleep 30"))
    token = CancellationToken()
    asyncio.get_running_loop().call_later(0.1, token.cancel)
    with pytest.raises(GitError) as exc_info:
        await executor.run(["push"], tmp_path, cancellation=token)
    assert exc_info.value.code is GitErrorCode.CANCELLED


@pytest.mark.asyncio
async def test_already_cancelled_token_does_not_spawn(tmp_path: Path):
    executor = GitExecutor("/bin/does-not-matter")
    token = CancellationToken()
    token.cancel()
    with pytest.raises(GitError) as exc_info:
        await executor.run(["status"], tmp_path, cancellation=token)
    assert exc_info.value.code is GitErrorCode.CANCELLED


@posix_only
@pytest.mark.asyncio
async def test_task_cancellation_propagates(tmp_path: Path):
    executor = GitExecutor(_fake_git(tmp_path, "sleep 30"))
    task = asyncio.create_task(executor.run(["fetch"], tmp_path))
    await asyncio.sleep(0.1)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task


@pytest.mark.asyncio
async def test_missing_binary(tmp_path: Path):
    executor = GitExecutor(str(tmp_path / "no-such-git"))
    with pytest.raises(GitError) as exc_info:
        await executor.run(["status"], tmp_path)
    assert exc_info.value.code is GitErrorCode.BINARY_NOT_FOUND


@posix_only
@pytest.mark.asyncio
async def test_missing_cwd(tmp_path: Path):
    executor = GitExecutor(_fake_git(tmp_path, "true"))
    with pytest.raises(GitError) as exc_info:
        await executor.run(["status"], tmp_path / "gone")
    assert exc_info.value.code is GitErrorCode.NOT_A_REPOSITORY


@pytest.mark.asyncio
async def test_transient_spawn_failure_is_retried(tmp_path: Path, monkeypatch):
    calls = 0

    async def exhausted(*args, **kwargs):
        nonlocal calls
        calls += 1
        raise OSError(errno.EMFILE, "Too many open files")

    monkeypatch.setattr(asyncio, "create_subprocess_exec", exhausted)
    executor = GitExecutor("/usr/bin/git", spawn_retries=2, retry_delay=0)
    with pytest.raises(GitError) as exc_info:
        await executor.run(["status"], tmp_path)
    assert exc_info.value.code is GitErrorCode.CANT_CREATE_PIPE
    assert calls == 3
