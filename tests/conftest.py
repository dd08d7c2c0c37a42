"""Shared test fixtures: sample git output, sample diffs, temp git repos."""

from __future__ import annotations

import shutil
import subprocess
import textwrap
from pathlib import Path
from typing import Callable

import pytest

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


def git(cwd: Path, *args: str) -> str:
    """Run git in *cwd* and return stdout; fails the test on a non-zero exit."""
    result = subprocess.run(
        ["git", *args], cwd=cwd, capture_output=True, text=True, check=True
    )
    return result.stdout


def commit_file(repo: Path, name: str, content: str, message: str) -> str:
    path = repo / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    git(repo, "add", name)
    git(repo, "commit", "-q", "-m", message)
    return git(repo, "rev-parse", "HEAD").strip()


@pytest.fixture(autouse=True)
def isolated_git_config(tmp_path_factory, monkeypatch):
    """Keep the developer's own git configuration out of every test."""
    home = tmp_path_factory.mktemp("home")
    global_config = home / ".gitconfig"
    global_config.write_text(
        "[user]\n"
        "\tname = Test\n"
        "\temail = test@test.com\n"
        "[init]\n"
        "\tdefaultBranch = main\n"
        "[commit]\n"
        "\tgpgsign = false\n"
    )
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(global_config))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    for var in ("GITSTATE_GIT_PATH", "GITSTATE_TIMEOUT", "GITSTATE_LOG_MAX_ENTRIES", "GITSTATE_FORMAT"):
        monkeypatch.delenv(var, raising=False)
    return global_config


@pytest.fixture
def tmp_git_repo(tmp_path: Path) -> Path:
    """Create a temporary git repository with one commit on ``main``."""
    repo = tmp_path / "repo"
    repo.mkdir()
    git(repo, "init", "-q")
    git(repo, "symbolic-ref", "HEAD", "refs/heads/main")
    commit_file(repo, "README.md", "# Test\n", "init")
    return repo.resolve()


@pytest.fixture
def make_repo(tmp_path: Path) -> Callable[[str], Path]:
    """Factory for extra repositories under ``tmp_path``."""

    def _make(name: str) -> Path:
        repo = tmp_path / name
        repo.mkdir(parents=True)
        git(repo, "init", "-q")
        git(repo, "symbolic-ref", "HEAD", "refs/heads/main")
        commit_file(repo, "README.md", f"# {name}\n", "init")
        return repo.resolve()

    return _make


@pytest.fixture
def bare_remote(tmp_path: Path, tmp_git_repo: Path) -> Path:
    """A bare clone of ``tmp_git_repo`` registered as its ``origin``."""
    remote = tmp_path / "remote.git"
    git(tmp_path, "clone", "-q", "--bare", str(tmp_git_repo), str(remote))
    git(tmp_git_repo, "remote", "add", "origin", str(remote))
    git(tmp_git_repo, "fetch", "-q", "origin")
    git(tmp_git_repo, "branch", "-q", "--set-upstream-to", "origin/main", "main")
    return remote


# ── sample porcelain output ───────────────────────────────────────────────────


@pytest.fixture
def sample_status() -> bytes:
    """``git status -z -u`` covering staged, unstaged, renamed, untracked and conflicted paths."""
    records = [
        b"M  staged.py",
        b" M edited.py",
        b"MM both.py",
        b"R  new_name.py",
        b"old_name.py",
        b"?? untracked.txt",
        b"UU conflict.txt",
        b" D gone.txt",
        b"A  added.txt",
    ]
    return b"\x00".join(records) + b"\x00"


@pytest.fixture
def sample_log() -> str:
    """``git log --format=%H%n%aE%n%P%n%B -z`` for two commits, newest first."""
    return (
        "b" * 40 + "\n"
        "dev@example.com\n"
        + "a" * 40 + "\n"
        "Second commit\n\nWith a body.\n"
        "\x00"
        + "a" * 40 + "\n"
        "dev@example.com\n"
        "\n"
        "Initial commit\n"
    )


@pytest.fixture
def sample_remotes() -> str:
    return textwrap.dedent("""\
        origin\thttps://example.com/repo.git (fetch)
        origin\thttps://example.com/repo.git (push)
        upstream\thttps://example.com/upstream.git (fetch)
        upstream\tno_push (push)
    """)


# ── sample diffs ──────────────────────────────────────────────────────────────


@pytest.fixture
def sample_diff_clean() -> str:
    """A diff adding one file."""
    return textwrap.dedent("""\
        diff --git a/hello.py b/hello.py
        new file mode 100644
        index 0000000..e69de29
        --- /dev/null
        +++ b/hello.py
        @@ -0,0 +1,3 @@
        +def greet(name):
        +    return f"Hello, {name}!"
        +
    """)


@pytest.fixture
def sample_diff_two_files() -> str:
    """A modification followed by a deletion."""
    return textwrap.dedent("""\
        diff --git a/app.py b/app.py
        index 1234567..abcdef0 100644
        --- a/app.py
        +++ b/app.py
        @@ -10,0 +11,1 @@
        +timeout = 30
        diff --git a/legacy.py b/legacy.py
        deleted file mode 100644
        index 1234567..0000000
        --- a/legacy.py
        +++ /dev/null
        @@ -1 +0,0 @@
        -print("bye")
    """)


@pytest.fixture
def sample_diff_binary() -> str:
    """A diff with a binary file."""
    return textwrap.dedent("""\
        diff --git a/image.png b/image.png
        new file mode 100644
        Binary files /dev/null and b/image.png differ
    """)


@pytest.fixture
def sample_diff_rename() -> str:
    """A diff with a renamed file."""
    return textwrap.dedent("""\
        diff --git a/old_name.py b/new_name.py
        similarity index 97%
        rename from old_name.py
        rename to new_name.py
        index abc1234..def5678 100644
        --- a/old_name.py
        +++ b/new_name.py
        @@ -1,0 +2,1 @@
        +# New line added after rename
    """)


@pytest.fixture
def sample_diff_mode_only() -> str:
    """A diff with only file mode change."""
    return textwrap.dedent("""\
        diff --git a/script.sh b/script.sh
        old mode 100644
        new mode 100755
    """)


@pytest.fixture
def sample_diff_no_newline() -> str:
    """A diff with 'No newline at end of file' marker."""
    return textwrap.dedent("""\
        diff --git a/data.txt b/data.txt
        new file mode 100644
        index 0000000..abc1234
        --- /dev/null
        +++ b/data.txt
        @@ -0,0 +1 @@
        +final line without newline
        \\ No newline at end of file
    """)
