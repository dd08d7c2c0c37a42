"""Tests for the JSON and terminal reporters."""

import io
import json
from pathlib import Path

from rich.console import Console

from gitstate.git.models import Branch, Change, Commit, FilePatch, FileStatus, Ref, RefType, Remote, Status, UpstreamRef
from gitstate.output import json_report, terminal
from gitstate.repository.state import RepositoryState

ROOT = Path("/work/repo")
SHA = "c" * 40


def _make_state() -> RepositoryState:
    return RepositoryState.build(
        head=Branch(
            type=RefType.HEAD,
            name="main",
            commit=SHA,
            upstream=UpstreamRef(remote="origin", name="main"),
            ahead=2,
            behind=0,
        ),
        refs=[
            Ref(type=RefType.REMOTE_HEAD, name="origin/main", commit=SHA, remote="origin"),
            Ref(type=RefType.HEAD, name="main", commit=SHA),
        ],
        remotes=[Remote(name="origin", fetch_url="u", push_url="u")],
        submodules=[],
        rebase_commit=None,
        merge_changes=[Change(original_uri=ROOT / "c.txt", status=Status.BOTH_MODIFIED)],
        index_changes=[
            Change(
                original_uri=ROOT / "old.py",
                status=Status.INDEX_RENAMED,
                rename_uri=ROOT / "new.py",
            )
        ],
        working_tree_changes=[
            Change(original_uri=ROOT / "z.txt", status=Status.UNTRACKED),
            Change(original_uri=ROOT / "a.txt", status=Status.MODIFIED),
        ],
    )


def _console() -> Console:
    return Console(file=io.StringIO(), width=120, color_system=None)


class TestJsonReport:
    def test_valid_json(self):
        data = json.loads(json_report.render(_make_state(), ROOT))
        assert data["version"] == "1.0"
        assert data["clean"] is False
        assert data["head"]["name"] == "main"
        assert data["head"]["upstream"] == {"remote": "origin", "name": "main"}
        assert data["head"]["ahead"] == 2

    def test_relative_paths_and_rename(self):
        data = json_report.to_dict(_make_state(), ROOT)
        (renamed,) = data["index_changes"]
        assert renamed == {
            "status": "index_renamed",
            "path": "new.py",
            "original_path": "old.py",
            "rename_path": "new.py",
        }
        assert [c["path"] for c in data["working_tree_changes"]] == ["a.txt", "z.txt"]
        assert data["merge_changes"][0]["status"] == "both_modified"

    def test_refs_sorted_by_type(self):
        data = json_report.to_dict(_make_state(), ROOT)
        assert [r["type"] for r in data["refs"]] == ["head", "remote_head"]

    def test_empty_state(self):
        data = json_report.to_dict(RepositoryState(), ROOT)
        assert data["clean"] is True
        assert data["head"] is None

    def test_log(self):
        commits = [Commit(hash=SHA, message="msg", parents=("d" * 40,), author_email="a@b")]
        data = json.loads(json_report.render_log(commits))
        assert data == [
            {"hash": SHA, "author_email": "a@b", "parents": ["d" * 40], "message": "msg"}
        ]


class TestTerminal:
    def test_state_tables(self):
        console = _console()
        terminal.render_state(_make_state(), ROOT, console=console)
        out = console.file.getvalue()
        assert "main → origin/main [↑2 ↓0]" in out
        assert "Merge changes" in out
        assert "old.py → new.py" in out
        assert "Staged:" in out

    def test_clean_state(self):
        console = _console()
        terminal.render_state(RepositoryState(), ROOT, show_summary=False, console=console)
        out = console.file.getvalue()
        assert "Working tree clean." in out
        assert "Staged:" not in out

    def test_describe_detached(self):
        assert terminal.describe_head(Branch(type=RefType.HEAD, commit=SHA)) == "(detached at cccccccc)"
        assert terminal.describe_head(None) == "(no HEAD)"

    def test_branches_mark_current(self):
        console = _console()
        state = _make_state()
        terminal.render_branches(state.refs, state.head, console=console)
        out = console.file.getvalue()
        assert "origin/main" in out
        assert "*" in out

    def test_patches(self):
        console = _console()
        patches = [
            FilePatch(path="a.py", text="diff --git a/a.py b/a.py\n+x\n"),
            FilePatch(path="img.png", text="", status=FileStatus.ADDED, binary=True),
        ]
        terminal.render_patches(patches, console=console)
        out = console.file.getvalue()
        assert "+x" in out
        assert "Binary file" in out

    def test_no_patches(self):
        console = _console()
        terminal.render_patches([], console=console)
        assert "No differences." in console.file.getvalue()
