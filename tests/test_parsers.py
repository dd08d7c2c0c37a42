"""Tests for git output parsers."""

from pathlib import Path

import pytest

from gitstate.git import parsers
from gitstate.git.errors import MalformedOutputError
from gitstate.git.models import RawStatusEntry, RefType, Status

SHA_A = "a" * 40
SHA_B = "b" * 40


class TestParseStatus:
    def test_all_records(self, sample_status):
        entries = parsers.parse_status(sample_status)
        assert [e.code for e in entries] == ["M ", " M", "MM", "R ", "??", "UU", " D", "A "]

    def test_rename_puts_original_in_path(self, sample_status):
        entries = parsers.parse_status(sample_status)
        rename = next(e for e in entries if e.x == "R")
        assert rename == RawStatusEntry(x="R", y=" ", path="old_name.py", rename="new_name.py")

    def test_paths_with_spaces_and_unicode(self):
        data = " M dir/with space.txt\x00?? café.md\x00".encode("utf-8")
        entries = parsers.parse_status(data)
        assert [e.path for e in entries] == ["dir/with space.txt", "café.md"]

    def test_empty_output(self):
        assert parsers.parse_status(b"") == []

    def test_one_bad_record_is_skipped(self, caplog):
        entries = parsers.parse_status(b" M good.py\x00XYZ\x00")
        assert [e.path for e in entries] == ["good.py"]
        assert "Skipping malformed status record" in caplog.text

    def test_all_bad_raises(self):
        with pytest.raises(MalformedOutputError):
            parsers.parse_status(b"garbage\x00")

    def test_truncated_rename(self):
        with pytest.raises(MalformedOutputError):
            parsers.parse_status(b"R  new.py\x00")


class TestParseRefs:
    def test_heads_remotes_tags(self):
        text = (
            f"refs/heads/main {SHA_A}\n"
            f"refs/remotes/origin/feature/x {SHA_B}\n"
            f"refs/tags/v1.0 {SHA_A}\n"
            f"refs/stash {SHA_B}\n"
        )
        refs = parsers.parse_refs(text)
        assert [(r.type, r.name) for r in refs] == [
            (RefType.HEAD, "main"),
            (RefType.REMOTE_HEAD, "origin/feature/x"),
            (RefType.TAG, "v1.0"),
        ]
        assert refs[1].remote == "origin"
        assert refs[0].commit == SHA_A

    def test_annotated_tag_is_peeled(self):
        text = (
            f"refs/heads/main {SHA_A} \n"
            f"refs/tags/light {SHA_A} \n"
            f"refs/tags/v2 {SHA_B} {SHA_A}\n"
        )
        refs = parsers.parse_refs(text)
        assert [(r.name, r.commit) for r in refs] == [
            ("main", SHA_A),
            ("light", SHA_A),
            ("v2", SHA_A),
        ]

    def test_garbage_raises(self):
        with pytest.raises(MalformedOutputError):
            parsers.parse_refs("nonsense\n")


class TestParseLog:
    def test_two_commits(self, sample_log):
        commits = parsers.parse_log(sample_log)
        assert [c.hash for c in commits] == [SHA_B, SHA_A]
        assert commits[0].message == "Second commit\n\nWith a body."
        assert commits[0].parents == (SHA_A,)
        assert commits[0].author_email == "dev@example.com"
        assert commits[1].parents == ()

    def test_empty(self):
        assert parsers.parse_log("") == []

    def test_parse_commit_rejects_garbage(self):
        assert parsers.parse_commit("not a commit") is None


class TestParseNameStatus:
    def test_mapping(self):
        root = Path("/repo")
        data = b"M\x00a.py\x00A\x00b.py\x00D\x00c.py\x00R100\x00old.py\x00new.py\x00"
        changes = parsers.parse_name_status(data, root)
        assert [(c.status, c.uri) for c in changes] == [
            (Status.MODIFIED, root / "a.py"),
            (Status.INDEX_ADDED, root / "b.py"),
            (Status.DELETED, root / "c.py"),
            (Status.INDEX_RENAMED, root / "new.py"),
        ]
        assert changes[3].original_uri == root / "old.py"


class TestParseRemotes:
    def test_read_only_detection(self, sample_remotes):
        remotes = parsers.parse_remotes(sample_remotes)
        assert [r.name for r in remotes] == ["origin", "upstream"]
        assert remotes[0].is_read_only is False
        assert remotes[0].push_url == "https://example.com/repo.git"
        assert remotes[1].is_read_only is True

    def test_fetch_only_remote_is_read_only(self):
        (remote,) = parsers.parse_remotes("mirror\thttps://example.com/m.git (fetch)\n")
        assert remote.is_read_only is True


class TestSmallParsers:
    def test_upstream(self):
        upstream = parsers.parse_upstream("refs/remotes/origin/feature/x\n")
        assert (upstream.remote, upstream.name) == ("origin", "feature/x")
        assert parsers.parse_upstream("") is None

    def test_ahead_behind(self):
        assert parsers.parse_ahead_behind("3\t1\n") == (3, 1)
        with pytest.raises(MalformedOutputError):
            parsers.parse_ahead_behind("x y")

    def test_config_list(self):
        data = b"user.name\nTest\x00core.bare\nfalse\x00core.flag\x00"
        entries = parsers.parse_config_list(data)
        assert [(e.key, e.value) for e in entries] == [
            ("user.name", "Test"),
            ("core.bare", "false"),
            ("core.flag", ""),
        ]

    def test_gitmodules(self):
        data = (
            b"submodule.lib.path\nvendor/lib\x00"
            b"submodule.lib.url\nhttps://example.com/lib.git\x00"
        )
        (sub,) = parsers.parse_gitmodules(data)
        assert (sub.name, sub.path, sub.url) == ("lib", "vendor/lib", "https://example.com/lib.git")

    def test_ls_tree(self):
        details = parsers.parse_ls_tree(f"100644 blob {SHA_A}      12\tREADME.md\n")
        assert (details.mode, details.object, details.size) == ("100644", SHA_A, 12)

    def test_ls_files_stage(self):
        assert parsers.parse_ls_files_stage(f"100755 {SHA_B} 0\trun.sh\n") == ("100755", SHA_B)

    def test_numstat_binaries(self):
        data = b"1\t0\ta.py\0-\t-\timg.png\0"
        assert parsers.parse_numstat(data) == {"img.png"}

    def test_numstat_renamed_binary(self):
        data = b"-\t-\t\0old.bin\0new.bin\0" + b"2\t1\t\0a.txt\0b.txt\0"
        assert parsers.parse_numstat(data) == {"new.bin"}

    def test_numstat_non_ascii_path(self):
        data = "-\t-\tcaf\u00e9.png\0".encode()
        assert parsers.parse_numstat(data) == {"caf\u00e9.png"}

    def test_numstat_garbage_raises(self):
        with pytest.raises(MalformedOutputError):
            parsers.parse_numstat(b"nonsense\0")

    def test_unquote_path(self):
        assert parsers.unquote_path("plain.txt") == "plain.txt"
        assert parsers.unquote_path('"caf\\303\\251.txt"') == "caf\u00e9.txt"
        assert parsers.unquote_path('"a\\tb\\\\c\\"d"') == 'a\tb\\c"d'
