"""Parsers for git's script-friendly output formats.

Every parser is a pure function over the raw text (or bytes, for ``-z``
output). A single bad record is skipped with a warning; a stream where
nothing parses raises :class:`MalformedOutputError`.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from gitstate.git.errors import MalformedOutputError
from gitstate.git.models import (
    Change,
    Commit,
    ConfigEntry,
    ObjectDetails,
    RawStatusEntry,
    Ref,
    RefType,
    Remote,
    Status,
    Submodule,
    UpstreamRef,
)

logger = logging.getLogger(__name__)

# --- Regex patterns ---

_SHA = r"[0-9a-f]{40,64}"
# optional third column: the peeled object of an annotated tag
_PEELED = rf"(?: ({_SHA})?)?"
_ANY_REF_RE = re.compile(rf"^refs/\S+ {_SHA}{_PEELED}$")
_HEAD_REF_RE = re.compile(rf"^refs/heads/(\S+) ({_SHA}){_PEELED}$")
_REMOTE_REF_RE = re.compile(rf"^refs/remotes/([^/]+)/(\S+) ({_SHA}){_PEELED}$")
_TAG_REF_RE = re.compile(rf"^refs/tags/(\S+) ({_SHA}){_PEELED}$")
_COMMIT_RE = re.compile(rf"^({_SHA})\n(.*)\n(.*)(?:\n([\s\S]*))?$")
_REMOTE_LINE_RE = re.compile(r"^(\S+)\t(.+?)\s+\((fetch|push)\)$")
_LS_TREE_RE = re.compile(rf"^(\d+)\s+(\w+)\s+({_SHA})\s+(\d+|-)\t(.*)$")
_LS_FILES_RE = re.compile(rf"^(\d+)\s+({_SHA})\s+(\d)\t(.*)$")
_UPSTREAM_RE = re.compile(r"^refs/remotes/([^/]+)/(.+)$")
_NAME_STATUS_RE = re.compile(r"^([ACDMRTUX])(\d*)$")

_STATUS_CODES = frozenset(" MADRCUT?!")
_READ_ONLY_PUSH_URLS = frozenset({"no_push", "no-push", "DISABLE", "DISABLED"})


def _report(bad: List[str], parsed: int, what: str) -> None:
    """Raise when nothing parsed, otherwise log each skipped record."""
    if not bad:
        return
    if parsed == 0:
        raise MalformedOutputError(f"Unparseable {what} output", bad[0])
    for line in bad:
        logger.warning("Skipping malformed %s record: %r", what, line)


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", errors="surrogateescape")


_C_ESCAPES = {
    "a": 0x07, "b": 0x08, "f": 0x0C, "n": 0x0A, "r": 0x0D, "t": 0x09, "v": 0x0B,
    '"': 0x22, "\\": 0x5C,
}


def unquote_path(text: str) -> str:
    """Undo git's C-style quoting of a path (``core.quotePath``).

    Unquoted input is returned unchanged. Octal escapes are raw bytes, so
    ``"caf\\303\\251.txt"`` decodes to ``café.txt``.
    """
    if len(text) < 2 or not (text.startswith('"') and text.endswith('"')):
        return text
    inner = text[1:-1]
    out = bytearray()
    i = 0
    while i < len(inner):
        ch = inner[i]
        if ch != "\\" or i + 1 == len(inner):
            out += ch.encode("utf-8", errors="surrogateescape")
            i += 1
            continue
        nxt = inner[i + 1]
        octal = inner[i + 1:i + 4]
        if len(octal) == 3 and all(c in "01234567" for c in octal):
            out.append(int(octal, 8) & 0xFF)
            i += 4
        elif nxt in _C_ESCAPES:
            out.append(_C_ESCAPES[nxt])
            i += 2
        else:
            out += nxt.encode("utf-8", errors="surrogateescape")
            i += 2
    return _decode(bytes(out))


# ---- refs ----


def parse_refs(text: str) -> List[Ref]:
    """Parse ``for-each-ref --format "%(refname) %(objectname) %(*objectname)"``.

    Annotated tags carry the peeled commit in the third column; it wins over
    the tag object id.
    """
    refs: List[Ref] = []
    bad: List[str] = []
    seen = 0
    for line in text.splitlines():
        if not line.strip():
            continue
        if not _ANY_REF_RE.match(line):
            bad.append(line)
            continue
        seen += 1
        if m := _HEAD_REF_RE.match(line):
            refs.append(Ref(type=RefType.HEAD, name=m.group(1), commit=m.group(2)))
        elif m := _REMOTE_REF_RE.match(line):
            refs.append(
                Ref(
                    type=RefType.REMOTE_HEAD,
                    name=f"{m.group(1)}/{m.group(2)}",
                    commit=m.group(3),
                    remote=m.group(1),
                )
            )
        elif m := _TAG_REF_RE.match(line):
            refs.append(Ref(type=RefType.TAG, name=m.group(1), commit=m.group(3) or m.group(2)))
        # refs/stash, refs/notes/* etc. are well-formed but not tracked
    _report(bad, seen, "ref listing")
    return refs


def parse_upstream(text: str) -> Optional[UpstreamRef]:
    """Parse ``rev-parse --symbolic-full-name <branch>@{u}``."""
    m = _UPSTREAM_RE.match(text.strip())
    if m is None:
        return None
    return UpstreamRef(remote=m.group(1), name=m.group(2))


def parse_ahead_behind(text: str) -> Tuple[int, int]:
    """Parse ``rev-list --left-right --count <branch>...<upstream>``."""
    parts = text.split()
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        raise MalformedOutputError("Unparseable ahead/behind count", text.strip())
    return int(parts[0]), int(parts[1])


# ---- status ----


def parse_status(data: bytes) -> List[RawStatusEntry]:
    """Parse ``status -z -u`` (porcelain v1).

    Rename and copy records are followed by a second NUL-terminated field:
    the new path comes first, the original path second.
    """
    entries: List[RawStatusEntry] = []
    bad: List[str] = []
    fields = data.split(b"\0")
    idx = 0
    total = len(fields)

    while idx < total:
        raw = fields[idx]
        idx += 1
        if not raw:
            continue
        text = _decode(raw)
        if len(text) < 4 or text[2] != " " or text[0] not in _STATUS_CODES or text[1] not in _STATUS_CODES:
            bad.append(text)
            continue
        x, y, first = text[0], text[1], text[3:]
        if x in ("R", "C"):
            if idx >= total or not fields[idx]:
                bad.append(text)
                continue
            original = _decode(fields[idx])
            idx += 1
            entries.append(RawStatusEntry(x=x, y=y, path=original, rename=first))
        else:
            entries.append(RawStatusEntry(x=x, y=y, path=first))

    _report(bad, len(entries), "status")
    return entries


# ---- commits ----


def parse_commit(record: str) -> Optional[Commit]:
    """Parse one ``%H%n%aE%n%P%n%B`` record, or None if it does not match."""
    m = _COMMIT_RE.match(record.strip("\n"))
    if m is None:
        return None
    commit_hash, email, parents, message = m.groups()
    return Commit(
        hash=commit_hash,
        message=(message or "").rstrip("\n"),
        parents=tuple(p for p in parents.split(" ") if p),
        author_email=email or None,
    )


def parse_log(text: str) -> List[Commit]:
    """Parse ``log -z --format=%H%n%aE%n%P%n%B`` (NUL between commits)."""
    commits: List[Commit] = []
    bad: List[str] = []
    for record in text.split("\0"):
        if not record.strip():
            continue
        commit = parse_commit(record)
        if commit is None:
            bad.append(record.splitlines()[0] if record.strip() else record)
            continue
        commits.append(commit)
    _report(bad, len(commits), "log")
    return commits


# ---- diff ----


def parse_name_status(data: bytes, root: Path) -> List[Change]:
    """Parse ``diff --name-status -z`` into Changes rooted at *root*."""
    changes: List[Change] = []
    bad: List[str] = []
    fields = [_decode(f) for f in data.split(b"\0")]
    idx = 0
    total = len(fields)

    while idx < total:
        token = fields[idx]
        idx += 1
        if not token:
            continue
        m = _NAME_STATUS_RE.match(token)
        if m is None or idx >= total:
            bad.append(token)
            continue
        kind = m.group(1)
        path = fields[idx]
        idx += 1

        if kind in ("R", "C"):
            if idx >= total:
                bad.append(token)
                continue
            new_path = fields[idx]
            idx += 1
            if kind == "R":
                changes.append(
                    Change(
                        original_uri=root / path,
                        rename_uri=root / new_path,
                        status=Status.INDEX_RENAMED,
                    )
                )
            continue
        if kind == "M":
            changes.append(Change(original_uri=root / path, status=Status.MODIFIED))
        elif kind == "A":
            changes.append(Change(original_uri=root / path, status=Status.INDEX_ADDED))
        elif kind == "D":
            changes.append(Change(original_uri=root / path, status=Status.DELETED))
        # T/U/X are excluded by --diff-filter=ADMR

    _report(bad, len(changes), "name-status")
    return changes


def parse_numstat(data: bytes) -> Set[str]:
    """Return the binary paths from ``diff --numstat -z``.

    Binary files show ``-`` in both count columns. A rename record has an
    empty path field followed by the old and new paths, each NUL-terminated;
    the new path is the one reported.
    """
    binaries: Set[str] = set()
    bad: List[str] = []
    parsed = 0
    fields = data.split(b"\0")
    idx = 0
    total = len(fields)

    while idx < total:
        raw = fields[idx]
        idx += 1
        if not raw.strip():
            continue
        parts = raw.split(b"\t", 2)
        if len(parts) != 3:
            bad.append(_decode(raw))
            continue
        added, deleted, path = parts
        if not path:
            if idx + 1 >= total:
                bad.append(_decode(raw))
                continue
            path = fields[idx + 1]
            idx += 2
        parsed += 1
        if added == b"-" and deleted == b"-":
            binaries.add(_decode(path))

    _report(bad, parsed, "numstat")
    return binaries


# ---- remotes / submodules / config ----


def parse_remotes(text: str) -> List[Remote]:
    """Parse ``remote --verbose``."""
    fetch: Dict[str, str] = {}
    push: Dict[str, str] = {}
    order: List[str] = []
    bad: List[str] = []
    for line in text.splitlines():
        if not line.strip():
            continue
        m = _REMOTE_LINE_RE.match(line)
        if m is None:
            bad.append(line)
            continue
        name, url, kind = m.groups()
        if name not in order:
            order.append(name)
        (fetch if kind == "fetch" else push)[name] = url
    _report(bad, len(order), "remote")

    remotes: List[Remote] = []
    for name in order:
        push_url = push.get(name)
        remotes.append(
            Remote(
                name=name,
                fetch_url=fetch.get(name),
                push_url=push_url,
                is_read_only=push_url is None or push_url in _READ_ONLY_PUSH_URLS,
            )
        )
    return remotes


def _split_config_records(data: bytes) -> List[Tuple[str, str]]:
    """Split ``-z`` config output into ``(key, value)`` pairs."""
    pairs: List[Tuple[str, str]] = []
    for raw in data.split(b"\0"):
        if not raw:
            continue
        record = _decode(raw)
        key, sep, value = record.partition("\n")
        pairs.append((key, value if sep else ""))
    return pairs


def parse_config_list(data: bytes) -> List[ConfigEntry]:
    """Parse ``config -l -z``."""
    return [ConfigEntry(key=k, value=v) for k, v in _split_config_records(data)]


def parse_gitmodules(data: bytes) -> List[Submodule]:
    """Parse ``config -z -f .gitmodules --get-regexp ^submodule\\.``."""
    props: Dict[str, Dict[str, str]] = {}
    bad: List[str] = []
    for key, value in _split_config_records(data):
        if not key.startswith("submodule.") or key.count(".") < 2:
            bad.append(key)
            continue
        name, _, prop = key[len("submodule."):].rpartition(".")
        props.setdefault(name, {})[prop] = value
    _report(bad, len(props), "submodule")
    return [
        Submodule(name=name, path=p["path"], url=p.get("url", ""))
        for name, p in props.items()
        if "path" in p
    ]


# ---- objects ----


def parse_ls_tree(text: str) -> ObjectDetails:
    """Parse the single entry of ``ls-tree -l <treeish> -- <path>``."""
    for line in text.splitlines():
        m = _LS_TREE_RE.match(line)
        if m:
            mode, _, obj, size, _ = m.groups()
            return ObjectDetails(mode=mode, object=obj, size=0 if size == "-" else int(size))
    raise MalformedOutputError("Unparseable ls-tree output", text.strip())


def parse_ls_files_stage(text: str) -> Tuple[str, str]:
    """Parse ``ls-files --stage -- <path>``; returns ``(mode, object)``."""
    for line in text.splitlines():
        m = _LS_FILES_RE.match(line)
        if m:
            return m.group(1), m.group(2)
    raise MalformedOutputError("Unparseable ls-files output", text.strip())
