"""JSON reporter for scripts and CI pipelines."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from gitstate.git.models import Branch, Change, Commit
from gitstate.repository.state import RepositoryState

SCHEMA_VERSION = "1.0"


def _rel(path: Optional[Path], root: Path) -> Optional[str]:
    if path is None:
        return None
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return str(path)


def _change(change: Change, root: Path) -> Dict[str, Any]:
    return {
        "status": change.status.value,
        "path": _rel(change.uri, root),
        "original_path": _rel(change.original_uri, root),
        **({"rename_path": _rel(change.rename_uri, root)} if change.rename_uri else {}),
    }


def _branch(head: Optional[Branch]) -> Optional[Dict[str, Any]]:
    if head is None:
        return None
    return {
        "name": head.name,
        "commit": head.commit,
        "detached": head.name is None,
        "upstream": (
            {"remote": head.upstream.remote, "name": head.upstream.name}
            if head.upstream
            else None
        ),
        "ahead": head.ahead,
        "behind": head.behind,
    }


def commit_to_dict(commit: Commit) -> Dict[str, Any]:
    return {
        "hash": commit.hash,
        "author_email": commit.author_email,
        "parents": list(commit.parents),
        "message": commit.message,
    }


def to_dict(state: RepositoryState, root: Path) -> Dict[str, Any]:
    """Convert a snapshot to a JSON-serialisable dict with root-relative paths."""
    return {
        "version": SCHEMA_VERSION,
        "root": str(root),
        "head": _branch(state.head),
        "clean": state.is_clean,
        "refs": [
            {"type": r.type.name.lower(), "name": r.name, "commit": r.commit, "remote": r.remote}
            for r in state.refs
        ],
        "remotes": [
            {
                "name": r.name,
                "fetch_url": r.fetch_url,
                "push_url": r.push_url,
                "read_only": r.is_read_only,
            }
            for r in state.remotes
        ],
        "submodules": [{"name": s.name, "path": s.path, "url": s.url} for s in state.submodules],
        "rebase_commit": commit_to_dict(state.rebase_commit) if state.rebase_commit else None,
        "merge_changes": [_change(c, root) for c in state.merge_changes],
        "index_changes": [_change(c, root) for c in state.index_changes],
        "working_tree_changes": [_change(c, root) for c in state.working_tree_changes],
    }


def render(state: RepositoryState, root: Path) -> str:
    """Return formatted JSON string."""
    return json.dumps(to_dict(state, root), indent=2)


def render_log(commits: Iterable[Commit]) -> str:
    items: List[Dict[str, Any]] = [commit_to_dict(c) for c in commits]
    return json.dumps(items, indent=2)
