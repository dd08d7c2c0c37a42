"""Porcelain status codes → semantic change groups.

Precedence, per path:
  1. ``??`` and ``!!`` go to the working tree as UNTRACKED / IGNORED.
  2. Any unmerged pair goes to merge changes and nowhere else.
  3. Otherwise the index column and the worktree column are read
     independently; a path staged and then edited again yields two records.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from gitstate.git.models import Change, RawStatusEntry, Status

_MERGE_CODES: Dict[str, Status] = {
    "DD": Status.BOTH_DELETED,
    "AU": Status.ADDED_BY_US,
    "UD": Status.DELETED_BY_THEM,
    "UA": Status.ADDED_BY_THEM,
    "DU": Status.DELETED_BY_US,
    "AA": Status.BOTH_ADDED,
    "UU": Status.BOTH_MODIFIED,
}

_INDEX_CODES: Dict[str, Status] = {
    "M": Status.INDEX_MODIFIED,
    "A": Status.INDEX_ADDED,
    "D": Status.INDEX_DELETED,
    "R": Status.INDEX_RENAMED,
    "C": Status.INDEX_COPIED,
}

_WORKTREE_CODES: Dict[str, Status] = {
    "M": Status.MODIFIED,
    "D": Status.DELETED,
    "A": Status.INTENT_TO_ADD,
}


@dataclass
class ClassifiedChanges:
    merge: List[Change] = field(default_factory=list)
    index: List[Change] = field(default_factory=list)
    working_tree: List[Change] = field(default_factory=list)


def classify_entry(entry: RawStatusEntry) -> Optional[Status]:
    """Return the merge/untracked/ignored status for *entry*, if it has one."""
    code = entry.code
    if code == "??":
        return Status.UNTRACKED
    if code == "!!":
        return Status.IGNORED
    return _MERGE_CODES.get(code)


def classify_changes(entries: Iterable[RawStatusEntry], root: Path) -> ClassifiedChanges:
    """Sort raw status entries into merge, index and working-tree changes."""
    result = ClassifiedChanges()

    for entry in entries:
        uri = root / entry.path
        rename_uri = root / entry.rename if entry.rename else None

        special = classify_entry(entry)
        if special is Status.UNTRACKED or special is Status.IGNORED:
            result.working_tree.append(Change(original_uri=uri, status=special))
            continue
        if special is not None:
            result.merge.append(Change(original_uri=uri, status=special))
            continue

        index_status = _INDEX_CODES.get(entry.x)
        if index_status is not None:
            result.index.append(
                Change(original_uri=uri, status=index_status, rename_uri=rename_uri)
            )

        worktree_status = _WORKTREE_CODES.get(entry.y)
        if worktree_status is not None:
            # after a staged rename the worktree change lives at the new path
            result.working_tree.append(
                Change(original_uri=uri, status=worktree_status, rename_uri=rename_uri)
            )

    return result
