"""Immutable repository snapshot plus the small mutable holders around it."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Tuple

from gitstate.git.models import Branch, Change, Commit, Ref, Remote, Submodule
from gitstate.repository.events import EventEmitter


class RefreshStatus(str, Enum):
    CLEAN = "clean"
    REFRESHING = "refreshing"
    STALE = "stale"


def _ref_key(ref: Ref) -> Tuple[str, str]:
    return (ref.type.value, ref.name or "")


@dataclass(frozen=True)
class RepositoryState:
    """Point-in-time snapshot of a working copy.

    Replaced wholesale on every refresh; ``==`` compares content, which is
    what decides whether a change notification fires.
    """

    head: Optional[Branch] = None
    refs: Tuple[Ref, ...] = ()
    remotes: Tuple[Remote, ...] = ()
    submodules: Tuple[Submodule, ...] = ()
    rebase_commit: Optional[Commit] = None
    merge_changes: Tuple[Change, ...] = ()
    index_changes: Tuple[Change, ...] = ()
    working_tree_changes: Tuple[Change, ...] = ()

    @classmethod
    def build(
        cls,
        *,
        head: Optional[Branch],
        refs: Iterable[Ref],
        remotes: Iterable[Remote],
        submodules: Iterable[Submodule],
        rebase_commit: Optional[Commit],
        merge_changes: Iterable[Change],
        index_changes: Iterable[Change],
        working_tree_changes: Iterable[Change],
    ) -> "RepositoryState":
        """Normalise collection order so equal content compares equal."""
        return cls(
            head=head,
            refs=tuple(sorted(refs, key=_ref_key)),
            remotes=tuple(sorted(remotes, key=lambda r: r.name)),
            submodules=tuple(sorted(submodules, key=lambda s: s.path)),
            rebase_commit=rebase_commit,
            merge_changes=tuple(sorted(merge_changes, key=lambda c: str(c.uri))),
            index_changes=tuple(sorted(index_changes, key=lambda c: str(c.uri))),
            working_tree_changes=tuple(sorted(working_tree_changes, key=lambda c: str(c.uri))),
        )

    @property
    def is_clean(self) -> bool:
        return not (self.merge_changes or self.index_changes or self.working_tree_changes)

    @property
    def is_detached(self) -> bool:
        return self.head is not None and self.head.name is None


@dataclass
class InputBox:
    """Free-text commit message owned by the caller; the engine only exposes it."""

    value: str = ""


@dataclass
class RepositoryUIState:
    """Presentation-only selection flag. Not part of RepositoryState."""

    _selected: bool = False
    on_did_change: EventEmitter[bool] = field(
        default_factory=lambda: EventEmitter("ui-change"), repr=False, compare=False
    )

    @property
    def selected(self) -> bool:
        return self._selected

    def set_selected(self, selected: bool) -> None:
        if selected == self._selected:
            return
        self._selected = selected
        self.on_did_change.fire(selected)
