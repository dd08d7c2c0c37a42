"""Rich terminal reporter for snapshots, history and branches."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from gitstate.git.models import Branch, Change, Commit, FilePatch, Ref, RefType, Status
from gitstate.repository.state import RepositoryState

_STATUS_STYLE = {
    Status.INDEX_ADDED: "green",
    Status.INDEX_MODIFIED: "green",
    Status.INDEX_DELETED: "green",
    Status.INDEX_RENAMED: "green",
    Status.INDEX_COPIED: "green",
    Status.MODIFIED: "yellow",
    Status.DELETED: "red",
    Status.UNTRACKED: "bright_black",
    Status.IGNORED: "dim",
    Status.INTENT_TO_ADD: "cyan",
}

_GROUPS = (
    ("Merge changes", "merge_changes"),
    ("Staged changes", "index_changes"),
    ("Changes", "working_tree_changes"),
)


def _status_pill(status: Status) -> Text:
    style = "bold white on red" if status.is_conflict else _STATUS_STYLE.get(status, "")
    return Text(f" {status.value} ", style=style)


def _rel(path: Path, root: Path) -> str:
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return str(path)


def _change_label(change: Change, root: Path) -> str:
    if change.rename_uri is not None and change.rename_uri != change.original_uri:
        return f"{_rel(change.original_uri, root)} → {_rel(change.rename_uri, root)}"
    return _rel(change.uri, root)


def describe_head(head: Optional[Branch]) -> str:
    if head is None:
        return "(no HEAD)"
    if head.name is None:
        return f"(detached at {(head.commit or '')[:8]})"
    text = head.name
    if head.upstream is not None:
        text += f" → {head.upstream.remote}/{head.upstream.name}"
        if head.ahead or head.behind:
            text += f" [↑{head.ahead or 0} ↓{head.behind or 0}]"
    return text


def render_state(
    state: RepositoryState,
    root: Path,
    *,
    show_summary: bool = True,
    console: Optional[Console] = None,
) -> None:
    """Print a snapshot: HEAD line, then one table per non-empty change group."""
    console = console or Console()
    console.print(f"[bold]{escape(str(root))}[/bold]  on [cyan]{escape(describe_head(state.head))}[/cyan]")
    if state.rebase_commit is not None:
        console.print(f"[yellow]Rebasing {state.rebase_commit.hash[:8]}[/yellow]")

    if state.is_clean:
        console.print("[bold green]Working tree clean.[/bold green]")
    for title, attr in _GROUPS:
        changes: Sequence[Change] = getattr(state, attr)
        if not changes:
            continue
        table = Table(title=title, title_style="bold", border_style="dim", show_header=False)
        table.add_column("Status", justify="center", width=18)
        table.add_column("Path", style="magenta")
        for change in changes:
            table.add_row(_status_pill(change.status), _change_label(change, root))
        console.print(table)

    if show_summary:
        console.print()
        console.print(f"[dim]Merge:[/dim]     {len(state.merge_changes)}")
        console.print(f"[dim]Staged:[/dim]    {len(state.index_changes)}")
        console.print(f"[dim]Changed:[/dim]   {len(state.working_tree_changes)}")
        console.print(f"[dim]Remotes:[/dim]   {', '.join(r.name for r in state.remotes) or '-'}")


def render_log(commits: Iterable[Commit], *, console: Optional[Console] = None) -> None:
    console = console or Console()
    table = Table(title="History", title_style="bold", border_style="dim")
    table.add_column("Commit", style="yellow", no_wrap=True)
    table.add_column("Author", style="cyan")
    table.add_column("Message")
    for commit in commits:
        subject = commit.message.splitlines()[0] if commit.message else ""
        table.add_row(commit.hash[:8], commit.author_email or "-", subject)
    console.print(table)


def render_branches(
    refs: Iterable[Ref],
    head: Optional[Branch],
    *,
    console: Optional[Console] = None,
) -> None:
    console = console or Console()
    table = Table(title="Refs", title_style="bold", border_style="dim")
    table.add_column("", width=1)
    table.add_column("Name", style="cyan")
    table.add_column("Type")
    table.add_column("Commit", style="yellow", no_wrap=True)
    current = head.name if head is not None and head.type is RefType.HEAD else None
    for ref in refs:
        marker = "*" if ref.type is RefType.HEAD and ref.name == current else ""
        table.add_row(marker, ref.name or "", ref.type.name.lower(), (ref.commit or "")[:8])
    console.print(table)


def render_patches(patches: List[FilePatch], *, console: Optional[Console] = None) -> None:
    """Print each per-file patch under a status heading."""
    console = console or Console()
    if not patches:
        console.print("[dim]No differences.[/dim]")
        return
    for patch in patches:
        label = f"{patch.old_path} → {patch.path}" if patch.old_path else patch.path
        console.rule(f"[bold]{patch.status.value}[/bold] {label}", style="dim")
        if patch.binary:
            console.print("[dim]Binary file[/dim]")
        else:
            console.print(Text(patch.text.rstrip("\n")))
