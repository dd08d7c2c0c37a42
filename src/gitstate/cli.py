"""gitstate CLI: Typer application with status, log, branches, diff, scan, watch and init."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Coroutine, Optional, TypeVar

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from gitstate import __version__
from gitstate.config.loader import CONFIG_FILENAME, ConfigError, load_config
from gitstate.config.schema import GitStateConfig
from gitstate.git.adapter import get_repo_root
from gitstate.git.errors import GitError
from gitstate.git.executor import GitExecutor
from gitstate.registry.registry import RepositoryRegistry

T = TypeVar("T")

app = typer.Typer(
    name="gitstate",
    help="Inspect and follow the live state of git working copies.",
    add_completion=False,
    no_args_is_help=True,
)

console = Console(stderr=True)


def _configure_logging(verbose: bool, debug: bool) -> None:
    level = logging.DEBUG if debug else logging.INFO if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=debug, rich_tracebacks=debug)],
        force=True,
    )


def _run(coro: Coroutine[Any, Any, T]) -> T:
    """Run *coro*; domain errors become exit code 2."""
    try:
        return asyncio.run(coro)
    except GitError as exc:
        console.print(f"[bold red]Git error:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc
    except ConfigError as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc


def _resolve_repo_root(path: Path) -> Path:
    """Find the git repo root containing *path*, exit 2 on failure."""

    async def _root() -> Path:
        return await get_repo_root(GitExecutor(), path.expanduser().resolve())

    return _run(_root())


def _load(root: Path, config: Optional[str], format: Optional[str] = None) -> GitStateConfig:
    try:
        cfg = load_config(root, config)
    except ConfigError as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc
    if format:
        if format not in ("terminal", "json"):
            console.print(f"[bold red]Invalid format:[/bold red] {format}")
            raise typer.Exit(code=2)
        cfg.output.format = format  # type: ignore[assignment]
    return cfg


_PATH_ARG = typer.Argument(Path("."), help="Path inside the repository")
_CONFIG_OPT = typer.Option(None, "--config", "-c", help=f"Path to {CONFIG_FILENAME}")
_FORMAT_OPT = typer.Option(None, "--format", "-f", help="Output format: terminal | json")


# ── status ────────────────────────────────────────────────────────────────────


@app.command()
def status(
    path: Path = _PATH_ARG,
    config: Optional[str] = _CONFIG_OPT,
    format: Optional[str] = _FORMAT_OPT,
    fail_on_changes: bool = typer.Option(
        False, "--fail-on-changes", help="Exit 1 when the working tree is not clean"
    ),
) -> None:
    """Show HEAD and the merge, staged and working-tree changes."""
    from gitstate.output import json_report, terminal

    root = _resolve_repo_root(path)
    cfg = _load(root, config, format)

    async def _status():
        async with RepositoryRegistry(cfg, watch=False) as registry:
            repo = await registry.open_repository(root)
            return await repo.status()

    state = _run(_status())

    if cfg.output.format == "json":
        print(json_report.render(state, root))
    else:
        terminal.render_state(state, root, show_summary=cfg.output.show_summary)

    if fail_on_changes and not state.is_clean:
        raise typer.Exit(code=1)


# ── log ───────────────────────────────────────────────────────────────────────


@app.command()
def log(
    path: Path = _PATH_ARG,
    max_entries: Optional[int] = typer.Option(
        None, "--max-entries", "-n", min=1, help="Number of commits (default from config)"
    ),
    config: Optional[str] = _CONFIG_OPT,
    format: Optional[str] = _FORMAT_OPT,
) -> None:
    """Show recent history, newest first."""
    from gitstate.output import json_report, terminal

    root = _resolve_repo_root(path)
    cfg = _load(root, config, format)

    async def _log():
        async with RepositoryRegistry(cfg, watch=False) as registry:
            repo = await registry.open_repository(root)
            return await repo.log(max_entries)

    commits = _run(_log())

    if cfg.output.format == "json":
        print(json_report.render_log(commits))
    else:
        terminal.render_log(commits)


# ── branches ──────────────────────────────────────────────────────────────────


@app.command()
def branches(
    path: Path = _PATH_ARG,
    config: Optional[str] = _CONFIG_OPT,
) -> None:
    """List local branches, remote branches and tags."""
    from gitstate.output import terminal

    root = _resolve_repo_root(path)
    cfg = _load(root, config)

    async def _branches():
        async with RepositoryRegistry(cfg, watch=False) as registry:
            repo = await registry.open_repository(root)
            return await repo.status()

    state = _run(_branches())
    terminal.render_branches(state.refs, state.head)


# ── diff ──────────────────────────────────────────────────────────────────────


@app.command()
def diff(
    path: Path = _PATH_ARG,
    cached: bool = typer.Option(False, "--cached", help="Diff the index against HEAD"),
    config: Optional[str] = _CONFIG_OPT,
) -> None:
    """Show the working-tree (or staged) diff, one section per file."""
    from gitstate.output import terminal

    root = _resolve_repo_root(path)
    cfg = _load(root, config)

    async def _diff():
        async with RepositoryRegistry(cfg, watch=False) as registry:
            repo = await registry.open_repository(root)
            return await repo.diff_patches(cached)

    terminal.render_patches(_run(_diff()))


# ── scan ──────────────────────────────────────────────────────────────────────


@app.command()
def scan(
    folder: Path = typer.Argument(..., help="Folder to search for repositories"),
    max_depth: Optional[int] = typer.Option(None, "--max-depth", min=0, help="Levels to descend"),
    config: Optional[str] = _CONFIG_OPT,
    format: Optional[str] = _FORMAT_OPT,
) -> None:
    """Discover repositories under FOLDER and summarise each one."""
    import json

    from gitstate.output.json_report import to_dict
    from gitstate.output.terminal import describe_head

    folder = folder.expanduser().resolve()
    if not folder.is_dir():
        console.print(f"[bold red]Not a directory:[/bold red] {folder}")
        raise typer.Exit(code=2)
    cfg = _load(folder, config, format)
    if max_depth is not None:
        cfg.discovery.max_depth = max_depth

    async def _scan():
        async with RepositoryRegistry(cfg, watch=False) as registry:
            repos = await registry.scan_folder(folder)
            return [(r.root, r.state) for r in repos]

    found = _run(_scan())

    if cfg.output.format == "json":
        print(json.dumps([to_dict(state, root) for root, state in found], indent=2))
        return

    if not found:
        console.print(f"[dim]No repositories found under {folder}.[/dim]")
        return
    table = Table(title="Repositories", title_style="bold", border_style="dim")
    table.add_column("Root", style="magenta")
    table.add_column("HEAD", style="cyan")
    table.add_column("Merge", justify="right")
    table.add_column("Staged", justify="right")
    table.add_column("Changed", justify="right")
    for root, state in found:
        table.add_row(
            str(root),
            describe_head(state.head),
            str(len(state.merge_changes)),
            str(len(state.index_changes)),
            str(len(state.working_tree_changes)),
        )
    Console().print(table)


# ── watch ─────────────────────────────────────────────────────────────────────


@app.command()
def watch(
    path: Path = _PATH_ARG,
    interval_ms: Optional[int] = typer.Option(None, "--interval", min=100, help="Poll interval (ms)"),
    config: Optional[str] = _CONFIG_OPT,
) -> None:
    """Print the repository state every time it changes, until interrupted."""
    from gitstate.output import terminal

    root = _resolve_repo_root(path)
    cfg = _load(root, config)
    if interval_ms is not None:
        cfg.watcher.interval_ms = interval_ms

    async def _watch() -> None:
        async with RepositoryRegistry(cfg, watch=True) as registry:
            repo = await registry.open_repository(root)
            terminal.render_state(repo.state, root, show_summary=False)
            repo.on_did_change(lambda state: terminal.render_state(state, root, show_summary=False))
            console.print(f"[dim]Watching {root} (Ctrl+C to stop)[/dim]")
            await asyncio.Event().wait()

    try:
        _run(_watch())
    except KeyboardInterrupt:
        raise typer.Exit(code=0)


# ── init ──────────────────────────────────────────────────────────────────────


@app.command()
def init(
    path: Path = _PATH_ARG,
) -> None:
    """Generate a starter .gitstate.toml in the repo root."""
    from gitstate.config.defaults import DEFAULT_TOML

    root = _resolve_repo_root(path)
    config_path = root / CONFIG_FILENAME

    if config_path.exists():
        console.print(f"[yellow]⚠[/yellow]  {CONFIG_FILENAME} already exists at {config_path}")
        raise typer.Exit(code=1)

    config_path.write_text(DEFAULT_TOML, encoding="utf-8")
    console.print(f"[green]✓[/green] Created {config_path}")


# ── version ───────────────────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        print(f"gitstate {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V", callback=_version_callback,
        is_eager=True, help="Show version and exit",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    debug: bool = typer.Option(False, "--debug", help="Debug logging"),
) -> None:
    """gitstate: live state of git working copies."""
    _configure_logging(verbose, debug)
