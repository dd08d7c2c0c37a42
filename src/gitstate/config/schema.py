"""Configuration schema: dataclasses for every config section."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal, Optional

OutputFormat = Literal["terminal", "json"]


@dataclass
class GitConfig:
    path: Optional[str] = None  # None = $GITSTATE_GIT_PATH, then $PATH
    timeout_s: Optional[float] = None
    spawn_retries: int = 3


@dataclass
class RefreshConfig:
    debounce_ms: int = 1000


@dataclass
class LogConfig:
    max_entries: int = 32


@dataclass
class DiscoveryConfig:
    max_depth: int = 1
    ignored_folders: List[str] = field(default_factory=lambda: ["node_modules"])


@dataclass
class WatcherConfig:
    enabled: bool = True
    interval_ms: int = 2000


@dataclass
class OutputConfig:
    format: OutputFormat = "terminal"
    show_summary: bool = True


@dataclass
class GitStateConfig:
    version: str = "1.0"
    git: GitConfig = field(default_factory=GitConfig)
    refresh: RefreshConfig = field(default_factory=RefreshConfig)
    log: LogConfig = field(default_factory=LogConfig)
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    watcher: WatcherConfig = field(default_factory=WatcherConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
