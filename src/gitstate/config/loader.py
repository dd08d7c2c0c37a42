"""Load and merge configuration from .gitstate.toml and env vars."""

from __future__ import annotations

import dataclasses
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from gitstate.config.schema import (
    DiscoveryConfig,
    GitConfig,
    GitStateConfig,
    LogConfig,
    OutputConfig,
    RefreshConfig,
    WatcherConfig,
)

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".gitstate.toml"


class ConfigError(Exception):
    """Raised when config is malformed or unreadable."""


def find_config_file(root: Path, override: Optional[str] = None) -> Optional[Path]:
    """Locate the config file. *override* takes precedence."""
    if override:
        p = Path(override)
        if not p.is_file():
            raise ConfigError(f"Config file not found: {override}")
        return p
    candidate = root / CONFIG_FILENAME
    return candidate if candidate.is_file() else None


def _parse_toml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Failed to parse {path}: {exc}") from exc


def _positive_int(val: str) -> Optional[int]:
    try:
        n = int(val)
    except ValueError:
        return None
    return n if n > 0 else None


def _merge_env_overrides(cfg: GitStateConfig) -> None:
    """Apply GITSTATE_* environment variable overrides; bad values are ignored."""
    if val := os.environ.get("GITSTATE_GIT_PATH"):
        cfg.git.path = val
    if val := os.environ.get("GITSTATE_TIMEOUT"):
        try:
            timeout = float(val)
        except ValueError:
            logger.warning("Ignoring GITSTATE_TIMEOUT=%r: not a number", val)
        else:
            cfg.git.timeout_s = timeout if timeout > 0 else None
    if val := os.environ.get("GITSTATE_LOG_MAX_ENTRIES"):
        n = _positive_int(val)
        if n is None:
            logger.warning("Ignoring GITSTATE_LOG_MAX_ENTRIES=%r", val)
        else:
            cfg.log.max_entries = n
    if val := os.environ.get("GITSTATE_FORMAT"):
        if val in ("terminal", "json"):
            cfg.output.format = val  # type: ignore[assignment]


def _build_section(data: Dict[str, Any], cls: type, section: str):
    """Build a dataclass from a TOML section dict, ignoring unknown keys."""
    raw = data.get(section, {})
    if not isinstance(raw, dict):
        raise ConfigError(f"[{section}] must be a table")
    valid_fields = {f.name for f in dataclasses.fields(cls)}
    filtered = {k: v for k, v in raw.items() if k in valid_fields}
    return cls(**filtered)


def load_config(
    root: Path,
    config_override: Optional[str] = None,
) -> GitStateConfig:
    """Load, validate, and return a GitStateConfig."""
    config_path = find_config_file(root, config_override)

    if config_path is None:
        cfg = GitStateConfig()
    else:
        raw = _parse_toml(config_path)
        cfg = GitStateConfig(
            version=raw.get("version", "1.0"),
            git=_build_section(raw, GitConfig, "git"),
            refresh=_build_section(raw, RefreshConfig, "refresh"),
            log=_build_section(raw, LogConfig, "log"),
            discovery=_build_section(raw, DiscoveryConfig, "discovery"),
            watcher=_build_section(raw, WatcherConfig, "watcher"),
            output=_build_section(raw, OutputConfig, "output"),
        )
        logger.debug("Loaded config from %s", config_path)

    _merge_env_overrides(cfg)
    return cfg
