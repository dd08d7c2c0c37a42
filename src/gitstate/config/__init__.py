"""Configuration loading, schema, and defaults."""

from gitstate.config.loader import ConfigError, load_config
from gitstate.config.schema import GitStateConfig, OutputFormat

__all__ = [
    "ConfigError",
    "GitStateConfig",
    "OutputFormat",
    "load_config",
]
