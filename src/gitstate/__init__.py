"""gitstate: a live, queryable state engine over git working copies."""

__version__ = "0.1.0"
