"""Default configuration values and starter .gitstate.toml template."""

DEFAULT_TOML = """\
# gitstate configuration
version = "1.0"

[git]
# path = "/usr/bin/git"     # default: $GITSTATE_GIT_PATH, then $PATH
# timeout_s = 60            # per-command limit; unset = no limit
spawn_retries = 3

[refresh]
debounce_ms = 1000          # coalesce filesystem signals before a refresh

[log]
max_entries = 32

[discovery]
max_depth = 1
ignored_folders = ["node_modules"]

[watcher]
enabled = true
interval_ms = 2000

[output]
format = "terminal"         # terminal | json
show_summary = true
"""
