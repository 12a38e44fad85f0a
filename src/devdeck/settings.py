"""
Settings and path management for DevDeck.

Paths default to ~/.devdeck and can be redirected with DEVDECK_STATE_DIR
(used by the tests to keep logs out of the user's home directory).
"""

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Defaults:
    """Tunable defaults shared by the supervision engine and the TUI."""

    # Lines buffered per process before its reader threads block
    output_capacity: int = 1000
    # Health probe timing (seconds)
    probe_interval: float = 2.0
    probe_timeout: float = 1.0
    # Grace period between SIGTERM and SIGKILL
    stop_timeout: float = 5.0
    # How often CPU/memory are sampled
    stats_interval: float = 1.0
    # Fixed width of the task list pane (columns)
    list_pane_width: int = 35
    # Marker appended to a task's log when the operator restarts it
    restart_marker: str = "--- RESTARTED ---"
    # Default task definition file
    config_file: str = "devdeck.yaml"
    crash_log_name: str = "devdeck-crash.log"


DEFAULTS = Defaults()


def get_state_dir() -> Path:
    """Get the directory used for DevDeck's own files (logs)."""
    state_dir = os.environ.get("DEVDECK_STATE_DIR")
    if state_dir:
        return Path(state_dir)
    return Path.home() / ".devdeck"


def get_log_path() -> Path:
    """Path of the dashboard log file."""
    return get_state_dir() / "devdeck.log"


def get_crash_log_path() -> Path:
    """Path of the crash record file.

    Defaults to the working directory so a crash is easy to find next to the
    task file. DEVDECK_CRASH_LOG overrides it.
    """
    override = os.environ.get("DEVDECK_CRASH_LOG")
    if override:
        return Path(override)
    return Path.cwd() / DEFAULTS.crash_log_name
