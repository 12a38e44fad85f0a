"""
Crash records.

When the dashboard hits an unhandled fault it appends a record to the crash
file before exiting::

    [2024-05-01T12:00:00+02:00] PANIC: <error>
    Traceback (most recent call last):
      ...
"""

import traceback
from datetime import datetime
from pathlib import Path
from typing import Optional

from .logging_config import get_logger
from .settings import get_crash_log_path

log = get_logger("crash")


def format_crash_record(exc: BaseException, when: Optional[datetime] = None) -> str:
    """Build the text of one crash record."""
    when = when or datetime.now().astimezone()
    stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return f"[{when.isoformat(timespec='seconds')}] PANIC: {exc}\n{stack}\n"


def write_crash_record(exc: BaseException, path: Optional[Path] = None) -> Optional[Path]:
    """Append a crash record for ``exc``.

    Returns:
        The crash file path, or None if it couldn't be written
    """
    path = Path(path) if path is not None else get_crash_log_path()
    log.error(f"Fatal error: {exc}", exc_info=exc)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write(format_crash_record(exc))
    except OSError as e:
        log.error(f"Could not write crash record to {path}: {e}")
        return None
    return path
