"""
Watches the task file and reports changes.

Editors often save with several file system events in a row (truncate,
write, rename). Events are coalesced with a short trailing delay before the
callback runs; the callback runs on a timer thread.
"""

import threading
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .logging_config import get_logger

log = get_logger("watcher")

DEFAULT_SETTLE_SECONDS = 0.1


class ConfigChangeHandler(FileSystemEventHandler):
    """A watchdog event handler that reacts to changes of one file."""

    def __init__(
        self,
        path: Path,
        callback: Callable[[], None],
        settle: float = DEFAULT_SETTLE_SECONDS,
    ):
        super().__init__()
        self.path = Path(path).resolve()
        self.callback = callback
        self.settle = settle
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()

    def is_relevant(self, event: FileSystemEvent) -> bool:
        """True if the event touches the watched file (either end of a move)."""
        if event.is_directory:
            return False
        candidates = [event.src_path, getattr(event, "dest_path", "")]
        for candidate in candidates:
            if not candidate:
                continue
            if isinstance(candidate, bytes):
                candidate = candidate.decode(errors="replace")
            if Path(candidate).resolve() == self.path:
                return True
        return False

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type in ("opened", "closed_no_write"):
            return
        if not self.is_relevant(event):
            return
        log.debug(f"Watchdog event: {event.event_type} on {event.src_path}")
        self.schedule()

    def schedule(self) -> None:
        """(Re)start the settle timer."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.settle, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _fire(self) -> None:
        with self._lock:
            self._timer = None
        try:
            self.callback()
        except Exception:
            log.exception("Config change callback failed")


class ConfigWatcher:
    """Observer wrapper for a single task file.

    The parent directory is watched (not the file) so atomic saves that
    replace the file are still seen.
    """

    def __init__(
        self,
        path: Path,
        callback: Callable[[], None],
        settle: float = DEFAULT_SETTLE_SECONDS,
    ):
        self.path = Path(path).resolve()
        self.handler = ConfigChangeHandler(self.path, callback, settle=settle)
        self._observer: Optional[Observer] = None

    @property
    def running(self) -> bool:
        return self._observer is not None

    def start(self) -> None:
        if self._observer is not None:
            return
        observer = Observer()
        observer.schedule(self.handler, str(self.path.parent), recursive=False)
        observer.daemon = True
        observer.start()
        self._observer = observer
        log.info(f"Watching {self.path} for changes")

    def stop(self) -> None:
        observer = self._observer
        if observer is None:
            return
        self._observer = None
        self.handler.cancel()
        observer.stop()
        observer.join(timeout=2.0)
