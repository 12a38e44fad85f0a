"""
Textual TUI for DevDeck.

The app is the host for the session model: it turns Textual events and
background results into session events, runs them through
``SessionModel.update`` on the event loop, executes the returned commands and
re-renders. Blocking work (waiting for output lines, sampling stats, loading
the task file) runs in thread workers that post their results back as
messages, so everything the model sees arrives through one queue.

Any unhandled fault while processing an event ends the session: a crash
record is written, every task is stopped and the app exits with status 1.
"""

import sys
from pathlib import Path
from typing import Iterable, List, Optional

import psutil
from textual import events, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.message import Message

from . import __version__
from .config_watcher import ConfigWatcher
from .crash import write_crash_record
from .exceptions import ReloadError
from .logging_config import get_logger
from .session import (
    ConfigChanged,
    KeyPress,
    LogLine,
    Notify,
    Quit,
    ReloadFailed,
    Resize,
    SessionModel,
    StatsTick,
    WaitForLine,
)
from .settings import DEFAULTS
from .supervisor import SupervisorSet
from .task_config import TaskSet, load_tasks
from .tui_widgets import CommandBar, HelpOverlay, LogPane, StatusBar, TaskList

log = get_logger("tui")


class SessionEventPosted(Message):
    """Carries a session event from a worker thread to the event loop."""

    def __init__(self, event) -> None:
        super().__init__()
        self.event = event


class DevDeckTUI(App):
    """DevDeck process dashboard"""

    AUTO_FOCUS = None
    ENABLE_COMMAND_PALETTE = False

    CSS_PATH = "devdeck.tcss"

    # Keys Textual would otherwise claim for itself
    BINDINGS = [
        Binding("ctrl+c", "session_key('ctrl+c')", "Quit", priority=True, show=False),
        Binding("tab", "session_key('tab')", "Cycle focus", priority=True, show=False),
    ]

    def __init__(
        self,
        task_set: TaskSet,
        config_path: Optional[Path] = None,
        groups: Optional[Iterable[str]] = None,
        watch: bool = True,
        supervisor: Optional[SupervisorSet] = None,
        crash_path: Optional[Path] = None,
        stats_interval: float = DEFAULTS.stats_interval,
    ):
        super().__init__()
        self.task_set = task_set
        self.config_path = Path(config_path) if config_path is not None else task_set.source
        self.groups = tuple(groups or ())
        self.watch_config = watch and self.config_path is not None
        self.crash_path = crash_path
        self.stats_interval = stats_interval
        self.model = SessionModel(supervisor or SupervisorSet(), theme=task_set.theme)
        self.exit_error: Optional[BaseException] = None
        self.crash_file: Optional[Path] = None
        self._watcher: Optional[ConfigWatcher] = None
        self._started = False

    def compose(self) -> ComposeResult:
        """Create child widgets"""
        with Horizontal(id="main"):
            yield TaskList(id="task-list")
            with Vertical(id="logs"):
                yield LogPane(id="primary-log")
                yield LogPane(secondary=True, id="secondary-log")
        yield CommandBar(id="command-bar")
        yield StatusBar(id="status-bar")
        yield HelpOverlay(id="help-overlay")

    def on_mount(self) -> None:
        """Start every task, then begin sampling and watching."""
        self.title = f"DevDeck v{__version__}"
        try:
            commands = self.model.start(self.task_set)
            commands += self.model.update(Resize(self.size.width, self.size.height))
        except Exception as e:
            self._fail(e)
            return
        self._started = True
        self._run_commands(commands)
        self._refresh_view()

        self.set_interval(self.stats_interval, self._sample_stats)
        if self.watch_config:
            self._watcher = ConfigWatcher(self.config_path, self._reload_config)
            self._watcher.start()

    def on_unmount(self) -> None:
        """Stop watching and make sure no task outlives the dashboard."""
        self._stop_watcher()
        self.model.supervisor.stop_all()

    # -------------------------------------------------------------------------
    # Event intake
    # -------------------------------------------------------------------------

    def on_key(self, event: events.Key) -> None:
        event.stop()
        event.prevent_default()
        self.dispatch_event(KeyPress(event.key, event.character))

    def action_session_key(self, key: str) -> None:
        self.dispatch_event(KeyPress(key))

    def on_resize(self, event: events.Resize) -> None:
        if not self._started:
            return
        self.dispatch_event(Resize(event.size.width, event.size.height))

    def on_session_event_posted(self, message: SessionEventPosted) -> None:
        self.dispatch_event(message.event)

    def dispatch_event(self, event) -> None:
        """Apply one session event, run its commands and re-render."""
        if self.exit_error is not None or self.model.quitting:
            return
        try:
            commands = self.model.update(event)
        except Exception as e:
            self._fail(e)
            return
        self._run_commands(commands)
        self._refresh_view()

    def _run_commands(self, commands: List) -> None:
        for command in commands:
            if isinstance(command, WaitForLine):
                self._wait_for_line(command.handle)
            elif isinstance(command, Notify):
                self.notify(command.message, severity=command.severity)
            elif isinstance(command, Quit):
                self._stop_watcher()
                self.exit()

    def _fail(self, error: BaseException) -> None:
        """Fault boundary: record the crash, stop everything, exit non-zero."""
        if self.exit_error is not None:
            return
        self.exit_error = error
        self.crash_file = write_crash_record(error, self.crash_path)
        self._stop_watcher()
        self.model.supervisor.stop_all()
        self.exit(return_code=1)

    # -------------------------------------------------------------------------
    # Rendering
    # -------------------------------------------------------------------------

    def _refresh_view(self) -> None:
        model = self.model
        self.query_one("#task-list", TaskList).refresh_from(model)
        self.query_one("#primary-log", LogPane).refresh_from(model)
        self.query_one("#secondary-log", LogPane).refresh_from(model)
        self.query_one("#command-bar", CommandBar).refresh_from(model)
        self.query_one("#status-bar", StatusBar).refresh_from(model)
        self.query_one("#help-overlay", HelpOverlay).set_class(model.help_visible, "visible")

    # -------------------------------------------------------------------------
    # Background work
    # -------------------------------------------------------------------------

    @work(thread=True, group="log_lines")
    def _wait_for_line(self, handle) -> None:
        """Wait for one output line of ``handle`` and post it."""
        line = handle.next_line()
        if line is None:
            return
        self.post_message(SessionEventPosted(LogLine(handle.name, line, handle)))

    @work(thread=True, exclusive=True, group="stats")
    def _sample_stats(self) -> None:
        """Sample every task plus the system, then post a tick."""
        for handle in self.model.processes:
            handle.sample_stats()
        cpu = psutil.cpu_percent(interval=None)
        memory = psutil.virtual_memory().percent
        self.post_message(SessionEventPosted(StatsTick(cpu, memory)))

    def _reload_config(self) -> None:
        """Called from the watcher thread when the task file changed."""
        try:
            task_set = load_tasks(self.config_path, self.groups)
        except ReloadError as e:
            log.warning(f"Reload failed: {e}")
            self.post_message(SessionEventPosted(ReloadFailed(str(e))))
            return
        log.info(f"Reloaded {len(task_set.tasks)} task(s) from {self.config_path}")
        self.post_message(SessionEventPosted(ConfigChanged(task_set)))

    def _stop_watcher(self) -> None:
        if self._watcher is not None:
            self._watcher.stop()
            self._watcher = None


def run_tui(
    task_set: TaskSet,
    config_path: Optional[Path] = None,
    groups: Optional[Iterable[str]] = None,
    watch: bool = True,
    crash_path: Optional[Path] = None,
) -> int:
    """Run the dashboard until the operator quits.

    Returns:
        Process exit status (1 after a crash)
    """
    if not sys.stdout.isatty():
        print("Error: Must run in a TTY terminal", file=sys.stderr)
        return 1

    app = DevDeckTUI(
        task_set,
        config_path=config_path,
        groups=groups,
        watch=watch,
        crash_path=crash_path,
    )
    try:
        app.run()
    except Exception as e:
        app.exit_error = e
        app.crash_file = write_crash_record(e, crash_path)
        app.model.supervisor.stop_all()

    if app.exit_error is not None:
        print(f"DevDeck crashed: {app.exit_error}", file=sys.stderr)
        if app.crash_file is not None:
            print(f"Crash record written to {app.crash_file}", file=sys.stderr)
        return 1
    return app.return_code or 0
