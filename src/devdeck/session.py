"""
Session state machine for the dashboard.

``SessionModel.update(event)`` processes one event to completion and returns
the commands the host must carry out (arm a line subscription, show a
notification, quit). It does no I/O of its own apart from calling into the
supervisor, and it never blocks: process spawns and signals return
immediately, output arrives through ``WaitForLine`` subscriptions.

The Textual app feeds events in from its message queue, so every transition
happens on one thread, one event at a time.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from .exceptions import InternalFault, SpawnError
from .logging_config import get_logger
from .process_handle import ProcessHandle
from .settings import DEFAULTS
from .status_constants import (
    FOCUS_LIST,
    FOCUS_SECONDARY,
    MODE_NONE,
    MODE_SEARCH,
    MODE_SEND_INPUT,
)
from .supervisor import SupervisorSet
from .task_config import TaskSet, Theme
from .tui_logic import (
    clamp_index,
    clamp_pin,
    compute_layout,
    cycle_focus,
    filter_lines,
    find_match_positions,
)

log = get_logger("session")


# =============================================================================
# Events
# =============================================================================


@dataclass
class LogLine:
    """One output line from ``handle``, the handle serving ``task``."""

    task: str
    text: str
    handle: Any


@dataclass
class KeyPress:
    """A key, by Textual key name, plus the printable character if any."""

    key: str
    character: Optional[str] = None


@dataclass
class Resize:
    width: int
    height: int


@dataclass
class ConfigChanged:
    task_set: TaskSet


@dataclass
class ReloadFailed:
    error: str


@dataclass
class StatsTick:
    """Handles have been sampled; carries the system-wide figures."""

    system_cpu: float = 0.0
    system_memory: float = 0.0


# =============================================================================
# Commands
# =============================================================================


@dataclass
class WaitForLine:
    """Wait for the next output line of ``handle`` and post it as a LogLine."""

    handle: Any


@dataclass
class Notify:
    message: str
    severity: str = "information"


@dataclass
class Quit:
    pass


Command = Any

# Alternate spellings accepted for some keys
KEY_ALIASES = {
    "?": "question_mark",
    "/": "slash",
    "esc": "escape",
    "ctrl+i": "tab",
}


# =============================================================================
# Viewport
# =============================================================================


@dataclass
class Viewport:
    """Scrollable window onto a list of lines.

    While scrolled to the bottom, new content keeps it at the bottom.
    """

    lines: List[str] = field(default_factory=list)
    height: int = 1
    offset: int = 0

    @property
    def max_offset(self) -> int:
        return max(len(self.lines) - self.height, 0)

    @property
    def at_bottom(self) -> bool:
        return self.offset >= self.max_offset

    def set_content(self, lines: Sequence[str]) -> None:
        follow = self.at_bottom
        self.lines = list(lines)
        if follow:
            self.goto_bottom()
        else:
            self.offset = min(self.offset, self.max_offset)

    def set_height(self, height: int) -> None:
        follow = self.at_bottom
        self.height = max(height, 1)
        if follow:
            self.goto_bottom()
        else:
            self.offset = min(self.offset, self.max_offset)

    def scroll(self, delta: int) -> None:
        self.offset = max(0, min(self.offset + delta, self.max_offset))

    def goto_top(self) -> None:
        self.offset = 0

    def goto_bottom(self) -> None:
        self.offset = self.max_offset

    def visible_lines(self) -> List[str]:
        return self.lines[self.offset:self.offset + self.height]


# =============================================================================
# Model
# =============================================================================


class SessionModel:
    """Dashboard state plus the transition function."""

    def __init__(
        self,
        supervisor: SupervisorSet,
        theme: Optional[Theme] = None,
        restart_marker: str = DEFAULTS.restart_marker,
        list_width: int = DEFAULTS.list_pane_width,
    ):
        self.supervisor = supervisor
        self.theme = theme or Theme()
        self.restart_marker = restart_marker
        self.list_width = list_width

        self.cursor = 0
        self.pinned_index = -1
        self.focused_pane = FOCUS_LIST
        self.input_mode = MODE_NONE
        self.input_text = ""
        self.search_query = ""
        self.match_positions: List[int] = []
        self.help_visible = False
        self.quitting = False

        self.width = 80
        self.height = 24
        self.layout = compute_layout(self.width, self.height, False, list_width)
        self.primary = Viewport()
        self.secondary = Viewport()
        self.system_cpu = 0.0
        self.system_memory = 0.0
        self._apply_layout()

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def processes(self) -> List[ProcessHandle]:
        return self.supervisor.handles

    @property
    def cursor_handle(self) -> Optional[ProcessHandle]:
        handles = self.supervisor.handles
        if not handles:
            return None
        return handles[self.cursor]

    @property
    def pinned_handle(self) -> Optional[ProcessHandle]:
        if self.pinned_index == -1:
            return None
        return self.supervisor.handles[self.pinned_index]

    @property
    def is_pinned(self) -> bool:
        return self.pinned_index != -1

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    def start(self, task_set: TaskSet) -> List[Command]:
        """Start every task and subscribe to its output."""
        self.theme = task_set.theme
        handles = self.supervisor.start_all(task_set.tasks)
        self.cursor = 0
        self.pinned_index = -1
        self._refresh_primary(goto_bottom=True)
        self._refresh_secondary()
        return [WaitForLine(handle) for handle in handles]

    def update(self, event) -> List[Command]:
        """Apply one event.

        Raises:
            InternalFault: On an unknown event or a broken invariant
        """
        if isinstance(event, LogLine):
            commands = self._on_log_line(event)
        elif isinstance(event, KeyPress):
            commands = self._on_key(event)
        elif isinstance(event, Resize):
            commands = self._on_resize(event)
        elif isinstance(event, ConfigChanged):
            commands = self._on_config_changed(event)
        elif isinstance(event, ReloadFailed):
            commands = [Notify(f"Config reload failed: {event.error}", "warning")]
        elif isinstance(event, StatsTick):
            self.system_cpu = event.system_cpu
            self.system_memory = event.system_memory
            commands = []
        else:
            raise InternalFault(f"unknown event: {event!r}")

        self._check_invariants()
        return commands

    # -------------------------------------------------------------------------
    # Log lines
    # -------------------------------------------------------------------------

    def _on_log_line(self, event: LogLine) -> List[Command]:
        handle = event.handle
        if not self.supervisor.is_current(handle):
            # Handle was replaced or removed by a reload
            log.debug(f"Dropping line from stale handle for '{event.task}'")
            return []

        handle.append_log(event.text)
        if self.cursor_handle is handle:
            self._refresh_primary()
        if self.pinned_handle is handle:
            self._refresh_secondary()
        return [WaitForLine(handle)]

    def _refresh_primary(self, goto_bottom: bool = False) -> None:
        handle = self.cursor_handle
        lines = handle.log_lines() if handle is not None else []
        self.match_positions = find_match_positions(lines, self.search_query)
        self.primary.set_content(filter_lines(lines, self.search_query))
        if goto_bottom:
            self.primary.goto_bottom()

    def _refresh_secondary(self) -> None:
        handle = self.pinned_handle
        self.secondary.set_content(handle.log_lines() if handle is not None else [])

    # -------------------------------------------------------------------------
    # Keys
    # -------------------------------------------------------------------------

    def _on_key(self, event: KeyPress) -> List[Command]:
        key = KEY_ALIASES.get(event.key, event.key)

        if key == "ctrl+c":
            return self._quit()

        if self.help_visible:
            if key in ("question_mark", "escape"):
                self.help_visible = False
            return []

        if self.input_mode != MODE_NONE:
            return self._on_input_key(key, event.character)

        if key in ("up", "k"):
            return self._on_vertical(-1)
        if key in ("down", "j"):
            return self._on_vertical(1)
        if key in ("pageup", "pagedown", "home", "end"):
            return self._on_page(key)
        if key == "tab":
            self.focused_pane = cycle_focus(self.focused_pane, self.is_pinned)
            return []
        if key == "r":
            return self._restart_cursor()
        if key == "s":
            self._toggle_pin()
            return []
        if key == "i":
            self.input_mode = MODE_SEND_INPUT
            self.input_text = ""
            return []
        if key == "slash":
            self.input_mode = MODE_SEARCH
            self.input_text = self.search_query
            return []
        if key == "q":
            return self._quit()
        if key == "question_mark":
            self.help_visible = True
            return []
        if key == "escape":
            if self.search_query:
                self.search_query = ""
                self._refresh_primary(goto_bottom=True)
            return []
        return []

    def _focused_viewport(self) -> Viewport:
        if self.focused_pane == FOCUS_SECONDARY:
            return self.secondary
        return self.primary

    def _on_vertical(self, delta: int) -> List[Command]:
        if self.focused_pane == FOCUS_LIST:
            new_cursor = clamp_index(self.cursor + delta, len(self.supervisor))
            if new_cursor != self.cursor:
                self.cursor = new_cursor
                self._refresh_primary(goto_bottom=True)
        else:
            self._focused_viewport().scroll(delta)
        return []

    def _on_page(self, key: str) -> List[Command]:
        viewport = self._focused_viewport()
        if key == "pageup":
            viewport.scroll(-viewport.height)
        elif key == "pagedown":
            viewport.scroll(viewport.height)
        elif key == "home":
            viewport.goto_top()
        else:
            viewport.goto_bottom()
        return []

    def _restart_cursor(self) -> List[Command]:
        handle = self.cursor_handle
        if handle is None:
            return []

        commands: List[Command] = []
        try:
            handle.restart()
        except SpawnError as e:
            commands.append(Notify(f"Restart failed: {e}", "error"))
        handle.append_log(self.restart_marker)
        self._refresh_primary(goto_bottom=True)
        if self.pinned_handle is handle:
            self._refresh_secondary()
        return commands

    def _toggle_pin(self) -> None:
        if self.is_pinned:
            self.pinned_index = -1
            if self.focused_pane == FOCUS_SECONDARY:
                self.focused_pane = FOCUS_LIST
        elif len(self.supervisor):
            self.pinned_index = self.cursor
        self._apply_layout()
        self._refresh_secondary()
        self.secondary.goto_bottom()

    def _quit(self) -> List[Command]:
        self.supervisor.stop_all()
        self.quitting = True
        return [Quit()]

    def _on_input_key(self, key: str, character: Optional[str]) -> List[Command]:
        if key == "escape":
            # Drops the draft; a committed search query stays active
            self.input_mode = MODE_NONE
            self.input_text = ""
            return []

        if key == "enter":
            mode = self.input_mode
            text = self.input_text
            self.input_mode = MODE_NONE
            self.input_text = ""
            if mode == MODE_SEND_INPUT:
                handle = self.cursor_handle
                if handle is not None:
                    handle.send_input(text)
                return []
            return self._commit_search(text)

        if key == "backspace":
            self.input_text = self.input_text[:-1]
            return []

        if character and len(character) == 1 and character.isprintable():
            self.input_text += character
        return []

    def _commit_search(self, query: str) -> List[Command]:
        self.search_query = query
        self._refresh_primary(goto_bottom=True)
        if query and not self.match_positions:
            return [Notify(f"No matches for '{query}'", "warning")]
        return []

    # -------------------------------------------------------------------------
    # Resize and reload
    # -------------------------------------------------------------------------

    def _on_resize(self, event: Resize) -> List[Command]:
        self.width = event.width
        self.height = event.height
        self._apply_layout()
        return []

    def _apply_layout(self) -> None:
        self.layout = compute_layout(self.width, self.height, self.is_pinned, self.list_width)
        self.primary.set_height(self.layout.primary_rows)
        self.secondary.set_height(max(self.layout.secondary_rows, 1))

    def _on_config_changed(self, event: ConfigChanged) -> List[Command]:
        cursor_handle = self.cursor_handle
        pinned_handle = self.pinned_handle

        result = self.supervisor.reconcile(event.task_set.tasks)
        self.theme = event.task_set.theme
        count = len(self.supervisor)

        # Cursor and pin follow their task by name when it survives
        cursor = -1
        if cursor_handle is not None:
            cursor = self.supervisor.index_of(cursor_handle.name)
        self.cursor = cursor if cursor >= 0 else clamp_index(self.cursor, count)

        if pinned_handle is not None:
            self.pinned_index = self.supervisor.index_of(pinned_handle.name)
        self.pinned_index = clamp_pin(self.pinned_index, count)
        if self.pinned_index == -1 and self.focused_pane == FOCUS_SECONDARY:
            self.focused_pane = FOCUS_LIST

        self._apply_layout()
        self._refresh_primary(goto_bottom=self.cursor_handle is not cursor_handle)
        self._refresh_secondary()

        commands: List[Command] = [WaitForLine(handle) for handle in result.started]
        commands.append(Notify(result.summary()))
        return commands

    # -------------------------------------------------------------------------
    # Invariants
    # -------------------------------------------------------------------------

    def _check_invariants(self) -> None:
        count = len(self.supervisor)
        if count and not 0 <= self.cursor < count:
            raise InternalFault(f"cursor {self.cursor} out of range for {count} task(s)")
        if not count and self.cursor != 0:
            raise InternalFault(f"cursor {self.cursor} set with no tasks")
        if self.pinned_index != -1 and not 0 <= self.pinned_index < count:
            raise InternalFault(f"pinned index {self.pinned_index} out of range")
        if self.focused_pane == FOCUS_SECONDARY and self.pinned_index == -1:
            raise InternalFault("secondary pane focused without a pinned task")
