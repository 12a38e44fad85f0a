"""
Pure render functions for dashboard components.

These functions are extracted from the widgets to enable unit testing
without requiring the full Textual framework.

All functions are pure - they take data as input and return Rich Text objects.
Colors come from the Theme passed in; nothing here holds style state.
"""

from typing import List, Optional, Sequence

from rich.text import Text

from .status_constants import (
    FOCUS_LIST,
    FOCUS_LOG,
    FOCUS_SECONDARY,
    MODE_SEARCH,
    MODE_SEND_INPUT,
    PIN_MARKER,
    STATE_ERROR,
    STATE_RUNNING,
    get_health_symbol,
    get_state_emoji,
)
from .task_config import Theme
from .tui_logic import find_match_spans, format_cpu, format_memory_mb

FOCUS_LABELS = {
    FOCUS_LIST: "tasks",
    FOCUS_LOG: "log",
    FOCUS_SECONDARY: "pinned log",
}


def render_task_line(
    handle,
    selected: bool,
    pinned: bool,
    theme: Theme,
) -> Text:
    """Render one line of the task list.

    Format: ``> 📌 🟢 name (3% CPU, 42 MB) ✓ (Err: ...)``. Stats are shown
    only while running, the error suffix only in the error state.

    Args:
        handle: ProcessHandle (or anything with the same attributes)
        selected: Whether the cursor is on this task
        pinned: Whether this task is shown in the secondary pane
        theme: Colors to use

    Returns:
        Rich Text for the line
    """
    line = Text(no_wrap=True, overflow="ellipsis")
    if selected:
        line.append("> ", style=f"bold {theme.color('primary')}")
    else:
        line.append("  ")
    if pinned:
        line.append(f"{PIN_MARKER} ")
    line.append(f"{get_state_emoji(handle.state)} ")

    name_style = f"bold {theme.color('primary')}" if selected else ""
    line.append(handle.name, style=name_style)

    if handle.state == STATE_RUNNING:
        stats = f" ({format_cpu(handle.cpu_percent)}, {format_memory_mb(handle.memory_rss)})"
        line.append(stats, style=theme.color("text"))

    symbol, style = get_health_symbol(handle.health_state)
    if symbol:
        line.append(f" {symbol}", style=style)

    if handle.state == STATE_ERROR and handle.last_error:
        line.append(f" (Err: {handle.last_error})", style="red")
    return line


def render_task_list(
    handles: Sequence,
    cursor: int,
    pinned_index: int,
    theme: Theme,
) -> Text:
    """Render the whole task list, one task per line."""
    if not handles:
        return Text("No tasks configured", style=theme.color("text"))
    content = Text(no_wrap=True, overflow="ellipsis")
    for i, handle in enumerate(handles):
        if i:
            content.append("\n")
        content.append_text(render_task_line(handle, i == cursor, i == pinned_index, theme))
    return content


def highlight_matches(line: str, query: str, theme: Theme) -> Text:
    """Render a log line with every match of ``query`` highlighted.

    ANSI color codes emitted by the process are kept.
    """
    text = Text.from_ansi(line)
    for start, end in find_match_spans(text.plain, query):
        text.stylize(f"bold reverse {theme.color('primary')}", start, end)
    return text


def render_log_view(
    lines: Sequence[str],
    theme: Theme,
    query: str = "",
    empty_message: str = "(no output yet)",
) -> Text:
    """Render the visible part of a log viewport."""
    if not lines:
        return Text(empty_message, style=f"italic {theme.color('text')}")
    content = Text()
    for i, line in enumerate(lines):
        if i:
            content.append("\n")
        content.append_text(highlight_matches(line, query, theme))
    return content


def render_log_title(
    name: Optional[str],
    query: str = "",
    match_count: int = 0,
    pinned: bool = False,
) -> str:
    """Border title for a log pane."""
    if name is None:
        return "Logs"
    title = f"{PIN_MARKER} {name}" if pinned else name
    if query and not pinned:
        title += f" [/{query}: {match_count} match{'es' if match_count != 1 else ''}]"
    return title


def render_status_bar(
    system_cpu: float,
    system_memory: float,
    handles: Sequence,
    focused_pane: str,
    theme: Theme,
) -> Text:
    """Render the bottom status bar.

    Shows system CPU/memory, how many tasks are running and the focused
    pane.
    """
    running = sum(1 for h in handles if h.state == STATE_RUNNING)
    errored = sum(1 for h in handles if h.state == STATE_ERROR)

    content = Text(no_wrap=True, overflow="ellipsis")
    content.append(" DevDeck ", style=f"bold reverse {theme.color('secondary')}")
    content.append(f" CPU {system_cpu:.0f}%", style="bold")
    content.append(f"  MEM {system_memory:.0f}%", style="bold")
    content.append(f"  │ {running}/{len(handles)} running", style=theme.color("text"))
    if errored:
        content.append(f"  {errored} errored", style="bold red")
    content.append(f"  │ focus: {FOCUS_LABELS.get(focused_pane, focused_pane)}",
                   style=theme.color("text"))
    content.append("  │ ? help", style="dim")
    return content


def render_command_bar(
    input_mode: str,
    input_text: str,
    target: Optional[str],
    theme: Theme,
) -> Text:
    """Render the input line: the draft in an input mode, key hints otherwise."""
    content = Text(no_wrap=True, overflow="ellipsis")
    if input_mode == MODE_SEND_INPUT:
        content.append(f" Send to {target or '?'}: ", style=f"bold {theme.color('primary')}")
        content.append(input_text)
        content.append("▌", style="blink")
        content.append("   enter send · esc cancel", style="dim")
    elif input_mode == MODE_SEARCH:
        content.append(" Search: /", style=f"bold {theme.color('primary')}")
        content.append(input_text)
        content.append("▌", style="blink")
        content.append("   enter apply · esc cancel", style="dim")
    else:
        hints: List[str] = [
            "↑/↓ move", "tab focus", "r restart", "s pin", "i input", "/ search", "q quit",
        ]
        content.append(" " + " · ".join(hints), style="dim")
    return content
