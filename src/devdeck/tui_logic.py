"""
Pure business logic functions for the dashboard.

These functions are extracted from the session model and widgets so they can
be unit tested without Textual or real processes.

All functions are pure - they take data as input and return new data.
No side effects, no mutations of input data.
"""

from dataclasses import dataclass
from typing import List, Sequence

from .settings import DEFAULTS
from .status_constants import FOCUS_LIST, FOCUS_LOG, FOCUS_SECONDARY

# Rows taken by the command bar and status bar below the panes
CHROME_ROWS = 2
# Top and bottom border of each pane
BORDER_ROWS = 2


@dataclass(frozen=True)
class PaneLayout:
    """Pane geometry in terminal cells."""

    width: int
    height: int
    list_width: int
    log_width: int
    primary_height: int
    secondary_height: int

    @property
    def primary_rows(self) -> int:
        """Visible log lines in the primary pane."""
        return max(self.primary_height - BORDER_ROWS, 1)

    @property
    def secondary_rows(self) -> int:
        """Visible log lines in the secondary pane (0 when not pinned)."""
        if self.secondary_height == 0:
            return 0
        return max(self.secondary_height - BORDER_ROWS, 1)


def compute_layout(
    width: int,
    height: int,
    pinned: bool,
    list_width: int = DEFAULTS.list_pane_width,
) -> PaneLayout:
    """Compute pane geometry for a terminal size.

    The list pane has a fixed width and the log panes take the rest. When a
    task is pinned the log height is split evenly between the primary and
    secondary pane (the primary gets the odd row).

    Args:
        width: Terminal columns
        height: Terminal rows
        pinned: Whether a secondary pane is shown
        list_width: Fixed width of the task list pane

    Returns:
        PaneLayout for the given size
    """
    width = max(width, 0)
    height = max(height, 0)
    list_width = min(list_width, width)
    log_width = width - list_width
    available = max(height - CHROME_ROWS, 0)

    if pinned:
        secondary = available // 2
        primary = available - secondary
    else:
        primary = available
        secondary = 0

    return PaneLayout(
        width=width,
        height=height,
        list_width=list_width,
        log_width=log_width,
        primary_height=primary,
        secondary_height=secondary,
    )


def line_matches(line: str, query: str) -> bool:
    """Case-insensitive substring test."""
    return query.lower() in line.lower()


def filter_lines(lines: Sequence[str], query: str) -> List[str]:
    """Keep the lines containing ``query`` (case-insensitive).

    An empty query keeps everything. Filtering is idempotent.
    """
    if not query:
        return list(lines)
    needle = query.lower()
    return [line for line in lines if needle in line.lower()]


def find_match_positions(lines: Sequence[str], query: str) -> List[int]:
    """Indices of the lines containing ``query``, in order."""
    if not query:
        return []
    needle = query.lower()
    return [i for i, line in enumerate(lines) if needle in line.lower()]


def find_match_spans(line: str, query: str) -> List[tuple]:
    """(start, end) spans of every non-overlapping match of ``query`` in ``line``."""
    if not query:
        return []
    haystack = line.lower()
    needle = query.lower()
    spans = []
    start = haystack.find(needle)
    while start != -1:
        end = start + len(needle)
        spans.append((start, end))
        start = haystack.find(needle, end)
    return spans


def clamp_index(index: int, length: int) -> int:
    """Clamp an index to [0, length). Returns 0 for an empty sequence."""
    if length <= 0:
        return 0
    return max(0, min(index, length - 1))


def clamp_pin(pinned_index: int, length: int) -> int:
    """Keep a pin index valid, resetting it to -1 when out of range."""
    if 0 <= pinned_index < length:
        return pinned_index
    return -1


def cycle_focus(current: str, pinned: bool) -> str:
    """Next pane in tab order: list -> log (-> secondary when pinned) -> list."""
    order = [FOCUS_LIST, FOCUS_LOG]
    if pinned:
        order.append(FOCUS_SECONDARY)
    try:
        idx = order.index(current)
    except ValueError:
        return FOCUS_LIST
    return order[(idx + 1) % len(order)]


def format_memory_mb(rss_bytes: int) -> str:
    """Resident memory in whole megabytes."""
    return f"{rss_bytes // (1024 * 1024)} MB"


def format_cpu(percent: float) -> str:
    """CPU percent without decimals."""
    return f"{percent:.0f}% CPU"
