"""
Task list widget for TUI.

Fixed-width left pane listing every task with its status, stats and health.
"""

from textual.widgets import Static

from ..status_constants import FOCUS_LIST
from ..tui_render import render_task_list


class TaskList(Static):
    """Task list pane."""

    def __init__(self, **kwargs):
        super().__init__("", **kwargs)
        self.border_title = "Tasks"

    def refresh_from(self, model) -> None:
        """Re-render from the session model."""
        self.styles.width = model.list_width
        focused = model.focused_pane == FOCUS_LIST
        border = model.theme.color("primary") if focused else model.theme.color("border")
        self.styles.border = ("round", border)
        self.set_class(focused, "focused")
        self.border_title = f"Tasks ({len(model.processes)})"
        self.update(
            render_task_list(model.processes, model.cursor, model.pinned_index, model.theme)
        )
