"""
Log pane widget for TUI.

Shows the visible window of a session viewport. The primary pane follows the
cursor task (filtered by the search query); the secondary pane shows the
pinned task.
"""

from textual.widgets import Static

from ..status_constants import FOCUS_LOG, FOCUS_SECONDARY
from ..tui_render import render_log_title, render_log_view


class LogPane(Static):
    """Primary or secondary log pane."""

    def __init__(self, secondary: bool = False, **kwargs):
        super().__init__("", **kwargs)
        self.secondary = secondary
        self.border_title = "Logs"

    def refresh_from(self, model) -> None:
        """Re-render from the session model."""
        border = model.theme.color("border")
        if self.secondary:
            handle = model.pinned_handle
            self.display = handle is not None
            if handle is None:
                return
            viewport = model.secondary
            query = ""
            focused = model.focused_pane == FOCUS_SECONDARY
            height = model.layout.secondary_height
            self.border_title = render_log_title(handle.name, pinned=True)
        else:
            handle = model.cursor_handle
            viewport = model.primary
            query = model.search_query
            focused = model.focused_pane == FOCUS_LOG
            height = model.layout.primary_height
            self.border_title = render_log_title(
                handle.name if handle is not None else None,
                query,
                len(model.match_positions),
            )

        if height > 0:
            self.styles.height = height
        self.styles.border = ("round", model.theme.color("primary") if focused else border)
        self.set_class(focused, "focused")
        self.border_subtitle = "" if viewport.at_bottom else "▲ scrolled"
        self.update(render_log_view(viewport.visible_lines(), model.theme, query))
