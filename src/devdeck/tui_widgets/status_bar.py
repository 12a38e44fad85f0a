"""
Status bar widget for TUI.

System CPU/memory plus a summary of task states.
"""

from textual.widgets import Static

from ..tui_render import render_status_bar


class StatusBar(Static):
    """Bottom status bar."""

    def refresh_from(self, model) -> None:
        self.update(
            render_status_bar(
                model.system_cpu,
                model.system_memory,
                model.processes,
                model.focused_pane,
                model.theme,
            )
        )
