"""
Command bar widget for TUI.

One line below the panes: the draft while sending input or searching, key
hints otherwise.
"""

from textual.widgets import Static

from ..tui_render import render_command_bar


class CommandBar(Static):
    """Input line for the send-input and search modes."""

    def refresh_from(self, model) -> None:
        handle = model.cursor_handle
        target = handle.name if handle is not None else None
        self.update(render_command_bar(model.input_mode, model.input_text, target, model.theme))
