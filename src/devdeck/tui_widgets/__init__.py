"""
TUI Widget components for DevDeck.

Each widget renders part of the session model; none of them holds state of
its own or handles keys.
"""

from .command_bar import CommandBar
from .help_overlay import HelpOverlay
from .log_pane import LogPane
from .status_bar import StatusBar
from .task_list import TaskList

__all__ = [
    "CommandBar",
    "HelpOverlay",
    "LogPane",
    "StatusBar",
    "TaskList",
]
