"""
Help overlay widget for TUI.

Displays keyboard shortcuts and a status reference in a two-column layout.
"""

from rich import box
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from textual.widgets import Static

from ..status_constants import PIN_MARKER


class HelpOverlay(Static):
    """Modal help explaining keys and list markers"""

    def _build_keybindings(self) -> Text:
        """Build the keybindings column."""
        t = Text()

        def section(title):
            t.append(f"  {title}\n", style="bold bright_white")
            t.append("  " + "─" * 44 + "\n", style="dim")

        def row(k, desc, k2=None, desc2=None):
            t.append(f"  {k:<10}", style="bold cyan")
            if k2:
                t.append(f"{desc:<16}", style="white")
                t.append(f"{k2:<10}", style="bold cyan")
                t.append(f"{desc2}\n", style="white")
            else:
                t.append(f"{desc}\n", style="white")

        section("NAVIGATION")
        row("k/↑", "Previous task", "j/↓", "Next task")
        row("tab", "Cycle focus", "PgUp/PgDn", "Page log")
        row("home/end", "Top / bottom of log")
        t.append("\n")

        section("TASKS")
        row("r", "Restart task", "s", "Pin / unpin")
        row("i", "Send input", "/", "Search log")
        row("esc", "Clear search", "q", "Stop all & quit")
        t.append("\n")

        section("INPUT & SEARCH")
        row("enter", "Send / apply", "esc", "Cancel")
        row("backspace", "Delete char")
        t.append("\n")

        row("?", "Close help", "ctrl+c", "Quit")
        return t

    def _build_status_reference(self) -> Text:
        """Build the status reference column."""
        t = Text()

        def section(title):
            t.append(f"{title}\n", style="bold bright_white")
            t.append("─" * 30 + "\n", style="dim")

        def marker(symbol, style, desc):
            t.append(f"{symbol:<3}", style=style)
            t.append(f"{desc}\n", style="white")

        section("PROCESS")
        marker("🟢", "", "Running")
        marker("🔴", "", "Stopped or errored")
        marker(PIN_MARKER, "", "Pinned to second pane")
        marker(">", "bold", "Selected")
        t.append("\n")

        section("HEALTH")
        marker("…", "yellow", "Waiting for first probe")
        marker("✓", "green", "Probe succeeded")
        marker("✗", "bold red", "Probe failed")
        t.append("\nHealth is informational only;\nno task restarts on failure.\n", style="dim")
        return t

    def render(self):
        layout = Table(
            show_header=False,
            show_edge=False,
            box=None,
            padding=(0, 2),
            expand=True,
        )
        layout.add_column("keys", ratio=3, no_wrap=True)
        layout.add_column("reference", ratio=2)
        layout.add_row(self._build_keybindings(), self._build_status_reference())

        return Panel(
            layout,
            title=Text(" DEVDECK HELP ", style="bold bright_white"),
            subtitle=Text("Press ? or esc to close", style="dim"),
            border_style="bright_blue",
            box=box.DOUBLE,
        )
