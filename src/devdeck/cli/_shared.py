"""
Shared CLI state: Typer app, console, options, and utilities.
"""

import logging
from pathlib import Path
from typing import Annotated, List, Optional

import typer
from rich import print as rprint
from rich.console import Console

from ..settings import DEFAULTS

# Main app
app = typer.Typer(
    name="devdeck",
    help="Run and watch your development processes from one terminal",
    no_args_is_help=False,
    invoke_without_command=True,
    rich_markup_mode="rich",
)

# Console for rich output
console = Console()

ConfigOption = Annotated[
    Path,
    typer.Option(
        "--config",
        "-c",
        help="Task file (.yaml, .yml or .json)",
    ),
]

GroupOption = Annotated[
    Optional[List[str]],
    typer.Option(
        "--group",
        "-g",
        help="Only run tasks in this group (and their dependencies). Repeatable.",
    ),
]


def load_or_exit(config: Path, groups: Optional[List[str]] = None):
    """Load the task file, printing the error and exiting 1 on failure."""
    from ..exceptions import ReloadError
    from ..task_config import load_tasks

    try:
        return load_tasks(config, groups)
    except ReloadError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    config: ConfigOption = Path(DEFAULTS.config_file),
    group: GroupOption = None,
    no_watch: Annotated[
        bool, typer.Option("--no-watch", help="Don't reload when the task file changes")
    ] = False,
    log_file: Annotated[
        Optional[Path], typer.Option("--log-file", help="Write the dashboard log here")
    ] = None,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Log at debug level")
    ] = False,
):
    """Launch the dashboard when no command is given."""
    if ctx.invoked_subcommand is not None:
        return

    from ..logging_config import setup_dashboard_logging
    from ..tui import run_tui

    level = logging.DEBUG if verbose else logging.INFO
    log = setup_dashboard_logging(log_file=log_file, level=level)

    task_set = load_or_exit(config, group)
    if not task_set.tasks:
        rprint(f"[yellow]No tasks to run in {config}[/yellow]")
        raise typer.Exit(1)

    log.info(f"Starting dashboard with {len(task_set.tasks)} task(s) from {config}")
    code = run_tui(task_set, config_path=config, groups=group, watch=not no_watch)
    raise typer.Exit(code)
