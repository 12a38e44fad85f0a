"""
Task file commands: validate, init.
"""

from pathlib import Path
from typing import Annotated

import typer
from rich import print as rprint
from rich.table import Table

from ..settings import DEFAULTS
from ._shared import ConfigOption, GroupOption, app, console, load_or_exit


TASKS_TEMPLATE = """\
# DevDeck task file
# Each task is a long-running command shown in the dashboard.

tasks:
  - name: web
    command: python -m http.server 8000
    # directory: ./frontend        # relative to this file
    # env: [PORT=8000]
    # env_file: .env                # entries in env win
    health_check:
      type: http                    # or tcp with target host:port
      target: http://localhost:8000/
      interval: 2000                # ms
      timeout: 1000                 # ms
    groups: [frontend]

  - name: ticker
    command: python -u -c "import time; [print('tick', flush=True) or time.sleep(1) for _ in iter(int, 1)]"
    depends_on: [web]

# theme:
#   primary: "205"
#   secondary: "#7D56F4"
#   border: "63"
#   text: "240"
"""


@app.command("validate")
def validate(
    config: ConfigOption = Path(DEFAULTS.config_file),
    group: GroupOption = None,
):
    """Check a task file and list its tasks in start order."""
    from ..logging_config import setup_cli_logging
    from ..task_config import startup_order

    setup_cli_logging()
    task_set = load_or_exit(config, group)

    table = Table(title=f"{config} ({len(task_set.tasks)} task(s))", title_justify="left")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Command")
    table.add_column("Directory", style="dim")
    table.add_column("Health")
    table.add_column("Depends on", style="dim")
    table.add_column("Groups", style="dim")

    for i, task in enumerate(startup_order(task_set.tasks), start=1):
        probe = task.health_probe
        health = f"{probe.kind} {probe.target}" if probe else "-"
        table.add_row(
            str(i),
            task.name,
            task.command,
            task.directory or ".",
            health,
            ", ".join(task.depends_on) or "-",
            ", ".join(task.groups) or "-",
        )

    console.print(table)
    rprint("[green]✓[/green] Task file is valid")


@app.command("init")
def init(
    config: ConfigOption = Path(DEFAULTS.config_file),
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Overwrite an existing task file")
    ] = False,
):
    """Create a commented example task file."""
    if config.exists() and not force:
        rprint(f"[yellow]Task file already exists:[/yellow] {config}")
        rprint("[dim]Use --force to overwrite[/dim]")
        raise typer.Exit(1)

    config.parent.mkdir(parents=True, exist_ok=True)
    config.write_text(TASKS_TEMPLATE)
    rprint(f"[green]✓[/green] Created task file: [bold]{config}[/bold]")
    rprint("[dim]Run 'devdeck' to start the dashboard[/dim]")
