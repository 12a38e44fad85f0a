"""
CLI interface for DevDeck using Typer.
"""

# Shared state (app, options, utilities) must be imported first
from ._shared import app, main_callback  # noqa: F401

# Import submodules to register their commands with the Typer app
from . import tasks  # noqa: F401


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
