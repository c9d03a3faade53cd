"""
triagegrid CLI: main entry point.

Commands:
- grid: filter, sort, page and export findings from a JSON record file
- config: configuration management
- dashboard: interactive terminal grid
"""

import logging
from typing import Optional

import structlog
import typer
from rich.console import Console

from .commands.config import config_app
from .commands.grid import grid_app
from .core.logging import setup_logging
from .core.settings import load_settings

log = structlog.get_logger()

app = typer.Typer(
    help="triagegrid: triage security findings: search, filter, sort, select and export.",
    context_settings={"help_option_names": ["-h", "--help"]},
    no_args_is_help=True,
)

console = Console()

app.add_typer(config_app, name="config", help="Manage triagegrid TOML configuration")
app.add_typer(grid_app, name="grid", help="Filter, sort, page and export findings")


@app.callback()
def main_callback(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose output"
    ),
    json_logs: bool = typer.Option(
        True, "--json-logs/--plain-logs", help="Render log lines as JSON or plain text"
    ),
):
    """
    Main callback for global setup.
    """
    setup_logging(logging.DEBUG if verbose else logging.WARNING, json_logs=json_logs)


@app.command("dashboard")
def dashboard_cmd(
    records: str = typer.Argument(..., help="JSON file with findings"),
    refresh: Optional[int] = typer.Option(
        None, "--refresh", "-r", help="Auto refresh interval in seconds"
    ),
    config: Optional[str] = typer.Option(
        None, "--config", "-c", help="Path to configuration file"
    ),
):
    """Launch the interactive findings grid."""
    from .ui.app import launch

    try:
        launch(records, settings=load_settings(config), refresh_sec=refresh)
    except KeyboardInterrupt:
        console.print("\n[yellow]Dashboard closed[/]")


@app.command("version")
def version_cmd():
    """Show version information."""
    from . import __version__

    console.print(f"triagegrid version: [cyan]{__version__}[/]")


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
