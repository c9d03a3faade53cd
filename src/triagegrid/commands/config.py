"""Config commands for the triagegrid CLI."""

import os

import structlog
import typer
from rich.console import Console
from rich.table import Table

from ..core.settings import CONFIG_FILENAME, Settings, load_settings, save_settings

console = Console()
log = structlog.get_logger()

config_app = typer.Typer(
    help="Manage triagegrid TOML configuration",
    no_args_is_help=True,
)


@config_app.command("init")
def config_init(
    config: str = typer.Option(
        CONFIG_FILENAME, "--config", "-c", help="Path to TOML configuration file"
    ),
):
    """Write a configuration file with default values."""
    if os.path.exists(config):
        console.print(f"[yellow]Configuration file '{config}' already exists.[/]")
        raise typer.Exit(1)

    save_settings(config, Settings())
    console.print(f"[green]Created configuration file: {config}[/]")


@config_app.command("show")
def config_show(
    config: str = typer.Option(
        CONFIG_FILENAME, "--config", "-c", help="Path to TOML configuration file"
    ),
):
    """Display the effective configuration."""
    s = load_settings(config)
    table = Table(title="triagegrid configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="magenta")

    table.add_row("Page size", str(s.grid.page_size))
    table.add_row("Page size options", ", ".join(str(n) for n in s.grid.page_size_options))
    table.add_row("Default sort", f"{s.grid.default_sort_field} ({s.grid.default_sort_order})")
    table.add_row("Search fields", ", ".join(s.grid.search_fields))
    table.add_row("Auto refresh", "on" if s.refresh.enabled else "off")
    table.add_row("Refresh interval", f"{s.refresh.interval_sec}s")
    table.add_row("CSV quoting", "on" if s.export.csv_quoting else "off")
    table.add_row("Export filename prefix", s.export.filename_prefix)

    console.print(table)
