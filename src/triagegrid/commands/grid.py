"""Grid commands: inspect and export findings from a record file."""

import asyncio
from typing import List, Optional

import structlog
import typer
from rich.console import Console
from rich.table import Table

from ..core.errors import GridError, UnknownQuickFilter
from ..core.settings import load_settings
from ..grid.engine import GridEngine
from ..grid.export import ExportFormat
from ..grid.filters import Facet
from ..grid.records import Severity, Status
from ..grid.sorting import SortField, SortOrder
from ..grid.sources import JsonFileSource

console = Console()
log = structlog.get_logger()

grid_app = typer.Typer(
    help="Filter, sort, page and export findings",
    no_args_is_help=True,
)

SEVERITY_STYLES = {
    "CRITICAL": "bold red",
    "HIGH": "dark_orange",
    "MEDIUM": "yellow",
    "LOW": "blue",
    "UNKNOWN": "dim",
}


def _split(values: Optional[List[str]], enum) -> list:
    out = []
    for value in values or []:
        for v in value.split(","):
            v = v.strip().upper()
            if not v:
                continue
            try:
                out.append(enum(v))
            except ValueError:
                names = ", ".join(e.value for e in enum)
                console.print(f"[red]Unknown value '{v}'. Expected one of: {names}[/]")
                raise typer.Exit(2)
    return out


def build_engine(
    records: str,
    config: Optional[str],
    search: Optional[str] = None,
    severity: Optional[List[str]] = None,
    status: Optional[List[str]] = None,
    project: Optional[str] = None,
    quick: Optional[str] = None,
    sort: Optional[str] = None,
    desc: bool = False,
    page_size: Optional[int] = None,
    download_file=None,
) -> GridEngine:
    """Load ``records`` into an engine and apply command-line view options."""
    source = JsonFileSource(records)
    engine = GridEngine(
        source.fetch,
        update_record_status=source.update_status,
        download_file=download_file,
        settings=load_settings(config),
    )

    if not asyncio.run(engine.reload()):
        console.print(f"[red]{engine.notice.message}[/]")
        raise typer.Exit(1)

    if quick:
        try:
            engine.apply_quick_filter(quick)
        except UnknownQuickFilter:
            names = ", ".join(p.id for p in engine.presets.all())
            console.print(f"[red]Unknown quick filter '{quick}'. Available: {names}[/]")
            raise typer.Exit(2)
    for value in _split(severity, Severity):
        engine.toggle_facet(Facet.SEVERITY, value)
    for value in _split(status, Status):
        engine.toggle_facet(Facet.STATUS, value)
    if project:
        engine.toggle_facet(Facet.PROJECT, project)
    if search:
        engine.set_search(search)
    if sort or desc:
        target = SortField(sort) if sort else engine.sort.field
        wanted = SortOrder.DESC if desc else SortOrder.ASC
        if engine.sort.field != target:
            engine.sort_by(target)
        if engine.sort.order != wanted:
            engine.sort_by(target)
    if page_size is not None:
        try:
            engine.set_page_size(page_size)
        except GridError as e:
            console.print(f"[red]Invalid page size {e}: must be at least 1[/]")
            raise typer.Exit(2)
    return engine


@grid_app.command("show")
def grid_show(
    records: str = typer.Argument(..., help="JSON file with findings"),
    search: Optional[str] = typer.Option(None, "--search", "-s", help="Search text"),
    severity: Optional[List[str]] = typer.Option(None, "--severity", help="Severity filter (repeatable or comma-separated)"),
    status: Optional[List[str]] = typer.Option(None, "--status", help="Status filter (repeatable or comma-separated)"),
    project: Optional[str] = typer.Option(None, "--project", help="Project filter"),
    quick: Optional[str] = typer.Option(None, "--quick", "-q", help="Quick filter id"),
    sort: Optional[SortField] = typer.Option(None, "--sort", help="Sort field"),
    desc: bool = typer.Option(False, "--desc", help="Sort descending"),
    page: int = typer.Option(1, "--page", "-p", help="Page number"),
    page_size: Optional[int] = typer.Option(None, "--page-size", help="Rows per page"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to TOML configuration file"),
):
    """Print one page of findings."""
    engine = build_engine(records, config, search, severity, status, project, quick, sort, desc, page_size)
    engine.set_page(page)

    table = Table(title=f"Findings (page {engine.page}/{engine.total_pages})")
    table.add_column("CVE ID", style="cyan")
    table.add_column("Package")
    table.add_column("Severity")
    table.add_column("Status")
    table.add_column("Installed")
    table.add_column("Fixed")
    table.add_column("Project")
    for r in engine.rows:
        table.add_row(
            r.cve_id,
            r.pkg_name,
            f"[{SEVERITY_STYLES[r.severity.value]}]{r.severity.value}[/]",
            r.status.value.replace("_", " "),
            r.installed_version,
            r.fixed_version or "-",
            r.project or "-",
        )
    console.print(table)
    pg = engine.view.page
    console.print(f"Showing {pg.start}-{pg.end} of {pg.total}")


@grid_app.command("export")
def grid_export(
    records: str = typer.Argument(..., help="JSON file with findings"),
    fmt: ExportFormat = typer.Option(ExportFormat.CSV, "--format", "-f", help="Export format"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Output file (default: dated filename)"),
    search: Optional[str] = typer.Option(None, "--search", "-s", help="Search text"),
    severity: Optional[List[str]] = typer.Option(None, "--severity", help="Severity filter"),
    status: Optional[List[str]] = typer.Option(None, "--status", help="Status filter"),
    project: Optional[str] = typer.Option(None, "--project", help="Project filter"),
    quick: Optional[str] = typer.Option(None, "--quick", "-q", help="Quick filter id"),
    sort: Optional[SortField] = typer.Option(None, "--sort", help="Sort field"),
    desc: bool = typer.Option(False, "--desc", help="Sort descending"),
    select: Optional[List[str]] = typer.Option(None, "--select", help="Export only these ids"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to TOML configuration file"),
):
    """Export the filtered findings (or the selected ids) to CSV or JSON."""
    written = {}

    def _write(content: str, filename: str, mime_type: str) -> None:
        path = output or filename
        with open(path, "w") as f:
            f.write(content)
        written["path"] = path

    engine = build_engine(
        records, config, search, severity, status, project, quick, sort, desc, download_file=_write
    )
    for record_id in select or []:
        engine.toggle_select(record_id)
    engine.download(fmt)
    count = len(engine.export_records())
    console.print(f"[green]Exported {count} findings to {written['path']}[/]")
