"""
Terminal renderer for the triage grid.

A thin Textual front end: it forwards key presses to the engine's keyboard
controller and redraws whenever the engine notifies. All filtering,
sorting, paging, selection and refresh logic stays in the engine.
"""

from typing import Dict, Optional

import structlog
from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import DataTable, Footer, Header, Input, Static

from ..core.settings import Settings
from ..grid.engine import GridEngine
from ..grid.export import ExportFormat
from ..grid.keyboard import HELP_SHORTCUTS, KeyEvent, KeyEventSource
from ..grid.records import Record
from ..grid.sorting import SortField
from ..grid.sources import JsonFileSource

log = structlog.get_logger()

# Textual key names -> DOM-style names used by the keyboard controller
TEXTUAL_KEYS = {
    "down": "ArrowDown",
    "up": "ArrowUp",
    "enter": "Enter",
    "space": " ",
    "escape": "Escape",
    "slash": "/",
    "question_mark": "?",
}

SEVERITY_STYLES = {
    "CRITICAL": "bold red",
    "HIGH": "dark_orange",
    "MEDIUM": "yellow",
    "LOW": "blue",
    "UNKNOWN": "dim",
}

SORT_CYCLE = list(SortField)


def to_key_event(event: events.Key, in_text_input: bool) -> KeyEvent:
    key = event.key
    ctrl = key.startswith("ctrl+")
    if ctrl:
        key = key[len("ctrl+"):]
    return KeyEvent(
        key=TEXTUAL_KEYS.get(key, key),
        in_text_input=in_text_input,
        ctrl=ctrl,
    )


class TriageApp(App):
    """Findings grid in the terminal."""

    CSS = """
    #search-input {
        dock: top;
        margin: 0 1;
    }
    #notice {
        height: auto;
        padding: 0 1;
        color: $error;
    }
    #findings-table {
        height: 1fr;
    }
    #status-line, #detail {
        height: auto;
        padding: 0 1;
        color: $text-muted;
    }
    #help {
        dock: right;
        border: round $accent;
        padding: 1 2;
        width: 44;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("n", "next_page", "Next page"),
        Binding("p", "prev_page", "Prev page"),
        Binding("o", "cycle_sort", "Sort"),
        Binding("s", "cycle_page_size", "Page size"),
        Binding("a", "select_all", "Select page"),
        Binding("e", "export", "Export CSV"),
        Binding("t", "retry", "Retry", show=False),
        Binding("d", "dismiss", "Dismiss", show=False),
    ]

    def __init__(self, source: JsonFileSource, settings: Optional[Settings] = None, refresh_sec: Optional[int] = None):
        super().__init__()
        self.source = source
        self.engine = GridEngine(
            source.fetch,
            update_record_status=source.update_status,
            navigate_to_detail=self.show_detail,
            download_file=self._write_download,
            settings=settings,
        )
        self.engine.keyboard.focus_search = self._focus_search
        self.engine.keyboard.blur_search = self._blur_search
        self.keys = KeyEventSource()
        self.refresh_sec = refresh_sec
        self._row_index: Dict[str, int] = {}
        self._ready = False

    def compose(self) -> ComposeResult:
        yield Header()
        yield Input(placeholder="Search findings... (/)", id="search-input")
        yield Static("", id="notice")
        yield DataTable(id="findings-table", cursor_type="row")
        yield Static("", id="detail")
        yield Static("", id="status-line")
        yield Static(self._help_text(), id="help")
        yield Footer()

    async def on_mount(self) -> None:
        table = self.query_one("#findings-table", DataTable)
        table.can_focus = False
        table.add_columns("", "Severity", "Status", "CVE ID", "Package", "Installed", "Fixed", "Project")
        self.query_one("#help", Static).display = False

        self.engine.register_callback(self._render)
        self.engine.keyboard.attach(self.keys)
        self._ready = True
        await self.engine.reload()

        settings = self.engine.settings.refresh
        if self.refresh_sec:
            self.engine.start_auto_refresh(self.refresh_sec * 1000)
        elif settings.enabled:
            self.engine.start_auto_refresh()

    def on_unmount(self) -> None:
        self.engine.dispose()

    # -- input ---------------------------------------------------------

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id == "search-input":
            self.engine.set_search(event.value)

    def on_key(self, event: events.Key) -> None:
        key_event = to_key_event(event, isinstance(self.focused, Input))
        self.keys.dispatch(key_event)
        if key_event.handled:
            event.stop()
        if key_event.default_prevented:
            event.prevent_default()

    def _focus_search(self) -> None:
        self.query_one("#search-input", Input).focus()

    def _blur_search(self) -> None:
        self.set_focus(None)

    # -- actions -------------------------------------------------------

    def action_next_page(self) -> None:
        self.engine.next_page()

    def action_prev_page(self) -> None:
        self.engine.prev_page()

    def action_cycle_sort(self) -> None:
        current = SORT_CYCLE.index(self.engine.sort.field)
        self.engine.sort_by(SORT_CYCLE[(current + 1) % len(SORT_CYCLE)])

    def action_cycle_page_size(self) -> None:
        options = self.engine.settings.grid.page_size_options or [self.engine.page_size]
        if self.engine.page_size in options:
            nxt = options[(options.index(self.engine.page_size) + 1) % len(options)]
        else:
            nxt = options[0]
        self.engine.set_page_size(nxt)

    def action_select_all(self) -> None:
        self.engine.select_all_visible()

    def action_export(self) -> None:
        self.engine.download(ExportFormat.CSV)

    def action_retry(self) -> None:
        self.engine.retry_notice()

    def action_dismiss(self) -> None:
        self.engine.dismiss_notice()

    # -- collaborators -------------------------------------------------

    def show_detail(self, record_id: str) -> None:
        record = self.engine.store.get(record_id)
        if record is None:
            return
        self.query_one("#detail", Static).update(
            f"[b]{record.cve_id or record.id}[/b] {record.pkg_name} "
            f"{record.installed_version} -> {record.fixed_version or 'no fix'}\n"
            f"{record.title or record.description or 'No description.'}"
        )

    def _write_download(self, content: str, filename: str, mime_type: str) -> None:
        with open(filename, "w") as f:
            f.write(content)
        self.notify(f"Exported {filename}")

    # -- rendering -----------------------------------------------------

    def _help_text(self) -> str:
        lines = ["[b]Keyboard shortcuts[/b]", ""]
        lines.extend(f"  [b]{key:<8}[/b] {desc}" for key, desc in HELP_SHORTCUTS)
        return "\n".join(lines)

    def _format_row(self, record: Record) -> tuple:
        mark = "[x]" if self.engine.is_selected(record.id) else "[ ]"
        style = SEVERITY_STYLES.get(record.severity.value, "")
        return (
            mark,
            f"[{style}]{record.severity.value}[/]",
            record.status.value.replace("_", " "),
            record.cve_id,
            record.pkg_name,
            record.installed_version,
            record.fixed_version or "-",
            record.project or "-",
        )

    def _render(self) -> None:
        if not self._ready:
            return
        engine = self.engine
        table = self.query_one("#findings-table", DataTable)
        table.clear()
        self._row_index = {}
        for record in engine.rows:
            self._row_index[record.id] = table.row_count
            table.add_row(*self._format_row(record), key=record.id)
            if engine.is_expanded(record.id):
                table.add_row(
                    "", "", "", f"  {record.title or record.description}", "", "", "", "",
                    key=f"{record.id}:detail",
                )

        focused = engine.focused_record
        if focused is not None:
            table.move_cursor(row=self._row_index[focused.id])

        notice = self.query_one("#notice", Static)
        if engine.notice:
            hint = "  [t] retry" if engine.notice.retry else ""
            notice.update(f"{engine.notice.message}{hint}  [d] dismiss")
            notice.display = True
        else:
            notice.display = False

        page = engine.view.page
        sort = engine.sort
        refresh = f" | auto refresh {engine.scheduler.interval_ms // 1000}s" if engine.scheduler.is_running else ""
        loading = " | loading..." if engine.loading else ""
        self.query_one("#status-line", Static).update(
            f"Showing {page.start}-{page.end} of {page.total} | page {page.page}/{page.total_pages}"
            f" | {len(engine.selected_ids)} selected | sort {sort.field.value} {sort.order.value}"
            f"{refresh}{loading}"
        )
        self.query_one("#help", Static).display = engine.help_open


def launch(records_path: str, settings: Optional[Settings] = None, refresh_sec: Optional[int] = None) -> None:
    """Launch the terminal findings grid."""
    app = TriageApp(JsonFileSource(records_path), settings=settings, refresh_sec=refresh_sec)
    app.run()
