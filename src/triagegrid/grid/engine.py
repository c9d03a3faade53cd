"""
Triage grid engine.

Composes the record store, filter/sort/pagination pipeline, selection and
expansion side-maps, keyboard controller and refresh scheduler behind one
object a renderer binds to.

All view state lives in a single GridState value. Every mutation goes
through ``_commit``, which recomputes the derived view and enforces the
page and focus invariants before listeners are notified, so a reader never
sees a new filtered count paired with a stale page number.
"""

import asyncio
import inspect
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set, Union

import structlog

from ..core.errors import MissingCollaborator
from ..core.settings import Settings
from .export import MIME_TYPES, ExportFormat, export_filename, serialize
from .filters import (
    Facet,
    FilterState,
    PresetRegistry,
    QuickFilter,
    apply_filters,
    apply_quick_filter,
    clear_facet,
    toggle_facet_value,
    with_search,
)
from .keyboard import KeyboardController
from .pagination import PageSlice, PaginationState, paginate, total_pages
from .records import Record, RecordStore, Status, summarize
from .scheduler import RefreshScheduler, Timer
from .selection import ExpansionManager, SelectionManager
from .sorting import SortField, SortOrder, SortState, sort_records

log = structlog.get_logger()

FetchRecords = Callable[[], Awaitable[Iterable[Union[Record, Dict[str, Any]]]]]
UpdateRecordStatus = Callable[[str, Status], Awaitable[None]]


@dataclass(frozen=True)
class GridState:
    """Every piece of view state the engine owns, in one value."""

    filters: FilterState = field(default_factory=FilterState)
    sort: SortState = field(default_factory=SortState)
    pagination: PaginationState = field(default_factory=PaginationState)
    focus: int = -1
    help_open: bool = False


@dataclass(frozen=True)
class GridView:
    """Derived pipeline output for the current state."""

    filtered: List[Record]
    ordered: List[Record]
    page: PageSlice

    @property
    def rows(self) -> List[Record]:
        return self.page.rows


@dataclass
class Notice:
    """A dismissible message for the renderer, optionally retryable."""

    kind: str
    message: str
    retry: Optional[Callable[[], Any]] = None


@dataclass
class BatchFailure:
    id: str
    error: str


@dataclass
class BatchResult:
    status: Optional[Status]
    succeeded: List[str] = field(default_factory=list)
    failed: List[BatchFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class GridEngine:
    """Headless findings grid."""

    def __init__(
        self,
        fetch_records: FetchRecords,
        update_record_status: Optional[UpdateRecordStatus] = None,
        navigate_to_detail: Optional[Callable[[str], None]] = None,
        download_file: Optional[Callable[[str, str, str], None]] = None,
        settings: Optional[Settings] = None,
        timer: Optional[Timer] = None,
    ):
        self.settings = settings or Settings()
        self._fetch_records = fetch_records
        self._update_record_status = update_record_status
        self._navigate_to_detail = navigate_to_detail
        self._download_file = download_file

        grid = self.settings.grid
        self.search_fields = tuple(grid.search_fields)
        self.store = RecordStore()
        self.selection = SelectionManager()
        self.expansion = ExpansionManager()
        self.presets = PresetRegistry()
        self.keyboard = KeyboardController(self)
        self.scheduler = RefreshScheduler(self.request_refresh, timer=timer)

        self.notice: Optional[Notice] = None
        self.loading = False
        self._callbacks: List[Callable[[], None]] = []
        self._tasks: Set["asyncio.Task[Any]"] = set()
        self._disposed = False
        self._filter_memo: Optional[tuple] = None
        self._order_memo: Optional[tuple] = None

        self.state = GridState(
            sort=SortState(SortField(grid.default_sort_field), SortOrder(grid.default_sort_order)),
            pagination=PaginationState(page=1, page_size=grid.page_size),
        )
        self.view = self._compute_view(self.state)

    # -- listeners -----------------------------------------------------

    def register_callback(self, callback: Callable[[], None]) -> None:
        """Register a callback to be called when state changes."""
        self._callbacks.append(callback)

    def _notify(self) -> None:
        for callback in self._callbacks:
            try:
                callback()
            except Exception as e:
                log.warning("grid.callback_error", error=str(e))

    # -- state transitions ---------------------------------------------

    def _filtered(self, filters: FilterState) -> List[Record]:
        key = (self.store.generation, filters, self.search_fields)
        if self._filter_memo is None or self._filter_memo[0] != key:
            self._filter_memo = (key, apply_filters(self.store.snapshot, filters, self.search_fields))
            self._order_memo = None
        return self._filter_memo[1]

    def _ordered(self, filters: FilterState, sort: SortState) -> List[Record]:
        filtered = self._filtered(filters)
        key = (self.store.generation, filters, sort)
        if self._order_memo is None or self._order_memo[0] != key:
            self._order_memo = (key, sort_records(filtered, sort))
        return self._order_memo[1]

    def _compute_view(self, state: GridState) -> GridView:
        filtered = self._filtered(state.filters)
        ordered = self._ordered(state.filters, state.sort)
        return GridView(filtered=filtered, ordered=ordered, page=paginate(ordered, state.pagination))

    def _commit(self, new: GridState, reset_page: bool = False) -> None:
        old = self.state
        if reset_page:
            new = replace(new, pagination=replace(new.pagination, page=1))
        view = self._compute_view(new)

        # paginate() already clamped; store the clamped page back
        if view.page.page != new.pagination.page:
            new = replace(new, pagination=replace(new.pagination, page=view.page.page))

        focus = new.focus
        if new.pagination != old.pagination:
            focus = -1
        rows = len(view.rows)
        if rows == 0:
            focus = -1
        elif focus >= rows:
            focus = rows - 1
        elif focus < -1:
            focus = -1
        new = replace(new, focus=focus)

        self.state = new
        self.view = view
        self._notify()

    def _refresh_view(self) -> None:
        self._commit(self.state)

    # -- read accessors ------------------------------------------------

    @property
    def rows(self) -> List[Record]:
        return self.view.rows

    @property
    def filters(self) -> FilterState:
        return self.state.filters

    @property
    def sort(self) -> SortState:
        return self.state.sort

    @property
    def page(self) -> int:
        return self.state.pagination.page

    @property
    def page_size(self) -> int:
        return self.state.pagination.page_size

    @property
    def total_pages(self) -> int:
        return self.view.page.total_pages

    @property
    def focus(self) -> int:
        return self.state.focus

    @property
    def help_open(self) -> bool:
        return self.state.help_open

    @property
    def focused_record(self) -> Optional[Record]:
        if 0 <= self.state.focus < len(self.view.rows):
            return self.view.rows[self.state.focus]
        return None

    def is_selected(self, record_id: str) -> bool:
        """Selected and present in the current snapshot."""
        return self.selection.is_selected(record_id) and record_id in self.store

    def is_expanded(self, record_id: str) -> bool:
        return self.expansion.is_expanded(record_id) and record_id in self.store

    @property
    def selected_ids(self) -> List[str]:
        return self.selection.visible_in(self.store.ids())

    @property
    def all_visible_selected(self) -> bool:
        ids = [r.id for r in self.view.rows]
        return bool(ids) and set(ids) == set(self.selection.ids())

    def summary(self) -> Dict[str, int]:
        return summarize(self.view.filtered)

    # -- records -------------------------------------------------------

    def load(self, records: Iterable[Union[Record, Dict[str, Any]]]) -> None:
        """Replace the snapshot with ``records``."""
        self.store.replace(
            r if isinstance(r, Record) else Record.from_dict(r) for r in records
        )
        self._refresh_view()

    async def reload(self) -> bool:
        """Fetch a new snapshot. On failure all view state is left as it was."""
        self.loading = True
        self._notify()
        try:
            records = await _maybe_await(self._fetch_records())
            parsed = [r if isinstance(r, Record) else Record.from_dict(r) for r in records]
        except Exception as e:
            log.warning("grid.reload_failed", error=str(e))
            self.loading = False
            self.notice = Notice(
                "fetch_error", f"Failed to load findings: {e}", retry=self.request_refresh
            )
            self._notify()
            return False

        self.loading = False
        if self.notice and self.notice.kind == "fetch_error":
            self.notice = None
        self.store.replace(parsed)
        log.debug("grid.reloaded", count=len(parsed), generation=self.store.generation)
        self._refresh_view()
        return True

    def _spawn(self, coro: Awaitable[Any]) -> Optional["asyncio.Task[Any]"]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(coro)
            return None
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def request_refresh(self) -> Optional["asyncio.Task[Any]"]:
        """Start a re-fetch without waiting for it."""
        if self._disposed:
            return None
        return self._spawn(self.reload())

    # -- filters -------------------------------------------------------

    def set_search(self, query: str) -> None:
        if query == self.state.filters.search:
            return
        self._commit(replace(self.state, filters=with_search(self.state.filters, query)), reset_page=True)

    def toggle_facet(self, facet: Facet, value: Any) -> None:
        filters = toggle_facet_value(self.state.filters, Facet(facet), value)
        self._commit(replace(self.state, filters=filters), reset_page=True)

    def clear_facet(self, facet: Facet) -> None:
        filters = clear_facet(self.state.filters, Facet(facet))
        self._commit(replace(self.state, filters=filters), reset_page=True)

    def clear_filters(self) -> None:
        self._commit(replace(self.state, filters=FilterState()), reset_page=True)

    def apply_quick_filter(self, preset_id: str) -> None:
        preset = self.presets.get(preset_id)
        filters = apply_quick_filter(self.state.filters, preset)
        self._commit(replace(self.state, filters=filters), reset_page=True)

    def save_preset(self, name: str) -> QuickFilter:
        return self.presets.save(name, self.state.filters)

    def rename_preset(self, preset_id: str, name: str) -> QuickFilter:
        return self.presets.rename(preset_id, name)

    def delete_preset(self, preset_id: str) -> None:
        self.presets.delete(preset_id)
        if self.state.filters.active_quick_filter == preset_id:
            filters = replace(self.state.filters, active_quick_filter=None)
            self._commit(replace(self.state, filters=filters))

    # -- sort ----------------------------------------------------------

    def sort_by(self, sort_field: SortField) -> None:
        self._commit(replace(self.state, sort=self.state.sort.choose(sort_field)))

    # -- pagination ----------------------------------------------------

    def set_page(self, page: int) -> None:
        self._commit(replace(self.state, pagination=replace(self.state.pagination, page=page)))

    def next_page(self) -> None:
        self.set_page(self.page + 1)

    def prev_page(self) -> None:
        self.set_page(self.page - 1)

    def set_page_size(self, page_size: int) -> None:
        total_pages(len(self.view.ordered), page_size)  # validates
        self._commit(
            replace(self.state, pagination=replace(self.state.pagination, page_size=page_size))
        )

    # -- selection / expansion / focus ----------------------------------

    def toggle_select(self, record_id: str) -> None:
        self.selection.toggle(record_id)
        self._notify()

    def select_all_visible(self) -> None:
        self.selection.select_all_visible(r.id for r in self.view.rows)
        self._notify()

    def clear_selection(self) -> None:
        self.selection.clear()
        self._notify()

    def toggle_expand(self, record_id: str) -> None:
        self.expansion.toggle(record_id)
        self._notify()

    def set_focus(self, index: int) -> None:
        self._commit(replace(self.state, focus=index))

    def move_focus(self, delta: int) -> None:
        rows = len(self.view.rows)
        if rows == 0:
            index = -1
        elif self.state.focus < 0:
            index = 0
        else:
            index = min(max(self.state.focus + delta, 0), rows - 1)
        self._commit(replace(self.state, focus=index))

    def open_help(self) -> None:
        self._commit(replace(self.state, help_open=True))

    def close_help(self) -> None:
        self._commit(replace(self.state, help_open=False))

    def reset_interaction(self) -> None:
        """Clear selection, drop focus and close the help overlay."""
        self.selection.clear()
        self._commit(replace(self.state, focus=-1, help_open=False))

    def open_record(self, record_id: str) -> None:
        if self._navigate_to_detail is None:
            log.debug("grid.navigate_unbound", id=record_id)
            return
        self._navigate_to_detail(record_id)

    # -- status updates ------------------------------------------------

    def _require_updater(self) -> UpdateRecordStatus:
        if self._update_record_status is None:
            raise MissingCollaborator("update_record_status")
        return self._update_record_status

    async def update_status(self, record_id: str, status: Status) -> bool:
        """Change one record's status, then re-fetch instead of patching locally."""
        updater = self._require_updater()
        status = Status(status)
        try:
            await _maybe_await(updater(record_id, status))
        except Exception as e:
            log.warning("grid.status_update_failed", id=record_id, status=status.value, error=str(e))
            self.notice = Notice(
                "status_update_error",
                f"Failed to update {record_id}: {e}",
                retry=lambda: self._spawn(self.update_status(record_id, status)),
            )
            self._notify()
            return False
        await self.reload()
        return True

    async def bulk_update_status(self, status: Status) -> BatchResult:
        """Set ``status`` on every selected id.

        All calls are issued; one failure does not stop the others.
        Succeeded ids leave the selection, failed ids stay selected. Selected
        ids absent from the current snapshot are skipped and kept.
        """
        ids = self.selected_ids
        status = Status(status)
        if not ids:
            return BatchResult(status)
        updater = self._require_updater()

        async def _one(record_id: str) -> Any:
            return await _maybe_await(updater(record_id, status))

        outcomes = await asyncio.gather(*(_one(i) for i in ids), return_exceptions=True)
        result = BatchResult(status)
        for record_id, outcome in zip(ids, outcomes):
            if isinstance(outcome, BaseException):
                result.failed.append(BatchFailure(record_id, str(outcome)))
            else:
                result.succeeded.append(record_id)

        self.selection.discard_many(result.succeeded)
        log.info(
            "grid.bulk_update",
            status=status.value,
            succeeded=len(result.succeeded),
            failed=len(result.failed),
        )
        if result.failed:
            self.notice = Notice(
                "bulk_partial_failure",
                f"{len(result.succeeded)} updated, {len(result.failed)} failed",
                retry=lambda: self._spawn(self.bulk_update_status(status)),
            )
        self._notify()
        await self.reload()
        return result

    # -- notices -------------------------------------------------------

    def dismiss_notice(self) -> None:
        if self.notice is not None:
            self.notice = None
            self._notify()

    def retry_notice(self) -> Any:
        notice = self.notice
        if notice is None or notice.retry is None:
            return None
        self.notice = None
        self._notify()
        return notice.retry()

    # -- export --------------------------------------------------------

    def export_records(self) -> List[Record]:
        """Selected records in sort order, or the whole filtered set."""
        selected = set(self.selected_ids)
        if selected:
            chosen = [r for r in self.store.snapshot if r.id in selected]
            return sort_records(chosen, self.state.sort)
        return list(self.view.ordered)

    def export(self, fmt: ExportFormat) -> str:
        return serialize(self.export_records(), fmt, quote=self.settings.export.csv_quoting)

    def download(self, fmt: ExportFormat) -> str:
        """Serialize and hand the result to ``download_file``. Returns the filename."""
        if self._download_file is None:
            raise MissingCollaborator("download_file")
        fmt = ExportFormat(fmt)
        filename = export_filename(fmt, prefix=self.settings.export.filename_prefix)
        self._download_file(self.export(fmt), filename, MIME_TYPES[fmt])
        log.info("grid.exported", format=fmt.value, filename=filename)
        return filename

    # -- auto refresh --------------------------------------------------

    def start_auto_refresh(self, interval_ms: Optional[int] = None) -> None:
        if interval_ms is None:
            interval_ms = self.settings.refresh.interval_sec * 1000
        self.scheduler.start(interval_ms)
        self._notify()

    def stop_auto_refresh(self) -> None:
        self.scheduler.stop()
        self._notify()

    def set_refresh_interval(self, interval_ms: int) -> None:
        self.scheduler.set_interval(interval_ms)
        self._notify()

    # -- lifecycle -----------------------------------------------------

    def dispose(self) -> None:
        """Stop the scheduler, detach keyboard handling and cancel in-flight fetches."""
        if self._disposed:
            return
        self._disposed = True
        self.scheduler.stop()
        self.keyboard.detach()
        for task in list(self._tasks):
            task.cancel()
        self._callbacks.clear()
        log.debug("grid.disposed")
