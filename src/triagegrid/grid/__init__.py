from .records import Record, RecordStore, Severity, Status, summarize
from .filters import (
    BUILTIN_QUICK_FILTERS,
    Facet,
    FilterState,
    PresetRegistry,
    QuickFilter,
    apply_filters,
)
from .sorting import SortField, SortOrder, SortState, sort_records
from .pagination import PageSlice, PaginationState, paginate
from .selection import ExpansionManager, SelectionManager
from .keyboard import HELP_SHORTCUTS, KeyboardController, KeyEvent, KeyEventSource
from .scheduler import AsyncioTimer, ManualTimer, RefreshScheduler
from .export import ExportFormat, export_filename, serialize
from .engine import BatchFailure, BatchResult, GridEngine, GridState, GridView, Notice

__all__ = [
    # Records
    "Record",
    "RecordStore",
    "Severity",
    "Status",
    "summarize",
    # Filters
    "BUILTIN_QUICK_FILTERS",
    "Facet",
    "FilterState",
    "PresetRegistry",
    "QuickFilter",
    "apply_filters",
    # Sort / pagination
    "SortField",
    "SortOrder",
    "SortState",
    "sort_records",
    "PageSlice",
    "PaginationState",
    "paginate",
    # Side-maps
    "ExpansionManager",
    "SelectionManager",
    # Keyboard
    "HELP_SHORTCUTS",
    "KeyboardController",
    "KeyEvent",
    "KeyEventSource",
    # Refresh
    "AsyncioTimer",
    "ManualTimer",
    "RefreshScheduler",
    # Export
    "ExportFormat",
    "export_filename",
    "serialize",
    # Engine
    "BatchFailure",
    "BatchResult",
    "GridEngine",
    "GridState",
    "GridView",
    "Notice",
]
