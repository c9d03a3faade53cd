"""
Filter pipeline for the findings grid.

Combines a free-text search with multi-value facet filters. Quick filters
are named presets that replace the facets atomically; selecting a facet
value by hand drops the active quick filter.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence

import structlog

from ..core.errors import UnknownQuickFilter
from .records import Record, Severity, Status

log = structlog.get_logger()

DEFAULT_SEARCH_FIELDS = ("cve_id", "pkg_name", "title", "project")


class Facet(str, Enum):
    """Filterable record attributes."""

    SEVERITY = "severity"
    STATUS = "status"
    PROJECT = "project"


def _facet_value(record: Record, facet: Facet) -> Any:
    return getattr(record, facet.value)


@dataclass(frozen=True)
class FilterState:
    """Search text, facet selections and the active quick filter id."""

    search: str = ""
    facets: Mapping[Facet, FrozenSet[Any]] = field(default_factory=dict)
    active_quick_filter: Optional[str] = None

    def values(self, facet: Facet) -> FrozenSet[Any]:
        return self.facets.get(facet, frozenset())

    def matches(self, record: Record, search_fields: Sequence[str] = DEFAULT_SEARCH_FIELDS) -> bool:
        """Check if a record passes the search and every non-empty facet."""
        for facet, allowed in self.facets.items():
            if allowed and _facet_value(record, facet) not in allowed:
                return False
        if self.search:
            query = self.search.lower()
            for name in search_fields:
                value = getattr(record, name, None)
                if value and query in str(value).lower():
                    return True
            return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        """Convert filters to dictionary for serialization."""
        return {
            "search": self.search,
            "facets": {
                facet.value: sorted(str(getattr(v, "value", v)) for v in values)
                for facet, values in self.facets.items()
            },
            "active_quick_filter": self.active_quick_filter,
        }


def apply_filters(
    records: Iterable[Record],
    state: FilterState,
    search_fields: Sequence[str] = DEFAULT_SEARCH_FIELDS,
) -> List[Record]:
    """Return the records matching ``state``, preserving input order."""
    return [r for r in records if state.matches(r, search_fields)]


def with_search(state: FilterState, query: str) -> FilterState:
    return replace(state, search=query)


def toggle_facet_value(state: FilterState, facet: Facet, value: Any) -> FilterState:
    current = set(state.values(facet))
    if value in current:
        current.remove(value)
    else:
        current.add(value)
    facets = dict(state.facets)
    if current:
        facets[facet] = frozenset(current)
    else:
        facets.pop(facet, None)
    return replace(state, facets=facets, active_quick_filter=None)


def clear_facet(state: FilterState, facet: Facet) -> FilterState:
    facets = dict(state.facets)
    facets.pop(facet, None)
    return replace(state, facets=facets, active_quick_filter=None)


def cleared() -> FilterState:
    return FilterState()


@dataclass(frozen=True)
class QuickFilter:
    """A named preset that sets one or more facets at once."""

    id: str
    label: str
    facets: Mapping[Facet, FrozenSet[Any]]
    search: Optional[str] = None
    builtin: bool = True


def apply_quick_filter(state: FilterState, preset: QuickFilter) -> FilterState:
    """Apply ``preset``, or switch it off when it is already active."""
    if state.active_quick_filter == preset.id:
        return replace(state, facets={}, active_quick_filter=None)
    facets = {f: frozenset(v) for f, v in preset.facets.items() if v}
    search = state.search if preset.search is None else preset.search
    return FilterState(search=search, facets=facets, active_quick_filter=preset.id)


BUILTIN_QUICK_FILTERS = (
    QuickFilter("critical", "Critical only", {Facet.SEVERITY: frozenset({Severity.CRITICAL})}),
    QuickFilter(
        "high-and-above",
        "High and above",
        {Facet.SEVERITY: frozenset({Severity.CRITICAL, Severity.HIGH})},
    ),
    QuickFilter("open", "Open", {Facet.STATUS: frozenset({Status.OPEN})}),
    QuickFilter(
        "unresolved",
        "Unresolved",
        {Facet.STATUS: frozenset({Status.OPEN, Status.IN_PROGRESS})},
    ),
)


class PresetRegistry:
    """Built-in quick filters plus presets saved from the current filters."""

    def __init__(self, builtins: Iterable[QuickFilter] = BUILTIN_QUICK_FILTERS):
        self._presets: Dict[str, QuickFilter] = {p.id: p for p in builtins}
        self._counter = 0

    def get(self, preset_id: str) -> QuickFilter:
        try:
            return self._presets[preset_id]
        except KeyError:
            raise UnknownQuickFilter(preset_id) from None

    def all(self) -> List[QuickFilter]:
        return list(self._presets.values())

    def save(self, name: str, state: FilterState) -> QuickFilter:
        self._counter += 1
        preset = QuickFilter(
            id=f"preset-{self._counter}",
            label=name,
            facets=dict(state.facets),
            search=state.search or None,
            builtin=False,
        )
        self._presets[preset.id] = preset
        log.info("filters.preset_saved", preset_id=preset.id, name=name)
        return preset

    def rename(self, preset_id: str, name: str) -> QuickFilter:
        preset = replace(self.get(preset_id), label=name)
        self._presets[preset_id] = preset
        return preset

    def delete(self, preset_id: str) -> None:
        preset = self.get(preset_id)
        if preset.builtin:
            raise UnknownQuickFilter(f"{preset_id} is built in and cannot be deleted")
        del self._presets[preset_id]
        log.info("filters.preset_deleted", preset_id=preset_id)

    def __contains__(self, preset_id: object) -> bool:
        return preset_id in self._presets
