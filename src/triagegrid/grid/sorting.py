"""Sort stage: field-specific ordering with stable tie-breaks."""

import locale
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, List, Tuple

from .records import Record, Severity

SEVERITY_RANK = {
    Severity.CRITICAL: 0,
    Severity.HIGH: 1,
    Severity.MEDIUM: 2,
    Severity.LOW: 3,
    Severity.UNKNOWN: 4,
}


class SortField(str, Enum):
    SEVERITY = "severity"
    STATUS = "status"
    CVE_ID = "cve_id"
    PKG_NAME = "pkg_name"
    PROJECT = "project"
    CREATED_AT = "created_at"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class SortState:
    field: SortField = SortField.SEVERITY
    order: SortOrder = SortOrder.ASC

    def choose(self, field: SortField) -> "SortState":
        """New field sorts ascending; the same field again flips direction."""
        field = SortField(field)
        if field == self.field:
            flipped = SortOrder.DESC if self.order == SortOrder.ASC else SortOrder.ASC
            return SortState(field, flipped)
        return SortState(field, SortOrder.ASC)


def _severity_key(record: Record) -> Any:
    return SEVERITY_RANK.get(record.severity, len(SEVERITY_RANK))


def _text_key(name: str) -> Callable[[Record], Any]:
    def key(record: Record) -> Any:
        value = getattr(record, name)
        if isinstance(value, Enum):
            value = value.value
        if value is None or value == "":
            return None
        return locale.strxfrm(str(value))

    return key


_KEYS = {
    SortField.SEVERITY: _severity_key,
    SortField.STATUS: _text_key("status"),
    SortField.CVE_ID: _text_key("cve_id"),
    SortField.PKG_NAME: _text_key("pkg_name"),
    SortField.PROJECT: _text_key("project"),
    SortField.CREATED_AT: _text_key("created_at"),
}


def sort_records(records: Iterable[Record], state: SortState) -> List[Record]:
    """Stable sort by ``state``; records without a value go last either way."""
    key = _KEYS[SortField(state.field)]
    present: List[Tuple[Any, Record]] = []
    missing: List[Record] = []
    for record in records:
        value = key(record)
        if value is None:
            missing.append(record)
        else:
            present.append((value, record))
    # sorted() keeps equal keys in input order even with reverse=True
    ordered = sorted(
        present, key=lambda pair: pair[0], reverse=state.order == SortOrder.DESC
    )
    return [record for _, record in ordered] + missing
