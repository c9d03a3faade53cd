"""
Finding records and the snapshot store.

Provides:
- Severity and status enumerations used by the grid
- An immutable Record model with API payload decoding
- A RecordStore holding one snapshot per fetch cycle
- Summary statistics for the header cards
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import structlog

log = structlog.get_logger()


class Severity(str, Enum):
    """Severity levels for findings."""

    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: Any) -> "Severity":
        if isinstance(value, Severity):
            return value
        try:
            return cls(str(value or "").upper())
        except ValueError:
            return cls.UNKNOWN


class Status(str, Enum):
    """Triage status of a finding."""

    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    WONT_FIX = "WONT_FIX"
    FALSE_POSITIVE = "FALSE_POSITIVE"

    @classmethod
    def parse(cls, value: Any) -> "Status":
        if isinstance(value, Status):
            return value
        try:
            return cls(str(value or "").upper())
        except ValueError:
            # Unrecognised statuses are displayed as open
            return cls.OPEN


# Payload key -> Record attribute. Both spellings are accepted.
_KEY_ALIASES = {
    "id": "id",
    "cve_id": "cve_id",
    "cveId": "cve_id",
    "pkg_name": "pkg_name",
    "pkgName": "pkg_name",
    "severity": "severity",
    "status": "status",
    "title": "title",
    "installed_version": "installed_version",
    "installedVersion": "installed_version",
    "fixed_version": "fixed_version",
    "fixedVersion": "fixed_version",
    "project": "project",
    "created_at": "created_at",
    "createdAt": "created_at",
    "description": "description",
}


@dataclass(frozen=True)
class Record:
    """A single finding as returned by the fetch collaborator."""

    id: str
    cve_id: str = ""
    pkg_name: str = ""
    severity: Severity = Severity.UNKNOWN
    status: Status = Status.OPEN
    title: str = ""
    installed_version: str = ""
    fixed_version: Optional[str] = None
    project: Optional[str] = None
    created_at: Optional[str] = None
    description: str = ""
    extra: Mapping[str, Any] = field(default_factory=dict, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "cve_id": self.cve_id,
            "pkg_name": self.pkg_name,
            "severity": self.severity.value,
            "status": self.status.value,
            "title": self.title,
            "installed_version": self.installed_version,
            "fixed_version": self.fixed_version,
            "project": self.project,
            "created_at": self.created_at,
            "description": self.description,
        }
        for key, value in self.extra.items():
            data.setdefault(key, value)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Record":
        """Create from an API payload or a ``to_dict`` result."""
        values: Dict[str, Any] = {}
        extra: Dict[str, Any] = {}
        for key, value in data.items():
            attr = _KEY_ALIASES.get(key)
            if attr:
                values[attr] = value
            elif key == "scanResult":
                # {"scanResult": {"project": {"name": ...}}}
                project = ((value or {}).get("project") or {}).get("name")
                if project and "project" not in values:
                    values["project"] = project
                extra[key] = value
            else:
                extra[key] = value

        if "id" not in values or values["id"] in (None, ""):
            raise ValueError("record payload has no id")

        return cls(
            id=str(values["id"]),
            cve_id=values.get("cve_id") or "",
            pkg_name=values.get("pkg_name") or "",
            severity=Severity.parse(values.get("severity")),
            status=Status.parse(values.get("status")),
            title=values.get("title") or "",
            installed_version=values.get("installed_version") or "",
            fixed_version=values.get("fixed_version"),
            project=values.get("project"),
            created_at=values.get("created_at"),
            description=values.get("description") or "",
            extra=extra,
        )


class RecordStore:
    """Holds the collection from the most recent successful fetch.

    Records are never mutated in place; ``replace`` swaps the whole
    snapshot and bumps ``generation``.
    """

    def __init__(self, records: Iterable[Record] = ()):
        self._snapshot: Tuple[Record, ...] = ()
        self._index: Dict[str, Record] = {}
        self.generation = 0
        if records:
            self.replace(records)

    def replace(self, records: Iterable[Record]) -> None:
        ordered: Dict[str, Record] = {}
        for record in records:
            if record.id in ordered:
                log.debug("store.duplicate_id", id=record.id)
            ordered[record.id] = record
        self._snapshot = tuple(ordered.values())
        self._index = ordered
        self.generation += 1

    @property
    def snapshot(self) -> Tuple[Record, ...]:
        return self._snapshot

    def ids(self) -> List[str]:
        return list(self._index)

    def get(self, record_id: str) -> Optional[Record]:
        return self._index.get(record_id)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._index

    def __len__(self) -> int:
        return len(self._snapshot)


def summarize(records: Iterable[Record]) -> Dict[str, int]:
    """Count records by severity plus open and resolved totals."""
    stats = {
        "total": 0,
        "critical": 0,
        "high": 0,
        "medium": 0,
        "low": 0,
        "unknown": 0,
        "open": 0,
        "resolved": 0,
    }
    for record in records:
        stats["total"] += 1
        stats[record.severity.value.lower()] += 1
        if record.status == Status.OPEN:
            stats["open"] += 1
        elif record.status == Status.RESOLVED:
            stats["resolved"] += 1
    return stats
