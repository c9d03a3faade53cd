"""Export serializer for selected or filtered findings."""

import csv
import io
import json
from datetime import date
from enum import Enum
from typing import Iterable, List, Optional

import structlog

from .records import Record

log = structlog.get_logger()


class ExportFormat(str, Enum):
    CSV = "csv"
    JSON = "json"


CSV_HEADERS = ["CVE ID", "Package", "Severity", "Status", "Installed", "Fixed", "Project"]

MIME_TYPES = {
    ExportFormat.CSV: "text/csv",
    ExportFormat.JSON: "application/json",
}


def _csv_row(record: Record) -> List[str]:
    return [
        record.cve_id,
        record.pkg_name,
        record.severity.value,
        record.status.value,
        record.installed_version,
        record.fixed_version or "",
        record.project or "",
    ]


def to_csv(records: Iterable[Record], quote: bool = True) -> str:
    rows = [CSV_HEADERS] + [_csv_row(r) for r in records]
    if not quote:
        return "\n".join(",".join(row) for row in rows)
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)
    writer.writerows(rows)
    return buf.getvalue().rstrip("\n")


def to_json(records: Iterable[Record]) -> str:
    return json.dumps([r.to_dict() for r in records], indent=2, ensure_ascii=False)


def serialize(records: Iterable[Record], fmt: ExportFormat, quote: bool = True) -> str:
    records = list(records)
    fmt = ExportFormat(fmt)
    if fmt == ExportFormat.CSV:
        content = to_csv(records, quote=quote)
    else:
        content = to_json(records)
    log.debug("export.serialized", format=fmt.value, count=len(records))
    return content


def export_filename(
    fmt: ExportFormat, prefix: str = "vulnerabilities", today: Optional[date] = None
) -> str:
    today = today or date.today()
    return f"{prefix}-{today.isoformat()}.{ExportFormat(fmt).value}"
