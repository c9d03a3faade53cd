"""
Tests for export serialization.

Tests cover:
- CSV header and column order
- Quoting of fields with commas and quotes
- Unquoted join mode
- JSON payload
- Dated filenames
"""

import csv
import io
import json
from datetime import date

from triagegrid.grid.export import (
    CSV_HEADERS,
    ExportFormat,
    export_filename,
    serialize,
    to_csv,
    to_json,
)


class TestCsv:
    def test_header_and_rows(self, sample_records):
        lines = to_csv(sample_records).split("\n")

        assert lines[0] == ",".join(CSV_HEADERS)
        assert lines[1] == "CVE-2024-0001,openssl,CRITICAL,OPEN,3.0.1,3.0.7,payments-api"
        assert len(lines) == 5

    def test_missing_values_are_empty(self, sample_records):
        lines = to_csv(sample_records).split("\n")

        assert lines[3] == "CVE-2024-0042,log4j-core,HIGH,IN_PROGRESS,2.14.0,,payments-api"
        assert lines[4] == "CVE-2022-9999,zlib,MEDIUM,OPEN,1.2.11,1.2.12,"

    def test_fields_with_separators_are_quoted(self, make_record):
        record = make_record(1, pkg_name='acme, "core"', project="team,a")

        content = to_csv([record])

        parsed = list(csv.reader(io.StringIO(content)))
        assert parsed[1][1] == 'acme, "core"'
        assert parsed[1][6] == "team,a"
        assert '"acme, ""core"""' in content

    def test_unquoted_mode_joins_raw(self, make_record):
        record = make_record(1, pkg_name="a,b")

        content = to_csv([record], quote=False)

        assert content.split("\n")[1].startswith("CVE-2024-1,a,b,")

    def test_empty_export_is_header_only(self):
        assert to_csv([]) == ",".join(CSV_HEADERS)


class TestJson:
    def test_full_records(self, sample_records):
        data = json.loads(to_json(sample_records[:1]))

        assert data == [
            {
                "id": "1",
                "cve_id": "CVE-2024-0001",
                "pkg_name": "openssl",
                "severity": "CRITICAL",
                "status": "OPEN",
                "title": "Buffer overflow in X.509 parsing",
                "installed_version": "3.0.1",
                "fixed_version": "3.0.7",
                "project": "payments-api",
                "created_at": "2024-03-01T10:00:00Z",
                "description": "",
            }
        ]

    def test_pretty_printed(self, sample_records):
        assert to_json(sample_records).startswith("[\n  {")


class TestSerialize:
    def test_dispatch_by_format(self, sample_records):
        assert serialize(sample_records, ExportFormat.CSV).startswith("CVE ID,")
        assert json.loads(serialize(sample_records, "json"))[0]["id"] == "1"

    def test_preserves_input_order(self, sample_records):
        reordered = list(reversed(sample_records))
        data = json.loads(serialize(reordered, ExportFormat.JSON))
        assert [d["id"] for d in data] == ["4", "3", "2", "1"]


class TestFilename:
    def test_dated_names(self):
        day = date(2024, 5, 7)
        assert export_filename(ExportFormat.CSV, today=day) == "vulnerabilities-2024-05-07.csv"
        assert export_filename("json", today=day) == "vulnerabilities-2024-05-07.json"

    def test_custom_prefix(self):
        name = export_filename(ExportFormat.CSV, prefix="findings", today=date(2024, 1, 1))
        assert name == "findings-2024-01-01.csv"
