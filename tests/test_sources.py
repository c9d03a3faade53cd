"""
Tests for the JSON file record source.

Tests cover:
- Bare arrays and results/data envelopes
- camelCase payload keys
- Skipping records without ids
- Missing and malformed files
- Status write-back
"""

import asyncio
import json

import pytest

from triagegrid.core.errors import SourceError
from triagegrid.grid.records import Severity, Status
from triagegrid.grid.sources import JsonFileSource


def write_json(tmp_path, payload, name="findings.json"):
    path = tmp_path / name
    path.write_text(json.dumps(payload))
    return str(path)


class TestRead:
    def test_envelope(self, records_file):
        records = JsonFileSource(records_file).read()

        assert [r.id for r in records] == ["1", "2", "3", "4"]
        assert records[0].severity == Severity.CRITICAL

    def test_bare_array_with_camel_case(self, tmp_path):
        path = write_json(
            tmp_path,
            [
                {
                    "id": 7,
                    "cveId": "CVE-2024-7777",
                    "pkgName": "glibc",
                    "severity": "high",
                    "status": "OPEN",
                    "installedVersion": "2.31",
                    "fixedVersion": "2.35",
                    "scanResult": {"project": {"name": "edge-proxy"}},
                }
            ],
        )

        (record,) = JsonFileSource(path).read()

        assert record.id == "7"
        assert record.cve_id == "CVE-2024-7777"
        assert record.severity == Severity.HIGH
        assert record.project == "edge-proxy"
        assert record.fixed_version == "2.35"

    def test_data_envelope(self, tmp_path):
        path = write_json(tmp_path, {"data": [{"id": "a"}]})
        assert [r.id for r in JsonFileSource(path).read()] == ["a"]

    def test_skips_records_without_id(self, tmp_path):
        path = write_json(tmp_path, [{"id": "ok"}, {"cveId": "CVE-0"}])
        assert [r.id for r in JsonFileSource(path).read()] == ["ok"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(SourceError, match="not found"):
            JsonFileSource(str(tmp_path / "nope.json")).read()

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        with pytest.raises(SourceError):
            JsonFileSource(str(path)).read()

    def test_unexpected_shape(self, tmp_path):
        path = write_json(tmp_path, {"items": []})
        with pytest.raises(SourceError):
            JsonFileSource(path).read()

    def test_fetch_is_async(self, records_file):
        records = asyncio.run(JsonFileSource(records_file).fetch())
        assert len(records) == 4


class TestUpdateStatus:
    def test_writes_back(self, records_file):
        source = JsonFileSource(records_file)

        asyncio.run(source.update_status("3", Status.RESOLVED))

        statuses = {r.id: r.status for r in source.read()}
        assert statuses["3"] == Status.RESOLVED
        assert statuses["1"] == Status.OPEN

    def test_envelope_is_kept(self, records_file):
        asyncio.run(JsonFileSource(records_file).update_status("1", Status.WONT_FIX))

        with open(records_file) as f:
            payload = json.load(f)
        assert "results" in payload

    def test_concurrent_updates(self, records_file):
        source = JsonFileSource(records_file)

        async def run():
            await asyncio.gather(
                source.update_status("1", Status.RESOLVED),
                source.update_status("2", Status.OPEN),
                source.update_status("4", Status.FALSE_POSITIVE),
            )

        asyncio.run(run())

        statuses = {r.id: r.status for r in source.read()}
        assert statuses == {
            "1": Status.RESOLVED,
            "2": Status.OPEN,
            "3": Status.IN_PROGRESS,
            "4": Status.FALSE_POSITIVE,
        }

    def test_unknown_id(self, records_file):
        with pytest.raises(SourceError, match="No finding"):
            asyncio.run(JsonFileSource(records_file).update_status("99", Status.RESOLVED))
