"""
Tests for the record model and snapshot store.

Tests cover:
- Decoding API payloads (camelCase and nested project name)
- Enum fallbacks for unknown severities and statuses
- Snapshot replacement and duplicate ids
- Summary statistics
"""

from dataclasses import FrozenInstanceError

import pytest

from triagegrid.grid.records import Record, RecordStore, Severity, Status, summarize


class TestRecord:
    """Tests for Record."""

    def test_from_api_payload(self):
        """camelCase keys and scanResult.project.name are decoded."""
        record = Record.from_dict(
            {
                "id": 17,
                "cveId": "CVE-2024-1234",
                "pkgName": "openssl",
                "severity": "high",
                "status": "IN_PROGRESS",
                "installedVersion": "1.1.1",
                "fixedVersion": "1.1.1w",
                "createdAt": "2024-02-02T00:00:00Z",
                "scanResult": {"project": {"name": "billing"}},
                "layer": "sha256:abc",
            }
        )

        assert record.id == "17"
        assert record.cve_id == "CVE-2024-1234"
        assert record.severity == Severity.HIGH
        assert record.status == Status.IN_PROGRESS
        assert record.fixed_version == "1.1.1w"
        assert record.project == "billing"
        assert record.extra["layer"] == "sha256:abc"

    def test_unknown_enums(self):
        """Unknown severity maps to UNKNOWN, unknown status to OPEN."""
        record = Record.from_dict({"id": "a", "severity": "NEGLIGIBLE", "status": "TRIAGED"})

        assert record.severity == Severity.UNKNOWN
        assert record.status == Status.OPEN

    def test_missing_id_rejected(self):
        with pytest.raises(ValueError):
            Record.from_dict({"cveId": "CVE-2024-1"})

    def test_to_dict_roundtrip_keeps_extra(self, sample_records):
        record = Record.from_dict({**sample_records[0].to_dict(), "purl": "pkg:deb/openssl"})
        data = record.to_dict()

        assert data["severity"] == "CRITICAL"
        assert data["project"] == "payments-api"
        assert data["purl"] == "pkg:deb/openssl"

    def test_records_are_immutable(self, sample_records):
        with pytest.raises(FrozenInstanceError):
            sample_records[0].status = Status.RESOLVED


class TestRecordStore:
    """Tests for RecordStore."""

    def test_replace_swaps_snapshot(self, sample_records):
        store = RecordStore(sample_records)
        assert len(store) == 4
        assert store.generation == 1

        store.replace(sample_records[:1])

        assert store.ids() == ["1"]
        assert "2" not in store
        assert store.generation == 2

    def test_duplicate_ids_last_wins_first_position(self, make_record):
        first = make_record("a", title="old")
        other = make_record("b")
        again = make_record("a", title="new")

        store = RecordStore([first, other, again])

        assert store.ids() == ["a", "b"]
        assert store.get("a").title == "new"


def test_summarize(sample_records):
    stats = summarize(sample_records)

    assert stats["total"] == 4
    assert stats["critical"] == 1
    assert stats["high"] == 1
    assert stats["medium"] == 1
    assert stats["low"] == 1
    assert stats["open"] == 2
    assert stats["resolved"] == 1
