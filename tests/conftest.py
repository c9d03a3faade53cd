import json

import pytest

from triagegrid.grid.records import Record, Severity, Status


@pytest.fixture
def make_record():
    """Factory for records with sensible defaults."""

    def _make(record_id, severity=Severity.MEDIUM, status=Status.OPEN, **kwargs):
        kwargs.setdefault("cve_id", f"CVE-2024-{record_id}")
        kwargs.setdefault("pkg_name", f"pkg{record_id}")
        return Record(id=str(record_id), severity=severity, status=status, **kwargs)

    return _make


@pytest.fixture
def sample_records():
    """A small, mixed set of findings."""
    return [
        Record(
            id="1",
            cve_id="CVE-2024-0001",
            pkg_name="openssl",
            severity=Severity.CRITICAL,
            status=Status.OPEN,
            title="Buffer overflow in X.509 parsing",
            installed_version="3.0.1",
            fixed_version="3.0.7",
            project="payments-api",
            created_at="2024-03-01T10:00:00Z",
        ),
        Record(
            id="2",
            cve_id="CVE-2023-1111",
            pkg_name="lodash",
            severity=Severity.LOW,
            status=Status.RESOLVED,
            title="Prototype pollution",
            installed_version="4.17.19",
            fixed_version="4.17.21",
            project="web-frontend",
            created_at="2023-11-20T08:30:00Z",
        ),
        Record(
            id="3",
            cve_id="CVE-2024-0042",
            pkg_name="log4j-core",
            severity=Severity.HIGH,
            status=Status.IN_PROGRESS,
            title="Remote code execution via lookup",
            installed_version="2.14.0",
            fixed_version=None,
            project="payments-api",
            created_at="2024-01-15T12:00:00Z",
        ),
        Record(
            id="4",
            cve_id="CVE-2022-9999",
            pkg_name="zlib",
            severity=Severity.MEDIUM,
            status=Status.OPEN,
            title="Heap overflow in inflate",
            installed_version="1.2.11",
            fixed_version="1.2.12",
            project=None,
            created_at=None,
        ),
    ]


@pytest.fixture
def records_file(tmp_path, sample_records):
    """The sample records written as an API-style JSON envelope."""
    path = tmp_path / "findings.json"
    path.write_text(json.dumps({"results": [r.to_dict() for r in sample_records]}))
    return str(path)
