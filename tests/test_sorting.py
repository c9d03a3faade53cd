"""Tests for the sort stage."""

from triagegrid.grid.records import Severity, Status
from triagegrid.grid.sorting import SortField, SortOrder, SortState, sort_records


def ids(records):
    return [r.id for r in records]


class TestSortState:
    def test_new_field_resets_to_ascending(self):
        state = SortState(SortField.SEVERITY, SortOrder.DESC).choose(SortField.PKG_NAME)
        assert state == SortState(SortField.PKG_NAME, SortOrder.ASC)

    def test_same_field_flips(self):
        state = SortState().choose(SortField.SEVERITY)
        assert state.order == SortOrder.DESC
        assert state.choose(SortField.SEVERITY).order == SortOrder.ASC

    def test_accepts_string_field(self):
        assert SortState().choose("cve_id").field == SortField.CVE_ID


class TestSortRecords:
    def test_severity_ascending(self, make_record):
        """Records 1 (CRITICAL), 2 (LOW), 3 (HIGH) sort as 1, 3, 2."""
        records = [
            make_record(1, Severity.CRITICAL),
            make_record(2, Severity.LOW),
            make_record(3, Severity.HIGH),
        ]
        assert ids(sort_records(records, SortState(SortField.SEVERITY, SortOrder.ASC))) == ["1", "3", "2"]

    def test_medium_before_low(self, make_record):
        """Alphabetically LOW < MEDIUM; by rank MEDIUM comes first."""
        records = [make_record(1, Severity.LOW), make_record(2, Severity.MEDIUM)]
        assert ids(sort_records(records, SortState())) == ["2", "1"]

    def test_severity_descending(self, make_record):
        records = [
            make_record(1, Severity.UNKNOWN),
            make_record(2, Severity.MEDIUM),
            make_record(3, Severity.CRITICAL),
        ]
        assert ids(sort_records(records, SortState(SortField.SEVERITY, SortOrder.DESC))) == ["1", "2", "3"]

    def test_stable_for_equal_keys_both_directions(self, make_record):
        records = [
            make_record("a", Severity.HIGH),
            make_record("b", Severity.CRITICAL),
            make_record("c", Severity.HIGH),
            make_record("d", Severity.CRITICAL),
        ]

        asc = sort_records(records, SortState(SortField.SEVERITY, SortOrder.ASC))
        desc = sort_records(records, SortState(SortField.SEVERITY, SortOrder.DESC))

        assert ids(asc) == ["b", "d", "a", "c"]
        assert ids(desc) == ["a", "c", "b", "d"]

    def test_string_field(self, make_record):
        records = [make_record(1, pkg_name="zlib"), make_record(2, pkg_name="curl"), make_record(3, pkg_name="openssl")]

        result = sort_records(records, SortState(SortField.PKG_NAME, SortOrder.ASC))

        assert [r.pkg_name for r in result] == ["curl", "openssl", "zlib"]

    def test_status_lexicographic(self, make_record):
        records = [
            make_record(1, status=Status.RESOLVED),
            make_record(2, status=Status.IN_PROGRESS),
            make_record(3, status=Status.OPEN),
        ]
        assert ids(sort_records(records, SortState(SortField.STATUS))) == ["2", "3", "1"]

    def test_missing_values_last_in_either_direction(self, sample_records):
        asc = sort_records(sample_records, SortState(SortField.PROJECT, SortOrder.ASC))
        desc = sort_records(sample_records, SortState(SortField.PROJECT, SortOrder.DESC))

        assert ids(asc) == ["1", "3", "2", "4"]
        assert ids(desc) == ["2", "1", "3", "4"]

    def test_created_at(self, sample_records):
        result = sort_records(sample_records, SortState(SortField.CREATED_AT))
        assert ids(result) == ["2", "3", "1", "4"]

    def test_input_not_modified(self, sample_records):
        before = list(sample_records)
        sort_records(sample_records, SortState(SortField.PKG_NAME, SortOrder.DESC))
        assert sample_records == before
