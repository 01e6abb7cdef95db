from __future__ import annotations

import pytest

from raiderpal.errors import DataAccessError
from raiderpal.providers.rowstore import QueryResult, RowStore
from raiderpal.repository.meta_repo import (
    VersionRecord,
    check_version_invariants,
    get_data_version,
    list_version_rows,
)


class FailingStore(RowStore):
    def execute(self, query):
        return QueryResult.failed("permission denied for relation", code="42501")


def test_reads_global_row(store, set_version):
    set_version(7, "2025-03-01T12:00:00Z")
    rec = get_data_version(store)
    assert rec == VersionRecord(id="global", version=7, last_synced_at="2025-03-01T12:00:00Z")
    assert rec.to_payload() == {"version": 7, "last_synced_at": "2025-03-01T12:00:00Z"}


def test_none_when_no_rows(store):
    assert get_data_version(store) is None


def test_falls_back_to_other_row_with_warning(store, set_version, caplog):
    set_version(3, row_id="legacy")
    with caplog.at_level("WARNING"):
        rec = get_data_version(store)
    assert rec.version == 3
    assert rec.id == "legacy"
    assert "missing expected id" in caplog.text


def test_read_failure_is_data_access_error():
    with pytest.raises(DataAccessError) as ei:
        get_data_version(FailingStore())
    msg = str(ei.value)
    assert "[42501]" in msg
    assert "rp_app_metadata" in msg


def test_invariants_ok(store, set_version):
    set_version(1, "2025-01-01T00:00:00Z")
    check_version_invariants(list_version_rows(store))


@pytest.mark.parametrize(
    "rows,message",
    [
        ([], "expected exactly 1 dataset version row, got 0"),
        (
            [{"version": 1, "last_synced_at": "2025-01-01"}, {"version": 2, "last_synced_at": "2025-01-01"}],
            "got 2",
        ),
        ([{"version": "1", "last_synced_at": "2025-01-01"}], "version must be an integer"),
        ([{"version": 1, "last_synced_at": None}], "last_synced_at must be a valid date string"),
        ([{"version": 1, "last_synced_at": "yesterday"}], "last_synced_at must be a valid date string"),
    ],
)
def test_invariants_fail(rows, message):
    with pytest.raises(ValueError) as ei:
        check_version_invariants(rows)
    assert message in str(ei.value)
