"""
Unit tests for allow-list filtering of error-log entries.
"""

from datetime import datetime

from fab_log_pipeline.ingestion.base import ErrorLogEntry
from fab_log_pipeline.ingestion.filters import (
    FilterResult,
    apply_allow_list,
    load_allow_set,
    normalize_error_id,
)
from fab_log_pipeline.storage.base import QueryError


def _entry(error_id: str) -> ErrorLogEntry:
    return ErrorLogEntry("EQP01", error_id, datetime(2024, 3, 7), "L", "D", 0)


class _RowsBackend:
    def __init__(self, rows):
        self.rows = rows
        self.queries = []

    def query(self, sql, params=None):
        self.queries.append(sql)
        return self.rows


class _BrokenBackend:
    def query(self, sql, params=None):
        raise QueryError("no such table: err_severity_map")


class TestLoadAllowSet:
    """Tests for load_allow_set."""

    def test_ids_are_normalized(self) -> None:
        backend = _RowsBackend([{"error_id": " e1001 "}, {"error_id": "W2"}, {"error_id": None}])

        assert load_allow_set(backend) == frozenset({"E1001", "W2"})
        assert "err_severity_map" in backend.queries[0]

    def test_query_failure_rejects_everything(self) -> None:
        assert load_allow_set(_BrokenBackend()) == frozenset()


class TestApplyAllowList:
    """Tests for apply_allow_list."""

    def test_keeps_listed_ids_case_insensitively(self) -> None:
        result = apply_allow_list([_entry("e1001"), _entry("X9")], frozenset({"E1001"}))

        assert [e.error_id for e in result.kept] == ["e1001"]
        assert result.matched == 1
        assert result.skipped == 1

    def test_empty_allow_set_skips_all(self) -> None:
        result = apply_allow_list([_entry("E1"), _entry("E2")], frozenset())

        assert result.kept == []
        assert result.skipped == 2

    def test_summary_line(self) -> None:
        assert (
            FilterResult(matched=1, skipped=2).summary(5)
            == "ErrorFilter ▶ read_lines=5, matched=1, skipped=2"
        )

    def test_normalize_error_id(self) -> None:
        assert normalize_error_id(" ab12 ") == "AB12"
        assert normalize_error_id(1001) == "1001"
