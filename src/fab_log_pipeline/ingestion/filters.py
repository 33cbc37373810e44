"""
Allow-list filtering of error-log entries.

Only alarms whose id appears in the reference table ``err_severity_map`` are
stored. The table is read on every call so edits take effect on the next
trigger. If it cannot be read, nothing passes.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable

from ..config.constants import TABLE_ERROR_SEVERITY_MAP
from ..storage.base import StorageBackend, StorageError
from .base import ErrorLogEntry

logger = logging.getLogger(__name__)


def normalize_error_id(error_id: object) -> str:
    return str(error_id).strip().upper()


def load_allow_set(backend: StorageBackend) -> frozenset[str]:
    """
    Read the set of error ids worth storing.

    Returns an empty set (rejecting everything) when the query fails.
    """
    try:
        rows = backend.query(f"SELECT error_id FROM {TABLE_ERROR_SEVERITY_MAP}")
    except StorageError as e:
        logger.error(f"Failed to load {TABLE_ERROR_SEVERITY_MAP}: {e}")
        return frozenset()

    return frozenset(
        normalize_error_id(row["error_id"])
        for row in rows
        if row.get("error_id") is not None
    )


@dataclass
class FilterResult:
    """Entries kept by the filter and the counts for the debug line."""

    kept: list[ErrorLogEntry] = field(default_factory=list)
    matched: int = 0
    skipped: int = 0

    def summary(self, read_lines: int) -> str:
        return (
            f"ErrorFilter ▶ read_lines={read_lines}, "
            f"matched={self.matched}, skipped={self.skipped}"
        )


def apply_allow_list(
    entries: Iterable[ErrorLogEntry], allow_set: frozenset[str]
) -> FilterResult:
    """Keep the entries whose normalized id is in `allow_set`."""
    result = FilterResult()
    for entry in entries:
        if allow_set and normalize_error_id(entry.error_id) in allow_set:
            result.kept.append(entry)
            result.matched += 1
        else:
            result.skipped += 1
    return result
