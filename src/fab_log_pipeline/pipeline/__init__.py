"""
Batching and bulk loading of parsed records.

- `BatchAccumulator` / `FlushScheduler`: queue with size and interval flushes
- `BulkUpsertWriter`: one set-returning INSERT per batch, per-table conflict policy
- `PostFlushReclaimer`: delete sources or advance offsets after a write
- `sql_compat`: SQLite / PostgreSQL statement builders
"""

from .batching import BatchAccumulator, FlushScheduler
from .reclaimer import BatchOutcome, PostFlushReclaimer, ReclaimMode
from .sql_compat import SQLBuilder
from .upsert_specs import (
    EQUIPMENT_INFO_SPEC,
    ERROR_SPEC,
    PREALIGN_SPEC,
    SPECTRUM_SPEC,
    WAFER_FLAT_SPEC,
    WAFER_MAP_SPEC,
    ColumnSpec,
    ConflictPolicy,
    UpsertSpec,
)
from .writer import BulkUpsertWriter, WriteResult

__all__ = [
    "BatchAccumulator",
    "FlushScheduler",
    "BatchOutcome",
    "PostFlushReclaimer",
    "ReclaimMode",
    "BulkUpsertWriter",
    "WriteResult",
    "SQLBuilder",
    "ColumnSpec",
    "ConflictPolicy",
    "UpsertSpec",
    "WAFER_MAP_SPEC",
    "PREALIGN_SPEC",
    "WAFER_FLAT_SPEC",
    "SPECTRUM_SPEC",
    "ERROR_SPEC",
    "EQUIPMENT_INFO_SPEC",
]
