"""
Bulk upsert writer.

Turns a batch of parsed records into one column-oriented statement per
batch:

1. Every row gets its corrected ``serv_ts`` exactly once.
2. The rows are assembled into a pandas DataFrame (one array per column).
3. A single INSERT ... SELECT expands the arrays server-side
   (``unnest`` on PostgreSQL, ``json_each`` on SQLite) followed by the
   table's conflict clause.

The whole batch runs in one transaction: it is stored completely or not at
all. Transient store errors (locked database, refused connection) are
retried with a fixed delay; permanent errors fail the batch immediately.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

import pandas as pd

from ..config.constants import CORRECTED_TS_COLUMN
from ..ingestion.base import ParsedRecord
from ..ingestion.exceptions import ValidationError
from ..monitoring.retry_handler import RetryConfig, RetryManager
from ..storage.base import StorageBackend, Transaction
from ..timesync.clock import ClockSyncAdjustor, get_clock, synchronized_timestamp
from .sql_compat import SQLBuilder, encode_value
from .upsert_specs import (
    INTEGER,
    REAL,
    TEXT,
    ColumnSpec,
    ConflictPolicy,
    UpsertSpec,
)

logger = logging.getLogger(__name__)

DEFAULT_WRITE_RETRIES = 2
DEFAULT_WRITE_RETRY_DELAY_SECONDS = 1.0


@dataclass(frozen=True)
class WriteResult:
    """
    Outcome of one batch write.

    Attributes:
        success: Whether the transaction committed
        rows_affected: Rows inserted or updated (duplicates ignored by the
            store are not counted)
        rows_submitted: Rows sent after de-duplication
        error: Last error message on failure
    """

    success: bool
    rows_affected: int = 0
    rows_submitted: int = 0
    error: Optional[str] = None


def infer_kind(values: Iterable[Any]) -> str:
    """Best-effort kind of a column that is not declared in the `UpsertSpec`."""
    present = [v for v in values if v is not None and not (isinstance(v, float) and v != v)]
    if not present:
        return REAL
    if all(isinstance(v, int) and not isinstance(v, bool) for v in present):
        return INTEGER
    if all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in present):
        return REAL
    return TEXT


class BulkUpsertWriter:
    """
    Writes batches of parsed records according to an `UpsertSpec`.

    Args:
        backend: Storage backend to write to
        clock: Clock adjustor for ``serv_ts`` (default: process-wide adjustor)
        retry_config: Retry schedule for transient errors
        sleep: Sleep function (injectable for tests)

    Usage:
        writer = BulkUpsertWriter(backend)
        result = writer.write(PREALIGN_SPEC, samples)
        if result.success:
            tailer.commit(path, tail_result)
    """

    def __init__(
        self,
        backend: StorageBackend,
        clock: Optional[ClockSyncAdjustor] = None,
        retry_config: Optional[RetryConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.backend = backend
        self._clock = clock
        self._sql = SQLBuilder(backend.backend_type)
        self._retry = RetryManager(
            retry_config
            or RetryConfig.fixed(DEFAULT_WRITE_RETRIES, DEFAULT_WRITE_RETRY_DELAY_SECONDS),
            sleep=sleep,
        )

    @property
    def clock(self) -> ClockSyncAdjustor:
        return self._clock if self._clock is not None else get_clock()

    # =========================================================================
    # Batch assembly
    # =========================================================================

    def build_frame(self, spec: UpsertSpec, records: list[ParsedRecord]) -> pd.DataFrame:
        """
        One row per record plus the corrected timestamp.

        Raises:
            ValidationError: If a record has no source timestamp
        """
        clock = self.clock
        rows = []
        for record in records:
            source_ts = record.source_timestamp
            if source_ts is None:
                raise ValidationError(
                    "Record has no timestamp", field="source_timestamp", value=record
                )
            row = record.to_row()
            row[CORRECTED_TS_COLUMN] = synchronized_timestamp(clock, source_ts)
            rows.append(row)

        frame = pd.DataFrame(rows, dtype=object)

        if spec.policy == ConflictPolicy.UPDATE and spec.conflict_key:
            before = len(frame)
            frame = frame.drop_duplicates(subset=list(spec.conflict_key), keep="last")
            if len(frame) < before:
                logger.debug(
                    f"{spec.table}: collapsed {before - len(frame)} duplicate keys in batch"
                )

        return frame.reset_index(drop=True)

    def batch_columns(self, spec: UpsertSpec, frame: pd.DataFrame) -> list[ColumnSpec]:
        """Declared columns, plus undeclared frame columns for dynamic tables."""
        columns = list(spec.columns)
        if spec.dynamic_columns:
            declared = {c.name for c in columns}
            for name in frame.columns:
                if name not in declared:
                    columns.append(ColumnSpec(name, infer_kind(frame[name].tolist())))
        return columns

    def column_params(self, frame: pd.DataFrame, columns: list[ColumnSpec]) -> dict[str, Any]:
        """One bound array parameter per column, named c0..cN."""
        params = {}
        for i, column in enumerate(columns):
            values = frame[column.name].tolist() if column.name in frame.columns else [None] * len(frame)
            params[f"c{i}"] = self._sql.array_param(values, column.kind)
        return params

    # =========================================================================
    # Write
    # =========================================================================

    def write(self, spec: UpsertSpec, records: Iterable[ParsedRecord]) -> WriteResult:
        """
        Store a batch in one transaction.

        Never raises for store errors; check `WriteResult.success`.
        """
        records = list(records)
        if not records:
            return WriteResult(success=True)

        try:
            frame = self.build_frame(spec, records)
        except ValidationError as e:
            logger.error(f"{spec.table}: invalid batch: {e}")
            return WriteResult(success=False, rows_submitted=len(records), error=str(e))

        columns = self.batch_columns(spec, frame)
        result = self._retry.execute_with_retry(self._write_frame, spec, frame, columns)

        if result.success:
            logger.debug(
                f"{spec.table}: wrote {result.result}/{len(frame)} rows "
                f"(attempts={result.attempts})"
            )
            return WriteResult(
                success=True, rows_affected=result.result, rows_submitted=len(frame)
            )

        logger.error(
            f"{spec.table}: batch of {len(frame)} rows failed after "
            f"{result.attempts} attempt(s): {result.last_error}"
        )
        return WriteResult(
            success=False, rows_submitted=len(frame), error=str(result.last_error)
        )

    def _write_frame(
        self, spec: UpsertSpec, frame: pd.DataFrame, columns: list[ColumnSpec]
    ) -> int:
        with self.backend.transaction() as tx:
            if spec.dynamic_columns:
                self._add_missing_columns(tx, spec, columns)
            if spec.policy == ConflictPolicy.REPLACE_BY_KEY:
                self._delete_existing_keys(tx, spec, frame)
            sql = self._sql.bulk_insert(spec, columns)
            return tx.execute(sql, self.column_params(frame, columns))

    def _add_missing_columns(
        self, tx: Transaction, spec: UpsertSpec, columns: list[ColumnSpec]
    ) -> None:
        rows = tx.query(self._sql.list_columns(), {"table": spec.table})
        existing = {row["name"].lower() for row in rows}
        for column in columns:
            if column.name.lower() not in existing:
                tx.execute(self._sql.add_column(spec.table, column.name, column.kind))
                existing.add(column.name.lower())
                logger.info(f"{spec.table}: added column {column.name} ({column.kind})")

    def _delete_existing_keys(self, tx: Transaction, spec: UpsertSpec, frame: pd.DataFrame) -> None:
        key_columns = list(spec.conflict_key)
        keys = frame[key_columns].drop_duplicates()
        sql = self._sql.delete_by_key(spec)
        deleted = 0
        for key in keys.itertuples(index=False, name=None):
            params = {
                f"k{i}": encode_value(value, spec.column(name).kind if spec.column(name) else TEXT)
                for i, (name, value) in enumerate(zip(key_columns, key))
            }
            deleted += tx.execute(sql, params)
        if deleted:
            logger.debug(f"{spec.table}: replaced {deleted} existing rows")

    # =========================================================================
    # Snapshot tables
    # =========================================================================

    def insert_if_changed(self, spec: UpsertSpec, record: ParsedRecord) -> WriteResult:
        """
        Insert a snapshot row unless an identical one already exists.

        Identity is the UpsertSpec conflict key plus a null-safe comparison of its
        compare columns.
        """
        try:
            frame = self.build_frame(spec, [record])
        except ValidationError as e:
            logger.error(f"{spec.table}: invalid snapshot: {e}")
            return WriteResult(success=False, rows_submitted=1, error=str(e))

        row = frame.iloc[0].to_dict()
        result = self._retry.execute_with_retry(self._insert_if_changed, spec, row)

        if not result.success:
            logger.error(f"{spec.table}: snapshot insert failed: {result.last_error}")
            return WriteResult(success=False, rows_submitted=1, error=str(result.last_error))

        inserted = result.result
        key = ", ".join(f"{k}={row.get(k)}" for k in spec.conflict_key)
        if inserted:
            logger.info(f"{spec.table} inserted ▶ {key}")
        else:
            logger.info(f"{spec.table} unchanged ▶ {key}")
        return WriteResult(success=True, rows_affected=inserted, rows_submitted=1)

    def _insert_if_changed(self, spec: UpsertSpec, row: dict[str, Any]) -> int:
        compare = list(spec.conflict_key) + list(spec.compare_columns)
        conditions = " AND ".join(
            self._sql.null_safe_equals(name, f"p{i}") for i, name in enumerate(compare)
        )
        params = {
            f"p{i}": encode_value(row.get(name), spec.column(name).kind)
            for i, name in enumerate(compare)
        }
        exists_sql = f"SELECT 1 AS found FROM {spec.table} WHERE {conditions} LIMIT 1"

        with self.backend.transaction() as tx:
            if tx.query(exists_sql, params):
                return 0
            names = spec.column_names
            values = {
                f"c{i}": encode_value(row.get(name), spec.column(name).kind)
                for i, name in enumerate(names)
            }
            return tx.execute(self._sql.insert_row(spec.table, names), values)
