"""
SQLite storage backend implementation.

Provides a local SQLite store with the same tables and natural-key
constraints as the production PostgreSQL database, so the ingestion
pipeline can run and be tested without a server.
"""

import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Iterator, Optional

from .base import (
    QueryError,
    StorageBackend,
    StorageConnectionError,
    Transaction,
)

logger = logging.getLogger(__name__)


# =============================================================================
# SQLite Schema Definitions
# =============================================================================

WAFER_MAP_SCHEMA = """
CREATE TABLE IF NOT EXISTS plg_wf_map (
    eqpid TEXT NOT NULL,
    datetime TEXT NOT NULL,
    file_uri TEXT,
    original_filename TEXT NOT NULL,
    serv_ts TEXT,
    UNIQUE (eqpid, datetime, original_filename)
)
"""

PREALIGN_SCHEMA = """
CREATE TABLE IF NOT EXISTS plg_prealign (
    eqpid TEXT NOT NULL,
    datetime TEXT NOT NULL,
    xmm REAL,
    ymm REAL,
    notch REAL,
    serv_ts TEXT,
    UNIQUE (eqpid, datetime)
)
"""

# Measurement columns are added on demand as files introduce them
WAFER_FLAT_SCHEMA = """
CREATE TABLE IF NOT EXISTS plg_wf_flat (
    eqpid TEXT NOT NULL,
    datetime TEXT NOT NULL,
    cassettercp TEXT,
    stagercp TEXT,
    stagegroup TEXT,
    lotid TEXT,
    waferid INTEGER,
    film TEXT,
    point INTEGER,
    serv_ts TEXT
)
"""

SPECTRUM_SCHEMA = """
CREATE TABLE IF NOT EXISTS plg_onto_spectrum (
    eqpid TEXT NOT NULL,
    ts TEXT NOT NULL,
    serv_ts TEXT,
    lotid TEXT,
    waferid TEXT,
    point INTEGER NOT NULL,
    class TEXT NOT NULL,
    type TEXT NOT NULL,
    angle REAL,
    val_summary REAL,
    wavelengths TEXT,  -- JSON array
    "values" TEXT,  -- JSON array
    UNIQUE (eqpid, ts, point, class, type)
)
"""

ERROR_SCHEMA = """
CREATE TABLE IF NOT EXISTS plg_error (
    eqpid TEXT NOT NULL,
    error_id TEXT NOT NULL,
    time_stamp TEXT NOT NULL,
    error_label TEXT,
    error_desc TEXT,
    millisecond INTEGER,
    extra_message_1 TEXT,
    extra_message_2 TEXT,
    serv_ts TEXT,
    UNIQUE (eqpid, error_id, time_stamp, millisecond)
)
"""

EQUIPMENT_INFO_SCHEMA = """
CREATE TABLE IF NOT EXISTS itm_info (
    eqpid TEXT NOT NULL,
    system_name TEXT,
    system_model TEXT,
    serial_num TEXT,
    application TEXT,
    version TEXT,
    db_version TEXT,
    date TEXT,
    serv_ts TEXT
)
"""

ERROR_SEVERITY_MAP_SCHEMA = """
CREATE TABLE IF NOT EXISTS err_severity_map (
    error_id TEXT PRIMARY KEY,
    severity TEXT
)
"""

REF_EQUIPMENT_SCHEMA = """
CREATE TABLE IF NOT EXISTS ref_equipment (
    eqpid TEXT PRIMARY KEY,
    sdwt TEXT
)
"""

TABLE_SCHEMAS = [
    WAFER_MAP_SCHEMA,
    PREALIGN_SCHEMA,
    WAFER_FLAT_SCHEMA,
    SPECTRUM_SCHEMA,
    ERROR_SCHEMA,
    EQUIPMENT_INFO_SCHEMA,
    ERROR_SEVERITY_MAP_SCHEMA,
    REF_EQUIPMENT_SCHEMA,
]

INDEX_DEFINITIONS = [
    "CREATE INDEX IF NOT EXISTS idx_wf_flat_key ON plg_wf_flat(eqpid, datetime)",
    "CREATE INDEX IF NOT EXISTS idx_itm_info_eqpid ON itm_info(eqpid)",
]


# =============================================================================
# Type Conversion Helpers
# =============================================================================


def _to_sqlite_timestamp(value: datetime) -> str:
    """Store timestamps as 'YYYY-MM-DD HH:MM:SS[.ffffff]' text."""
    return value.isoformat(sep=" ")


def _adapt_params(params: Optional[dict]) -> dict:
    """Convert Python values sqlite3 does not bind natively."""
    if not params:
        return {}
    adapted = {}
    for key, value in params.items():
        if isinstance(value, datetime):
            value = _to_sqlite_timestamp(value)
        elif isinstance(value, date):
            value = value.isoformat()
        elif isinstance(value, Decimal):
            value = float(value)
        adapted[key] = value
    return adapted


def _rollback(conn: sqlite3.Connection) -> None:
    if conn.in_transaction:
        conn.execute("ROLLBACK")


class _SQLiteTransaction(Transaction):
    def __init__(self, cursor: sqlite3.Cursor):
        self._cursor = cursor

    def execute(self, sql: str, params: Optional[dict] = None) -> int:
        self._cursor.execute(sql, _adapt_params(params))
        return max(self._cursor.rowcount, 0)

    def query(self, sql: str, params: Optional[dict] = None) -> list[dict]:
        self._cursor.execute(sql, _adapt_params(params))
        columns = [desc[0] for desc in self._cursor.description or []]
        return [dict(zip(columns, row)) for row in self._cursor.fetchall()]


# =============================================================================
# SQLite Backend Implementation
# =============================================================================


class SQLiteBackend(StorageBackend):
    """
    SQLite storage backend.

    One connection is shared by all threads and guarded by a re-entrant
    lock; statements outside `transaction()` run in autocommit mode.
    """

    def __init__(
        self,
        db_path: Path | str = "data/fab-logs.db",
        *,
        check_same_thread: bool = False,
        timeout: float = 30.0,
    ):
        """
        Initialize SQLite backend.

        Args:
            db_path: Path to SQLite database file
            check_same_thread: SQLite check_same_thread parameter
            timeout: Busy timeout in seconds
        """
        self.db_path = Path(db_path)
        self._check_same_thread = check_same_thread
        self._timeout = timeout
        self._connection: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

        # Ensure parent directory exists
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def backend_type(self) -> str:
        """Return backend type identifier."""
        return "sqlite"

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._connection is None:
            try:
                self._connection = sqlite3.connect(
                    str(self.db_path),
                    check_same_thread=self._check_same_thread,
                    timeout=self._timeout,
                    isolation_level=None,
                )
                self._connection.row_factory = sqlite3.Row
                logger.debug(f"Connected to SQLite database: {self.db_path}")
            except sqlite3.Error as e:
                raise StorageConnectionError(
                    f"Failed to connect to SQLite database: {e}"
                ) from e
        return self._connection

    @contextmanager
    def _cursor(self) -> Iterator[sqlite3.Cursor]:
        """Cursor for a single autocommit statement."""
        with self._lock:
            cursor = self._get_connection().cursor()
            try:
                yield cursor
            except sqlite3.Error as e:
                raise QueryError(f"SQLite query failed: {e}") from e
            finally:
                cursor.close()

    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        """
        Run statements in one IMMEDIATE transaction.

        The write lock is taken up front so concurrent writers queue on the
        busy timeout instead of failing on lock upgrade.
        """
        with self._lock:
            conn = self._get_connection()
            cursor = conn.cursor()
            try:
                cursor.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                cursor.close()
                raise QueryError(f"SQLite query failed: {e}") from e
            try:
                yield _SQLiteTransaction(cursor)
                cursor.execute("COMMIT")
            except sqlite3.Error as e:
                _rollback(conn)
                raise QueryError(f"SQLite query failed: {e}") from e
            except BaseException:
                _rollback(conn)
                raise
            finally:
                cursor.close()

    def initialize(self) -> None:
        """
        Initialize database with all required tables and indexes.

        Safe to call multiple times - uses IF NOT EXISTS.
        """
        logger.info(f"Initializing SQLite database: {self.db_path}")

        with self.transaction() as tx:
            for table_sql in TABLE_SCHEMAS:
                tx.execute(table_sql)
            for index_sql in INDEX_DEFINITIONS:
                tx.execute(index_sql)

        logger.info("SQLite database initialized successfully")

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None
                logger.debug("SQLite connection closed")

    def query(
        self,
        sql: str,
        params: Optional[dict] = None,
    ) -> list[dict]:
        """
        Execute query and return results as list of dictionaries.

        Args:
            sql: SQL query (use :param_name for parameters)
            params: Optional parameter dictionary

        Returns:
            List of result rows as dictionaries
        """
        with self._cursor() as cursor:
            return _SQLiteTransaction(cursor).query(sql, params)

    def execute(
        self,
        sql: str,
        params: Optional[dict] = None,
    ) -> int:
        """
        Execute statement (INSERT, UPDATE, DELETE, DDL).

        Args:
            sql: SQL statement
            params: Optional parameter dictionary

        Returns:
            Number of affected rows
        """
        with self._cursor() as cursor:
            return _SQLiteTransaction(cursor).execute(sql, params)

    def table_exists(self, table_name: str) -> bool:
        """Check if a table exists."""
        sql = """
            SELECT name FROM sqlite_master
            WHERE type='table' AND name=:table_name
        """
        result = self.query(sql, {"table_name": table_name})
        return len(result) > 0

    def get_table_columns(self, table_name: str) -> list[str]:
        """List column names of a table."""
        rows = self.query(
            "SELECT name FROM pragma_table_info(:table_name)",
            {"table_name": table_name},
        )
        return [row["name"].lower() for row in rows]

    def _health_details(self) -> dict:
        tables = self.query(
            "SELECT COUNT(*) AS count FROM sqlite_master WHERE type = 'table'"
        )
        return {
            "db_path": str(self.db_path),
            "db_size_bytes": self.db_path.stat().st_size if self.db_path.exists() else 0,
            "table_count": tables[0]["count"] if tables else 0,
        }
