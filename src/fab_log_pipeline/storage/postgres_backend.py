"""
PostgreSQL storage backend implementation.

Production store for the ingestion pipeline. Each thread keeps its own
connection; a connection that failed mid-transaction is rolled back, and
one that has been closed by the server is replaced on next use.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Iterator, Optional

import psycopg
from psycopg.rows import dict_row

from .base import (
    QueryError,
    StorageBackend,
    StorageConnectionError,
    Transaction,
)

logger = logging.getLogger(__name__)


# =============================================================================
# PostgreSQL Schema Definitions
# =============================================================================

TABLE_SCHEMAS = [
    """
    CREATE TABLE IF NOT EXISTS plg_wf_map (
        eqpid varchar(50) NOT NULL,
        datetime timestamp NOT NULL,
        file_uri text,
        original_filename text NOT NULL,
        serv_ts timestamp,
        UNIQUE (eqpid, datetime, original_filename)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS plg_prealign (
        eqpid varchar(50) NOT NULL,
        datetime timestamp NOT NULL,
        xmm numeric,
        ymm numeric,
        notch numeric,
        serv_ts timestamp,
        UNIQUE (eqpid, datetime)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS plg_wf_flat (
        eqpid varchar(50) NOT NULL,
        datetime timestamp NOT NULL,
        cassettercp text,
        stagercp text,
        stagegroup text,
        lotid text,
        waferid integer,
        film text,
        point integer,
        serv_ts timestamp
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS plg_onto_spectrum (
        eqpid varchar(50) NOT NULL,
        ts timestamp NOT NULL,
        serv_ts timestamp,
        lotid text,
        waferid text,
        point integer NOT NULL,
        class varchar(10) NOT NULL,
        type varchar(10) NOT NULL,
        angle real,
        val_summary real,
        wavelengths real[],
        "values" real[],
        UNIQUE (eqpid, ts, point, class, type)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS plg_error (
        eqpid varchar(50) NOT NULL,
        error_id varchar(50) NOT NULL,
        time_stamp timestamp NOT NULL,
        error_label text,
        error_desc text,
        millisecond integer,
        extra_message_1 text,
        extra_message_2 text,
        serv_ts timestamp,
        UNIQUE (eqpid, error_id, time_stamp, millisecond)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS itm_info (
        eqpid varchar(50) NOT NULL,
        system_name text,
        system_model text,
        serial_num text,
        application text,
        version text,
        db_version text,
        date timestamp,
        serv_ts timestamp
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS err_severity_map (
        error_id varchar(50) PRIMARY KEY,
        severity text
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS ref_equipment (
        eqpid varchar(50) PRIMARY KEY,
        sdwt text
    )
    """,
]

INDEX_DEFINITIONS = [
    "CREATE INDEX IF NOT EXISTS idx_wf_flat_key ON plg_wf_flat(eqpid, datetime)",
    "CREATE INDEX IF NOT EXISTS idx_itm_info_eqpid ON itm_info(eqpid)",
]


class _PostgresTransaction(Transaction):
    def __init__(self, cursor: psycopg.Cursor):
        self._cursor = cursor

    def execute(self, sql: str, params: Optional[dict] = None) -> int:
        self._cursor.execute(sql, params or None)
        return max(self._cursor.rowcount, 0)

    def query(self, sql: str, params: Optional[dict] = None) -> list[dict]:
        self._cursor.execute(sql, params or None)
        if self._cursor.description is None:
            return []
        return [dict(row) for row in self._cursor.fetchall()]


# =============================================================================
# PostgreSQL Backend Implementation
# =============================================================================


class PostgresBackend(StorageBackend):
    """
    PostgreSQL storage backend using psycopg 3.

    Args:
        dsn: libpq connection string or URI
        connect_timeout: Seconds to wait for a connection
        connect_retries: Extra connection attempts on OperationalError
    """

    def __init__(
        self,
        dsn: str,
        *,
        connect_timeout: float = 30.0,
        connect_retries: int = 2,
    ):
        if not dsn:
            raise StorageConnectionError("PostgreSQL DSN is empty")
        self.dsn = dsn
        self._connect_timeout = connect_timeout
        self._connect_retries = connect_retries
        self._local = threading.local()
        self._all_connections: list[psycopg.Connection] = []
        self._registry_lock = threading.Lock()

    @property
    def backend_type(self) -> str:
        """Return backend type identifier."""
        return "postgres"

    def _get_connection(self) -> psycopg.Connection:
        """Get this thread's connection, reconnecting if it was closed."""
        conn: Optional[psycopg.Connection] = getattr(self._local, "connection", None)
        if conn is not None and not conn.closed:
            return conn

        last_error: Optional[Exception] = None
        for attempt in range(self._connect_retries + 1):
            try:
                conn = psycopg.connect(
                    self.dsn,
                    connect_timeout=max(1, int(self._connect_timeout)),
                    row_factory=dict_row,
                    autocommit=True,
                )
                break
            except psycopg.OperationalError as e:
                last_error = e
                logger.debug(f"PostgreSQL connect attempt {attempt + 1} failed: {e}")
        else:
            raise StorageConnectionError(
                f"Failed to connect to PostgreSQL: {last_error}"
            ) from last_error

        self._local.connection = conn
        with self._registry_lock:
            self._all_connections.append(conn)
        logger.debug("Connected to PostgreSQL")
        return conn

    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        """Run statements in one transaction on this thread's connection."""
        conn = self._get_connection()
        try:
            with conn.transaction():
                with conn.cursor() as cursor:
                    yield _PostgresTransaction(cursor)
        except psycopg.OperationalError as e:
            self._discard_connection(conn)
            raise StorageConnectionError(f"PostgreSQL connection failed: {e}") from e
        except psycopg.Error as e:
            raise QueryError(f"PostgreSQL query failed: {e}") from e

    def _discard_connection(self, conn: psycopg.Connection) -> None:
        self._local.connection = None
        with self._registry_lock:
            if conn in self._all_connections:
                self._all_connections.remove(conn)
        if not conn.closed:
            conn.close()

    def initialize(self) -> None:
        """Create tables and indexes if they don't exist."""
        logger.info("Initializing PostgreSQL schema")
        with self.transaction() as tx:
            for table_sql in TABLE_SCHEMAS:
                tx.execute(table_sql)
            for index_sql in INDEX_DEFINITIONS:
                tx.execute(index_sql)
        logger.info("PostgreSQL schema initialized successfully")

    def close(self) -> None:
        """Close every connection opened by this backend."""
        with self._registry_lock:
            connections, self._all_connections = self._all_connections, []
        for conn in connections:
            if not conn.closed:
                conn.close()
        self._local = threading.local()
        logger.debug("PostgreSQL connections closed")

    def query(self, sql: str, params: Optional[dict] = None) -> list[dict]:
        """
        Execute query and return results as list of dictionaries.

        Args:
            sql: SQL query (use %(param_name)s for parameters)
            params: Optional parameter dictionary
        """
        with self.transaction() as tx:
            return tx.query(sql, params)

    def execute(self, sql: str, params: Optional[dict] = None) -> int:
        """Execute a statement in its own transaction."""
        with self.transaction() as tx:
            return tx.execute(sql, params)

    def table_exists(self, table_name: str) -> bool:
        """Check if a table exists in the search path."""
        rows = self.query(
            "SELECT to_regclass(%(table_name)s) IS NOT NULL AS present",
            {"table_name": table_name},
        )
        return bool(rows and rows[0]["present"])

    def get_table_columns(self, table_name: str) -> list[str]:
        """List column names of a table."""
        rows = self.query(
            """
            SELECT column_name AS name
            FROM information_schema.columns
            WHERE table_name = %(table_name)s
              AND table_schema = ANY(current_schemas(false))
            ORDER BY ordinal_position
            """,
            {"table_name": table_name},
        )
        return [str(row["name"]).lower() for row in rows]

    def _health_details(self) -> dict[str, Any]:
        rows = self.query("SHOW server_version")
        return {"server_version": rows[0]["server_version"] if rows else None}
