"""
Store interface used by the writer, the allow-list filter and the plugins.

The pipeline only ever needs narrow operations: run a statement, run a
query, group statements into one all-or-nothing transaction and inspect
the columns of a target table. SQLite serves local runs and tests;
PostgreSQL is the production store.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Any, Optional


class StorageError(Exception):
    """Base exception for store failures."""

    pass


class StorageConnectionError(StorageError):
    """The store could not be reached."""

    pass


class QueryError(StorageError):
    """A statement failed; the message carries the driver's text."""

    pass


class SchemaError(StorageError):
    """A table the caller relies on is missing."""

    pass


class Transaction(ABC):
    """
    Statements executed inside one unit of work.

    Obtained from `StorageBackend.transaction()`; committed when the block
    exits normally and rolled back when it raises.
    """

    @abstractmethod
    def execute(self, sql: str, params: Optional[dict] = None) -> int:
        """Run a statement; returns the affected row count."""
        pass

    @abstractmethod
    def query(self, sql: str, params: Optional[dict] = None) -> list[dict]:
        pass


class StorageBackend(ABC):
    """
    Common interface of the SQLite and PostgreSQL backends.

    Parameters are always passed by name. Placeholders differ per backend
    (``:name`` for SQLite, ``%(name)s`` for PostgreSQL); build them with
    `pipeline.sql_compat.SQLBuilder`.
    """

    @property
    @abstractmethod
    def backend_type(self) -> str:
        """``"sqlite"`` or ``"postgres"``."""
        pass

    @abstractmethod
    def initialize(self) -> None:
        """Create the target and reference tables if missing. Idempotent."""
        pass

    @abstractmethod
    def close(self) -> None:
        pass

    @abstractmethod
    def transaction(self) -> AbstractContextManager[Transaction]:
        """
        Open a transaction.

        Usage:
            with backend.transaction() as tx:
                tx.execute("DELETE FROM plg_wf_flat WHERE ...", params)
                tx.execute("INSERT INTO plg_wf_flat ...", params)

        Raises:
            StorageConnectionError: If the store cannot be reached
            QueryError: If a statement fails (after rolling back)
        """
        pass

    @abstractmethod
    def query(self, sql: str, params: Optional[dict] = None) -> list[dict]:
        """Run a query in its own transaction; rows come back as dicts."""
        pass

    @abstractmethod
    def execute(self, sql: str, params: Optional[dict] = None) -> int:
        """Run a statement in its own transaction; 0 for DDL."""
        pass

    @abstractmethod
    def table_exists(self, table_name: str) -> bool:
        pass

    @abstractmethod
    def get_table_columns(self, table_name: str) -> list[str]:
        """Lower-cased column names in table order; empty for a missing table."""
        pass

    def get_table_row_count(self, table_name: str) -> int:
        """
        Raises:
            SchemaError: If the table does not exist
        """
        if not self.table_exists(table_name):
            raise SchemaError(f"Table '{table_name}' does not exist")

        # Name checked against the catalog above
        rows = self.query(f'SELECT COUNT(*) AS count FROM "{table_name}"')
        return rows[0]["count"] if rows else 0

    def _health_details(self) -> dict[str, Any]:
        """Backend-specific facts added to a healthy `health_check`."""
        return {}

    def health_check(self) -> dict[str, Any]:
        """
        Check the store with a trivial query.

        Returns:
            ``{"healthy", "backend_type", "message", "details"}``
        """
        try:
            self.query("SELECT 1 AS ok")
            details = self._health_details()
        except StorageError as e:
            return {
                "healthy": False,
                "backend_type": self.backend_type,
                "message": f"Health check failed: {e}",
                "details": {"error": str(e)},
            }
        return {
            "healthy": True,
            "backend_type": self.backend_type,
            "message": "Store reachable",
            "details": details,
        }

    def __enter__(self) -> "StorageBackend":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
