"""
SQL Compatibility Layer for SQLite and PostgreSQL.

Provides SQL generation functions that produce backend-specific syntax for
the narrow set of statements the ingestion pipeline issues, so the same
writer logic works against SQLite (local development, tests) and PostgreSQL
(production).

SQL Differences Handled:
- Placeholders: :name → %(name)s
- Set-returning expansion of column arrays: json_each/json_extract → unnest
- Column types for dynamically added columns
- Null-safe comparison: IS → IS NOT DISTINCT FROM
- Column discovery: pragma_table_info → information_schema.columns
"""

import json
import math
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal, Optional

from .upsert_specs import (
    INTEGER,
    REAL,
    REAL_ARRAY,
    TEXT,
    TIMESTAMP,
    ColumnSpec,
    ConflictPolicy,
    UpsertSpec,
)

BackendType = Literal["sqlite", "postgres"]

_SQLITE_TYPES = {
    TEXT: "TEXT",
    INTEGER: "INTEGER",
    REAL: "REAL",
    TIMESTAMP: "TEXT",
    REAL_ARRAY: "TEXT",
}

_POSTGRES_TYPES = {
    TEXT: "text",
    INTEGER: "integer",
    REAL: "double precision",
    TIMESTAMP: "timestamp",
    REAL_ARRAY: "real[]",
}


def quote_identifier(name: str) -> str:
    """Quote an identifier; column names may come from file headers."""
    return '"' + name.replace('"', '""') + '"'


def placeholder(name: str, backend: BackendType) -> str:
    """Named parameter placeholder."""
    if backend == "sqlite":
        return f":{name}"
    return f"%({name})s"


def column_type(kind: str, backend: BackendType) -> str:
    """SQL type used when adding a column of the given value kind."""
    if backend == "sqlite":
        return _SQLITE_TYPES[kind]
    return _POSTGRES_TYPES[kind]


# =============================================================================
# Value Encoding
# =============================================================================


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    # pandas NaT and friends compare unequal to themselves
    try:
        return bool(value != value)
    except (TypeError, ValueError):
        return False


def encode_value(value: Any, kind: str) -> Any:
    """
    Normalize one cell to the Python type expected for its kind.

    Missing values (None, NaN, NaT) become None.
    """
    if not isinstance(value, (list, tuple)) and _is_missing(value):
        return None
    if kind == TEXT:
        return str(value)
    if kind == INTEGER:
        return int(value)
    if kind == REAL:
        return float(value)
    if kind == TIMESTAMP:
        if hasattr(value, "to_pydatetime"):
            return value.to_pydatetime()
        return value
    if kind == REAL_ARRAY:
        return [None if _is_missing(v) else float(v) for v in value]
    raise ValueError(f"Unknown value kind: {kind}")


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    raise TypeError(f"Cannot encode {type(value).__name__} as JSON")


def pg_array_literal(values: list[Optional[float]]) -> str:
    """Render a float list as a PostgreSQL array literal, e.g. '{1.5,NULL}'."""
    items = ["NULL" if v is None else repr(float(v)) for v in values]
    return "{" + ",".join(items) + "}"


def array_param(values: list[Any], kind: str, backend: BackendType) -> Any:
    """
    Encode one column of a batch as a single bound parameter.

    SQLite receives a JSON array text; PostgreSQL receives a Python list
    (array-valued cells as array literal text, cast back in the SELECT).
    """
    encoded = [encode_value(v, kind) for v in values]
    if backend == "sqlite":
        return json.dumps(encoded, default=_json_default, ensure_ascii=False)
    if kind == REAL_ARRAY:
        return [None if v is None else pg_array_literal(v) for v in encoded]
    return encoded


# =============================================================================
# Statement Builders
# =============================================================================


def conflict_clause(spec: UpsertSpec, backend: BackendType) -> str:
    """ON CONFLICT clause for the upsert policy (empty for plain inserts)."""
    if spec.policy == ConflictPolicy.IGNORE:
        if spec.conflict_key:
            keys = ", ".join(quote_identifier(k) for k in spec.conflict_key)
            return f"ON CONFLICT ({keys}) DO NOTHING"
        return "ON CONFLICT DO NOTHING"

    if spec.policy == ConflictPolicy.UPDATE:
        keys = ", ".join(quote_identifier(k) for k in spec.conflict_key)
        assignments = ", ".join(
            f"{quote_identifier(c)} = excluded.{quote_identifier(c)}"
            for c in spec.update_columns
        )
        return f"ON CONFLICT ({keys}) DO UPDATE SET {assignments}"

    return ""


def bulk_insert(
    table: str,
    columns: list[ColumnSpec],
    conflict: str,
    backend: BackendType,
) -> str:
    """
    Single INSERT ... SELECT expanding one array parameter per column.

    Parameters are named c0..cN in column order.
    """
    target = ", ".join(quote_identifier(c.name) for c in columns)

    if backend == "sqlite":
        # json_each drives the row count; json_extract picks element i of each column
        selects = ", ".join(
            f"json_extract(:c{i}, '$[' || j.key || ']')" for i in range(len(columns))
        )
        # WHERE true resolves the INSERT ... SELECT ... ON CONFLICT parse ambiguity
        return (
            f"INSERT INTO {quote_identifier(table)} ({target}) "
            f"SELECT {selects} FROM json_each(:c0) AS j WHERE true {conflict}"
        ).strip()

    arrays = []
    selects = []
    for i, column in enumerate(columns):
        if column.kind == REAL_ARRAY:
            arrays.append(f"%(c{i})s::text[]")
            selects.append(f"u.c{i}::real[]")
        else:
            arrays.append(f"%(c{i})s::{_POSTGRES_TYPES[column.kind]}[]")
            selects.append(f"u.c{i}")
    aliases = ", ".join(f"c{i}" for i in range(len(columns)))
    return (
        f"INSERT INTO {quote_identifier(table)} ({target}) "
        f"SELECT {', '.join(selects)} "
        f"FROM unnest({', '.join(arrays)}) AS u({aliases}) {conflict}"
    ).strip()


def delete_by_key(table: str, key_columns: tuple[str, ...], backend: BackendType) -> str:
    """DELETE of all rows matching one natural key (parameters k0..kN)."""
    conditions = " AND ".join(
        f"{quote_identifier(k)} = {placeholder(f'k{i}', backend)}"
        for i, k in enumerate(key_columns)
    )
    return f"DELETE FROM {quote_identifier(table)} WHERE {conditions}"


def add_column(table: str, column: str, kind: str, backend: BackendType) -> str:
    """ALTER TABLE adding one column of the given kind."""
    col_type = column_type(kind, backend)
    if backend == "sqlite":
        return (
            f"ALTER TABLE {quote_identifier(table)} "
            f"ADD COLUMN {quote_identifier(column)} {col_type}"
        )
    return (
        f"ALTER TABLE {quote_identifier(table)} "
        f"ADD COLUMN IF NOT EXISTS {quote_identifier(column)} {col_type}"
    )


def list_columns(backend: BackendType) -> str:
    """Query returning a `name` row per column of table parameter `table`."""
    if backend == "sqlite":
        return "SELECT name FROM pragma_table_info(:table)"
    return (
        "SELECT column_name AS name FROM information_schema.columns "
        "WHERE table_name = %(table)s "
        "AND table_schema = ANY(current_schemas(false))"
    )


def null_safe_equals(column: str, param: str, backend: BackendType) -> str:
    """Equality that treats NULL = NULL as true."""
    if backend == "sqlite":
        return f"{quote_identifier(column)} IS {placeholder(param, backend)}"
    return (
        f"{quote_identifier(column)} IS NOT DISTINCT FROM "
        f"{placeholder(param, backend)}"
    )


def insert_row(table: str, columns: list[str], backend: BackendType) -> str:
    """Single-row INSERT with parameters named after the columns' positions."""
    target = ", ".join(quote_identifier(c) for c in columns)
    values = ", ".join(placeholder(f"c{i}", backend) for i in range(len(columns)))
    return f"INSERT INTO {quote_identifier(table)} ({target}) VALUES ({values})"


class SQLBuilder:
    """
    Backend-aware SQL builder.

    Provides a convenient interface for generating backend-specific SQL.
    """

    def __init__(self, backend: BackendType):
        """Initialize builder for specific backend."""
        self.backend = backend

    def placeholder(self, name: str) -> str:
        return placeholder(name, self.backend)

    def array_param(self, values: list[Any], kind: str) -> Any:
        return array_param(values, kind, self.backend)

    def conflict_clause(self, spec: UpsertSpec) -> str:
        return conflict_clause(spec, self.backend)

    def bulk_insert(self, spec: UpsertSpec, columns: list[ColumnSpec]) -> str:
        return bulk_insert(spec.table, columns, self.conflict_clause(spec), self.backend)

    def delete_by_key(self, spec: UpsertSpec) -> str:
        return delete_by_key(spec.table, spec.conflict_key, self.backend)

    def add_column(self, table: str, column: str, kind: str) -> str:
        return add_column(table, column, kind, self.backend)

    def list_columns(self) -> str:
        return list_columns(self.backend)

    def null_safe_equals(self, column: str, param: str) -> str:
        return null_safe_equals(column, param, self.backend)

    def insert_row(self, table: str, columns: list[str]) -> str:
        return insert_row(table, columns, self.backend)
