"""
Target table descriptions for the bulk upsert writer.

Each domain declares its columns (with a value kind used for array casts),
its natural key and the conflict policy applied when a row with that key
already exists.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..config.constants import (
    CORRECTED_TS_COLUMN,
    TABLE_EQUIPMENT_INFO,
    TABLE_ERROR,
    TABLE_PREALIGN,
    TABLE_SPECTRUM,
    TABLE_WAFER_FLAT,
    TABLE_WAFER_MAP,
)

# Value kinds understood by the SQL builder
TEXT = "text"
INTEGER = "integer"
REAL = "real"
TIMESTAMP = "timestamp"
REAL_ARRAY = "real_array"

VALUE_KINDS = frozenset({TEXT, INTEGER, REAL, TIMESTAMP, REAL_ARRAY})


class ConflictPolicy(Enum):
    """What happens when a row's natural key already exists."""

    IGNORE = "ignore"  # ON CONFLICT DO NOTHING
    UPDATE = "update"  # ON CONFLICT DO UPDATE of update_columns
    REPLACE_BY_KEY = "replace_by_key"  # DELETE matching keys, then INSERT
    INSERT_IF_CHANGED = "insert_if_changed"  # INSERT unless an equal row exists


@dataclass(frozen=True)
class ColumnSpec:
    """A target column and the kind of values it holds."""

    name: str
    kind: str = TEXT

    def __post_init__(self) -> None:
        if self.kind not in VALUE_KINDS:
            raise ValueError(f"Unknown value kind '{self.kind}' for {self.name}")


@dataclass(frozen=True)
class UpsertSpec:
    """
    Declarative description of one target table.

    Attributes:
        table: Target table name
        columns: Columns written for every row, in statement order
        conflict_key: Natural key columns (empty = store-default uniqueness)
        policy: Conflict policy for existing keys
        update_columns: Columns overwritten by the UPDATE policy
        compare_columns: Columns compared by the INSERT_IF_CHANGED policy
        dynamic_columns: Add columns present in rows but missing in the table
    """

    table: str
    columns: tuple[ColumnSpec, ...]
    conflict_key: tuple[str, ...] = ()
    policy: ConflictPolicy = ConflictPolicy.IGNORE
    update_columns: tuple[str, ...] = ()
    compare_columns: tuple[str, ...] = ()
    dynamic_columns: bool = False

    @property
    def column_names(self) -> list[str]:
        return [column.name for column in self.columns]

    def column(self, name: str) -> Optional[ColumnSpec]:
        for column in self.columns:
            if column.name == name:
                return column
        return None


_SERV_TS = ColumnSpec(CORRECTED_TS_COLUMN, TIMESTAMP)


WAFER_MAP_SPEC = UpsertSpec(
    table=TABLE_WAFER_MAP,
    columns=(
        ColumnSpec("eqpid"),
        ColumnSpec("datetime", TIMESTAMP),
        ColumnSpec("file_uri"),
        ColumnSpec("original_filename"),
        _SERV_TS,
    ),
    conflict_key=("eqpid", "datetime", "original_filename"),
    policy=ConflictPolicy.IGNORE,
)

PREALIGN_SPEC = UpsertSpec(
    table=TABLE_PREALIGN,
    columns=(
        ColumnSpec("eqpid"),
        ColumnSpec("datetime", TIMESTAMP),
        ColumnSpec("xmm", REAL),
        ColumnSpec("ymm", REAL),
        ColumnSpec("notch", REAL),
        _SERV_TS,
    ),
    conflict_key=("eqpid", "datetime"),
    policy=ConflictPolicy.IGNORE,
)

WAFER_FLAT_SPEC = UpsertSpec(
    table=TABLE_WAFER_FLAT,
    columns=(
        ColumnSpec("eqpid"),
        ColumnSpec("datetime", TIMESTAMP),
        ColumnSpec("cassettercp"),
        ColumnSpec("stagercp"),
        ColumnSpec("stagegroup"),
        ColumnSpec("lotid"),
        ColumnSpec("waferid", INTEGER),
        ColumnSpec("film"),
        _SERV_TS,
    ),
    conflict_key=("eqpid", "datetime"),
    policy=ConflictPolicy.REPLACE_BY_KEY,
    dynamic_columns=True,
)

SPECTRUM_SPEC = UpsertSpec(
    table=TABLE_SPECTRUM,
    columns=(
        ColumnSpec("eqpid"),
        ColumnSpec("ts", TIMESTAMP),
        _SERV_TS,
        ColumnSpec("lotid"),
        ColumnSpec("waferid"),
        ColumnSpec("point", INTEGER),
        ColumnSpec("class"),
        ColumnSpec("type"),
        ColumnSpec("angle", REAL),
        ColumnSpec("val_summary", REAL),
        ColumnSpec("wavelengths", REAL_ARRAY),
        ColumnSpec("values", REAL_ARRAY),
    ),
    conflict_key=("eqpid", "ts", "point", "class", "type"),
    policy=ConflictPolicy.UPDATE,
    update_columns=("angle", "val_summary", "wavelengths", "values", CORRECTED_TS_COLUMN),
)

ERROR_SPEC = UpsertSpec(
    table=TABLE_ERROR,
    columns=(
        ColumnSpec("eqpid"),
        ColumnSpec("error_id"),
        ColumnSpec("time_stamp", TIMESTAMP),
        ColumnSpec("error_label"),
        ColumnSpec("error_desc"),
        ColumnSpec("millisecond", INTEGER),
        ColumnSpec("extra_message_1"),
        ColumnSpec("extra_message_2"),
        _SERV_TS,
    ),
    policy=ConflictPolicy.IGNORE,
)

EQUIPMENT_INFO_SPEC = UpsertSpec(
    table=TABLE_EQUIPMENT_INFO,
    columns=(
        ColumnSpec("eqpid"),
        ColumnSpec("system_name"),
        ColumnSpec("system_model"),
        ColumnSpec("serial_num"),
        ColumnSpec("application"),
        ColumnSpec("version"),
        ColumnSpec("db_version"),
        ColumnSpec("date", TIMESTAMP),
        _SERV_TS,
    ),
    conflict_key=("eqpid",),
    policy=ConflictPolicy.INSERT_IF_CHANGED,
    compare_columns=(
        "system_name",
        "system_model",
        "serial_num",
        "application",
        "version",
        "db_version",
    ),
)
