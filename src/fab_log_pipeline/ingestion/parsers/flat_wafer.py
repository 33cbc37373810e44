"""
Flat-wafer measurement table parser.

A result file holds ``key: value`` metadata lines followed by a comma
separated table whose header starts with ``Point#``::

    Cassette Recipe Name: CR-01
    Lot ID: LOT123
    Wafer ID: W07
    Date and Time: 3/7/2024 2:05:09 PM
    Point#,Thickness (µm),Die X,Die Y,GOF
    1,1.0021,10,12,0.998

Every table row becomes one `FlatWaferRow`; the columns come from the
normalized header, so new measurement columns show up without code changes.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from ..base import FlatWaferRow
from ..timestamps import parse_flat_wafer_time
from .common import split_lines, to_float, to_int

logger = logging.getLogger(__name__)

HEADER_MARKER = "point#"

INTEGER_COLUMNS = frozenset({"point", "dierow", "diecol", "dienum", "diepointtag"})

# Metadata key → record field
META_FIELDS = {
    "Cassette Recipe Name": "cassettercp",
    "Stage Recipe Name": "stagercp",
    "Stage Group Name": "stagegroup",
    "Lot ID": "lotid",
    "Film Name": "film",
}

_NOCAL_PAREN = re.compile(r"\(\s*no\s*cal\.?\s*\)", re.IGNORECASE)
_NOCAL_WORD = re.compile(r"\bno[\s_]*cal\b", re.IGNORECASE)
_CAL_PAREN = re.compile(r"\(\s*cal\.?\s*\)", re.IGNORECASE)
_UNIT_SUFFIXES = ("(mm)", "(µm)", "(um)", "(탆)")
_WAFER_NUMBER = re.compile(r"W(\d+)")


def normalize_header(header: str) -> str:
    """
    Turn a table header into a column name.

    ``"Thickness (no cal.)"`` → ``"thickness_nocal"``,
    ``"Die X"`` → ``"diex"``, ``"Point#"`` → ``"point"``.
    """
    h = header.lower()
    h = _NOCAL_PAREN.sub(" nocal ", h)
    h = _NOCAL_WORD.sub("nocal", h)
    h = _CAL_PAREN.sub(" cal ", h)
    for suffix in _UNIT_SUFFIXES:
        h = h.replace(suffix, "")
    h = h.replace("die x", "diex").replace("die y", "diey").strip()
    h = re.sub(r"\s+", "_", h)
    h = re.sub(r"[#/:\-]", "", h)
    return h


def parse_metadata(lines: list[str]) -> dict[str, str]:
    """``key: value`` lines; the first occurrence of a key wins."""
    meta: dict[str, str] = {}
    for line in lines:
        idx = line.find(":")
        if idx <= 0:
            continue
        key = line[:idx].strip()
        if key not in meta:
            meta[key] = line[idx + 1:].strip()
    return meta


def wafer_number(wafer_id: str) -> Optional[int]:
    match = _WAFER_NUMBER.search(wafer_id)
    return int(match.group(1)) if match else None


def measurement_time(meta: dict[str, str]) -> Optional[datetime]:
    """``Date and Time`` header, or separate ``Date`` and ``Time`` headers joined."""
    if meta.get("Date and Time"):
        return parse_flat_wafer_time(meta["Date and Time"])
    if meta.get("Date"):
        return parse_flat_wafer_time(meta["Date"], meta.get("Time", ""))
    return None


def _convert_cell(column: str, raw: str) -> tuple[bool, Any]:
    """(ok, value); empty cells are NULL, non-numeric cells are not ok."""
    if raw == "":
        return True, None
    if column in INTEGER_COLUMNS:
        as_int = to_int(raw)
        if as_int is not None:
            return True, as_int
    as_float = to_float(raw)
    if as_float is None:
        return False, None
    return True, as_float


@dataclass
class FlatWaferParseResult:
    rows: list[FlatWaferRow] = field(default_factory=list)
    header_found: bool = False
    dropped: int = 0
    reason: str = ""


class FlatWaferParser:
    """
    Parses a whole flat-wafer result file.

    Usage:
        result = FlatWaferParser().parse(text, eqpid="EQP01")
        if not result.rows:
            print(result.reason)
    """

    def parse(self, text: str, eqpid: str) -> FlatWaferParseResult:
        lines = split_lines(text)
        result = FlatWaferParseResult()

        header_idx = next(
            (i for i, line in enumerate(lines) if line.lstrip().lower().startswith(HEADER_MARKER)),
            None,
        )
        if header_idx is None:
            result.reason = "table header not found"
            return result
        result.header_found = True

        meta = parse_metadata(lines[:header_idx])
        timestamp = measurement_time(meta)
        if timestamp is None:
            result.reason = "measurement time not found"
            return result

        headers = [normalize_header(h) for h in lines[header_idx].split(",")]
        column_index: dict[str, int] = {}
        for idx, name in enumerate(headers):
            if name:
                column_index.setdefault(name, idx)

        fixed = {attr: meta.get(key, "") for key, attr in META_FIELDS.items()}
        waferid = wafer_number(meta.get("Wafer ID", ""))

        for line in lines[header_idx + 1:]:
            values = [v.strip() for v in line.split(",")]
            if len(values) < len(headers):
                result.dropped += 1
                continue

            measurements: dict[str, Any] = {}
            valid = True
            for column, idx in column_index.items():
                ok, value = _convert_cell(column, values[idx])
                if not ok:
                    valid = False
                    break
                measurements[column] = value

            if not valid:
                result.dropped += 1
                logger.debug(f"Dropped non-numeric flat-wafer row: {line!r}")
                continue

            result.rows.append(
                FlatWaferRow(
                    eqpid=eqpid,
                    timestamp=timestamp,
                    waferid=waferid,
                    measurements=measurements,
                    **fixed,
                )
            )

        if not result.rows:
            result.reason = "no table rows"
        return result
