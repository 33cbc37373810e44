"""
Equipment error log parser.

The file starts with a metadata header (``KEY:,value`` lines) describing the
equipment and continues with one alarm per line::

    SYSTEM_NAME:,ONTO-01
    DATE:,3/7/2024 14:5:9
    E1001, 07-Mar-24 2:05:09 PM, STAGE, Stage vacuum lost, 120, retry 1
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ..base import EquipmentInfo, ErrorLogEntry
from ..exceptions import ParseError
from ..timestamps import CANONICAL_FORMAT, normalize_meta_date, parse_error_time
from .common import split_lines

logger = logging.getLogger(__name__)

ROW_PATTERN = re.compile(
    r"^(?P<id>\w+),\s*(?P<ts>[^,]+),\s*(?P<lbl>[^,]+),\s*(?P<desc>[^,]+),"
    r"\s*(?P<ms>\d+)(?:,\s*(?P<extra>.*))?"
)

META_SEPARATOR = ":,"
META_IGNORED_KEYS = frozenset({"EXPORT_TYPE"})

# Header key → itm_info column
META_COLUMNS = {
    "SYSTEM_NAME": "system_name",
    "SYSTEM_MODEL": "system_model",
    "SERIAL_NUM": "serial_num",
    "APPLICATION": "application",
    "VERSION": "version",
    "DB_VERSION": "db_version",
}


def parse_metadata(lines: list[str]) -> dict[str, str]:
    """
    Collect ``KEY:,value`` header lines into a dict keyed by upper-case key.

    Later lines overwrite earlier ones. ``DATE`` is rewritten as
    ``YYYY-MM-DD HH:MM:SS`` when it parses.
    """
    meta: dict[str, str] = {}
    for line in lines:
        idx = line.find(META_SEPARATOR)
        if idx <= 0:
            continue
        key = line[:idx].strip().upper()
        if not key or key in META_IGNORED_KEYS:
            continue
        meta[key] = line[idx + len(META_SEPARATOR):].strip()

    if "DATE" in meta:
        meta["DATE"] = normalize_meta_date(meta["DATE"])
    return meta


def equipment_info_from_metadata(meta: dict[str, str], eqpid: str) -> Optional[EquipmentInfo]:
    """Build the equipment snapshot, or None when the header has no known keys."""
    values = {column: meta.get(key) for key, column in META_COLUMNS.items()}
    if not any(values.values()) and "DATE" not in meta:
        return None

    date = None
    if meta.get("DATE"):
        try:
            date = datetime.strptime(meta["DATE"], CANONICAL_FORMAT)
        except ValueError:
            logger.debug(f"Unparseable equipment DATE: {meta['DATE']!r}")

    return EquipmentInfo(eqpid=meta.get("EQPID") or eqpid, date=date, **values)


def is_metadata_line(line: str) -> bool:
    idx = line.find(META_SEPARATOR)
    return idx > 0 and "," not in line[:idx]


def parse_row(line: str, eqpid: str, line_number: Optional[int] = None) -> ErrorLogEntry:
    """
    One alarm line.

    Raises:
        ParseError: If the line is not a well-formed alarm row
    """
    match = ROW_PATTERN.match(line)
    if not match:
        raise ParseError("Not an alarm row", line_number, line)

    ts = parse_error_time(match.group("ts").strip())
    if ts is None:
        raise ParseError(f"Bad alarm time {match.group('ts').strip()!r}", line_number, line)

    return ErrorLogEntry(
        eqpid=eqpid,
        error_id=match.group("id").strip(),
        timestamp=ts,
        label=match.group("lbl").strip(),
        description=match.group("desc").strip(),
        millisecond=int(match.group("ms")),
        extra_message=(match.group("extra") or "").strip(),
        extra_message_2="",
    )


@dataclass
class ErrorLogParseResult:
    """Entries of one read range and, for a read from offset 0, the header snapshot."""

    entries: list[ErrorLogEntry] = field(default_factory=list)
    equipment_info: Optional[EquipmentInfo] = None
    read_lines: int = 0
    malformed: int = 0


class ErrorLogParser:
    """
    Parses the appended range of an error log.

    Usage:
        result = ErrorLogParser().parse(text, eqpid, include_metadata=True)
    """

    def parse(self, text: str, eqpid: str, include_metadata: bool = False) -> ErrorLogParseResult:
        """
        Args:
            text: Decoded text of the read range
            eqpid: Equipment id stamped on every entry
            include_metadata: Also parse the header (only meaningful from offset 0)
        """
        lines = split_lines(text)
        result = ErrorLogParseResult(read_lines=len(lines))

        if include_metadata:
            result.equipment_info = equipment_info_from_metadata(parse_metadata(lines), eqpid)

        for number, line in enumerate(lines, start=1):
            if is_metadata_line(line):
                continue
            try:
                result.entries.append(parse_row(line, eqpid, number))
            except ParseError as e:
                result.malformed += 1
                logger.debug(str(e))

        return result
