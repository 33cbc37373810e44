"""
Timestamp formats written by the equipment software.

Each log family uses its own layout; the helpers below try a list of
formats in order and return None instead of raising.
"""

from datetime import datetime
from typing import Iterable, Optional

from dateutil import parser as date_parser

# Prealign log, e.g. "03-07-24 14:05:09" or "3-7-24 14:05:09"
PREALIGN_FORMATS = ("%m-%d-%y %H:%M:%S",)

# Error log rows, e.g. "07-Mar-24 2:05:09 PM"
ERROR_LOG_FORMAT = "%d-%b-%y %I:%M:%S %p"

# Error log header, e.g. "DATE:,3/7/2024 14:5:9"
ERROR_META_DATE_FORMAT = "%m/%d/%Y %H:%M:%S"

CANONICAL_FORMAT = "%Y-%m-%d %H:%M:%S"

# File name stamp, parts[0] + parts[1], e.g. "20240307" + "140509"
FILENAME_STAMP_FORMAT = "%Y%m%d%H%M%S"

GENERIC_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y %H:%M",
    "%d-%b-%Y %H:%M:%S",
    "%Y%m%d %H%M%S",
)

# "Date and Time" header of flat-wafer result files
FLAT_WAFER_FORMATS = (
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y %H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y/%m/%d %H:%M:%S",
    "%m-%d-%Y %H:%M:%S",
    "%d.%m.%Y %H:%M:%S",
)


def parse_first(value: str, formats: Iterable[str]) -> Optional[datetime]:
    """Parse with the first matching format, or None."""
    value = " ".join(value.split())
    if not value:
        return None
    for fmt in formats:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return None


def parse_generic(value: str) -> Optional[datetime]:
    """Lenient parse used as a last resort."""
    parsed = parse_first(value, GENERIC_FORMATS)
    if parsed is not None:
        return parsed
    value = value.strip()
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        pass

    try:
        parsed = date_parser.parse(value)
    except (ValueError, OverflowError):
        return None
    return parsed.replace(tzinfo=None)


def parse_prealign_time(value: str) -> Optional[datetime]:
    """Prealign ``Time`` field, falling back to the generic layouts."""
    return parse_first(value, PREALIGN_FORMATS) or parse_generic(value)


def parse_error_time(value: str) -> Optional[datetime]:
    """Error-log row timestamp; no fallback, a mismatch drops the line."""
    return parse_first(value, (ERROR_LOG_FORMAT,))


def normalize_meta_date(value: str) -> str:
    """Rewrite an error-log header date as ``YYYY-MM-DD HH:MM:SS`` when it parses."""
    parsed = parse_first(value, (ERROR_META_DATE_FORMAT,))
    return parsed.strftime(CANONICAL_FORMAT) if parsed else value


def parse_flat_wafer_time(value: str, time_part: str = "") -> Optional[datetime]:
    """
    ``Date and Time`` header of a flat-wafer file.

    Some exports split the date and the time across two fields; pass the
    second one as `time_part` and the two are joined before parsing.
    """
    combined = f"{value} {time_part}".strip() if time_part else value
    return parse_first(combined, FLAT_WAFER_FORMATS) or parse_generic(combined)


def parse_filename_stamp(date_token: str, time_token: str) -> Optional[datetime]:
    """``yyyyMMdd`` + ``HHmmss`` file name tokens."""
    return parse_first(f"{date_token}{time_token}", (FILENAME_STAMP_FORMAT,))
