"""
Helpers shared by the record parsers.
"""

import re
from decimal import Decimal, InvalidOperation
from pathlib import PurePath
from typing import Optional, Union

_WAFER_TOKEN = re.compile(r"^W\d+$")
_WAFER_DIGITS = re.compile(r"W(\d+)")


def split_lines(text: str) -> list[str]:
    """Split on CRLF or LF, dropping empty lines."""
    return [line for line in re.split(r"\r?\n", text) if line.strip()]


def file_stem(file_path: Union[str, PurePath]) -> str:
    """File name without directory and extension."""
    return PurePath(file_path).stem


def to_decimal(value: str) -> Optional[Decimal]:
    try:
        parsed = Decimal(value.strip())
    except (InvalidOperation, ValueError):
        return None
    return parsed if parsed.is_finite() else None


def to_float(value: str) -> Optional[float]:
    try:
        return float(value.strip())
    except ValueError:
        return None


def to_int(value: str) -> Optional[int]:
    try:
        return int(value.strip())
    except ValueError:
        return None


def wafer_digits(token: str) -> str:
    """``W07`` → ``07``; tokens without a wafer marker are returned as-is."""
    match = _WAFER_DIGITS.search(token)
    return match.group(1) if match else token


def resolve_lot_and_wafer(
    tokens: list[str],
    fallback_lot_index: int = 4,
    fallback_wafer_index: int = 5,
) -> tuple[str, str]:
    """
    Find the lot id and wafer token in underscore-split file name tokens.

    The wafer token (``W<digits>``) anchors the search. Lot ids may
    themselves contain an underscore followed by a numeric suffix
    (``LOT01_2``), so if the token right before the anchor is all digits the
    lot is the two preceding tokens joined back together. Without an anchor
    the fixed positions are used.

    Returns:
        (lot id, raw wafer token)
    """
    for i, token in enumerate(tokens):
        if i == 0 or not _WAFER_TOKEN.match(token):
            continue
        previous = tokens[i - 1]
        if previous.isdigit() and i >= 2:
            return f"{tokens[i - 2]}_{previous}", token
        return previous, token

    lot = tokens[fallback_lot_index] if len(tokens) > fallback_lot_index else ""
    wafer = tokens[fallback_wafer_index] if len(tokens) > fallback_wafer_index else ""
    return lot, wafer
