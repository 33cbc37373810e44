"""
Wafer-map file name parser.

Wafer-map images are uploaded as-is; only the capture time is read from
the name (``<yyyyMMdd>_<HHmmss>_...``).
"""

from datetime import datetime
from pathlib import PurePath
from typing import Optional, Union

from ..timestamps import parse_filename_stamp


def parse_wafer_map_timestamp(file_path: Union[str, PurePath]) -> Optional[datetime]:
    """Capture time from tokens 0 and 1 of the file name, or None."""
    tokens = PurePath(file_path).stem.split("_")
    if len(tokens) < 2:
        return None
    return parse_filename_stamp(tokens[0], tokens[1])
