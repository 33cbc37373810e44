"""
Record parsers for equipment log formats.

Parsers never open files: they work on decoded text and file names and
return typed records from `fab_log_pipeline.ingestion.base`.

- Prealign log (regex over appended text)
- Error log (alarm rows plus ``KEY:,value`` equipment header)
- Flat-wafer result table (metadata + ``Point#`` table)
- Spectral scan (file name metadata + ``sR``/``uR`` body lines)
- Wafer-map image (capture time from the file name)
"""

from .common import resolve_lot_and_wafer, split_lines, wafer_digits
from .error_log import (
    ErrorLogParser,
    ErrorLogParseResult,
    equipment_info_from_metadata,
    parse_metadata,
    parse_row,
)
from .flat_wafer import FlatWaferParser, FlatWaferParseResult, normalize_header
from .prealign import PrealignParser
from .spectrum import (
    SpectrumFileMeta,
    SpectrumParser,
    parse_spectrum_body,
    parse_spectrum_filename,
)
from .wafer_map import parse_wafer_map_timestamp

__all__ = [
    # Helpers
    "split_lines",
    "resolve_lot_and_wafer",
    "wafer_digits",
    # Prealign
    "PrealignParser",
    # Error log
    "ErrorLogParser",
    "ErrorLogParseResult",
    "parse_row",
    "parse_metadata",
    "equipment_info_from_metadata",
    # Flat wafer
    "FlatWaferParser",
    "FlatWaferParseResult",
    "normalize_header",
    # Spectrum
    "SpectrumParser",
    "SpectrumFileMeta",
    "parse_spectrum_filename",
    "parse_spectrum_body",
    # Wafer map
    "parse_wafer_map_timestamp",
]
