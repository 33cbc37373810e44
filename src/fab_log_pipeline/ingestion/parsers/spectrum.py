"""
Spectral scan parser.

Metadata comes from the file name, the spectrum from the body::

    20240307_140509_RCP_STEP_LOT123_W07_SLOT_A_B_3Exp.dat

    sR 400.0 65.0 0.4123
    sR 401.0 65.0 0.4130

Body lines start with the polarization marker followed by wavelength,
angle and value.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import PurePath
from typing import Optional, Union

from ..base import SpectrumScan
from ..timestamps import parse_filename_stamp
from .common import file_stem, resolve_lot_and_wafer, split_lines, to_float, to_int, wafer_digits

logger = logging.getLogger(__name__)

MIN_NAME_TOKENS = 10
POLARIZATION_MARKERS = ("sR", "uR")
SUMMARY_WAVELENGTH_NM = 633.0

_CLASS_SUFFIXES = (("exp", "EXP"), ("gen", "GEN"))


@dataclass(frozen=True)
class SpectrumFileMeta:
    """What the file name says about a scan."""

    timestamp: datetime
    lotid: str
    waferid: str
    point: int
    scan_class: str


def _point_and_class(last_token: str) -> Optional[tuple[int, str]]:
    """Point number and class of an ``<n>Exp``/``<n>Gen`` token; None for a bad number."""
    lowered = last_token.lower()
    for suffix, scan_class in _CLASS_SUFFIXES:
        if lowered.endswith(suffix):
            point = to_int(last_token[: -len(suffix)])
            if point is None:
                return None
            return point, scan_class
    return 0, "UNK"


def parse_spectrum_filename(file_path: Union[str, PurePath]) -> Optional[SpectrumFileMeta]:
    """File name metadata, or None when the name does not follow the layout."""
    tokens = file_stem(file_path).split("_")
    if len(tokens) < MIN_NAME_TOKENS:
        return None

    timestamp = parse_filename_stamp(tokens[0], tokens[1])
    if timestamp is None:
        return None

    lotid, wafer_token = resolve_lot_and_wafer(tokens)
    point_and_class = _point_and_class(tokens[-1])
    if point_and_class is None:
        logger.warning(f"Bad point number {tokens[-1]!r} in {file_path}")
        return None
    point, scan_class = point_and_class

    return SpectrumFileMeta(
        timestamp=timestamp,
        lotid=lotid,
        waferid=wafer_digits(wafer_token),
        point=point,
        scan_class=scan_class,
    )


@dataclass
class SpectrumBody:
    pol_type: str = ""
    angle: Optional[float] = None
    val_summary: Optional[float] = None
    wavelengths: list[float] = field(default_factory=list)
    values: list[float] = field(default_factory=list)


def parse_spectrum_body(text: str) -> SpectrumBody:
    """Collect the wavelength/value pairs; the first valid angle is kept."""
    body = SpectrumBody()
    closest = float("inf")

    for raw in split_lines(text):
        line = raw.strip()
        if not line.startswith(POLARIZATION_MARKERS):
            continue
        tokens = line.split()
        if len(tokens) < 4:
            continue

        body.pol_type = tokens[0]
        nm = to_float(tokens[1])
        value = to_float(tokens[3])
        if nm is None or value is None:
            continue

        if body.angle is None:
            body.angle = to_float(tokens[2])
        body.wavelengths.append(nm)
        body.values.append(value)

        distance = abs(nm - SUMMARY_WAVELENGTH_NM)
        if distance < closest:
            closest = distance
            body.val_summary = value

    return body


class SpectrumParser:
    """
    Builds the `SpectrumScan` of one scan file.

    Usage:
        scan = SpectrumParser().parse(path, text, eqpid="EQP01")
    """

    def parse(
        self,
        file_path: Union[str, PurePath],
        text: str,
        eqpid: str,
        meta: Optional[SpectrumFileMeta] = None,
    ) -> Optional[SpectrumScan]:
        """None when the name is malformed or the body has no samples."""
        meta = meta or parse_spectrum_filename(file_path)
        if meta is None:
            return None

        body = parse_spectrum_body(text)
        if not body.wavelengths:
            return None

        return SpectrumScan(
            eqpid=eqpid,
            timestamp=meta.timestamp,
            lotid=meta.lotid,
            waferid=meta.waferid,
            point=meta.point,
            scan_class=meta.scan_class,
            pol_type=body.pol_type,
            angle=body.angle,
            val_summary=body.val_summary,
            wavelengths=tuple(body.wavelengths),
            values=tuple(body.values),
        )
