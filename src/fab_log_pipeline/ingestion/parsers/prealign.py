"""
Prealignment log parser.

The prealigner appends one sample per wafer, e.g.::

    Xmm -0.123 Ymm 0.045 Notch 179.98 Time 03-07-24 14:05:09

Samples may be spread over several lines or several per line; the pattern
is matched over the whole text.
"""

import logging
import re

from ..base import PrealignSample
from ..timestamps import parse_prealign_time
from .common import to_decimal

logger = logging.getLogger(__name__)

SAMPLE_PATTERN = re.compile(
    r"Xmm\s*([-\d.]+)\s*Ymm\s*([-\d.]+)\s*Notch\s*([-\d.]+)\s*Time\s*([\d\-:\s]+)",
    re.IGNORECASE,
)


class PrealignParser:
    """
    Extracts `PrealignSample` records from appended log text.

    A sample whose time or numbers do not parse is dropped on its own.

    Usage:
        samples = PrealignParser().parse(text, eqpid="EQP01")
    """

    def __init__(self) -> None:
        self.dropped = 0

    def parse(self, text: str, eqpid: str) -> list[PrealignSample]:
        """Return the samples in `text`, ordered by capture time."""
        self.dropped = 0
        samples = []

        for match in SAMPLE_PATTERN.finditer(text):
            ts = parse_prealign_time(match.group(4))
            xmm = to_decimal(match.group(1))
            ymm = to_decimal(match.group(2))
            notch = to_decimal(match.group(3))

            if ts is None or xmm is None or ymm is None or notch is None:
                self.dropped += 1
                logger.debug(f"Dropped prealign sample: {match.group(0).strip()!r}")
                continue

            samples.append(
                PrealignSample(eqpid=eqpid, timestamp=ts, xmm=xmm, ymm=ymm, notch=notch)
            )

        samples.sort(key=lambda s: s.timestamp)
        return samples

