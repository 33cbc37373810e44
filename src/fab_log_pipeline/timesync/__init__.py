"""Clock synchronization for corrected record timestamps."""

from .clock import (
    ClockSyncAdjustor,
    OffsetClockSync,
    get_clock,
    set_clock,
    synchronized_timestamp,
    truncate_to_second,
)

__all__ = [
    "ClockSyncAdjustor",
    "OffsetClockSync",
    "get_clock",
    "set_clock",
    "synchronized_timestamp",
    "truncate_to_second",
]
