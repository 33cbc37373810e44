"""
Clock synchronization for record timestamps.

Equipment clocks drift; every row written to the store carries a corrected
wall-clock timestamp (``serv_ts``) derived from the record's local timestamp
through a process-wide adjustor. The offset may be updated at runtime by
whatever measures the drift.
"""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class ClockSyncAdjustor(Protocol):
    """Converts a local timestamp to the canonical wall clock."""

    def to_synchronized_wall_clock(self, local: datetime) -> datetime: ...


def truncate_to_second(ts: datetime) -> datetime:
    """Drop sub-second precision."""
    return ts.replace(microsecond=0)


class OffsetClockSync:
    """
    Adjustor applying a measured offset and an optional zone conversion.

    Args:
        offset: Correction added to the local clock
        utc_offset_hours: Target zone as a fixed UTC offset. When set, naive
            local timestamps are interpreted in the host zone and converted;
            the result is returned naive.
    """

    def __init__(
        self,
        offset: timedelta = timedelta(0),
        utc_offset_hours: Optional[float] = None,
    ):
        self._lock = threading.Lock()
        self._offset = offset
        self._target_tz = (
            timezone(timedelta(hours=utc_offset_hours))
            if utc_offset_hours is not None
            else None
        )

    @property
    def offset(self) -> timedelta:
        with self._lock:
            return self._offset

    def set_offset(self, offset: timedelta) -> None:
        """Replace the correction; takes effect for the next record."""
        with self._lock:
            self._offset = offset
        logger.info(f"Clock offset updated to {offset.total_seconds():+.3f}s")

    def to_synchronized_wall_clock(self, local: datetime) -> datetime:
        with self._lock:
            offset = self._offset

        corrected = local + offset
        if self._target_tz is not None:
            aware = corrected if corrected.tzinfo else corrected.astimezone()
            corrected = aware.astimezone(self._target_tz).replace(tzinfo=None)
        return corrected


def synchronized_timestamp(adjustor: ClockSyncAdjustor, local: datetime) -> datetime:
    """
    Corrected timestamp for one record.

    Truncation happens before and after adjustment so that re-processing
    the same record always yields the same second.
    """
    return truncate_to_second(
        adjustor.to_synchronized_wall_clock(truncate_to_second(local))
    )


# =============================================================================
# Process-wide Adjustor
# =============================================================================

_clock_lock = threading.Lock()
_clock: Optional[ClockSyncAdjustor] = None


def get_clock() -> ClockSyncAdjustor:
    """Return the process-wide adjustor, creating one from settings on first use."""
    global _clock
    with _clock_lock:
        if _clock is None:
            from ..config.settings import get_settings

            settings = get_settings()
            _clock = OffsetClockSync(
                offset=timedelta(seconds=settings.clock_offset_seconds),
                utc_offset_hours=settings.clock_utc_offset_hours,
            )
        return _clock


def set_clock(adjustor: Optional[ClockSyncAdjustor]) -> None:
    """Install the process-wide adjustor (None resets to the settings default)."""
    global _clock
    with _clock_lock:
        _clock = adjustor
