"""
Unit tests for clock synchronization of record timestamps.
"""

from datetime import datetime, timedelta, timezone

from fab_log_pipeline.config.settings import Settings
from fab_log_pipeline.timesync import clock as clock_module
from fab_log_pipeline.timesync.clock import (
    OffsetClockSync,
    get_clock,
    set_clock,
    synchronized_timestamp,
    truncate_to_second,
)


class TestOffsetClockSync:
    """Tests for OffsetClockSync."""

    def test_applies_offset(self) -> None:
        adjustor = OffsetClockSync(offset=timedelta(seconds=-3))
        assert adjustor.to_synchronized_wall_clock(datetime(2024, 3, 7, 14, 5, 9)) == datetime(
            2024, 3, 7, 14, 5, 6
        )

    def test_offset_can_change_at_runtime(self) -> None:
        adjustor = OffsetClockSync()
        adjustor.set_offset(timedelta(minutes=1))

        assert adjustor.offset == timedelta(minutes=1)
        assert adjustor.to_synchronized_wall_clock(datetime(2024, 3, 7, 14, 5, 9)) == datetime(
            2024, 3, 7, 14, 6, 9
        )

    def test_zone_conversion_returns_naive(self) -> None:
        adjustor = OffsetClockSync(utc_offset_hours=9)
        local = datetime(2024, 3, 7, 5, 0, 0, tzinfo=timezone.utc)

        corrected = adjustor.to_synchronized_wall_clock(local)

        assert corrected == datetime(2024, 3, 7, 14, 0, 0)
        assert corrected.tzinfo is None


class TestSynchronizedTimestamp:
    """Tests for synchronized_timestamp."""

    def test_truncates_before_and_after(self) -> None:
        adjustor = OffsetClockSync(offset=timedelta(milliseconds=700))
        local = datetime(2024, 3, 7, 14, 5, 9, 600000)

        assert synchronized_timestamp(adjustor, local) == datetime(2024, 3, 7, 14, 5, 9)

    def test_truncate_to_second(self) -> None:
        assert truncate_to_second(datetime(2024, 1, 1, 0, 0, 0, 999999)).microsecond == 0


class TestProcessClock:
    """Tests for the process-wide adjustor."""

    def test_default_from_settings(self, monkeypatch) -> None:
        monkeypatch.setattr(
            "fab_log_pipeline.config.settings.get_settings",
            lambda: Settings(clock_offset_seconds=5.0),
        )

        adjustor = get_clock()

        assert isinstance(adjustor, OffsetClockSync)
        assert adjustor.offset == timedelta(seconds=5)
        assert get_clock() is adjustor

    def test_set_clock(self) -> None:
        custom = OffsetClockSync(offset=timedelta(hours=1))
        set_clock(custom)

        assert get_clock() is custom
        set_clock(None)
        assert clock_module._clock is None
