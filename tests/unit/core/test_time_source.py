"""
Unit tests for time sources.
"""

from datetime import datetime, timedelta, timezone

import pytest

from timebeat.core.clock import ManualTimeSource, SystemTimeSource
from timebeat.core.types import TimeMode
from timebeat.errors.errors import ClockError


class TestSystemTimeSource:
    """Tests for the wall-clock source."""

    def test_now_utc_is_aware_utc(self) -> None:
        now = SystemTimeSource().now_utc()
        assert now.utcoffset() == timedelta(0)

    def test_now_local_is_aware(self) -> None:
        now = SystemTimeSource().now_local()
        assert now.tzinfo is not None

    def test_mode_selects_zone(self) -> None:
        source = SystemTimeSource()
        assert source.now(TimeMode.GLOBAL).utcoffset() == timedelta(0)
        assert source.now(TimeMode.SYSTEM).utcoffset() == source.now_local().utcoffset()


class TestManualTimeSource:
    """Tests for the deterministic source."""

    @pytest.fixture
    def start(self) -> datetime:
        return datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def test_naive_start_is_utc(self) -> None:
        source = ManualTimeSource(datetime(2024, 1, 1, 12, 0, 0))
        assert source.now_utc() == datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def test_local_zone(self, start: datetime) -> None:
        source = ManualTimeSource(start, local_tz=timezone(timedelta(hours=-5)))
        assert source.now_local().hour == 7
        assert source.now(TimeMode.SYSTEM).hour == 7
        assert source.now(TimeMode.GLOBAL).hour == 12

    def test_advance_by(self, start: datetime) -> None:
        source = ManualTimeSource(start)
        assert source.advance_by(timedelta(minutes=5)) == start + timedelta(minutes=5)

    def test_advance_to_rejects_backward(self, start: datetime) -> None:
        source = ManualTimeSource(start)
        with pytest.raises(ClockError, match="cannot go backwards"):
            source.advance_to(start - timedelta(seconds=1))

    def test_advance_by_rejects_negative(self, start: datetime) -> None:
        source = ManualTimeSource(start)
        with pytest.raises(ClockError):
            source.advance_by(timedelta(seconds=-1))

    def test_set_time_moves_backward(self, start: datetime) -> None:
        source = ManualTimeSource(start)
        earlier = start - timedelta(hours=1)
        assert source.set_time(earlier) == earlier
        assert source.now_utc() == earlier
