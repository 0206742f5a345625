"""
Time sources for the boundary clock.

now_utc() and now_local() provide the canonical notion of "current time" for a
BoundaryClock. Keeping them behind an interface lets the clock run against the
wall clock in production and against a manually driven source in tests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional

from timebeat.core.types import TimeMode
from timebeat.errors.errors import ClockError

# -------- Interface -----------------------------------------------------------


class TimeSource(ABC):
    """
    Source of the current instant.

    Both accessors return timezone-aware datetimes. now_local() is expressed in
    the system zone (or the zone a manual source was configured with).
    """

    @abstractmethod
    def now_utc(self) -> datetime:
        """Current time in UTC."""
        raise NotImplementedError

    @abstractmethod
    def now_local(self) -> datetime:
        """Current time in the local zone."""
        raise NotImplementedError

    def now(self, mode: TimeMode) -> datetime:
        """Current time as seen by a clock running in the given mode."""
        if mode == TimeMode.GLOBAL:
            return self.now_utc()
        return self.now_local()


# -------- SystemTimeSource ----------------------------------------------------


class SystemTimeSource(TimeSource):
    """
    Wall-clock source.

    No monotonic anchoring is done here: a boundary clock must observe system
    clock adjustments, since rollover is detected by field inequality.
    """

    def now_utc(self) -> datetime:
        return datetime.now(timezone.utc)

    def now_local(self) -> datetime:
        # astimezone() without argument attaches the system zone
        return datetime.now().astimezone()


# -------- ManualTimeSource ----------------------------------------------------


class ManualTimeSource(TimeSource):
    """
    Deterministic, manually-advanced source for tests and simulations.

    advance_to()/advance_by() only move forward. set_time() jumps anywhere,
    which is how a system clock adjustment is simulated.

    param start: initial instant. Naive datetimes are treated as UTC.
    param local_tz: zone used to derive now_local(); defaults to UTC.
    """

    def __init__(self, start: datetime, local_tz: Optional[tzinfo] = None) -> None:
        self._local_tz: tzinfo = local_tz or timezone.utc
        self._current: datetime = self._as_utc(start)

    @staticmethod
    def _as_utc(dt: datetime) -> datetime:
        if dt.tzinfo is None:
            return dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)

    def now_utc(self) -> datetime:
        return self._current

    def now_local(self) -> datetime:
        return self._current.astimezone(self._local_tz)

    def advance_to(self, dt: datetime) -> datetime:
        """
        Move time forward to exactly dt.

        Returns the new current time. Raises ClockError on backward moves.
        """
        target = self._as_utc(dt)
        if target < self._current:
            raise ClockError(
                f"ManualTimeSource: cannot go backwards: {target} < {self._current}",
                component="manual_time_source",
            )
        self._current = target
        return self._current

    def advance_by(self, delta: timedelta) -> datetime:
        """Move time forward by delta (>= 0)."""
        if delta < timedelta(0):
            raise ClockError(
                f"ManualTimeSource: cannot go backwards, delta < 0: {delta}",
                component="manual_time_source",
            )
        return self.advance_to(self._current + delta)

    def set_time(self, dt: datetime) -> datetime:
        """Jump to dt in either direction."""
        self._current = self._as_utc(dt)
        return self._current
