"""
Shared types, enums, and data structures for timebeat.

Contains the value shapes consumed by the boundary clock and the duration
parser. Everything here is either an enum or an immutable record, except the
stats containers which are mutated only by their owning component.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum, Flag, auto
from typing import NamedTuple


class TimeMode(str, Enum):
    """Whether a clock samples system (local) time or global (UTC) time."""

    SYSTEM = "system"
    GLOBAL = "global"


class BoundaryKind(str, Enum):
    """
    Unit whose rollover triggered a notification.

    Declaration order is the dispatch order within a tick.
    """

    SECOND = "second"
    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"


class ClockState(str, Enum):
    """Lifecycle of a BoundaryClock: Running -> Stopping -> Stopped (or Failed)."""

    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    FAILED = "failed"


class OverlapPolicy(str, Enum):
    """What happens to a tick that fires while a previous tick is still dispatching."""

    QUEUE = "queue"  # serialize through a single dispatch queue
    DROP = "drop"  # skip the new tick
    CONCURRENT = "concurrent"  # dispatch in its own task


class ResolveOperator(str, Enum):
    """Whether a parsed duration is added to or removed from a reference instant."""

    ADD = "add"
    REMOVE = "remove"


class ParseOptions(Flag):
    """Independent parse flags; any combination is legal."""

    NONE = 0
    THROW_IF_NOTHING_MATCHED = auto()
    DECREMENT_RESULT = auto()


@dataclass(frozen=True, slots=True)
class TimeSample:
    """Decomposed calendar fields of one sampled instant."""

    second: int
    minute: int
    hour: int
    day: int
    taken_at: datetime

    @classmethod
    def from_datetime(cls, dt: datetime) -> TimeSample:
        return cls(
            second=dt.second,
            minute=dt.minute,
            hour=dt.hour,
            day=dt.day,
            taken_at=dt,
        )

    def field(self, kind: BoundaryKind) -> int:
        """Return the field compared for the given boundary kind."""
        return getattr(self, kind.value)


@dataclass(frozen=True, slots=True)
class BoundaryEvent:
    """Notification payload for one rolled-over unit."""

    kind: BoundaryKind
    global_time: datetime  # UTC, taken at dispatch time
    system_time: datetime  # local zone, taken at dispatch time
    tick: int  # sequence number of the producing tick


@dataclass(frozen=True, slots=True)
class DurationToken:
    """A (quantity, unit) pair extracted from text before unit resolution."""

    quantity: int
    unit: str


class ResolvedInstant(NamedTuple):
    """Result of resolving a duration string against a reference instant."""

    instant: datetime
    matched: bool


@dataclass
class DispatchStats:
    """Statistics for boundary dispatch."""

    ticks: int = 0
    dispatched_ticks: int = 0
    dropped_ticks: int = 0
    events: int = 0
    listener_errors: int = 0
    by_kind: dict[str, int] = field(default_factory=dict)
    last_tick_at: datetime | None = None
    last_dispatch_duration: timedelta | None = None
