"""
timebeat: boundary notifications and natural-language durations.

Components:
- BoundaryClock: samples time once per tick and notifies listeners when the
  second, minute, hour or day rolls over
- DurationParser: turns "2 hours and 30 minutes" into a timedelta, and
  resolves such durations against a reference instant

Usage:
    from timebeat import BoundaryClock, BoundaryKind, TimeMode, parse_duration

    async def on_minute(event):
        print(event.global_time)

    clock = BoundaryClock(TimeMode.GLOBAL)
    clock.subscribe(BoundaryKind.MINUTE, on_minute)

    parse_duration("1h30m")  # timedelta(seconds=5400)
"""

from timebeat.core.boundary_clock import BoundaryClock, detect_boundaries
from timebeat.core.clock import ManualTimeSource, SystemTimeSource, TimeSource
from timebeat.core.config import ClockConfig
from timebeat.core.registry import Subscription
from timebeat.core.types import (
    BoundaryEvent,
    BoundaryKind,
    ClockState,
    DispatchStats,
    DurationToken,
    OverlapPolicy,
    ParseOptions,
    ResolvedInstant,
    ResolveOperator,
    TimeMode,
    TimeSample,
)
from timebeat.errors.errors import (
    ClockError,
    ConfigurationError,
    DurationError,
    DurationOverflowError,
    NegativeDurationError,
    NoMatchError,
    TimebeatError,
)
from timebeat.parsing.duration import (
    DAYS_PER_MONTH,
    DEFAULT_RESOLVERS,
    DurationParser,
    parse_duration,
    parse_literal,
    resolve_instant,
)

__all__ = [
    # Clock
    "BoundaryClock",
    "ClockConfig",
    "Subscription",
    "detect_boundaries",
    "TimeSource",
    "SystemTimeSource",
    "ManualTimeSource",
    # Parsing
    "DurationParser",
    "parse_duration",
    "parse_literal",
    "resolve_instant",
    "DEFAULT_RESOLVERS",
    "DAYS_PER_MONTH",
    # Types
    "TimeMode",
    "BoundaryKind",
    "BoundaryEvent",
    "TimeSample",
    "ClockState",
    "OverlapPolicy",
    "DispatchStats",
    "ParseOptions",
    "ResolveOperator",
    "ResolvedInstant",
    "DurationToken",
    # Errors
    "TimebeatError",
    "ClockError",
    "ConfigurationError",
    "DurationError",
    "NoMatchError",
    "NegativeDurationError",
    "DurationOverflowError",
]
