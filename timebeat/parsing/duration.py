"""
Natural-language duration parsing.

parse_duration() turns text such as "2 hours and 30 minutes" or "1h30m" into a
timedelta. resolve_instant() applies such a duration to a reference instant.

Grammar: <digits> <unit letters> [and|,] repeated; whitespace between the parts
is optional. Tokens whose unit is not in the resolver table are ignored, so
noisy input ("please wait 5 foo 2 hours") still yields what it can.

Before tokenizing, the whole input is tried as a literal duration
("[d.]hh:mm[:ss[.fffffff]]", or a bare integer meaning whole days).
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone
from types import MappingProxyType
from typing import Callable, Final, Mapping, Optional

from timebeat.core.types import DurationToken, ParseOptions, ResolvedInstant, ResolveOperator
from timebeat.errors.errors import (
    DurationOverflowError,
    NegativeDurationError,
    NoMatchError,
)

logger = logging.getLogger(__name__)

ZERO: Final[timedelta] = timedelta(0)

# Months are fixed 30-day blocks, not calendar months.
DAYS_PER_MONTH: Final[int] = 30
DAYS_PER_WEEK: Final[int] = 7

Resolver = Callable[[int], timedelta]

# -------- Resolver table ------------------------------------------------------


def _seconds(quantity: int) -> timedelta:
    return timedelta(seconds=quantity)


def _minutes(quantity: int) -> timedelta:
    return timedelta(minutes=quantity)


def _hours(quantity: int) -> timedelta:
    return timedelta(hours=quantity)


def _days(quantity: int) -> timedelta:
    return timedelta(days=quantity)


def _weeks(quantity: int) -> timedelta:
    return timedelta(days=quantity * DAYS_PER_WEEK)


def _months(quantity: int) -> timedelta:
    return timedelta(days=quantity * DAYS_PER_MONTH)


UNIT_SPELLINGS: Final[dict[Resolver, tuple[str, ...]]] = {
    _seconds: ("second", "seconds", "sec", "s"),
    _minutes: ("minute", "minutes", "min", "m"),
    _hours: ("hour", "hours", "h"),
    _days: ("day", "days", "d"),
    _weeks: ("week", "weeks", "w"),
    _months: ("month", "months"),
}


def build_resolvers(
    spellings: Mapping[Resolver, tuple[str, ...]] = UNIT_SPELLINGS,
) -> Mapping[str, Resolver]:
    """Build a read-only unit-name -> resolver mapping."""
    table: dict[str, Resolver] = {}
    for resolver, names in spellings.items():
        for name in names:
            table[name.lower()] = resolver
    return MappingProxyType(table)


DEFAULT_RESOLVERS: Final[Mapping[str, Resolver]] = build_resolvers()

# -------- Grammar -------------------------------------------------------------

_TOKEN_RE: Final[re.Pattern[str]] = re.compile(r"(\d+)\s*([a-z]+)\s*(?:and|,)?\s*")

_LITERAL_RE: Final[re.Pattern[str]] = re.compile(
    r"^(?:(?P<days>\d+)\.)?(?P<hours>\d{1,2}):(?P<minutes>\d{1,2})"
    r"(?::(?P<seconds>\d{1,2})(?:\.(?P<fraction>\d{1,7}))?)?$"
)
_DAYS_ONLY_RE: Final[re.Pattern[str]] = re.compile(r"^\d+$")


def parse_literal(text: str) -> Optional[timedelta]:
    """
    Parse a literal duration, or return None if text is not one.

    Accepted: "hh:mm", "hh:mm:ss", "hh:mm:ss.fffffff", each optionally
    prefixed by "d.", and a bare integer of days. Hours must be < 24,
    minutes and seconds < 60. The fraction has up to seven digits
    (100ns ticks) and is truncated to microseconds.
    """
    text = text.strip()
    if _DAYS_ONLY_RE.match(text):
        return _checked(lambda: timedelta(days=_quantity(text, text)), text)

    m = _LITERAL_RE.match(text)
    if m is None:
        return None

    hours = int(m.group("hours"))
    minutes = int(m.group("minutes"))
    seconds = int(m.group("seconds") or 0)
    if hours > 23 or minutes > 59 or seconds > 59:
        return None

    fraction = m.group("fraction") or ""
    microseconds = int(fraction.ljust(7, "0")) // 10 if fraction else 0
    days = _quantity(m.group("days") or "0", text)
    return _checked(
        lambda: timedelta(
            days=days,
            hours=hours,
            minutes=minutes,
            seconds=seconds,
            microseconds=microseconds,
        ),
        text,
    )


def _quantity(digits: str, text: str) -> int:
    try:
        return int(digits)
    except ValueError as e:
        # int() refuses digit strings past sys.get_int_max_str_digits()
        raise DurationOverflowError(
            f"Quantity has too many digits ({len(digits)})", input=text
        ) from e


def _checked(build: Callable[[], timedelta], text: str) -> timedelta:
    try:
        return build()
    except OverflowError as e:
        raise DurationOverflowError(
            "Duration exceeds the supported range", input=text
        ) from e


# -------- Parser --------------------------------------------------------------


class DurationParser:
    """
    Converts free-form text into a timedelta.

    The resolver table is read-only and shared; a parser holds no per-call
    state, so one instance can be used concurrently.
    """

    def __init__(self, resolvers: Mapping[str, Resolver] = DEFAULT_RESOLVERS) -> None:
        # private lower-cased copy; later changes to the caller's mapping do not leak in
        self._resolvers: Mapping[str, Resolver] = MappingProxyType(
            {k.lower(): v for k, v in resolvers.items()}
        )

    @property
    def resolvers(self) -> Mapping[str, Resolver]:
        return self._resolvers

    @property
    def units(self) -> frozenset[str]:
        """All accepted unit spellings."""
        return frozenset(self._resolvers)

    def tokenize(self, text: str) -> list[DurationToken]:
        """Extract every (quantity, unit) pair, known unit or not."""
        text = text.lower().strip()
        return [
            DurationToken(quantity=_quantity(m.group(1), text), unit=m.group(2))
            for m in _TOKEN_RE.finditer(text)
        ]

    def parse_total(self, text: str) -> timedelta:
        """
        Parse text into a duration without applying any options.

        The literal fast path wins; otherwise known tokens are summed.
        Returns zero if nothing matched.
        """
        text = text.lower().strip()
        literal = parse_literal(text)
        if literal is not None:
            return literal

        total = ZERO
        for token in self.tokenize(text):
            resolver = self._resolvers.get(token.unit)
            if resolver is None:
                logger.debug(f"Ignoring unknown duration unit: {token.unit!r}")
                continue
            total = _checked(lambda: total + resolver(token.quantity), text)
        return total

    def parse(
        self,
        text: str,
        options: ParseOptions = ParseOptions.NONE,
        base: timedelta = ZERO,
    ) -> timedelta:
        """
        Get a duration from text, combined with a base duration.

        Args:
            text: Input such as "2 hours and 30 minutes" or "01:30:00"
            options: THROW_IF_NOTHING_MATCHED and/or DECREMENT_RESULT
            base: Starting duration; the parsed value is added to it, or
                subtracted from it under DECREMENT_RESULT

        Raises:
            NoMatchError: nothing matched and THROW_IF_NOTHING_MATCHED is set
            NegativeDurationError: base is negative, or DECREMENT_RESULT would
                take it below zero
            DurationOverflowError: the result does not fit a timedelta
        """
        if base < ZERO:
            raise NegativeDurationError(
                f"Base duration cannot be negative: {base}",
                base=base,
                parsed=ZERO,
                input=text,
            )

        parsed = self.parse_total(text)

        if parsed == ZERO and ParseOptions.THROW_IF_NOTHING_MATCHED in options:
            raise NoMatchError("Duration has no value; input has no matches.", input=text)

        if ParseOptions.DECREMENT_RESULT not in options:
            return _checked(lambda: base + parsed, text)

        if base < parsed:
            raise NegativeDurationError(
                f"Durations cannot be negative: base {base} - parsed {parsed} "
                f"would have resulted in one.",
                base=base,
                parsed=parsed,
                input=text,
            )
        return base - parsed

    def resolve(
        self,
        text: str,
        op: ResolveOperator,
        reference: Optional[datetime] = None,
    ) -> ResolvedInstant:
        """
        Apply the duration parsed from text to a reference instant.

        reference defaults to the current UTC time. `matched` is False when
        the parsed duration is zero, in which case the instant equals the
        reference.
        """
        span = self.parse_total(text)
        if reference is None:
            reference = datetime.now(timezone.utc)

        try:
            if ResolveOperator(op) == ResolveOperator.ADD:
                instant = reference + span
            else:
                instant = reference - span
        except OverflowError as e:
            raise DurationOverflowError(
                f"Resolved instant is out of range for reference {reference}",
                input=text,
            ) from e
        return ResolvedInstant(instant=instant, matched=span != ZERO)


default_parser: Final[DurationParser] = DurationParser()


def parse_duration(
    text: str,
    options: ParseOptions = ParseOptions.NONE,
    base: timedelta = ZERO,
) -> timedelta:
    """Parse text with the default parser. See DurationParser.parse."""
    return default_parser.parse(text, options, base)


def resolve_instant(
    text: str,
    op: ResolveOperator,
    reference: Optional[datetime] = None,
) -> ResolvedInstant:
    """Resolve text against reference with the default parser. See DurationParser.resolve."""
    return default_parser.resolve(text, op, reference)
