"""
Custom exceptions for timebeat.

Exception hierarchy:
- TimebeatError (base)
  - ClockError: invalid use of a clock or time source
  - ConfigurationError: invalid configuration
  - DurationError: duration parsing failures (also a ValueError)
    - NoMatchError: nothing actionable in the input
    - NegativeDurationError: a decrement would go below zero
    - DurationOverflowError: a quantity does not fit a timedelta
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Optional


class TimebeatError(Exception):
    """Base exception for all timebeat errors."""

    def __init__(
        self,
        message: str,
        *,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.component = component
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.component:
            parts.append(f"[component={self.component}]")
        if self.details:
            parts.append(f"[details={self.details}]")
        return " ".join(parts)


# --- Clock ---


class ClockError(TimebeatError):
    """Raised when a clock operation would violate its invariants (e.g., going backward)."""


class ConfigurationError(TimebeatError):
    """Raised when configuration is invalid."""

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.field = field
        self.value = value
        details = details or {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, component=component, details=details)


# --- Parsing ---


class DurationError(TimebeatError, ValueError):
    """Base class for duration parsing failures."""

    def __init__(
        self,
        message: str,
        *,
        input: Optional[str] = None,
        component: Optional[str] = "duration_parser",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.input = input
        details = details or {}
        if input is not None:
            details["input"] = input
        super().__init__(message, component=component, details=details)


class NoMatchError(DurationError):
    """Raised when the input holds neither a literal duration nor a known unit token."""


class NegativeDurationError(DurationError):
    """Raised when decrementing would produce a negative duration."""

    def __init__(
        self,
        message: str,
        *,
        base: timedelta,
        parsed: timedelta,
        input: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.base = base
        self.parsed = parsed
        details = details or {}
        details["base"] = str(base)
        details["parsed"] = str(parsed)
        super().__init__(message, input=input, details=details)


class DurationOverflowError(DurationError):
    """Raised when a parsed quantity exceeds what a timedelta can hold."""
