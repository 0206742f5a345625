"""
Configuration for the boundary clock.

ClockConfig is an immutable, validated pydantic model. Validation failures are
translated into ConfigurationError so callers deal with a single error family.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from timebeat.core.types import OverlapPolicy
from timebeat.errors.errors import ConfigurationError


class ClockConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    tick_interval_s: float = Field(
        default=1.0, gt=0, description="seconds between two samples (best-effort)"
    )
    overlap_policy: OverlapPolicy = Field(
        default=OverlapPolicy.QUEUE,
        description="handling of a tick that fires while a previous one still dispatches",
    )
    max_pending_ticks: int = Field(
        default=64, ge=1, description="queue bound for OverlapPolicy.QUEUE"
    )
    isolate_listener_errors: bool = Field(
        default=True,
        description="contain and log listener failures instead of propagating them",
    )

    @classmethod
    def build(cls, **values: Any) -> ClockConfig:
        """Validate values into a ClockConfig, raising ConfigurationError on failure."""
        try:
            return cls(**values)
        except ValidationError as e:
            errors = validation_error_parser(e)
            first = errors[0]
            raise ConfigurationError(
                f"Invalid clock configuration: {first['message']}",
                field=first["path"],
                value=values.get(first["path"]),
                component="clock_config",
                details={"errors": errors},
            ) from e


def validation_error_parser(error: ValidationError) -> list[dict[str, str]]:
    return [
        {
            "path": ".".join(map(str, err["loc"])),
            "message": err["msg"],
            "error_type": err["type"],
        }
        for err in error.errors()
    ]
