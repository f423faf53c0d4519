"""Structural and semantic checks on an ingestion batch."""
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from pydantic import Field, ValidationError, field_validator
from pydantic_core import PydanticCustomError

from .models import CamelModel, TelemetryEventIn, as_utc

MAX_NAME_LENGTH = 100

# Pydantic error types reworded for API clients
_MESSAGES = {
    "missing": "Is required.",
    "string_too_short": "Must not be empty.",
    "finite_number": "Must be a finite number.",
}


@dataclass(frozen=True)
class Violation:
    field: str
    message: str


@dataclass(frozen=True)
class ValidationResult:
    violations: tuple[Violation, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.violations

    def to_errors(self) -> list[dict[str, str]]:
        return [{"field": v.field, "message": v.message} for v in self.violations]


class CheckedEvent(CamelModel):
    """The rules a stored event must satisfy."""

    timestamp: datetime
    source: str = Field(min_length=1, max_length=MAX_NAME_LENGTH)
    metric_name: str = Field(min_length=1, max_length=MAX_NAME_LENGTH)
    metric_value: float = Field(allow_inf_nan=False)

    @field_validator("timestamp")
    @classmethod
    def representable_in_utc(cls, value: datetime) -> datetime:
        try:
            return as_utc(value)
        except OverflowError:
            raise PydanticCustomError("utc_range", "Must be representable in UTC.")

    @field_validator("source", "metric_name")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise PydanticCustomError("blank", "Must not be empty.")
        return value


def _violations(prefix: str, error: ValidationError) -> list[Violation]:
    return [
        Violation(
            f"{prefix}.{err['loc'][0]}" if err["loc"] else prefix,
            _MESSAGES.get(err["type"], err["msg"]),
        )
        for err in error.errors()
    ]


def validate_batch(events: Sequence[TelemetryEventIn] | None) -> ValidationResult:
    """
    Validate a batch of candidate events.

    Every violation in the batch is reported, each naming the offending
    field path (``events[2].metricName``). The function has no side effects.

    Args:
        events: Candidate events as decoded from the request body

    Returns:
        ValidationResult, valid when no violation was found
    """
    if not events:
        return ValidationResult((Violation("events", "At least one event is required."),))

    violations: list[Violation] = []
    for i, event in enumerate(events):
        try:
            CheckedEvent.model_validate(event.model_dump(by_alias=True, exclude_none=True))
        except ValidationError as e:
            violations.extend(_violations(f"events[{i}]", e))

    return ValidationResult(tuple(violations))
