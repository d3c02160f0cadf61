"""Domain models shared across services."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


REQUIRED_METRICS = ("temperature", "humidity", "co2", "pm2_5", "pm10")


def _is_finite_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


@dataclass(frozen=True, slots=True)
class Reading:
    """A validated sensor reading.

    Construction is the validation boundary: an instance always carries an
    aware timestamp and finite metrics, so downstream code never re-checks.
    """

    id: str
    timestamp: datetime
    temperature: float
    humidity: float
    co2: float
    pm2_5: float
    pm10: float
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id:
            raise ValueError("Reading id must be a non-empty string.")
        if not isinstance(self.timestamp, datetime) or self.timestamp.tzinfo is None:
            raise ValueError("Reading timestamp must be a timezone-aware datetime.")
        for name in REQUIRED_METRICS:
            if not _is_finite_number(getattr(self, name)):
                raise ValueError(f"Reading {name} must be a finite number.")
        for name in ("latitude", "longitude"):
            value = getattr(self, name)
            if value is not None and not _is_finite_number(value):
                raise ValueError(f"Reading {name} must be a finite number when present.")

    @property
    def location(self) -> Optional[tuple[float, float]]:
        if self.latitude is None or self.longitude is None:
            return None
        return (self.latitude, self.longitude)


@dataclass(frozen=True, slots=True)
class DecodeFailure:
    """A raw timestamp that could not be decoded into an instant."""

    raw: Any
    reason: str


@dataclass(frozen=True, slots=True)
class FieldProblem:
    field: str
    raw_value: Any
    reason: str

    def describe(self) -> str:
        return f"{self.field}: {self.reason} (got {self.raw_value!r})"


@dataclass(frozen=True, slots=True)
class RecordValidationError:
    """Every field-level problem found in one raw record.

    Returned by the normalizer rather than raised; one report is enough to
    diagnose a bad record.
    """

    record_id: Optional[str]
    shape: Optional[str]
    problems: tuple[FieldProblem, ...] = field(default_factory=tuple)

    @property
    def fields(self) -> tuple[str, ...]:
        return tuple(problem.field for problem in self.problems)

    def describe(self) -> str:
        return "; ".join(problem.describe() for problem in self.problems)
