"""Ordering and bounding policy for published readings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from models.records import Reading


def _recency_key(reading: Reading) -> tuple:
    return (reading.timestamp, reading.id)


def apply(readings: Iterable[Reading], limit: int) -> list[Reading]:
    """Return at most ``limit`` readings, newest first.

    Ties on timestamp are broken by id descending, compared as text, so
    numeric entry ids order lexically ("9" above "10"). When an id occurs more
    than once only its most recent reading is kept.
    """
    if limit <= 0:
        return []

    ordered = sorted(readings, key=_recency_key, reverse=True)
    seen: set[str] = set()
    window: list[Reading] = []
    for reading in ordered:
        if reading.id in seen:
            continue
        seen.add(reading.id)
        window.append(reading)
        if len(window) == limit:
            break
    return window


def latest_location(readings: Iterable[Reading]) -> Optional[tuple[float, float]]:
    """Coordinates of the most recent reading that reports a location."""
    for reading in sorted(readings, key=_recency_key, reverse=True):
        if reading.location is not None:
            return reading.location
    return None


@dataclass(frozen=True)
class RollingWindow:
    limit: int

    def apply(self, readings: Iterable[Reading]) -> list[Reading]:
        return apply(readings, self.limit)
