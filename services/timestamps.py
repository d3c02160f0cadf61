"""Decoding of the timestamp encodings emitted by the sensor fleet."""

from __future__ import annotations

import re
from datetime import datetime, timezone, tzinfo
from typing import Any

from models.records import DecodeFailure

# Legacy firmware writes the time of day with hyphens: "2024-03-15 10-30-00".
_HYPHEN_TIME = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})[ T_](?P<hour>\d{2})-(?P<minute>\d{2})-(?P<second>\d{2})$"
)
_DATE_TIME = re.compile(
    r"^\d{4}-\d{2}-\d{2}[ T]\d{2}:\d{2}:\d{2}(\.\d{1,9})?(Z|[+-]\d{2}:\d{2})?$"
)
# REST document timestamps carry nanoseconds; datetime keeps microseconds.
_SUB_MICROSECOND = re.compile(r"(\.\d{6})\d+")


def normalize_encoding(value: str) -> str:
    """Rewrite hyphen-delimited time segments into colon form."""
    match = _HYPHEN_TIME.match(value)
    if match is None:
        return value
    return (
        f"{match.group('date')} "
        f"{match.group('hour')}:{match.group('minute')}:{match.group('second')}"
    )


def decode(raw: Any, tz: tzinfo = timezone.utc) -> datetime | DecodeFailure:
    """Decode ``raw`` into an aware UTC datetime.

    Strings without an offset are read as wall-clock time in ``tz``. Never
    raises; garbage input yields a :class:`DecodeFailure` carrying ``raw``.
    """
    if not isinstance(raw, str):
        return DecodeFailure(raw=raw, reason="timestamp is not a string")

    candidate = raw.strip()
    if not candidate:
        return DecodeFailure(raw=raw, reason="timestamp is empty")

    candidate = normalize_encoding(candidate)
    if not _DATE_TIME.match(candidate):
        return DecodeFailure(raw=raw, reason="unrecognized timestamp format")

    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"
    candidate = _SUB_MICROSECOND.sub(r"\1", candidate)

    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError:
        return DecodeFailure(raw=raw, reason="invalid calendar date or time")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)

    try:
        return parsed.astimezone(timezone.utc)
    except (ValueError, OverflowError):
        return DecodeFailure(raw=raw, reason="timestamp out of range")
