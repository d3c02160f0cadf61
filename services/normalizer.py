"""Normalization of raw telemetry records into canonical readings.

Raw records reach us in four wire shapes that evolved over the life of the
fleet. The shape is inferred from the record's structure, then every field
is resolved independently so that a rejected record reports all of its
problems at once.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from datetime import datetime, timezone, tzinfo
from enum import Enum
from typing import Any, Optional

from models.records import (
    REQUIRED_METRICS,
    DecodeFailure,
    FieldProblem,
    Reading,
    RecordValidationError,
)
from services.timestamps import decode


class RawShape(str, Enum):
    """Wire shapes understood by :func:`normalize`."""

    flat = "flat"
    wrapped = "wrapped"
    typed = "typed"
    polling = "polling"


_TYPED_TAGS = ("doubleValue", "integerValue", "stringValue", "timestampValue")
_NUMERIC_TAGS = ("doubleValue", "integerValue", "value", "stringValue")
_TEXT_TAGS = ("stringValue", "timestampValue", "value")

_METRIC_KEYS: dict[str, tuple[str, ...]] = {
    "temperature": ("temp", "temperature"),
    "humidity": ("humidity",),
    "co2": ("co2",),
    "pm2_5": ("pm25", "pm2_5"),
    "pm10": ("pm10",),
}
_TIMESTAMP_KEYS = ("timestamp", "lastUpdated", "created_at")
_ID_KEYS = ("id", "entry_id")

POLLING_FIELDS: dict[str, str] = {
    "field1": "temperature",
    "field2": "humidity",
    "field3": "co2",
    "field4": "pm2_5",
    "field5": "pm10",
    "field6": "latitude",
    "field7": "longitude",
}

_MISSING = object()
_MAX_UNWRAP_DEPTH = 3


class _FieldFault(Exception):
    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


def _is_polling_key(key: Any) -> bool:
    return isinstance(key, str) and key.startswith("field") and key[5:].isdigit()


def _unwrap_envelope(raw: Mapping[str, Any]) -> Mapping[str, Any]:
    fields = raw.get("fields")
    if isinstance(fields, Mapping):
        return fields
    return raw


def _metric_values(record: Mapping[str, Any]) -> list[Any]:
    values = []
    for aliases in _METRIC_KEYS.values():
        for key in aliases:
            if key in record:
                values.append(record[key])
    return values


def detect_shape(raw: Mapping[str, Any]) -> RawShape:
    """Infer the wire shape of ``raw`` from which fields are present."""
    if isinstance(raw.get("fields"), Mapping):
        return RawShape.typed
    if any(_is_polling_key(key) for key in raw):
        return RawShape.polling

    values = _metric_values(raw)
    mappings = [value for value in values if isinstance(value, Mapping)]
    if any(tag in value for value in mappings for tag in _TYPED_TAGS):
        return RawShape.typed
    if any("value" in value for value in mappings):
        return RawShape.wrapped
    return RawShape.flat


def _coerce_number(value: Any, depth: int = 0) -> float:
    if isinstance(value, Mapping):
        if depth >= _MAX_UNWRAP_DEPTH:
            raise _FieldFault("nested too deeply")
        for tag in _NUMERIC_TAGS:
            if tag in value:
                return _coerce_number(value[tag], depth + 1)
        raise _FieldFault("no numeric value in wrapper")
    if value is None:
        raise _FieldFault("missing")
    if isinstance(value, bool):
        raise _FieldFault("boolean is not a measurement")
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError as exc:
            raise _FieldFault("not finite") from exc
    elif isinstance(value, str):
        candidate = value.strip()
        if not candidate:
            raise _FieldFault("missing")
        try:
            number = float(candidate)
        except ValueError as exc:
            raise _FieldFault("not numeric") from exc
    else:
        raise _FieldFault(f"unsupported type {type(value).__name__}")

    if not math.isfinite(number):
        raise _FieldFault("not finite")
    return number


def _coerce_text(value: Any, depth: int = 0) -> Any:
    if isinstance(value, Mapping) and depth < _MAX_UNWRAP_DEPTH:
        for tag in _TEXT_TAGS:
            if tag in value:
                return _coerce_text(value[tag], depth + 1)
    return value


def _lookup(record: Mapping[str, Any], keys: tuple[str, ...]) -> tuple[str, Any]:
    for key in keys:
        if key in record:
            return key, record[key]
    return keys[0], _MISSING


def _optional_number(value: Any) -> Optional[float]:
    if value is _MISSING:
        return None
    try:
        return _coerce_number(value)
    except _FieldFault:
        return None


def _location_legs(record: Mapping[str, Any], shape: RawShape) -> tuple[Any, Any]:
    if shape is RawShape.polling:
        latitude = record.get("field6", _MISSING)
        longitude = record.get("field7", _MISSING)
        if _optional_number(latitude) is not None and _optional_number(longitude) is not None:
            return latitude, longitude
        return record.get("latitude", _MISSING), record.get("longitude", _MISSING)

    location = record.get("location", _MISSING)
    if isinstance(location, Mapping):
        map_value = location.get("mapValue")
        if isinstance(map_value, Mapping) and isinstance(map_value.get("fields"), Mapping):
            location = map_value["fields"]
        _, latitude = _lookup(location, ("lat", "latitude"))
        _, longitude = _lookup(location, ("lng", "lon", "longitude"))
        return latitude, longitude
    return record.get("latitude", _MISSING), record.get("longitude", _MISSING)


def resolve_location(
    record: Mapping[str, Any], shape: RawShape
) -> tuple[Optional[float], Optional[float]]:
    """Return the coordinate pair, or ``(None, None)``.

    Partial pairs, non-finite legs and the ``(0, 0)`` pair reported by
    unconfigured GPS modules all count as absent.
    """
    raw_latitude, raw_longitude = _location_legs(record, shape)
    latitude = _optional_number(raw_latitude)
    longitude = _optional_number(raw_longitude)
    if latitude is None or longitude is None:
        return None, None
    if latitude == 0 and longitude == 0:
        return None, None
    return latitude, longitude


def _resolve_id(
    record: Mapping[str, Any],
    raw: Mapping[str, Any],
    record_id: Any,
    shape: RawShape,
) -> Optional[str]:
    candidates = [record_id]
    candidates.extend(raw.get(key) for key in _ID_KEYS)
    candidates.extend(record.get(key) for key in _ID_KEYS)
    document_name = raw.get("name")
    if shape is RawShape.typed and isinstance(document_name, str):
        # REST documents carry their key as the last segment of the resource name.
        candidates.append(document_name.rsplit("/", 1)[-1])
    for candidate in candidates:
        candidate = _coerce_text(candidate)
        if isinstance(candidate, bool) or candidate is None:
            continue
        if isinstance(candidate, (str, int)):
            text = str(candidate).strip()
            if text:
                return text
    return None


def normalize(
    raw: Any,
    record_id: Optional[str] = None,
    schema_hint: Optional[RawShape] = None,
    tz: tzinfo = timezone.utc,
) -> Reading | RecordValidationError:
    """Validate one raw record and build a :class:`Reading` from it.

    ``record_id`` is the store key; when omitted the record's own ``id`` or
    ``entry_id`` is used. ``schema_hint`` skips shape detection.
    """
    if not isinstance(raw, Mapping):
        return RecordValidationError(
            record_id=record_id,
            shape=None,
            problems=(FieldProblem("record", raw, "record is not a mapping"),),
        )

    shape = schema_hint if schema_hint is not None else detect_shape(raw)
    record = _unwrap_envelope(raw) if shape is RawShape.typed else raw
    problems: list[FieldProblem] = []
    metrics: dict[str, float] = {}

    if shape is RawShape.polling:
        metric_keys = {
            metric: (key,)
            for key, metric in POLLING_FIELDS.items()
            if metric in REQUIRED_METRICS
        }
        timestamp_keys: tuple[str, ...] = ("created_at",)
    else:
        metric_keys = _METRIC_KEYS
        timestamp_keys = _TIMESTAMP_KEYS

    for metric in REQUIRED_METRICS:
        _, value = _lookup(record, metric_keys[metric])
        if value is _MISSING:
            problems.append(FieldProblem(metric, None, "missing"))
            continue
        try:
            metrics[metric] = _coerce_number(value)
        except _FieldFault as fault:
            problems.append(FieldProblem(metric, value, fault.reason))

    _, raw_timestamp = _lookup(record, timestamp_keys)
    timestamp: Optional[datetime] = None
    if raw_timestamp is _MISSING:
        problems.append(FieldProblem("timestamp", None, "missing"))
    else:
        decoded = decode(_coerce_text(raw_timestamp), tz=tz)
        if isinstance(decoded, DecodeFailure):
            problems.append(FieldProblem("timestamp", raw_timestamp, decoded.reason))
        else:
            timestamp = decoded

    identity = _resolve_id(record, raw, record_id, shape)
    if identity is None and timestamp is not None:
        identity = timestamp.isoformat()

    if problems:
        return RecordValidationError(
            record_id=identity,
            shape=shape.value,
            problems=tuple(problems),
        )

    latitude, longitude = resolve_location(record, shape)
    assert timestamp is not None and identity is not None
    return Reading(
        id=identity,
        timestamp=timestamp,
        latitude=latitude,
        longitude=longitude,
        **metrics,
    )
