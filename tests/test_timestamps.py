"""Unit tests for timestamp decoding."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from models.records import DecodeFailure
from services.timestamps import decode, normalize_encoding


def test_colon_and_hyphen_forms_decode_to_same_instant() -> None:
    colon = decode("2024-03-15 10:30:00")
    hyphen = decode("2024-03-15 10-30-00")

    assert colon == datetime(2024, 3, 15, 10, 30, tzinfo=timezone.utc)
    assert hyphen == colon


@pytest.mark.parametrize(
    "raw",
    [
        "2024-03-15 10:30:00",
        "2024-03-15 10-30-00",
        "2024-03-15_10-30-00",
        "2024-03-15T10:30:00",
        "2024-03-15T10:30:00Z",
        "2024-03-15T12:30:00+02:00",
        " 2024-03-15 10:30:00 ",
    ],
)
def test_supported_encodings(raw: str) -> None:
    assert decode(raw) == datetime(2024, 3, 15, 10, 30, tzinfo=timezone.utc)


def test_fractional_seconds_are_kept() -> None:
    decoded = decode("2024-03-15T10:30:00.250Z")

    assert decoded == datetime(2024, 3, 15, 10, 30, 0, 250000, tzinfo=timezone.utc)


def test_nanosecond_fractions_truncate_to_microseconds() -> None:
    decoded = decode("2024-03-15T10:30:00.123456789Z")

    assert decoded == datetime(2024, 3, 15, 10, 30, 0, 123456, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "raw, tz",
    [
        ("9999-12-31T23:59:59-05:00", timezone.utc),
        ("0001-01-01T00:00:00+05:00", timezone.utc),
        ("0001-01-01 00:00:00", timezone(timedelta(hours=5))),
        ("9999-12-31 23:59:59", timezone(timedelta(hours=-5))),
    ],
)
def test_instants_beyond_datetime_range_fail(raw: str, tz) -> None:
    result = decode(raw, tz=tz)

    assert isinstance(result, DecodeFailure)
    assert result.raw == raw
    assert result.reason == "timestamp out of range"


def test_naive_strings_use_device_timezone_for_every_encoding() -> None:
    karachi = timezone(timedelta(hours=5))

    colon = decode("2024-03-15 10:30:00", tz=karachi)
    hyphen = decode("2024-03-15 10-30-00", tz=karachi)

    assert colon == hyphen == datetime(2024, 3, 15, 5, 30, tzinfo=timezone.utc)
    assert colon.tzinfo == timezone.utc  # type: ignore[union-attr]


def test_explicit_offset_wins_over_device_timezone() -> None:
    decoded = decode("2024-03-15T10:30:00Z", tz=timezone(timedelta(hours=5)))

    assert decoded == datetime(2024, 3, 15, 10, 30, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "raw",
    [
        "",
        "   ",
        "2024-03-15",
        "2024-03-15 10:30",
        "2024-03-15 10-30",
        "2024-03-15 10:30:00:00",
        "2024-13-15 10:30:00",
        "2024-02-30 10:30:00",
        "2024-03-15 25:00:00",
        "2024-03-15 aa:bb:cc",
        "yesterday",
        "1710498600",
        "9999-12-31T23:59:59-05:00",
        "0001-01-01T00:00:00+05:00",
        "2024-03-15T10:30:00.1234567890Z",
    ],
)
def test_malformed_strings_return_failure(raw: str) -> None:
    result = decode(raw)

    assert isinstance(result, DecodeFailure)
    assert result.raw == raw
    assert result.reason


@pytest.mark.parametrize("raw", [None, 1710498600, 12.5, {"stringValue": "2024-03-15 10:30:00"}])
def test_non_string_input_returns_failure(raw) -> None:
    result = decode(raw)

    assert isinstance(result, DecodeFailure)
    assert result.raw == raw
    assert result.reason == "timestamp is not a string"


def test_normalize_encoding_only_touches_hyphenated_time() -> None:
    assert normalize_encoding("2024-03-15 10-30-00") == "2024-03-15 10:30:00"
    assert normalize_encoding("2024-03-15_08-05-09") == "2024-03-15 08:05:09"
    assert normalize_encoding("2024-03-15 10:30:00") == "2024-03-15 10:30:00"
    assert normalize_encoding("not-a-date") == "not-a-date"
