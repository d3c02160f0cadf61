from __future__ import annotations

from datetime import datetime, timezone

import pytest

from datastore.events import TransportError
from datastore.mock_store import MockTelemetryStore
from models.records import Reading, RecordValidationError
from services.current_value import CurrentValueFeed


def test_reads_current_value_node() -> None:
    store = MockTelemetryStore()
    store.set_value(
        "CurrentValues",
        {
            "pm25": 12.5,
            "pm10": 22.0,
            "co2": 415,
            "temp": 25.1,
            "humidity": 45.0,
            "location": {"lat": 24.8607, "lng": 67.0011},
            "lastUpdated": "2024-03-15 10-30-00",
        },
    )

    result = CurrentValueFeed(store).read()

    assert isinstance(result, Reading)
    assert result.id == "current"
    assert result.timestamp == datetime(2024, 3, 15, 10, 30, tzinfo=timezone.utc)
    assert result.location == (24.8607, 67.0011)


def test_empty_node_returns_none() -> None:
    assert CurrentValueFeed(MockTelemetryStore()).read() is None


def test_invalid_node_returns_rejection(caplog) -> None:
    store = MockTelemetryStore()
    store.set_value("CurrentValues", {"temp": "hot", "lastUpdated": "2024-03-15 10:30:00"})

    result = CurrentValueFeed(store).read()

    assert isinstance(result, RecordValidationError)
    assert "temperature" in result.fields
    assert result.record_id == "current"
    assert any(record.name == "services.current_value" for record in caplog.records)


def test_store_failures_propagate() -> None:
    class BrokenStore(MockTelemetryStore):
        def get_value(self, path: str):
            raise TransportError("offline")

    with pytest.raises(TransportError):
        CurrentValueFeed(BrokenStore()).read()
