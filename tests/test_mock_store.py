"""Unit tests for the in-process telemetry store."""

from __future__ import annotations

import json
from typing import List

import pytest

from datastore.events import BatchEvent, ErrorEvent, StoreEvent, TransportError
from datastore.mock_store import MockTelemetryStore


def _collect(events: List[StoreEvent]):
    return events.append


def test_subscribe_delivers_initial_snapshot_newest_first() -> None:
    store = MockTelemetryStore()
    for index in range(5):
        store.put_record("readings", f"k{index}", {"n": index})
    events: List[StoreEvent] = []

    store.subscribe("readings", 3, _collect(events))

    assert len(events) == 1
    batch = events[0]
    assert isinstance(batch, BatchEvent)
    assert [record.key for record in batch.records] == ["k4", "k3", "k2"]


def test_writes_push_fresh_batches_to_matching_path_only() -> None:
    store = MockTelemetryStore()
    readings_events: List[StoreEvent] = []
    other_events: List[StoreEvent] = []
    store.subscribe("readings", 10, _collect(readings_events))
    store.subscribe("other", 10, _collect(other_events))

    store.put_record("readings", "a", {"n": 1})
    store.put_record("readings", "b", {"n": 2})

    assert len(readings_events) == 3
    assert len(other_events) == 1
    last = readings_events[-1]
    assert isinstance(last, BatchEvent)
    assert [record.key for record in last.records] == ["b", "a"]


def test_rewriting_a_key_moves_it_to_newest() -> None:
    store = MockTelemetryStore()
    store.put_record("readings", "a", {"n": 1})
    store.put_record("readings", "b", {"n": 2})
    store.put_record("readings", "a", {"n": 3})

    records = store.list_records("readings")

    assert [(record.key, record.raw["n"]) for record in records] == [("b", 2), ("a", 3)]


def test_unsubscribe_stops_delivery_and_is_idempotent() -> None:
    store = MockTelemetryStore()
    events: List[StoreEvent] = []
    unsubscribe = store.subscribe("readings", 10, _collect(events))

    unsubscribe()
    unsubscribe()
    store.put_record("readings", "a", {"n": 1})
    store.emit_error("readings", "boom")

    assert len(events) == 1
    assert store.subscriber_count() == 0


def test_emit_error_wraps_plain_messages() -> None:
    store = MockTelemetryStore()
    events: List[StoreEvent] = []
    store.subscribe("readings", 10, _collect(events))

    store.emit_error("readings", "permission denied")

    error = events[-1]
    assert isinstance(error, ErrorEvent)
    assert isinstance(error.cause, TransportError)
    assert str(error.cause) == "permission denied"


def test_delivered_records_are_copies() -> None:
    store = MockTelemetryStore()
    raw = {"temp": {"value": 1.0}}
    store.put_record("readings", "a", raw)
    raw["temp"]["value"] = 99.0
    events: List[StoreEvent] = []

    store.subscribe("readings", 1, _collect(events))

    batch = events[0]
    assert isinstance(batch, BatchEvent)
    assert batch.records[0].raw == {"temp": {"value": 1.0}}


def test_value_nodes_round_trip() -> None:
    store = MockTelemetryStore()

    assert store.get_value("CurrentValues") is None
    store.set_value("CurrentValues", {"temp": 21.0})

    assert store.get_value("CurrentValues") == {"temp": 21.0}


def test_subscribe_rejects_non_positive_limit() -> None:
    store = MockTelemetryStore()

    with pytest.raises(ValueError):
        store.subscribe("readings", 0, lambda _event: None)


def test_persists_to_disk_and_reloads(tmp_path) -> None:
    path = tmp_path / "store.json"
    store = MockTelemetryStore(persistence_path=path)
    store.put_record("readings", "a", {"n": 1})
    store.put_record("readings", "b", {"n": 2})
    store.set_value("CurrentValues", {"temp": 21.0})

    payload = json.loads(path.read_text())
    assert list(payload["collections"]["readings"]) == ["a", "b"]

    reloaded = MockTelemetryStore(persistence_path=path)
    assert [record.key for record in reloaded.list_records("readings")] == ["a", "b"]
    assert reloaded.get_value("CurrentValues") == {"temp": 21.0}


def test_unreadable_snapshot_is_ignored(tmp_path) -> None:
    path = tmp_path / "store.json"
    path.write_text("{not json")

    store = MockTelemetryStore(persistence_path=path)

    assert store.list_records("readings") == []
