from __future__ import annotations
import copy
import itertools
import json
import logging
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional

from datastore.events import (
    BatchEvent,
    ErrorEvent,
    EventCallback,
    StoreEvent,
    StoreRecord,
    TransportError,
    Unsubscribe,
)
from settings import get_settings

logger = logging.getLogger(__name__)


class _Subscriber:
    __slots__ = ("token", "path", "limit", "callback", "active")

    def __init__(self, token: int, path: str, limit: int, callback: EventCallback) -> None:
        self.token = token
        self.path = path
        self.limit = limit
        self.callback = callback
        self.active = True


class MockTelemetryStore:
    """In-process stand-in for the push-based telemetry store.

    Collections hold keyed raw records in write order; value nodes hold a
    single raw payload. Subscribers get the newest ``limit`` records of a
    collection on subscribe and after every write to it.
    """

    def __init__(self, persistence_path: Optional[Path] = None) -> None:
        self._collections: Dict[str, Dict[str, Any]] = {}
        self._values: Dict[str, Any] = {}
        self._subscribers: Dict[int, _Subscriber] = {}
        self._tokens = itertools.count(1)
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def put_record(self, path: str, key: str, raw: Any) -> None:
        with self._lock:
            records = self._collections.setdefault(path, {})
            records.pop(key, None)
            records[key] = copy.deepcopy(raw)
            self._persist()
            targets = [sub for sub in self._subscribers.values() if sub.path == path]
        for subscriber in targets:
            self._deliver(subscriber, self._batch_for(subscriber))

    def list_records(self, path: str) -> List[StoreRecord]:
        with self._lock:
            records = self._collections.get(path, {})
            return [StoreRecord(key=key, raw=copy.deepcopy(raw)) for key, raw in records.items()]

    def set_value(self, path: str, raw: Any) -> None:
        with self._lock:
            self._values[path] = copy.deepcopy(raw)
            self._persist()

    def get_value(self, path: str) -> Optional[Any]:
        with self._lock:
            return copy.deepcopy(self._values.get(path))

    def subscribe(self, path: str, limit: int, on_event: EventCallback) -> Unsubscribe:
        if limit <= 0:
            raise ValueError("Subscription limit must be positive.")
        with self._lock:
            subscriber = _Subscriber(next(self._tokens), path, limit, on_event)
            self._subscribers[subscriber.token] = subscriber
        logger.debug("Subscriber registered", extra={"path": path, "limit": limit})
        self._deliver(subscriber, self._batch_for(subscriber))

        def unsubscribe() -> None:
            with self._lock:
                subscriber.active = False
                self._subscribers.pop(subscriber.token, None)

        return unsubscribe

    def emit_error(self, path: str, cause: TransportError | str) -> None:
        """Push a transport failure to every subscriber of ``path``."""
        error = cause if isinstance(cause, TransportError) else TransportError(cause)
        with self._lock:
            targets = [sub for sub in self._subscribers.values() if sub.path == path]
        for subscriber in targets:
            self._deliver(subscriber, ErrorEvent(cause=error))

    def subscriber_count(self, path: Optional[str] = None) -> int:
        with self._lock:
            return sum(1 for sub in self._subscribers.values() if path in (None, sub.path))

    def _batch_for(self, subscriber: _Subscriber) -> BatchEvent:
        with self._lock:
            records = list(self._collections.get(subscriber.path, {}).items())
        newest = records[-subscriber.limit:]
        newest.reverse()
        return BatchEvent(
            records=tuple(StoreRecord(key=key, raw=copy.deepcopy(raw)) for key, raw in newest)
        )

    @staticmethod
    def _deliver(subscriber: _Subscriber, event: StoreEvent) -> None:
        if not subscriber.active:
            return
        subscriber.callback(event)

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = {"collections": self._collections, "values": self._values}
        self.persistence_path.write_text(json.dumps(payload, indent=2, sort_keys=False))

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            logger.warning(
                "Ignoring unreadable store snapshot",
                extra={"path": str(self.persistence_path)},
            )
            data = {}

        for path, records in (data.get("collections") or {}).items():
            if isinstance(records, dict):
                self._collections[path] = dict(records)
        values = data.get("values") or {}
        if isinstance(values, dict):
            self._values.update(values)


@lru_cache
def build_default_store(path: Optional[str] = None) -> MockTelemetryStore:
    settings = get_settings()
    store_path = settings.store_persistence_path if path is None else path
    persistence = Path(store_path) if store_path else None
    return MockTelemetryStore(persistence_path=persistence)
