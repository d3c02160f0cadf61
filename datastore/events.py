"""Boundary types for the remote telemetry store."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol, Union


class TransportError(Exception):
    """The store's channel itself failed (permissions, connectivity, config)."""


@dataclass(frozen=True)
class StoreRecord:
    key: str
    raw: Any


@dataclass(frozen=True)
class BatchEvent:
    """Current contents of a watched range, newest first."""

    records: tuple[StoreRecord, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ErrorEvent:
    cause: TransportError


StoreEvent = Union[BatchEvent, ErrorEvent]
EventCallback = Callable[[StoreEvent], None]
Unsubscribe = Callable[[], None]


class TelemetryStore(Protocol):
    def subscribe(self, path: str, limit: int, on_event: EventCallback) -> Unsubscribe:
        ...

    def get_value(self, path: str) -> Optional[Any]:
        ...
