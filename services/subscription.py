"""Live subscription that republishes normalized readings on every push."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timezone, tzinfo
from enum import Enum
from typing import Callable, List, Optional

from datastore.events import (
    BatchEvent,
    ErrorEvent,
    StoreEvent,
    TelemetryStore,
    TransportError,
    Unsubscribe,
)
from models.records import Reading, RecordValidationError
from services.normalizer import normalize
from services.window import RollingWindow

logger = logging.getLogger(__name__)


class SubscriptionStatus(str, Enum):
    """Lifecycle states of a live subscription."""

    idle = "idle"
    subscribing = "subscribing"
    streaming = "streaming"
    error = "error"


@dataclass(frozen=True)
class SubscriptionSnapshot:
    """What consumers see after each update."""

    readings: tuple[Reading, ...] = field(default_factory=tuple)
    loading: bool = False
    error: Optional[TransportError] = None
    status: SubscriptionStatus = SubscriptionStatus.idle
    rejected: tuple[RecordValidationError, ...] = field(default_factory=tuple)


Listener = Callable[[SubscriptionSnapshot], None]


class LiveSubscription:
    """Owns one store subscription and one rolling window.

    Events are processed synchronously inside the store callback, so a
    subscription never handles two batches at once.
    """

    def __init__(
        self,
        store: TelemetryStore,
        limit: int,
        path: str = "readings",
        tz: tzinfo = timezone.utc,
    ) -> None:
        if limit <= 0:
            raise ValueError("Subscription limit must be positive.")
        self.store = store
        self.limit = limit
        self.path = path
        self.tz = tz
        self.window = RollingWindow(limit)
        self._snapshot = SubscriptionSnapshot()
        self._listeners: List[Listener] = []
        self._unsubscribe: Optional[Unsubscribe] = None
        self._started = False
        self._stopped = False

    @property
    def snapshot(self) -> SubscriptionSnapshot:
        return self._snapshot

    @property
    def status(self) -> SubscriptionStatus:
        return self._snapshot.status

    @property
    def stopped(self) -> bool:
        return self._stopped

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def start(self) -> "LiveSubscription":
        if self._started or self._stopped:
            return self
        self._started = True
        self._publish(
            SubscriptionSnapshot(
                readings=self._snapshot.readings,
                loading=True,
                status=SubscriptionStatus.subscribing,
            )
        )
        logger.info("Opening subscription", extra={"path": self.path, "limit": self.limit})
        try:
            self._unsubscribe = self.store.subscribe(self.path, self.limit, self._handle_event)
        except TransportError as exc:
            self._handle_error(exc)
        return self

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            unsubscribe()
        self._listeners.clear()
        logger.info("Subscription stopped", extra={"path": self.path, "limit": self.limit})

    def _handle_event(self, event: StoreEvent) -> None:
        if self._stopped:
            return
        if isinstance(event, BatchEvent):
            self._handle_batch(event)
        elif isinstance(event, ErrorEvent):
            self._handle_error(event.cause)
        else:
            logger.warning(
                "Ignoring unknown store event",
                extra={"path": self.path, "invalid_value": type(event).__name__},
            )

    def _handle_batch(self, event: BatchEvent) -> None:
        valid: list[Reading] = []
        rejected: list[RecordValidationError] = []
        for record in event.records:
            result = normalize(record.raw, record_id=record.key, tz=self.tz)
            if isinstance(result, RecordValidationError):
                rejected.append(result)
                logger.warning(
                    "Skipping record: %s",
                    result.describe(),
                    extra={
                        "path": self.path,
                        "record_id": result.record_id or record.key,
                        "shape": result.shape,
                        "fields": result.fields,
                    },
                )
                continue
            valid.append(result)

        readings = tuple(self.window.apply(valid))
        logger.debug(
            "Published batch",
            extra={
                "path": self.path,
                "limit": self.limit,
                "reading_count": len(readings),
                "error_count": len(rejected),
            },
        )
        self._publish(
            SubscriptionSnapshot(
                readings=readings,
                loading=False,
                error=None,
                status=SubscriptionStatus.streaming,
                rejected=tuple(rejected),
            )
        )

    def _handle_error(self, cause: TransportError) -> None:
        logger.error(
            "Subscription transport failure",
            extra={"path": self.path, "limit": self.limit, "reason": str(cause)},
        )
        # Readings from the last good batch stay published.
        self._publish(
            SubscriptionSnapshot(
                readings=self._snapshot.readings,
                loading=False,
                error=cause,
                status=SubscriptionStatus.error,
                rejected=self._snapshot.rejected,
            )
        )

    def _publish(self, snapshot: SubscriptionSnapshot) -> None:
        self._snapshot = snapshot
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:  # noqa: BLE001 - listener errors are isolated
                logger.exception(
                    "Subscription listener failed",
                    extra={"path": self.path, "status": snapshot.status.value},
                )
