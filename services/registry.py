"""Independent live subscriptions keyed by window size."""

from __future__ import annotations

from datetime import timezone, tzinfo
from functools import lru_cache
from threading import Lock
from typing import Dict, Optional

from datastore.events import TelemetryStore
from datastore.mock_store import build_default_store
from services.subscription import LiveSubscription
from settings import get_settings


class SubscriptionRegistry:
    """Hands out one started subscription per requested limit.

    A widget asking for 24 readings and a chart asking for 96 each get their
    own subscription and rolling window; nothing is shared between them.
    """

    def __init__(
        self,
        store: TelemetryStore,
        path: str = "readings",
        tz: tzinfo = timezone.utc,
    ) -> None:
        self.store = store
        self.path = path
        self.tz = tz
        self._subscriptions: Dict[int, LiveSubscription] = {}
        self._lock = Lock()

    def get(self, limit: int) -> LiveSubscription:
        with self._lock:
            subscription = self._subscriptions.get(limit)
            if subscription is None:
                subscription = LiveSubscription(self.store, limit, path=self.path, tz=self.tz)
                self._subscriptions[limit] = subscription
                subscription.start()
            return subscription

    def active_limits(self) -> list[int]:
        with self._lock:
            return sorted(self._subscriptions)

    def close(self) -> None:
        with self._lock:
            subscriptions = list(self._subscriptions.values())
            self._subscriptions.clear()
        for subscription in subscriptions:
            subscription.stop()


@lru_cache
def build_default_registry(path: Optional[str] = None) -> SubscriptionRegistry:
    """Factory that wires the registry to the default store."""
    settings = get_settings()
    return SubscriptionRegistry(
        store=build_default_store(),
        path=settings.readings_path if path is None else path,
        tz=settings.device_tz,
    )
