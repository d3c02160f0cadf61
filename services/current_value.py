"""One-shot read of the device's current-value node."""

from __future__ import annotations

import logging
from datetime import timezone, tzinfo
from typing import Optional

from datastore.events import TelemetryStore
from models.records import Reading, RecordValidationError
from services.normalizer import normalize

logger = logging.getLogger(__name__)

CURRENT_READING_ID = "current"


class CurrentValueFeed:
    def __init__(
        self,
        store: TelemetryStore,
        path: str = "CurrentValues",
        tz: tzinfo = timezone.utc,
    ) -> None:
        self.store = store
        self.path = path
        self.tz = tz

    def read(self) -> Optional[Reading | RecordValidationError]:
        """Return the current reading, ``None`` for an empty node, or the rejection.

        :class:`~datastore.events.TransportError` from the store propagates.
        """
        raw = self.store.get_value(self.path)
        if raw is None:
            return None
        result = normalize(raw, record_id=CURRENT_READING_ID, tz=self.tz)
        if isinstance(result, RecordValidationError):
            logger.warning(
                "Current value rejected: %s",
                result.describe(),
                extra={"path": self.path, "shape": result.shape, "fields": result.fields},
            )
        return result
