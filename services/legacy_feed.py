"""Client for the legacy polling telemetry API."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timezone, tzinfo
from typing import Any, Dict, Mapping, Optional

import httpx

from datastore.events import TransportError
from models.records import Reading, RecordValidationError
from services.normalizer import RawShape, normalize
from services.window import apply as apply_window
from settings import get_settings

logger = logging.getLogger(__name__)


@dataclass
class LegacyFeedResult:
    readings: list[Reading] = field(default_factory=list)
    rejected: list[RecordValidationError] = field(default_factory=list)


def translate_entry(entry: Mapping[str, Any], channel: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy a feed entry, adding the channel location when the entry has none."""
    raw = dict(entry)
    has_own_location = raw.get("field6") not in (None, "") and raw.get("field7") not in (None, "")
    if not has_own_location:
        raw.setdefault("latitude", channel.get("latitude"))
        raw.setdefault("longitude", channel.get("longitude"))
    return raw


class LegacyFeedClient:
    """Synchronous request/response client for positional ``fieldN`` feeds."""

    def __init__(
        self,
        base_url: str,
        channel_id: str,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        tz: tzinfo = timezone.utc,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.channel_id = channel_id
        self.api_key = api_key
        self.tz = tz
        self._client = client or httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def fetch(self, results: int) -> LegacyFeedResult:
        payload = self._get_feed(results)
        channel = payload.get("channel") or {}
        feeds = payload.get("feeds") or []
        if not isinstance(channel, Mapping) or not isinstance(feeds, list):
            raise TransportError("Legacy feed returned an unexpected payload.")

        result = LegacyFeedResult()
        valid: list[Reading] = []
        for entry in feeds:
            raw = translate_entry(entry, channel) if isinstance(entry, Mapping) else entry
            outcome = normalize(raw, schema_hint=RawShape.polling, tz=self.tz)
            if isinstance(outcome, RecordValidationError):
                result.rejected.append(outcome)
                logger.warning(
                    "Skipping legacy entry: %s",
                    outcome.describe(),
                    extra={
                        "record_id": outcome.record_id,
                        "shape": outcome.shape,
                        "fields": outcome.fields,
                    },
                )
                continue
            valid.append(outcome)

        result.readings = apply_window(valid, results)
        return result

    def _get_feed(self, results: int) -> Dict[str, Any]:
        params: Dict[str, Any] = {"results": results}
        if self.api_key:
            params["api_key"] = self.api_key
        try:
            response = self._client.get(f"/channels/{self.channel_id}/feeds.json", params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            raise TransportError(
                f"Legacy feed request failed with status {exc.response.status_code}."
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Legacy feed request failed: {exc}") from exc
        except ValueError as exc:
            raise TransportError("Legacy feed returned a non-JSON body.") from exc
        if not isinstance(payload, dict):
            raise TransportError("Legacy feed returned an unexpected payload.")
        return payload


def build_default_legacy_client() -> Optional[LegacyFeedClient]:
    """Client for the configured channel, or ``None`` when no channel is set."""
    settings = get_settings()
    if not settings.legacy_channel_id:
        return None
    return LegacyFeedClient(
        base_url=settings.legacy_base_url,
        channel_id=settings.legacy_channel_id,
        api_key=settings.legacy_api_key,
        timeout=settings.legacy_timeout,
        tz=settings.device_tz,
    )
