from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import tzinfo
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


_STORE_PATH_ENV = "MOCK_STORE_PERSISTENCE_PATH"
_READINGS_PATH_ENV = "READINGS_PATH"
_CURRENT_PATH_ENV = "CURRENT_VALUES_PATH"
_WINDOW_LIMIT_ENV = "WINDOW_LIMIT"
_WINDOW_MAX_ENV = "WINDOW_MAX"
_DEVICE_TZ_ENV = "DEVICE_TIMEZONE"
_LEGACY_URL_ENV = "LEGACY_FEED_BASE_URL"
_LEGACY_CHANNEL_ENV = "LEGACY_FEED_CHANNEL_ID"
_LEGACY_KEY_ENV = "LEGACY_FEED_API_KEY"
_LEGACY_TIMEOUT_ENV = "LEGACY_FEED_TIMEOUT"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    store_persistence_path: Optional[str]
    readings_path: str
    current_values_path: str
    window_limit: int
    window_max: int
    device_timezone: str
    legacy_base_url: str
    legacy_channel_id: Optional[str]
    legacy_api_key: Optional[str]
    legacy_timeout: float
    log_level: str

    @property
    def device_tz(self) -> tzinfo:
        return ZoneInfo(self.device_timezone)


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_timezone(default: str) -> str:
    candidate = _read_str_env(_DEVICE_TZ_ENV, default)
    try:
        ZoneInfo(candidate)
    except (ZoneInfoNotFoundError, ValueError):
        return default
    return candidate


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    window_limit = _read_positive_int(_WINDOW_LIMIT_ENV, 96)
    return Settings(
        store_persistence_path=_read_optional_env(_STORE_PATH_ENV, "./tmp/telemetry_store.json"),
        readings_path=_read_str_env(_READINGS_PATH_ENV, "readings"),
        current_values_path=_read_str_env(_CURRENT_PATH_ENV, "CurrentValues"),
        window_limit=window_limit,
        window_max=max(_read_positive_int(_WINDOW_MAX_ENV, 500), window_limit),
        device_timezone=_read_timezone("UTC"),
        legacy_base_url=_read_str_env(_LEGACY_URL_ENV, "https://api.thingspeak.com"),
        legacy_channel_id=_read_optional_env(_LEGACY_CHANNEL_ENV, None),
        legacy_api_key=_read_optional_env(_LEGACY_KEY_ENV, None),
        legacy_timeout=_read_positive_float(_LEGACY_TIMEOUT_ENV, 10.0),
        log_level=_read_log_level("INFO"),
    )
