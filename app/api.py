"""HTTP route definitions for the service."""

from __future__ import annotations

from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from app.schemas import (
    LegacyReadingsResponse,
    LocationResponse,
    ReadingPayload,
    ReadingsResponse,
    RecordAccepted,
    RecordSubmission,
    RejectedRecordPayload,
)
from datastore.events import TransportError
from datastore.mock_store import MockTelemetryStore, build_default_store
from models.records import RecordValidationError
from services.current_value import CurrentValueFeed
from services.legacy_feed import LegacyFeedClient, build_default_legacy_client
from services.registry import SubscriptionRegistry, build_default_registry
from services.window import latest_location
from settings import Settings, get_settings

router = APIRouter()


def get_registry() -> SubscriptionRegistry:
    return build_default_registry()


def get_store() -> MockTelemetryStore:
    return build_default_store()


def get_legacy_client() -> Optional[LegacyFeedClient]:
    return build_default_legacy_client()


def _resolve_limit(limit: Optional[int], settings: Settings) -> int:
    if limit is None:
        return settings.window_limit
    if limit > settings.window_max:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"limit must not exceed {settings.window_max}.",
        )
    return limit


@router.get(
    "/readings",
    response_model=ReadingsResponse,
    summary="Most recent valid readings, newest first.",
)
async def list_readings(
    limit: Optional[int] = Query(None, ge=1, description="Window size."),
    registry: SubscriptionRegistry = Depends(get_registry),
    settings: Settings = Depends(get_settings),
) -> ReadingsResponse:
    subscription = registry.get(_resolve_limit(limit, settings))
    return ReadingsResponse.from_snapshot(subscription.snapshot)


@router.get(
    "/readings/location",
    response_model=LocationResponse,
    summary="Location of the most recent reading that reports one.",
)
async def reading_location(
    limit: Optional[int] = Query(None, ge=1),
    registry: SubscriptionRegistry = Depends(get_registry),
    settings: Settings = Depends(get_settings),
) -> LocationResponse:
    subscription = registry.get(_resolve_limit(limit, settings))
    location = latest_location(subscription.snapshot.readings)
    if location is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No reading in the window reports a location.",
        )
    latitude, longitude = location
    return LocationResponse(latitude=latitude, longitude=longitude)


@router.get(
    "/readings/current",
    response_model=ReadingPayload,
    summary="Latest value reported by the device.",
)
async def current_reading(
    store: MockTelemetryStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> ReadingPayload:
    feed = CurrentValueFeed(store, path=settings.current_values_path, tz=settings.device_tz)
    try:
        result = feed.read()
    except TransportError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No current value has been reported.",
        )
    if isinstance(result, RecordValidationError):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=RejectedRecordPayload.from_error(result).model_dump(mode="json"),
        )
    return ReadingPayload.from_reading(result)


@router.put(
    "/readings/current",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Replace the device's current-value node.",
)
async def put_current_reading(
    record: Dict[str, Any] = Body(...),
    store: MockTelemetryStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> None:
    if not record:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current value payload is empty.",
        )
    store.set_value(settings.current_values_path, record)


@router.post(
    "/records",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=RecordAccepted,
    summary="Write a raw record into the telemetry store.",
)
async def submit_record(
    submission: RecordSubmission,
    store: MockTelemetryStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> RecordAccepted:
    if not submission.record:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Record payload is empty.",
        )
    key = submission.key or uuid4().hex
    store.put_record(settings.readings_path, key, submission.record)
    return RecordAccepted(key=key)


@router.get(
    "/legacy/readings",
    response_model=LegacyReadingsResponse,
    summary="Readings from the legacy polling feed.",
)
def legacy_readings(
    results: Optional[int] = Query(None, ge=1),
    client: Optional[LegacyFeedClient] = Depends(get_legacy_client),
    settings: Settings = Depends(get_settings),
) -> LegacyReadingsResponse:
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No legacy feed channel is configured.",
        )
    try:
        outcome = client.fetch(_resolve_limit(results, settings))
    except TransportError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
    finally:
        client.close()
    return LegacyReadingsResponse(
        readings=[ReadingPayload.from_reading(reading) for reading in outcome.readings],
        rejected=[RejectedRecordPayload.from_error(error) for error in outcome.rejected],
    )


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck(
    registry: SubscriptionRegistry = Depends(get_registry),
) -> dict[str, Any]:
    return {"status": "ok", "subscriptions": registry.active_limits()}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
