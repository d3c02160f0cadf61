"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from models.records import Reading, RecordValidationError
from services.subscription import SubscriptionSnapshot, SubscriptionStatus


class ReadingPayload(BaseModel):
    """Canonical reading as exposed to UI collaborators."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    timestamp: datetime
    temperature: float = Field(..., description="Degrees Celsius.")
    humidity: float = Field(..., description="Relative humidity in percent.")
    co2: float = Field(..., description="CO2 concentration in ppm.")
    pm2_5: float = Field(..., description="PM2.5 in micrograms per cubic metre.")
    pm10: float = Field(..., description="PM10 in micrograms per cubic metre.")
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @classmethod
    def from_reading(cls, reading: Reading) -> "ReadingPayload":
        return cls.model_validate(reading)


class ReadingsResponse(BaseModel):
    """The published ``{readings, loading, error}`` tuple."""

    readings: List[ReadingPayload] = Field(default_factory=list)
    loading: bool
    error: Optional[str] = None
    status: SubscriptionStatus
    rejected_count: int = Field(0, ge=0)

    @classmethod
    def from_snapshot(cls, snapshot: SubscriptionSnapshot) -> "ReadingsResponse":
        return cls(
            readings=[ReadingPayload.from_reading(reading) for reading in snapshot.readings],
            loading=snapshot.loading,
            error=str(snapshot.error) if snapshot.error is not None else None,
            status=snapshot.status,
            rejected_count=len(snapshot.rejected),
        )


class LocationResponse(BaseModel):
    latitude: float
    longitude: float


class FieldProblemPayload(BaseModel):
    field: str
    raw_value: Any = None
    reason: str


class RejectedRecordPayload(BaseModel):
    """Details about a record that failed validation."""

    record_id: Optional[str] = None
    shape: Optional[str] = None
    problems: List[FieldProblemPayload] = Field(default_factory=list)

    @classmethod
    def from_error(cls, error: RecordValidationError) -> "RejectedRecordPayload":
        return cls(
            record_id=error.record_id,
            shape=error.shape,
            problems=[
                FieldProblemPayload(
                    field=problem.field,
                    raw_value=problem.raw_value,
                    reason=problem.reason,
                )
                for problem in error.problems
            ],
        )


class LegacyReadingsResponse(BaseModel):
    readings: List[ReadingPayload] = Field(default_factory=list)
    rejected: List[RejectedRecordPayload] = Field(default_factory=list)


class RecordSubmission(BaseModel):
    """A raw record written into the store, in any supported wire shape."""

    key: Optional[str] = Field(
        default=None, description="Store key; generated when omitted."
    )
    record: Dict[str, Any] = Field(..., description="Raw record payload.")


class RecordAccepted(BaseModel):
    key: str
