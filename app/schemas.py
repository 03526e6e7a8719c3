"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from models.records import UsageInterval, ensure_utc


class IntervalIn(BaseModel):
    """A usage interval submitted for annotation."""

    timestamp: datetime = Field(..., description="Interval start.")
    duration: float = Field(..., description="Interval length in seconds.")
    location: Optional[str] = Field(
        default=None, description="'<latitude>,<longitude>' in decimal degrees."
    )

    def to_record(self) -> UsageInterval:
        return UsageInterval(
            timestamp=ensure_utc(self.timestamp),
            duration=self.duration,
            location=self.location,
        )


class IntervalOut(IntervalIn):
    carbon_intensity: float = Field(..., description="Average intensity in g/kWh.")

    @classmethod
    def from_record(cls, record: UsageInterval) -> "IntervalOut":
        if record.carbon_intensity is None:
            raise ValueError("Interval has not been annotated with carbon intensity.")
        return cls(
            timestamp=record.timestamp,
            duration=record.duration,
            location=record.location,
            carbon_intensity=record.carbon_intensity,
        )


class CarbonIntensityRequest(BaseModel):
    intervals: List[IntervalIn]


class CarbonIntensityResponse(BaseModel):
    intervals: List[IntervalOut]


class ErrorDetail(BaseModel):
    """Body returned when a batch is rejected."""

    kind: str
    message: str
    index: Optional[int] = None
    field: Optional[str] = None
