"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and normalise aware ones to UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass
class UsageInterval:
    """A span of usage to annotate with grid carbon intensity."""

    timestamp: datetime
    duration: float
    location: Optional[str] = None
    carbon_intensity: Optional[float] = None

    @property
    def end(self) -> datetime:
        return self.timestamp + timedelta(seconds=self.duration)


@dataclass(slots=True)
class Sample:
    """A single carbon-intensity reading reported by the upstream source."""

    point_time: datetime
    value: float


@dataclass(frozen=True)
class SpanningWindow:
    start: datetime
    end: datetime

    @property
    def span_seconds(self) -> float:
        return (self.end - self.start).total_seconds()


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float
