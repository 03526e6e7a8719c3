"""Boundary contract for carbon-intensity sample sources."""

from __future__ import annotations

from datetime import datetime
from typing import List, Protocol

from models.records import Sample


class SampleSource(Protocol):
    """Anything able to return time-ascending samples for a location and window.

    Implementations raise ``AuthenticationError`` when credentials are rejected
    and ``UpstreamError`` for any other failure. An empty list is a valid answer.
    """

    async def fetch_samples(
        self, latitude: float, longitude: float, start: datetime, end: datetime
    ) -> List[Sample]:
        ...

    async def aclose(self) -> None:
        ...
