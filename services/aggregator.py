"""Batch orchestration: merge, fetch, partition, annotate."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Callable, List, Optional, Sequence, TypeVar

from models.records import Coordinates, Sample, SpanningWindow, UsageInterval
from providers.base import SampleSource
from providers.watttime import build_default_client
from services.errors import CarbonIntensityError, StepResult, ValidationError
from services.location import parse_location
from services.windows import average_intensity, compute_spanning_window
from settings import DEFAULT_MAX_SPAN_SECONDS, get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class BatchOutcome:
    """Either every interval annotated, or the single error that aborted the batch."""

    intervals: List[UsageInterval] = field(default_factory=list)
    error: Optional[CarbonIntensityError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _step(func: Callable[..., T], *args, **kwargs) -> StepResult[T]:
    try:
        return StepResult.ok(func(*args, **kwargs))
    except CarbonIntensityError as exc:
        return StepResult.fail(exc)


class CarbonIntensityAggregator:
    """Annotates a batch of usage intervals with average grid carbon intensity.

    One upstream query covers the whole batch. Only the first interval's
    location is used for it; see ``_warn_on_mixed_locations``.
    """

    def __init__(
        self,
        source: SampleSource,
        max_span_seconds: float = DEFAULT_MAX_SPAN_SECONDS,
    ) -> None:
        self.source = source
        self.max_span_seconds = max_span_seconds

    async def execute(self, intervals: List[UsageInterval]) -> List[UsageInterval]:
        """Annotate ``intervals`` in place and return them, raising on any failure."""
        outcome = await self.run(intervals)
        if outcome.error is not None:
            raise outcome.error
        return outcome.intervals

    async def run(self, intervals: List[UsageInterval]) -> BatchOutcome:
        logger.info("Starting batch", extra={"interval_count": len(intervals)})

        validated = _step(self._validate, intervals)
        if validated.error is not None:
            return self._abort(validated.error)

        window_result = _step(compute_spanning_window, intervals, self.max_span_seconds)
        if window_result.error is not None:
            return self._abort(window_result.error)
        window = window_result.unwrap()

        coordinates_result = _step(parse_location, intervals[0], 0)
        if coordinates_result.error is not None:
            return self._abort(coordinates_result.error)
        coordinates = coordinates_result.unwrap()
        self._warn_on_mixed_locations(intervals)

        samples_result = await self._fetch(coordinates, window)
        if samples_result.error is not None:
            return self._abort(samples_result.error)
        samples = samples_result.unwrap()

        averages_result = _step(self._partition, samples, intervals)
        if averages_result.error is not None:
            return self._abort(averages_result.error)

        for interval, average in zip(intervals, averages_result.unwrap()):
            interval.carbon_intensity = average

        logger.info(
            "Finished batch",
            extra={"interval_count": len(intervals), "sample_count": len(samples)},
        )
        return BatchOutcome(intervals=intervals)

    @staticmethod
    def _validate(intervals: Sequence[UsageInterval]) -> None:
        for index, interval in enumerate(intervals):
            if interval.location is not None:
                parse_location(interval, index=index)
            if not math.isfinite(interval.duration) or interval.duration < 0:
                raise ValidationError(
                    "must be a finite, non-negative number of seconds",
                    index=index,
                    field="duration",
                )

    async def _fetch(
        self, coordinates: Coordinates, window: SpanningWindow
    ) -> StepResult[List[Sample]]:
        logger.debug(
            "Fetching samples for spanning window",
            extra={
                "span_seconds": window.span_seconds,
                "latitude": coordinates.latitude,
                "longitude": coordinates.longitude,
            },
        )
        try:
            samples = await self.source.fetch_samples(
                coordinates.latitude, coordinates.longitude, window.start, window.end
            )
        except CarbonIntensityError as exc:
            return StepResult.fail(exc)
        return StepResult.ok(samples)

    @staticmethod
    def _partition(
        samples: Sequence[Sample], intervals: Sequence[UsageInterval]
    ) -> List[float]:
        return [
            average_intensity(samples, interval, index)
            for index, interval in enumerate(intervals)
        ]

    @staticmethod
    def _warn_on_mixed_locations(intervals: Sequence[UsageInterval]) -> None:
        representative = intervals[0].location
        for index, interval in enumerate(intervals[1:], start=1):
            if interval.location is not None and interval.location != representative:
                logger.warning(
                    "Batch mixes locations; only the first interval's location is queried",
                    extra={"batch_index": index},
                )
                return

    @staticmethod
    def _abort(error: CarbonIntensityError) -> BatchOutcome:
        logger.warning(
            "Batch aborted",
            extra={
                "error_kind": error.kind,
                "batch_index": getattr(error, "index", None),
                "reason": str(error),
            },
        )
        return BatchOutcome(error=error)


@lru_cache
def build_default_aggregator() -> CarbonIntensityAggregator:
    """Factory that wires the aggregator with the WattTime client."""
    settings = get_settings()
    return CarbonIntensityAggregator(
        source=build_default_client(),
        max_span_seconds=settings.max_span_seconds,
    )
