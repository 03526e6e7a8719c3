"""Spanning-window merge and per-interval partitioning of fetched samples."""

from __future__ import annotations

from bisect import bisect_left
from datetime import datetime
from typing import List, Sequence

from models.records import Sample, SpanningWindow, UsageInterval, ensure_utc
from services.errors import ValidationError

# lbs/MWh -> kg/MWh. kg/MWh equals g/kWh (the 1000x mass and energy factors
# cancel), so this single divisor yields the downstream g/kWh unit.
KG_PER_LB = 0.45359237


def compute_spanning_window(
    intervals: Sequence[UsageInterval], max_span_seconds: float
) -> SpanningWindow:
    """Return the earliest-start/latest-end window covering every interval.

    Input order is irrelevant. Raises ``ValidationError`` for an empty batch or
    when the window is wider than ``max_span_seconds``.
    """
    if not intervals:
        raise ValidationError("at least one interval is required")

    start = end = None
    for index, interval in enumerate(intervals):
        interval_start = ensure_utc(interval.timestamp)
        try:
            interval_end = ensure_utc(interval.end)
        except (OverflowError, ValueError) as exc:
            raise ValidationError(
                f"{interval.duration!r} seconds puts the interval end out of range",
                index=index,
                field="duration",
            ) from exc
        if start is None or interval_start < start:
            start = interval_start
        if end is None or interval_end > end:
            end = interval_end

    window = SpanningWindow(start=start, end=end)
    if window.span_seconds > max_span_seconds:
        raise ValidationError(
            f"upstream supports windows up to {_seconds(max_span_seconds)} seconds; "
            f"duration of {_seconds(window.span_seconds)} seconds is too long"
        )
    return window


def _seconds(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def select_samples_for_interval(
    samples: Sequence[Sample], start: datetime, end: datetime
) -> List[float]:
    """Converted values of the samples inside the half-open window ``[start, end)``.

    ``samples`` must be non-decreasing by ``point_time``; duplicates are allowed.
    """
    start = ensure_utc(start)
    end = ensure_utc(end)
    lower = bisect_left(samples, start, key=lambda sample: sample.point_time)
    upper = bisect_left(samples, end, lo=lower, key=lambda sample: sample.point_time)
    return [sample.value / KG_PER_LB for sample in samples[lower:upper]]


def average_intensity(
    samples: Sequence[Sample], interval: UsageInterval, index: int
) -> float:
    values = select_samples_for_interval(samples, interval.timestamp, interval.end)
    if not values:
        raise ValidationError(
            "did not receive data from the upstream source for this interval",
            index=index,
        )
    return sum(values) / len(values)
