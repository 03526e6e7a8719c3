"""Unit tests for spanning-window merging and sample partitioning."""

from __future__ import annotations

import itertools
from datetime import datetime, timedelta, timezone

import pytest

from models.records import Sample, UsageInterval
from services.errors import ValidationError
from services.windows import (
    KG_PER_LB,
    average_intensity,
    compute_spanning_window,
    select_samples_for_interval,
)

BASE = datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)
MAX_SPAN = 32 * 24 * 60 * 60


def _at(minutes: int) -> datetime:
    return BASE + timedelta(minutes=minutes)


def _interval(minutes: int, duration: float) -> UsageInterval:
    return UsageInterval(timestamp=_at(minutes), duration=duration, location="45.0,-122.0")


def test_spanning_window_is_permutation_invariant() -> None:
    intervals = [_interval(30, 600), _interval(0, 60), _interval(90, 1800), _interval(10, 7200)]

    for ordering in itertools.permutations(intervals):
        window = compute_spanning_window(list(ordering), MAX_SPAN)
        assert window.start == _at(0)
        assert window.end == _at(130)
        assert window.span_seconds == 130 * 60


def test_spanning_window_rejects_empty_batch() -> None:
    with pytest.raises(ValidationError):
        compute_spanning_window([], MAX_SPAN)


def test_spanning_window_accepts_exactly_max_span() -> None:
    window = compute_spanning_window([_interval(0, MAX_SPAN)], MAX_SPAN)
    assert window.span_seconds == MAX_SPAN


def test_spanning_window_rejects_span_over_limit() -> None:
    intervals = [_interval(0, 60), UsageInterval(timestamp=_at(0) + timedelta(days=32), duration=1)]

    with pytest.raises(ValidationError) as excinfo:
        compute_spanning_window(intervals, MAX_SPAN)

    assert "2764801" in str(excinfo.value)


def test_spanning_window_treats_naive_timestamps_as_utc() -> None:
    naive = UsageInterval(timestamp=datetime(2024, 1, 1, 9, 0), duration=60)
    window = compute_spanning_window([naive, _interval(0, 60)], MAX_SPAN)
    assert window.start == datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


def test_selection_excludes_sample_at_interval_end() -> None:
    samples = [Sample(_at(0), 400.0), Sample(_at(30), 600.0), Sample(_at(60), 800.0)]

    values = select_samples_for_interval(samples, _at(0), _at(60))

    assert values == pytest.approx([400.0 / KG_PER_LB, 600.0 / KG_PER_LB])


def test_average_matches_reference_example() -> None:
    samples = [Sample(_at(0), 400.0), Sample(_at(30), 600.0), Sample(_at(60), 800.0)]

    result = average_intensity(samples, _interval(0, 3600), index=0)

    assert result == pytest.approx((400 + 600) / 2 / 0.45359237)
    assert result == pytest.approx(1102.3, abs=0.05)


def test_overlapping_intervals_each_count_shared_boundary_sample_once() -> None:
    samples = [Sample(_at(0), 100.0), Sample(_at(30), 300.0), Sample(_at(60), 500.0)]
    first = _interval(0, 3600)
    second = _interval(30, 3600)

    first_values = select_samples_for_interval(samples, first.timestamp, first.end)
    second_values = select_samples_for_interval(samples, second.timestamp, second.end)

    assert first_values == pytest.approx([100.0 / KG_PER_LB, 300.0 / KG_PER_LB])
    assert second_values == pytest.approx([300.0 / KG_PER_LB, 500.0 / KG_PER_LB])


def test_adjacent_intervals_split_boundary_sample() -> None:
    samples = [Sample(_at(0), 100.0), Sample(_at(30), 300.0)]

    left = select_samples_for_interval(samples, _at(0), _at(30))
    right = select_samples_for_interval(samples, _at(30), _at(60))

    assert len(left) == 1
    assert len(right) == 1


def test_selection_keeps_duplicate_timestamps() -> None:
    samples = [Sample(_at(0), 100.0), Sample(_at(5), 200.0), Sample(_at(5), 400.0)]

    values = select_samples_for_interval(samples, _at(5), _at(10))

    assert values == pytest.approx([200.0 / KG_PER_LB, 400.0 / KG_PER_LB])


def test_average_without_samples_names_interval_index() -> None:
    samples = [Sample(_at(0), 100.0)]

    with pytest.raises(ValidationError) as excinfo:
        average_intensity(samples, _interval(120, 60), index=3)

    assert excinfo.value.index == 3
    assert "input[3]" in str(excinfo.value)
