from __future__ import annotations

import numpy as np
import pytest

from pyprofano.defects.pixel_threshold import (
    classify,
    difference_range,
    percentile_threshold,
    threshold_candidates,
)
from pyprofano.errors import DegenerateDataError


def test_nearest_rank_boundaries() -> None:
    diffs = np.asarray([1, 2, 3, 4, 5], dtype=np.float32)
    assert percentile_threshold(diffs, 0) == 1.0
    assert percentile_threshold(diffs, 100) == 5.0
    # floor(0.5 * 5) = 2 -> third smallest, no interpolation
    assert percentile_threshold(diffs, 50) == 3.0
    assert percentile_threshold(diffs, 39) == 2.0


def test_order_of_input_does_not_matter() -> None:
    diffs = np.asarray([5, 1, 4, 2, 3], dtype=np.float32)
    assert percentile_threshold(diffs, 70) == 4.0


def test_zero_and_non_finite_values_are_not_candidates() -> None:
    diffs = np.asarray([0.0, 0.0, np.nan, np.inf, 2.0, 8.0, 0.0], dtype=np.float32)
    assert threshold_candidates(diffs).tolist() == [2.0, 8.0]
    assert percentile_threshold(diffs, 0) == 2.0
    assert percentile_threshold(diffs, 50) == 8.0


def test_empty_candidate_set_is_degenerate() -> None:
    with pytest.raises(DegenerateDataError):
        percentile_threshold(np.zeros(32, dtype=np.float32), 95)


@pytest.mark.parametrize("p", [-1, 101])
def test_percentile_out_of_range_is_rejected(p: int) -> None:
    with pytest.raises(ValueError, match="percentile"):
        percentile_threshold(np.ones(4, dtype=np.float32), p)


def test_percentile_is_monotonic() -> None:
    rng = np.random.default_rng(0)
    diffs = rng.exponential(size=10_000).astype(np.float32)
    diffs[::7] = 0.0

    thresholds = [percentile_threshold(diffs, p) for p in range(101)]
    assert all(a <= b for a, b in zip(thresholds, thresholds[1:]))


def test_classify_is_inclusive_at_threshold() -> None:
    diffs = np.asarray([0.5, 1.0, 1.5, np.nan, np.inf], dtype=np.float32)
    mask = classify(diffs, 1.0)
    assert mask.dtype == np.bool_
    assert mask.tolist() == [False, True, True, False, False]


def test_classify_marks_the_rank_element() -> None:
    diffs = np.asarray([0.0, 3.0, 1.0, 2.0], dtype=np.float32)
    thr = percentile_threshold(diffs, 100)
    mask = classify(diffs, thr)
    assert int(mask.sum()) == 1
    assert bool(mask[1])


def test_difference_range_is_not_widened_for_constant_buffers() -> None:
    rng = difference_range(np.zeros(1024, dtype=np.float32))
    assert rng.min == 0.0
    assert rng.max == 0.0


def test_difference_range_skips_non_finite_values() -> None:
    rng = difference_range(np.asarray([np.nan, 0.5, np.inf, 2.0, -np.inf], dtype=np.float32))
    assert (rng.min, rng.max) == (0.5, 2.0)

    empty = difference_range(np.full(4, np.nan, dtype=np.float32))
    assert empty.is_degenerate
