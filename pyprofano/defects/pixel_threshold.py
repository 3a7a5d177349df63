from __future__ import annotations

import math
from numbers import Number

import numpy as np
from numpy.typing import ArrayLike, NDArray

from pyprofano.calibration.normalization import NormalizationRange
from pyprofano.errors import DegenerateDataError
from pyprofano.utils.param_check import check_parameter


def threshold_candidates(diffs: ArrayLike) -> NDArray[np.float32]:
    """Return the strictly-positive finite values of a difference buffer.

    A score of exactly ``0`` means "no defect" and is never a threshold candidate.
    """

    arr = np.asarray(diffs, dtype=np.float32).reshape(-1)
    return arr[np.isfinite(arr) & (arr > 0)]


def percentile_threshold(diffs: ArrayLike, percentile: Number) -> float:
    """Nearest-rank percentile of the positive finite differences.

    With ``n`` candidates sorted ascending the threshold is the element at
    ``floor(percentile / 100 * n)``, clamped to ``n - 1``. No interpolation.

    Parameters
    ----------
    diffs:
        Difference buffer (any shape).
    percentile:
        Integer percentile in ``[0, 100]``.

    Raises
    ------
    DegenerateDataError
        When the buffer has no positive finite value, i.e. nothing to highlight.
    """

    check_parameter(percentile, low=0, high=100, param_name="percentile")

    candidates = threshold_candidates(diffs)
    n = int(candidates.size)
    if n == 0:
        raise DegenerateDataError("No positive finite differences; nothing to threshold.")

    index = min(int(math.floor((percentile / 100) * n)), n - 1)
    # Partial sort: only the rank element needs to land in place.
    return float(np.partition(candidates, index)[index])


def classify(diffs: ArrayLike, threshold: float) -> NDArray[np.bool_]:
    """Mark pixels whose difference is finite and ``>= threshold`` as anomalous."""

    arr = np.asarray(diffs, dtype=np.float32)
    t = float(threshold)
    return np.isfinite(arr) & (arr >= t)


def difference_range(diffs: ArrayLike) -> NormalizationRange:
    """Finite min/max of a difference buffer, reported as-is.

    Unlike a display range this is never widened: a perfect reconstruction
    reports ``(0.0, 0.0)``. A buffer without finite values gives the
    ``(+inf, -inf)`` sentinel.
    """

    arr = np.asarray(diffs, dtype=np.float32).reshape(-1)
    finite = arr[np.isfinite(arr)]
    if finite.size == 0:
        return NormalizationRange(min=float("inf"), max=float("-inf"))
    return NormalizationRange(min=float(finite.min()), max=float(finite.max()))
