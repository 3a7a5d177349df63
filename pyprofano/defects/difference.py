from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike, NDArray

from pyprofano.errors import LengthMismatchError


def _pair(a: ArrayLike, b: ArrayLike) -> tuple[NDArray, NDArray]:
    left = np.asarray(a, dtype=np.float32).reshape(-1)
    right = np.asarray(b, dtype=np.float32).reshape(-1)
    if left.size != right.size:
        raise LengthMismatchError(
            f"Data length mismatch: original={left.size}, reconstructed={right.size}"
        )
    return left, right


def absolute_difference(a: ArrayLike, b: ArrayLike) -> NDArray[np.float32]:
    """Per-pixel ``|a - b|``, with ``0`` wherever either sample is non-finite.

    Unknown samples count as "no difference" so sensor dropout regions never
    dominate the anomaly ranking.
    """

    left, right = _pair(a, b)
    valid = np.isfinite(left) & np.isfinite(right)
    out = np.zeros(left.shape, dtype=np.float32)
    out[valid] = np.abs(left[valid] - right[valid])
    return out


def count_valid_differences(a: ArrayLike, b: ArrayLike) -> int:
    """Number of pixels where both samples are finite."""

    left, right = _pair(a, b)
    return int(np.count_nonzero(np.isfinite(left) & np.isfinite(right)))
