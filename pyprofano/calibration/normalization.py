from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import ArrayLike

from pyprofano.errors import DegenerateDataError

if TYPE_CHECKING:  # pragma: no cover
    from pyprofano.datasets.scan import Scan

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NormalizationRange:
    """Finite-value display range of one buffer."""

    min: float
    max: float

    @property
    def is_degenerate(self) -> bool:
        """True when the source buffer had no finite samples at all."""
        return not (np.isfinite(self.min) and np.isfinite(self.max))

    @property
    def span(self) -> float:
        return float(self.max - self.min)


def compute_normalization_range(values: ArrayLike) -> NormalizationRange:
    """Compute ``{min, max}`` over the finite entries of ``values``.

    NaN and +/-inf samples are skipped (the input is never modified). When no
    finite value exists the sentinel extremes ``(+inf, -inf)`` are returned;
    use :func:`require_finite_range` to turn that into an error. A constant
    buffer is widened to ``(v, v + 1)`` so downstream ranges are never zero-width.
    """

    arr = np.asarray(values).reshape(-1)
    finite = arr[np.isfinite(arr)]
    if finite.size == 0:
        return NormalizationRange(min=float("inf"), max=float("-inf"))

    lo = float(finite.min())
    hi = float(finite.max())
    if hi == lo:
        hi = lo + 1.0
    return NormalizationRange(min=lo, max=hi)


def require_finite_range(rng: NormalizationRange, *, name: str = "buffer") -> NormalizationRange:
    if rng.is_degenerate:
        raise DegenerateDataError(f"{name} has no finite values; cannot compute a normalization range.")
    return rng


def compute_scan_ranges(scan: "Scan") -> tuple[NormalizationRange, NormalizationRange]:
    """Return the (intensity, surface) ranges of a scan, rejecting all-non-finite buffers."""

    intensity = require_finite_range(compute_normalization_range(scan.intensity), name="intensity")
    surface = require_finite_range(compute_normalization_range(scan.surface), name="surface")
    logger.info("Intensity range: %s to %s", intensity.min, intensity.max)
    logger.info("Surface range: %s to %s", surface.min, surface.max)
    return intensity, surface
