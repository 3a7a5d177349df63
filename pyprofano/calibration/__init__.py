from __future__ import annotations

from .normalization import (
    NormalizationRange,
    compute_normalization_range,
    compute_scan_ranges,
    require_finite_range,
)

__all__ = [
    "NormalizationRange",
    "compute_normalization_range",
    "compute_scan_ranges",
    "require_finite_range",
]
