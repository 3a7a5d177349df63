from __future__ import annotations

from pyprofano.defects.difference import absolute_difference, count_valid_differences
from pyprofano.defects.io import save_highlight_mask
from pyprofano.defects.mask import highlight_mask_to_u8
from pyprofano.defects.pixel_threshold import (
    classify,
    difference_range,
    percentile_threshold,
    threshold_candidates,
)

__all__ = [
    "absolute_difference",
    "classify",
    "count_valid_differences",
    "difference_range",
    "highlight_mask_to_u8",
    "percentile_threshold",
    "save_highlight_mask",
    "threshold_candidates",
]
