"""
Pixel-buffer presenters for pipeline results.

Presenters only read a :class:`~pyprofano.inference.pipeline.PipelineSession`
and an optional :class:`~pyprofano.inference.pipeline.HighlightResult`; they
never reach into the controller. Every function returns plain numpy arrays so
any front end (PNG export, notebook, GUI canvas, point-cloud viewer) can draw
them:

- grayscale display of a buffer against its NormalizationRange
- red-channel difference image
- red overlay of highlighted pixels on the intensity image
- per-point colors for a surface point cloud
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
from numpy.typing import ArrayLike, NDArray

from pyprofano.calibration.normalization import NormalizationRange, require_finite_range
from pyprofano.defects.pixel_threshold import classify
from pyprofano.errors import DegenerateDataError
from pyprofano.inference.pipeline import HighlightResult, PipelineSession

logger = logging.getLogger(__name__)

HIGHLIGHT_COLOR = (1.0, 0.0, 0.0)
BASE_COLOR = (0.5, 0.5, 0.5)


def _to_raster(values: ArrayLike, width: int, height: int) -> NDArray[np.float64]:
    return np.asarray(values, dtype=np.float64).reshape(int(height), int(width))


def grayscale_image(
    values: ArrayLike,
    value_range: NormalizationRange,
    *,
    width: int,
    height: int,
) -> NDArray[np.uint8]:
    """
    Render a flat buffer as an (H, W, 3) gray image.

    Parameters
    ----------
    values : array-like of shape (width*height,)
        Raw intensity, surface or reconstruction samples.
    value_range : NormalizationRange
        Display range; values are clipped into it. Non-finite samples render black.
    width, height : int
        Raster size.

    Returns
    -------
    image : ndarray of shape (H, W, 3), dtype uint8
    """
    rng = require_finite_range(value_range, name="value_range")
    raster = _to_raster(values, width, height)
    finite = np.isfinite(raster)

    normalized = np.zeros(raster.shape, dtype=np.float64)
    normalized[finite] = np.clip((raster[finite] - rng.min) / rng.span, 0.0, 1.0)
    gray = np.floor(normalized * 255).astype(np.uint8)
    return np.repeat(gray[:, :, None], 3, axis=2)


def difference_image(diffs: ArrayLike, *, width: int, height: int) -> NDArray[np.uint8]:
    """
    Render a difference buffer in the red channel, scaled over its finite range.

    Raises
    ------
    DegenerateDataError
        When the buffer has no finite value at all.
    """
    raster = _to_raster(diffs, width, height)
    finite = np.isfinite(raster)
    if not finite.any():
        raise DegenerateDataError("No valid difference values found")

    lo = float(raster[finite].min())
    hi = float(raster[finite].max())
    span = (hi - lo) or 1.0

    normalized = np.zeros(raster.shape, dtype=np.float64)
    normalized[finite] = (raster[finite] - lo) / span

    image = np.zeros(raster.shape + (3,), dtype=np.uint8)
    image[:, :, 0] = np.floor(normalized * 255).astype(np.uint8)
    return image


def highlight_overlay(base_rgb: NDArray[np.uint8], mask: ArrayLike) -> NDArray[np.uint8]:
    """Tint highlighted pixels red: +100 red, -50 green and blue, saturating."""

    base = np.asarray(base_rgb, dtype=np.uint8)
    if base.ndim != 3 or base.shape[2] != 3:
        raise ValueError(f"base_rgb must have shape (H,W,3), got {base.shape}")
    m = np.asarray(mask, dtype=bool).reshape(base.shape[:2])

    out = base.astype(np.int16)
    out[m, 0] = np.minimum(255, out[m, 0] + 100)
    out[m, 1] = np.maximum(0, out[m, 1] - 50)
    out[m, 2] = np.maximum(0, out[m, 2] - 50)
    return out.astype(np.uint8)


def point_cloud_colors(surface: ArrayLike, diffs: ArrayLike, threshold: float) -> NDArray[np.float32]:
    """
    RGB colors for the surface point cloud, one row per finite surface sample.

    Points whose difference is at or above ``threshold`` are red, the rest gray.
    Points with a non-finite height are not part of the cloud and get no row.
    """
    z = np.asarray(surface, dtype=np.float32).reshape(-1)
    d = np.asarray(diffs, dtype=np.float32).reshape(-1)
    if z.size != d.size:
        raise ValueError(f"surface/diffs length mismatch: {z.size} vs {d.size}")

    present = np.isfinite(z)
    hot = classify(d[present], threshold)
    colors = np.empty((int(present.sum()), 3), dtype=np.float32)
    colors[:] = BASE_COLOR
    colors[hot] = HIGHLIGHT_COLOR
    return colors


@dataclass(frozen=True)
class SessionImages:
    intensity: NDArray[np.uint8]
    surface: NDArray[np.uint8]
    reconstruction: Optional[NDArray[np.uint8]] = None
    difference: Optional[NDArray[np.uint8]] = None
    overlay: Optional[NDArray[np.uint8]] = None


def render_session(
    session: PipelineSession,
    highlight: Optional[HighlightResult] = None,
) -> SessionImages:
    """Render every image a front end shows for one session snapshot.

    The reconstruction uses the intensity range so both share one gray scale.
    """
    scan = session.scan
    if scan is None or session.intensity_range is None or session.surface_range is None:
        raise ValueError("Session has no scan loaded; nothing to render.")

    w, h = scan.width, scan.height
    intensity = grayscale_image(scan.intensity, session.intensity_range, width=w, height=h)
    surface = grayscale_image(scan.surface, session.surface_range, width=w, height=h)

    result = session.result
    if result is None:
        return SessionImages(intensity=intensity, surface=surface)

    reconstruction = grayscale_image(
        result.reconstruction, session.intensity_range, width=w, height=h
    )
    difference = difference_image(result.difference, width=w, height=h)
    overlay = None
    if highlight is not None:
        overlay = highlight_overlay(intensity, highlight.mask)
        logger.debug(
            "Highlighted %d pixels at percentile %d", highlight.anomalous_count, highlight.percentile
        )

    return SessionImages(
        intensity=intensity,
        surface=surface,
        reconstruction=reconstruction,
        difference=difference,
        overlay=overlay,
    )
