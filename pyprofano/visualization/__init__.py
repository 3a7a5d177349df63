"""Presenters that turn pipeline results into displayable pixel buffers."""

from __future__ import annotations

from .presenters import (
    SessionImages,
    difference_image,
    grayscale_image,
    highlight_overlay,
    point_cloud_colors,
    render_session,
)

__all__ = [
    "SessionImages",
    "difference_image",
    "grayscale_image",
    "highlight_overlay",
    "point_cloud_colors",
    "render_session",
]
