"""Error types raised by the tiled reconstruction pipeline.

All of them subclass :class:`ValueError` so callers that already guard data
contract violations with ``except ValueError`` keep working.
"""

from __future__ import annotations


class PipelineError(ValueError):
    """Base class for pipeline data-contract failures."""


class DegenerateDataError(PipelineError):
    """A buffer has no usable values (no finite samples, no positive differences)."""


class ShapeMismatchError(PipelineError):
    """Backend outputs do not match the fixed 4x4 grid of 256x256 tiles."""


class LengthMismatchError(PipelineError):
    """Two buffers that must be aligned pixel-for-pixel differ in length."""
