"""In-memory scan container produced by the dataset loader boundary.

A scan is a pair of equal-length flat float32 buffers (``intensity`` and
``surface``) plus the raster dimensions. Buffers are copied on construction
and marked read-only, so a loaded scan cannot change underneath a running
pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Union

import numpy as np
from numpy.typing import NDArray

from pyprofano.inference.tiling import SCAN_SIZE


def _as_flat_float32(values) -> NDArray[np.float32]:
    arr = np.array(values, dtype=np.float32, copy=True).reshape(-1)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True)
class Scan:
    """One loaded intensity/surface measurement pair (row-major, flat)."""

    width: int
    height: int
    intensity: NDArray[np.float32]
    surface: NDArray[np.float32]

    def __post_init__(self) -> None:
        w, h = int(self.width), int(self.height)
        if w <= 0 or h <= 0:
            raise ValueError(f"width/height must be positive, got {(w, h)}")

        intensity = _as_flat_float32(self.intensity)
        surface = _as_flat_float32(self.surface)
        expected = w * h
        if intensity.size != expected or surface.size != expected:
            raise ValueError(
                "Scan buffers must have width*height elements. "
                f"Expected {expected}, got intensity={intensity.size}, surface={surface.size}."
            )

        object.__setattr__(self, "width", w)
        object.__setattr__(self, "height", h)
        object.__setattr__(self, "intensity", intensity)
        object.__setattr__(self, "surface", surface)

    @classmethod
    def from_arrays(cls, intensity, surface) -> "Scan":
        """Build a scan from two 2-D (height, width) rasters."""

        inten = np.asarray(intensity)
        surf = np.asarray(surface)
        if inten.ndim != 2 or surf.ndim != 2:
            raise ValueError(
                f"intensity/surface must be 2D, got shapes {inten.shape} and {surf.shape}"
            )
        if inten.shape != surf.shape:
            raise ValueError(
                f"intensity/surface shape mismatch: {inten.shape} vs {surf.shape}"
            )
        height, width = int(surf.shape[0]), int(surf.shape[1])
        return cls(width=width, height=height, intensity=inten, surface=surf)

    @property
    def shape(self) -> tuple[int, int]:
        return (self.height, self.width)

    def intensity_2d(self) -> NDArray[np.float32]:
        return self.intensity.reshape(self.height, self.width)

    def surface_2d(self) -> NDArray[np.float32]:
        return self.surface.reshape(self.height, self.width)


def validate_scan_geometry(scan: Scan) -> None:
    """Reject scans that do not match the fixed 1024x1024 tiling geometry.

    The tile arithmetic silently produces wrong results for other sizes, so
    callers check this before handing a scan to the pipeline.
    """

    if scan.width != SCAN_SIZE or scan.height != SCAN_SIZE:
        raise ValueError(
            f"Scan must be {SCAN_SIZE}x{SCAN_SIZE} for 4x4 tiled inference, "
            f"got {scan.width}x{scan.height}."
        )


def load_scan_npz(path: Union[str, Path]) -> Scan:
    """Load a scan from an ``.npz`` archive.

    Expected keys: ``intensity`` and ``surface``. 2-D arrays are used as
    (height, width) rasters; flat arrays additionally need scalar ``width`` and
    ``height`` entries.
    """

    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Scan not found: {p}")

    with np.load(p, allow_pickle=False) as data:
        missing = [key for key in ("intensity", "surface") if key not in data.files]
        if missing:
            raise ValueError(f"Scan archive {p} is missing keys: {', '.join(missing)}")

        intensity = np.asarray(data["intensity"])
        surface = np.asarray(data["surface"])
        if intensity.ndim == 2:
            return Scan.from_arrays(intensity, surface)

        if "width" not in data.files or "height" not in data.files:
            raise ValueError(
                f"Scan archive {p} stores flat buffers; 'width' and 'height' entries are required."
            )
        return Scan(
            width=int(data["width"]),
            height=int(data["height"]),
            intensity=intensity,
            surface=surface,
        )
