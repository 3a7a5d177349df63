from __future__ import annotations

import numpy as np

from pyprofano.inference.tiling import SCAN_SIZE


def highlight_mask_to_u8(mask: np.ndarray, *, width: int = SCAN_SIZE, height: int = SCAN_SIZE) -> np.ndarray:
    """Convert a flat boolean highlight mask into a 2D uint8 mask (0 or 255).

    Args:
        mask: Flat (width*height) or 2D boolean-like highlight mask.
        width / height: Raster size used to reshape a flat mask.

    Returns:
        A (height, width) uint8 mask with values in {0, 255}.
    """

    m = np.asarray(mask).astype(bool)
    if m.ndim == 1:
        if m.size != int(width) * int(height):
            raise ValueError(
                f"mask has {m.size} elements, expected {int(width) * int(height)} for {width}x{height}"
            )
        m = m.reshape(int(height), int(width))
    return m.astype(np.uint8) * 255
