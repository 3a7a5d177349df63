from __future__ import annotations

from pathlib import Path

import numpy as np

MASK_FORMATS = ("png", "npy", "npz")


def _prepare(path: str | Path) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    return p


def _with_suffix(p: Path, suffix: str) -> Path:
    # numpy appends the suffix itself when it is missing.
    if p.suffix.lower() != suffix:
        return p.with_suffix(p.suffix + suffix)
    return p


def _mask_2d(mask_u8: np.ndarray, *, fmt: str) -> np.ndarray:
    arr = np.asarray(mask_u8, dtype=np.uint8)
    if arr.ndim != 2:
        raise ValueError(f"mask_u8 must be 2D for {fmt} export, got shape {arr.shape}")
    return arr


def save_highlight_mask(mask_u8: np.ndarray, path: str | Path, *, format: str) -> str:
    """Save a (height, width) {0,255} highlight mask as png, npy or npz.

    Returns the written path as a string.
    """

    fmt = str(format).lower().strip()
    if fmt == "png":
        return save_mask_png(mask_u8, path)
    if fmt == "npy":
        p = _prepare(path)
        np.save(p, _mask_2d(mask_u8, fmt="NPY"))
        return str(_with_suffix(p, ".npy"))
    if fmt == "npz":
        p = _prepare(path)
        np.savez_compressed(p, mask=_mask_2d(mask_u8, fmt="NPZ"))
        return str(_with_suffix(p, ".npz"))
    raise ValueError(f"Unknown mask format: {format!r}. Expected one of {', '.join(MASK_FORMATS)}.")


def save_mask_png(mask_u8: np.ndarray, path: str | Path) -> str:
    from PIL import Image

    p = _prepare(path)
    Image.fromarray(_mask_2d(mask_u8, fmt="PNG")).save(p)
    return str(p)


def save_rgb_png(rgb_u8: np.ndarray, path: str | Path) -> str:
    """Save an (H, W, 3) uint8 preview image produced by a presenter."""

    from PIL import Image

    arr = np.asarray(rgb_u8, dtype=np.uint8)
    if arr.ndim != 3 or arr.shape[2] != 3:
        raise ValueError(f"rgb_u8 must have shape (H,W,3), got {arr.shape}")

    p = _prepare(path)
    Image.fromarray(arr).save(p)
    return str(p)


def save_float_buffer(values: np.ndarray, path: str | Path, *, width: int, height: int) -> str:
    """Save a flat float buffer as a (height, width) float32 ``.npy`` raster."""

    arr = np.asarray(values, dtype=np.float32).reshape(int(height), int(width))
    p = _prepare(path)
    np.save(p, arr)
    return str(_with_suffix(p, ".npy"))
