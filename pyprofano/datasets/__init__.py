"""Scan containers and loaders."""

from __future__ import annotations

from .scan import Scan, load_scan_npz, validate_scan_geometry

__all__ = [
    "Scan",
    "load_scan_npz",
    "validate_scan_geometry",
]
