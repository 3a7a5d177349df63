"""pyprofano - tiled reconstruction anomaly detection for optical profilometry.

Keep top-level imports lightweight: optional backends (torch) are only
imported when used. Exports are lazy-loaded on demand.
"""

from __future__ import annotations

from importlib import import_module
from typing import Any

__version__ = "0.1.0"

__all__ = [
    # Modules
    "calibration",
    "config",
    "datasets",
    "defects",
    "inference",
    "utils",
    "visualization",
    # Pipeline
    "PipelineController",
    "Scan",
    "compute_normalization_range",
    "extract_tile",
    "assemble_reconstruction",
    "absolute_difference",
    "percentile_threshold",
    "classify",
]


_LAZY_SUBMODULES = {
    "calibration",
    "config",
    "datasets",
    "defects",
    "inference",
    "utils",
    "visualization",
}

_LAZY_EXPORTS = {
    "PipelineController": ("inference.pipeline", "PipelineController"),
    "Scan": ("datasets.scan", "Scan"),
    "compute_normalization_range": ("calibration.normalization", "compute_normalization_range"),
    "extract_tile": ("inference.tiling", "extract_tile"),
    "assemble_reconstruction": ("inference.tiling", "assemble_reconstruction"),
    "absolute_difference": ("defects.difference", "absolute_difference"),
    "percentile_threshold": ("defects.pixel_threshold", "percentile_threshold"),
    "classify": ("defects.pixel_threshold", "classify"),
}


def __getattr__(name: str) -> Any:  # pragma: no cover - thin delegation
    if name in _LAZY_SUBMODULES:
        module = import_module(f"{__name__}.{name}")
        globals()[name] = module
        return module

    target = _LAZY_EXPORTS.get(name)
    if target is not None:
        module_name, attr = target
        module = import_module(f"{__name__}.{module_name}")
        value = getattr(module, attr)
        globals()[name] = value
        return value

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__() -> list[str]:  # pragma: no cover - tooling convenience
    return sorted(set(globals()) | set(__all__))
