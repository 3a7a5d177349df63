"""Tiled reconstruction inference (numpy-first).

- fixed 4x4 tile extraction / reassembly with the sensor affine constants
- backend adapters for plain callables, ``inference()`` objects and torch modules
- a session controller with a re-entrancy guard
"""

from __future__ import annotations

from .backends import (
    TorchModuleBackend,
    as_backend,
    identity_backend,
    is_async_backend,
    load_backend,
)
from .pipeline import (
    HighlightResult,
    PipelineController,
    PipelineResult,
    PipelineSession,
    PipelineState,
    RunStatus,
)
from .tiling import (
    GridCell,
    assemble_reconstruction,
    extract_all_tiles,
    extract_tile,
    iter_grid_cells,
)

__all__ = [
    "GridCell",
    "HighlightResult",
    "PipelineController",
    "PipelineResult",
    "PipelineSession",
    "PipelineState",
    "RunStatus",
    "TorchModuleBackend",
    "as_backend",
    "assemble_reconstruction",
    "extract_all_tiles",
    "extract_tile",
    "identity_backend",
    "is_async_backend",
    "iter_grid_cells",
    "load_backend",
]
