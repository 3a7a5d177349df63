"""Session controller for 4x4 tiled reconstruction inference.

One :class:`PipelineController` owns one loaded scan, the registered inference
backend, the current highlight percentile and the latest result. Runs are
strictly sequential: each tile is submitted and its output collected before
the next tile is extracted, because reassembly pairs outputs with grid cells
by position.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Optional

import numpy as np
from numpy.typing import NDArray

from pyprofano.calibration.normalization import (
    NormalizationRange,
    compute_normalization_range,
    compute_scan_ranges,
)
from pyprofano.defects.difference import absolute_difference, count_valid_differences
from pyprofano.defects.pixel_threshold import (
    classify,
    difference_range,
    percentile_threshold,
    threshold_candidates,
)
from pyprofano.inference.backends import Backend, as_backend, coerce_output
from pyprofano.inference.tiling import (
    TILE_COUNT,
    GridCell,
    assemble_reconstruction,
    extract_tile,
    iter_grid_cells,
)
from pyprofano.utils.param_check import check_percentile

if TYPE_CHECKING:  # pragma: no cover
    from pyprofano.datasets.scan import Scan

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

DEFAULT_PERCENTILE = 95


class PipelineState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


class RunStatus(str, Enum):
    """Outcome of a ``run_inference`` call that did not raise."""

    COMPLETED = "completed"
    REJECTED_RUNNING = "rejected_running"
    REJECTED_NO_MODEL = "rejected_no_model"
    REJECTED_NO_SCAN = "rejected_no_scan"

    @property
    def accepted(self) -> bool:
        return self is RunStatus.COMPLETED


@dataclass(frozen=True)
class PipelineResult:
    """Reconstruction and difference buffers of one completed run."""

    reconstruction: NDArray[np.float32]
    difference: NDArray[np.float32]
    valid_difference_count: int
    reconstruction_range: NormalizationRange
    difference_range: NormalizationRange
    latency_ms: float


@dataclass(frozen=True)
class HighlightResult:
    percentile: int
    threshold: float
    mask: NDArray[np.bool_]

    @property
    def anomalous_count(self) -> int:
        return int(np.count_nonzero(self.mask))


@dataclass(frozen=True)
class PipelineSession:
    """Read-only view of a controller's state handed to presenters."""

    state: PipelineState
    scan: Optional["Scan"]
    intensity_range: Optional[NormalizationRange]
    surface_range: Optional[NormalizationRange]
    result: Optional[PipelineResult]
    percentile: int


def _readonly(arr: NDArray) -> NDArray:
    arr.setflags(write=False)
    return arr


class PipelineController:
    """Run the extract → infer → assemble → difference pipeline for one scan."""

    def __init__(
        self,
        model: Any = None,
        *,
        percentile: int = DEFAULT_PERCENTILE,
    ) -> None:
        self._state = PipelineState.IDLE
        self._backend: Optional[Backend] = None
        self._scan: Optional["Scan"] = None
        self._intensity_range: Optional[NormalizationRange] = None
        self._surface_range: Optional[NormalizationRange] = None
        self._result: Optional[PipelineResult] = None
        self._percentile = DEFAULT_PERCENTILE

        self.set_percentile(percentile)
        if model is not None:
            self.set_model(model)

    # ------------------------------------------------------------------ state

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is PipelineState.RUNNING

    @property
    def scan(self) -> Optional["Scan"]:
        return self._scan

    @property
    def result(self) -> Optional[PipelineResult]:
        return self._result

    @property
    def percentile(self) -> int:
        return self._percentile

    @property
    def has_model(self) -> bool:
        return self._backend is not None

    @property
    def session(self) -> PipelineSession:
        return PipelineSession(
            state=self._state,
            scan=self._scan,
            intensity_range=self._intensity_range,
            surface_range=self._surface_range,
            result=self._result,
            percentile=self._percentile,
        )

    def set_model(self, model: Any) -> None:
        self._backend = as_backend(model)

    def set_percentile(self, percentile: int) -> None:
        self._percentile = check_percentile(percentile)

    def load_scan(self, scan: "Scan") -> bool:
        """Replace the session scan and drop the previous result.

        Returns False (and changes nothing) while a run is in flight. Raises
        :class:`DegenerateDataError` when a buffer has no finite values.
        """

        if self.is_running:
            logger.warning("Ignoring scan load while inference is running")
            return False

        intensity_range, surface_range = compute_scan_ranges(scan)
        self._scan = scan
        self._intensity_range = intensity_range
        self._surface_range = surface_range
        self._result = None
        logger.info("Loaded scan: %dx%d", scan.width, scan.height)
        return True

    # ------------------------------------------------------------------ runs

    def _rejection(self) -> Optional[RunStatus]:
        if self.is_running:
            status = RunStatus.REJECTED_RUNNING
        elif self._backend is None:
            status = RunStatus.REJECTED_NO_MODEL
        elif self._scan is None:
            status = RunStatus.REJECTED_NO_SCAN
        else:
            return None
        logger.warning("Inference request rejected: %s", status.value)
        return status

    @staticmethod
    def _extract(
        scan: "Scan", cell: GridCell, progress: Optional[ProgressCallback]
    ) -> NDArray[np.float32]:
        if progress is not None:
            progress(cell.index, TILE_COUNT)
        return extract_tile(scan, cell.grid_x, cell.grid_y)

    @staticmethod
    def _collect(cell: GridCell, output: Any, tile_started: float) -> NDArray[np.float32]:
        values = coerce_output(output)
        logger.debug(
            "Crop %d/%d (%d,%d) processed in %.1fms",
            cell.index + 1,
            TILE_COUNT,
            cell.grid_x,
            cell.grid_y,
            (time.perf_counter() - tile_started) * 1000.0,
        )
        return values

    def _publish(
        self,
        scan: "Scan",
        outputs: list[NDArray[np.float32]],
        started: float,
        progress: Optional[ProgressCallback],
    ) -> None:
        if progress is not None:
            progress(TILE_COUNT, TILE_COUNT)

        reconstruction = assemble_reconstruction(outputs, scan.width, scan.height)
        difference = absolute_difference(scan.intensity, reconstruction)
        valid = count_valid_differences(scan.intensity, reconstruction)
        latency_ms = (time.perf_counter() - started) * 1000.0

        self._result = PipelineResult(
            reconstruction=_readonly(reconstruction),
            difference=_readonly(difference),
            valid_difference_count=valid,
            reconstruction_range=compute_normalization_range(reconstruction),
            difference_range=difference_range(difference),
            latency_ms=latency_ms,
        )
        logger.info(
            "Processed %d crops in %.1fms (%d valid differences of %d pixels)",
            TILE_COUNT,
            latency_ms,
            valid,
            difference.size,
        )

    def run_inference(self, progress: Optional[ProgressCallback] = None) -> RunStatus:
        """Run all 16 tiles through a blocking backend.

        Backend, extraction and assembly errors propagate after the controller
        has returned to IDLE; the previous result is kept in that case.
        """

        rejected = self._rejection()
        if rejected is not None:
            return rejected

        scan, backend = self._scan, self._backend
        self._state = PipelineState.RUNNING
        started = time.perf_counter()
        logger.info("Running inference on %d crops", TILE_COUNT)
        try:
            outputs: list[NDArray[np.float32]] = []
            for cell in iter_grid_cells():
                tile = self._extract(scan, cell, progress)
                tile_started = time.perf_counter()
                output = backend(tile)
                if inspect.isawaitable(output):
                    if inspect.iscoroutine(output):
                        output.close()
                    raise TypeError("Backend returned an awaitable; use run_inference_async().")
                outputs.append(self._collect(cell, output, tile_started))
            self._publish(scan, outputs, started, progress)
        finally:
            self._state = PipelineState.IDLE
        return RunStatus.COMPLETED

    async def run_inference_async(self, progress: Optional[ProgressCallback] = None) -> RunStatus:
        """Same as :meth:`run_inference` for backends that may return awaitables.

        Tiles are still processed one at a time; the loop yields to the event
        loop between tiles so progress can be observed.
        """

        rejected = self._rejection()
        if rejected is not None:
            return rejected

        scan, backend = self._scan, self._backend
        self._state = PipelineState.RUNNING
        started = time.perf_counter()
        logger.info("Running inference on %d crops", TILE_COUNT)
        try:
            outputs: list[NDArray[np.float32]] = []
            for cell in iter_grid_cells():
                tile = self._extract(scan, cell, progress)
                tile_started = time.perf_counter()
                output = backend(tile)
                if inspect.isawaitable(output):
                    output = await output
                outputs.append(self._collect(cell, output, tile_started))
                await asyncio.sleep(0)
            self._publish(scan, outputs, started, progress)
        finally:
            self._state = PipelineState.IDLE
        return RunStatus.COMPLETED

    # ------------------------------------------------------------- highlight

    def highlight(self, percentile: Optional[int] = None) -> Optional[HighlightResult]:
        """Threshold the current difference buffer at ``percentile``.

        Defaults to the session percentile. Returns None when there is no
        result yet or no positive difference to rank.
        """

        if percentile is not None:
            self.set_percentile(percentile)
        if self._result is None:
            return None

        diffs = self._result.difference
        if threshold_candidates(diffs).size == 0:
            return None

        threshold = percentile_threshold(diffs, self._percentile)
        logger.info("Percentile %d%% threshold: %s", self._percentile, threshold)
        return HighlightResult(
            percentile=self._percentile,
            threshold=threshold,
            mask=classify(diffs, threshold),
        )
