from __future__ import annotations

import asyncio

import numpy as np
import pytest

from pyprofano.datasets.scan import Scan
from pyprofano.errors import DegenerateDataError, ShapeMismatchError
from pyprofano.inference.backends import identity_backend
from pyprofano.inference.pipeline import PipelineController, PipelineState, RunStatus

OFFSET = 50481.640625
SCALE = 16498.2578125


def _flat_scan(*, nan_at: int | None = None) -> Scan:
    # Intensity sits exactly on the affine offset, so tiles are all zero and an
    # identity backend reconstructs the scan bit for bit.
    intensity = np.full((1024, 1024), OFFSET, dtype=np.float32)
    if nan_at is not None:
        intensity.reshape(-1)[nan_at] = np.nan
    surface = np.random.default_rng(0).normal(size=(1024, 1024)).astype(np.float32)
    return Scan.from_arrays(intensity, surface)


class _PatchDefectBackend:
    """Identity backend that adds +1.0 (normalized) to a 16x16 patch of one tile."""

    def __init__(self, defect_tile: int = 5) -> None:
        self.defect_tile = defect_tile
        self.calls = 0

    def __call__(self, tile):
        out = np.array(tile, dtype=np.float32).reshape(256, 256)
        if self.calls == self.defect_tile:
            out[100:116, 100:116] += 1.0
        self.calls += 1
        return out


def _ready_controller(backend=identity_backend, **kwargs) -> PipelineController:
    controller = PipelineController(backend, **kwargs)
    assert controller.load_scan(_flat_scan())
    return controller


def test_run_rejected_without_model_or_scan() -> None:
    controller = PipelineController()
    assert controller.run_inference() is RunStatus.REJECTED_NO_MODEL

    controller.set_model(identity_backend)
    assert controller.run_inference() is RunStatus.REJECTED_NO_SCAN
    assert controller.state is PipelineState.IDLE
    assert controller.result is None


def test_identity_run_produces_zero_difference() -> None:
    controller = _ready_controller()
    progress: list[tuple[int, int]] = []

    status = controller.run_inference(progress=lambda cur, total: progress.append((cur, total)))

    assert status is RunStatus.COMPLETED
    assert status.accepted
    assert controller.state is PipelineState.IDLE
    assert progress == [(i, 16) for i in range(17)]

    result = controller.result
    assert result is not None
    assert result.reconstruction.shape == (1024 * 1024,)
    assert np.all(result.reconstruction == np.float32(OFFSET))
    assert float(result.difference.max()) == 0.0
    assert result.valid_difference_count == 1024 * 1024
    assert result.difference_range.min == 0.0
    assert result.difference_range.max == 0.0
    assert controller.highlight() is None


def test_defect_tile_is_highlighted_at_its_grid_position() -> None:
    controller = _ready_controller(_PatchDefectBackend(defect_tile=5))
    assert controller.run_inference() is RunStatus.COMPLETED

    highlight = controller.highlight()
    assert highlight is not None
    assert highlight.percentile == 95
    assert highlight.threshold == pytest.approx(SCALE, abs=0.01)
    assert highlight.anomalous_count == 16 * 16

    mask = highlight.mask.reshape(1024, 1024)
    # Tile 5 is grid (x=1, y=1).
    assert mask[256 + 100 : 256 + 116, 256 + 100 : 256 + 116].all()


def test_non_finite_intensity_never_counts_as_difference() -> None:
    controller = PipelineController(identity_backend)
    controller.load_scan(_flat_scan(nan_at=12345))
    controller.run_inference()

    result = controller.result
    assert np.isnan(result.reconstruction[12345])
    assert result.difference[12345] == 0.0
    assert result.valid_difference_count == 1024 * 1024 - 1


def test_backend_error_keeps_previous_result_and_stops_early() -> None:
    controller = _ready_controller()
    controller.run_inference()
    previous = controller.result

    calls = {"count": 0}

    def _failing(tile):
        calls["count"] += 1
        if calls["count"] == 6:
            raise RuntimeError("device lost")
        return tile

    controller.set_model(_failing)
    with pytest.raises(RuntimeError, match="device lost"):
        controller.run_inference()

    assert calls["count"] == 6
    assert controller.state is PipelineState.IDLE
    assert controller.result is previous


def test_shape_mismatch_keeps_previous_result() -> None:
    controller = _ready_controller()
    controller.run_inference()
    previous = controller.result

    def _short(tile):
        return np.asarray(tile)[:-1]

    controller.set_model(_short)
    with pytest.raises(ShapeMismatchError):
        controller.run_inference()

    assert controller.state is PipelineState.IDLE
    assert controller.result is previous
    assert np.all(previous.reconstruction == np.float32(OFFSET))


def test_reentrant_run_is_rejected_while_running() -> None:
    seen: dict[str, object] = {}
    controller = PipelineController()

    def _reentrant(tile):
        if "status" not in seen:
            seen["state"] = controller.state
            seen["status"] = controller.run_inference()
            seen["load"] = controller.load_scan(_flat_scan())
        return tile

    controller.set_model(_reentrant)
    controller.load_scan(_flat_scan())

    assert controller.run_inference() is RunStatus.COMPLETED
    assert seen["state"] is PipelineState.RUNNING
    assert seen["status"] is RunStatus.REJECTED_RUNNING
    assert seen["load"] is False
    assert controller.result is not None


def test_sync_run_rejects_coroutine_backend() -> None:
    async def _async_backend(tile):
        return tile

    controller = _ready_controller(_async_backend)
    with pytest.raises(TypeError, match="run_inference_async"):
        controller.run_inference()
    assert controller.state is PipelineState.IDLE
    assert controller.result is None


def test_async_run_accepts_coroutine_backends() -> None:
    async def _async_backend(tile):
        await asyncio.sleep(0)
        return tile

    controller = _ready_controller(_async_backend)
    status = asyncio.run(controller.run_inference_async())

    assert status is RunStatus.COMPLETED
    assert float(controller.result.difference.max()) == 0.0


def test_sync_and_async_runs_report_identical_progress_and_result() -> None:
    sync_progress: list[tuple[int, int]] = []
    async_progress: list[tuple[int, int]] = []

    sync_controller = _ready_controller(_PatchDefectBackend(defect_tile=3))
    sync_controller.run_inference(progress=lambda cur, total: sync_progress.append((cur, total)))

    backend = _PatchDefectBackend(defect_tile=3)

    async def _async_backend(tile):
        return backend(tile)

    async_controller = _ready_controller(_async_backend)
    asyncio.run(
        async_controller.run_inference_async(
            progress=lambda cur, total: async_progress.append((cur, total))
        )
    )

    assert async_progress == sync_progress == [(i, 16) for i in range(17)]
    np.testing.assert_array_equal(
        async_controller.result.difference, sync_controller.result.difference
    )
    assert async_controller.result.difference_range == sync_controller.result.difference_range


def test_concurrent_async_runs_are_rejected() -> None:
    order: list[int] = []

    async def _async_backend(tile):
        order.append(1)
        await asyncio.sleep(0)
        return tile

    controller = _ready_controller(_async_backend)

    async def _both():
        return await asyncio.gather(
            controller.run_inference_async(),
            controller.run_inference_async(),
        )

    first, second = asyncio.run(_both())
    assert first is RunStatus.COMPLETED
    assert second is RunStatus.REJECTED_RUNNING
    assert len(order) == 16


def test_load_scan_discards_previous_result() -> None:
    controller = _ready_controller()
    controller.run_inference()
    assert controller.result is not None

    assert controller.load_scan(_flat_scan())
    assert controller.result is None


def test_degenerate_scan_is_rejected_without_mutating_session() -> None:
    controller = _ready_controller()
    scan_before = controller.scan

    bad = Scan(width=2, height=2, intensity=np.full(4, np.nan), surface=np.zeros(4))
    with pytest.raises(DegenerateDataError):
        controller.load_scan(bad)
    assert controller.scan is scan_before


def test_percentile_is_session_state() -> None:
    controller = _ready_controller(_PatchDefectBackend(), percentile=50)
    assert controller.percentile == 50

    controller.set_percentile(100)
    assert controller.session.percentile == 100

    with pytest.raises(ValueError):
        controller.set_percentile(101)
    assert controller.percentile == 100

    with pytest.raises(TypeError, match="integer"):
        controller.set_percentile(99.9)
    with pytest.raises(TypeError):
        controller.highlight(12.5)
    assert controller.percentile == 100

    controller.set_percentile(90.0)
    assert controller.percentile == 90


def test_session_snapshot_is_read_only_view() -> None:
    controller = _ready_controller()
    controller.run_inference()

    session = controller.session
    assert session.state is PipelineState.IDLE
    assert session.intensity_range.min == pytest.approx(OFFSET)
    assert session.intensity_range.max == pytest.approx(OFFSET + 1)
    with pytest.raises(ValueError):
        session.result.difference[0] = 1.0


def test_model_objects_with_inference_method_are_supported() -> None:
    class _Model:
        def __init__(self) -> None:
            self.calls = 0

        def inference(self, tile):
            self.calls += 1
            return list(np.asarray(tile))

    model = _Model()
    controller = _ready_controller(model)
    assert controller.run_inference() is RunStatus.COMPLETED
    assert model.calls == 16
