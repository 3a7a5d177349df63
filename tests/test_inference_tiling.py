from __future__ import annotations

import numpy as np
import pytest

import pyprofano.inference.tiling as tiling
from pyprofano.errors import ShapeMismatchError


def _random_intensity(seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.uniform(30000.0, 70000.0, size=tiling.SCAN_SIZE * tiling.SCAN_SIZE).astype(np.float32)


def test_grid_cells_are_row_major() -> None:
    cells = tiling.iter_grid_cells()
    assert len(cells) == 16
    assert [c.index for c in cells] == list(range(16))
    assert (cells[1].grid_x, cells[1].grid_y) == (1, 0)
    assert (cells[4].grid_x, cells[4].grid_y) == (0, 1)
    assert (cells[15].x0, cells[15].y0) == (768, 768)


def test_tiles_partition_every_pixel_exactly_once() -> None:
    idx = np.concatenate(
        [tiling.tile_source_indices(c.grid_x, c.grid_y) for c in tiling.iter_grid_cells()]
    )
    assert idx.size == 1024 * 1024
    np.testing.assert_array_equal(np.sort(idx), np.arange(1024 * 1024))


def test_extract_tile_reads_documented_offsets() -> None:
    intensity = _random_intensity(1)
    tile = tiling.extract_tile(intensity, 2, 3)

    assert tile.dtype == np.float32
    assert tile.shape == (65536,)

    y, x = 5, 7
    raw = float(intensity[(3 * 256 + y) * 1024 + 2 * 256 + x])
    expected = np.float32((raw - 50481.640625) / 16498.2578125)
    assert tile[y * 256 + x] == expected


def test_extract_tile_propagates_non_finite_values() -> None:
    intensity = _random_intensity(2)
    intensity[0] = np.nan
    intensity[1] = np.inf

    tile = tiling.extract_tile(intensity, 0, 0)
    assert np.isnan(tile[0])
    assert np.isposinf(tile[1])
    assert np.isfinite(tile[2:]).all()


def test_extract_tile_accepts_scan_like_objects() -> None:
    class _Holder:
        intensity = np.full(1024 * 1024, 50481.640625, dtype=np.float32)

    tile = tiling.extract_tile(_Holder(), 3, 3)
    assert float(np.abs(tile).max()) == 0.0


@pytest.mark.parametrize("gx, gy", [(-1, 0), (4, 0), (0, 4)])
def test_extract_tile_rejects_grid_indices_out_of_range(gx: int, gy: int) -> None:
    with pytest.raises(ValueError):
        tiling.extract_tile(_random_intensity(), gx, gy)


def test_identity_round_trip_reproduces_intensity() -> None:
    intensity = _random_intensity(3)
    tiles = tiling.extract_all_tiles(intensity)

    reconstruction = tiling.assemble_reconstruction(tiles, 1024, 1024)

    assert reconstruction.dtype == np.float32
    assert reconstruction.shape == intensity.shape
    np.testing.assert_allclose(reconstruction, intensity, rtol=0.0, atol=0.02)


def test_assemble_places_outputs_by_position() -> None:
    outputs = [np.full(65536, float(k), dtype=np.float32) for k in range(16)]
    recon = tiling.assemble_reconstruction(outputs).reshape(1024, 1024)

    for cell in tiling.iter_grid_cells():
        block = recon[cell.y0 : cell.y0 + 256, cell.x0 : cell.x0 + 256]
        expected = np.float32(cell.index * 16498.2578125 + 50481.640625)
        assert np.all(block == expected)


def test_assemble_rejects_wrong_output_count() -> None:
    outputs = [np.zeros(65536, dtype=np.float32)] * 15
    with pytest.raises(ShapeMismatchError, match="16"):
        tiling.assemble_reconstruction(outputs)


def test_assemble_rejects_short_tile() -> None:
    outputs = [np.zeros(65536, dtype=np.float32) for _ in range(16)]
    outputs[9] = np.zeros(65535, dtype=np.float32)
    with pytest.raises(ShapeMismatchError, match="65535"):
        tiling.assemble_reconstruction(outputs)


def test_assemble_accepts_2d_outputs_and_lists() -> None:
    outputs = [np.zeros((256, 256), dtype=np.float32) for _ in range(15)]
    outputs.append([0.0] * 65536)
    recon = tiling.assemble_reconstruction(outputs)
    assert np.all(recon == np.float32(50481.640625))


def test_assemble_guards_smaller_rasters_and_leaves_gaps_zero() -> None:
    outputs = [np.zeros(65536, dtype=np.float32) for _ in range(16)]

    small = tiling.assemble_reconstruction(outputs, width=300, height=200)
    assert small.shape == (300 * 200,)
    assert np.all(small == np.float32(50481.640625))

    large = tiling.assemble_reconstruction(outputs, width=1100, height=1024).reshape(1024, 1100)
    assert np.all(large[:, :1024] == np.float32(50481.640625))
    assert np.all(large[:, 1024:] == 0.0)
