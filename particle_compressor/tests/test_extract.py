from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Dict, Tuple

import numpy as np
import pytest

from particle_compressor.ingest.extract import extract_file, find_particles
from particle_compressor.models.canvas import Canvas, CanvasGeometry, save_canvas_text


def _canvas(values, dead_pixel=None) -> Canvas:
    arr = np.asarray(values, dtype=np.int64)
    geom = CanvasGeometry(width=arr.shape[1], height=arr.shape[0], dead_pixel=dead_pixel)
    return Canvas(geometry=geom, values=arr)


def _labels(canvas: Canvas, particles) -> Dict[Tuple[int, int], int]:
    """(x, y) canvas cell -> particle number, from the non-zero cells of each particle."""
    out: Dict[Tuple[int, int], int] = {}
    for k, p in enumerate(particles):
        ys, xs = np.nonzero(p.cells)
        for y, x in zip(ys, xs):
            key = (p.start_x + int(x), p.start_y + int(y))
            assert key not in out, f"cell {key} in two particles"
            out[key] = k
    return out


def test_single_cell() -> None:
    ps = find_particles(_canvas([[0, 0, 0], [0, 4, 0], [0, 0, 0]]), captured_at=11)
    assert len(ps) == 1
    p = ps[0]
    assert (p.start_x, p.start_y, p.width, p.height) == (1, 1, 1, 1)
    assert p.cells.tolist() == [[4]]
    assert p.captured_at == 11


def test_diagonal_cells_are_connected() -> None:
    ps = find_particles(_canvas([
        [0, 0, 0, 0, 0],
        [0, 1, 0, 0, 0],
        [0, 0, 2, 0, 0],
        [0, 0, 0, 3, 0],
        [0, 0, 0, 0, 0],
    ]))
    assert len(ps) == 1
    assert (ps[0].start_x, ps[0].start_y, ps[0].width, ps[0].height) == (1, 1, 3, 3)
    np.testing.assert_array_equal(ps[0].cells, np.diag([1, 2, 3]))


def test_anti_diagonal_v_shape_is_one_particle() -> None:
    ps = find_particles(_canvas([
        [0, 5, 0, 7, 0],
        [0, 0, 6, 0, 0],
        [0, 0, 0, 0, 0],
    ]))
    assert len(ps) == 1
    assert ps[0].cells.tolist() == [[5, 0, 7], [0, 6, 0]]


def test_rectangle_excludes_other_particle_cells() -> None:
    # The L encloses a separate cell inside its bounding box.
    ps = find_particles(_canvas([
        [3, 3, 3, 3, 0, 0],
        [3, 0, 0, 0, 0, 0],
        [3, 0, 0, 9, 0, 0],
        [3, 0, 0, 0, 0, 0],
    ]))
    assert len(ps) == 2
    assert ps[0].cells.shape == (4, 4)
    assert int(ps[0].cells[2, 3]) == 0
    assert (ps[1].start_x, ps[1].start_y) == (3, 2)


def test_particles_ordered_by_first_cell() -> None:
    ps = find_particles(_canvas([
        [0, 0, 0, 0, 1],
        [2, 0, 0, 0, 0],
        [0, 0, 3, 0, 0],
    ]))
    # (4,0) and (0,1) touch through the left/right seam
    assert len(ps) == 2
    assert (ps[0].start_x, ps[0].start_y) == (0, 0)
    assert ps[0].width == 5
    assert (ps[1].start_x, ps[1].start_y) == (2, 2)


def test_wrap_scenario_4x4() -> None:
    vals = np.zeros((4, 4), dtype=int)
    vals[1, 0] = 5
    vals[1, 3] = 6
    ps = find_particles(_canvas(vals))
    assert len(ps) == 1
    assert ps[0].n_pixels == 2


def test_wrap_diagonal_across_seam() -> None:
    vals = np.zeros((4, 6), dtype=int)
    vals[1, 5] = 1
    vals[2, 0] = 1
    assert len(find_particles(_canvas(vals))) == 1


def test_no_vertical_wrap() -> None:
    vals = np.zeros((4, 4), dtype=int)
    vals[0, 2] = 1
    vals[3, 2] = 1
    ps = find_particles(_canvas(vals))
    assert len(ps) == 2


def test_seam_does_not_link_distant_columns() -> None:
    # (W-1, y) only reaches column 0 across the seam, not column 1
    vals = np.zeros((3, 5), dtype=int)
    vals[0, 4] = 1
    vals[1, 1] = 1
    assert len(find_particles(_canvas(vals))) == 2


@pytest.mark.parametrize("seed", [0, 1, 2, 3])
def test_random_canvas_complete_disjoint_maximal(seed: int) -> None:
    rng = np.random.default_rng(seed)
    H, W = 17, 23
    vals = rng.integers(1, 50, size=(H, W)) * (rng.random((H, W)) < 0.35)
    canvas = _canvas(vals)
    ps = find_particles(canvas)

    labels = _labels(canvas, ps)
    nz = {(int(x), int(y)) for y, x in zip(*np.nonzero(vals))}
    assert set(labels) == nz

    # every particle cell carries the canvas value
    for p in ps:
        ys, xs = np.nonzero(p.cells)
        np.testing.assert_array_equal(p.cells[ys, xs], vals[p.start_y + ys, p.start_x + xs])

    # maximal: neighbouring non-zero cells (horizontal wrap only) share a label
    for (x, y), k in labels.items():
        for dy in (-1, 0, 1):
            for dx in (-1, 0, 1):
                ny = y + dy
                if (dx, dy) == (0, 0) or not (0 <= ny < H):
                    continue
                nb = ((x + dx) % W, ny)
                if nb in labels:
                    assert labels[nb] == k


def test_dense_canvas_no_recursion_limit() -> None:
    vals = np.ones((120, 120), dtype=int)
    ps = find_particles(_canvas(vals))
    assert len(ps) == 1
    assert ps[0].n_pixels == 120 * 120


def test_empty_canvas() -> None:
    assert find_particles(_canvas(np.zeros((3, 3), dtype=int))) == []


def test_extract_file_masks_dead_pixel() -> None:
    geom = CanvasGeometry(width=4, height=3, dead_pixel=(1, 1))
    vals = np.zeros((3, 4), dtype=int)
    vals[1, 1] = 200
    vals[0, 3] = 4
    with tempfile.TemporaryDirectory() as d:
        p = Path(d) / "raw.txt"
        save_canvas_text(_canvas(vals), p)
        ps = extract_file(p, geom)
    assert len(ps) == 1
    assert ps[0].cells.tolist() == [[4]]
