from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Tuple

import numpy as np

from particle_compressor.models.canvas import DEFAULT_GEOMETRY, Canvas, CanvasGeometry, load_canvas
from particle_compressor.models.particle import Particle, now_ns, particle_from_members

logger = logging.getLogger(__name__)


# (dx, dy) for the 8 neighbours
NEIGHBOUR_OFFSETS: Tuple[Tuple[int, int], ...] = (
    (-1, 0), (1, 0), (0, -1), (0, 1),
    (-1, -1), (1, -1), (-1, 1), (1, 1),
)


def _neighbour_steps(width: int) -> Tuple[Tuple[int, int, int], ...]:
    """(dx, dy, flat step) for every neighbour offset on a canvas ``width`` wide."""
    return tuple((dx, dy, dy * width + dx) for dx, dy in NEIGHBOUR_OFFSETS)


def find_particles(canvas: Canvas, *, captured_at: Optional[int] = None) -> List[Particle]:
    """
    Split the non-zero cells of a canvas into 8-connected particles.

    Connectivity
    ------------
    - The canvas is a cylinder: column 0 and column W-1 are adjacent (same row and
      diagonals). The column of a neighbour is taken modulo W.
    - Rows do not wrap. A neighbour above row 0 or below row H-1 has a flat index
      outside ``[0, W*H)`` and is dropped when it is popped from the work list.

    Traversal is an iterative flood fill (explicit stack) seeded from the lowest
    unvisited non-zero flat index, so particles come out ordered by their first cell.
    Members are sorted before the particle is built.

    captured_at:
      Timestamp (ns since epoch) stamped on every particle of this pass. Defaults to now.
    """
    geometry = canvas.geometry
    W = int(geometry.width)
    area = geometry.area
    flat = canvas.flat
    stamp = now_ns() if captured_at is None else int(captured_at)
    steps = _neighbour_steps(W)

    visited = np.zeros(area, dtype=bool)
    particles: List[Particle] = []

    for seed in np.flatnonzero(flat):
        seed = int(seed)
        if visited[seed]:
            continue

        x_min, y_min, x_max, y_max = W, geometry.height, -1, -1
        members: List[int] = []
        stack = [seed]
        while stack:
            b = stack.pop()
            if b < 0 or b >= area or visited[b] or not flat[b]:
                continue
            visited[b] = True
            members.append(b)

            y, x = divmod(b, W)
            x_min = min(x_min, x)
            x_max = max(x_max, x)
            y_min = min(y_min, y)
            y_max = max(y_max, y)

            for dx, dy, step in steps:
                nx = x + dx
                if 0 <= nx < W:
                    stack.append(b + step)
                else:
                    stack.append(b + dy * W + (nx % W) - x)

        particles.append(
            particle_from_members(
                canvas,
                np.sort(np.asarray(members, dtype=np.int64)),
                x_min=x_min,
                y_min=y_min,
                x_max=x_max,
                y_max=y_max,
                captured_at=stamp,
            )
        )

    return particles


def extract_file(path: str | Path, geometry: CanvasGeometry = DEFAULT_GEOMETRY) -> List[Particle]:
    """Load one raw canvas file and extract its particles."""
    particles = find_particles(load_canvas(path, geometry))
    logger.info("%s contains %d particles", path, len(particles))
    return particles
