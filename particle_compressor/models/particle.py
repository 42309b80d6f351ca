from __future__ import annotations

from dataclasses import dataclass, field
import time

import numpy as np
import pandas as pd

from particle_compressor.models.canvas import DEFAULT_GEOMETRY, Canvas, CanvasGeometry


@dataclass(frozen=True, eq=False)
class Particle:
    """
    One connected region of non-zero canvas cells, stored as its bounding rectangle.

    captured_at:
      Wall-clock instant of extraction, integer nanoseconds since the Unix epoch.
    start_x, start_y:
      Top-left corner of the rectangle on the source canvas.
    width, height:
      Rectangle size (>= 1).
    cells:
      int64 array of shape ``(height, width)``. Cells inside the rectangle that do not
      belong to the region are 0. At least one cell is non-zero.
    """
    captured_at: int
    start_x: int
    start_y: int
    width: int
    height: int
    cells: np.ndarray = field(repr=False)

    def __post_init__(self) -> None:
        for name in ("captured_at", "start_x", "start_y", "width", "height"):
            object.__setattr__(self, name, int(getattr(self, name)))
        if self.width < 1 or self.height < 1:
            raise ValueError(f"particle size must be >= 1, got {self.width}x{self.height}")
        if self.start_x < 0 or self.start_y < 0:
            raise ValueError(f"particle offset must be >= 0, got ({self.start_x}, {self.start_y})")

        arr = np.array(self.cells, dtype=np.int64, copy=True)
        if arr.ndim == 1 and arr.size == self.width * self.height:
            arr = arr.reshape(self.height, self.width)
        if arr.shape != (self.height, self.width):
            raise ValueError(f"cells shape {arr.shape} does not match {self.height}x{self.width}")
        if not np.any(arr):
            raise ValueError("particle has no non-zero cell")
        arr.flags.writeable = False
        object.__setattr__(self, "cells", arr)

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def flat_cells(self) -> np.ndarray:
        return self.cells.reshape(-1)

    @property
    def n_pixels(self) -> int:
        return int(np.count_nonzero(self.cells))

    @property
    def energy(self) -> int:
        return int(self.cells.sum())

    @property
    def max_value(self) -> int:
        return int(self.cells.max())

    @property
    def captured_timestamp(self) -> pd.Timestamp:
        return pd.Timestamp(self.captured_at, unit="ns", tz="UTC")

    def touches_border(self, geometry: CanvasGeometry = DEFAULT_GEOMETRY) -> bool:
        return (
            self.start_x == 0
            or self.start_y == 0
            or self.start_x + self.width >= geometry.width
            or self.start_y + self.height >= geometry.height
        )

    def imprint_on(self, values: np.ndarray) -> None:
        """Max-merge the rectangle into a writable ``(H, W)`` array in place."""
        H, W = values.shape
        x1 = self.start_x + self.width
        y1 = self.start_y + self.height
        if x1 > W or y1 > H:
            raise ValueError(
                f"particle rectangle ({self.start_x},{self.start_y})+{self.width}x{self.height} "
                f"does not fit a {W}x{H} canvas"
            )
        view = values[self.start_y:y1, self.start_x:x1]
        np.maximum(view, self.cells, out=view)

    def to_canvas(self, geometry: CanvasGeometry = DEFAULT_GEOMETRY) -> Canvas:
        values = np.zeros(geometry.shape, dtype=np.int64)
        self.imprint_on(values)
        return Canvas(geometry=geometry, values=values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Particle):
            return NotImplemented
        return (
            self.captured_at == other.captured_at
            and self.start_x == other.start_x
            and self.start_y == other.start_y
            and self.width == other.width
            and self.height == other.height
            and np.array_equal(self.cells, other.cells)
        )

    __hash__ = None  # type: ignore[assignment]


def now_ns() -> int:
    return time.time_ns()


def particle_from_members(
    canvas: Canvas,
    members: np.ndarray,
    *,
    x_min: int,
    y_min: int,
    x_max: int,
    y_max: int,
    captured_at: int | None = None,
) -> Particle:
    """
    Materialize one region as its bounding rectangle.

    members:
      Flat canvas indices of the region (sorted ascending). Only these cells are
      copied; every other rectangle cell stays 0.
    """
    W = canvas.geometry.width
    idx = np.asarray(members, dtype=np.int64)
    ys, xs = np.divmod(idx, W)
    width = int(x_max) - int(x_min) + 1
    height = int(y_max) - int(y_min) + 1
    cells = np.zeros((height, width), dtype=np.int64)
    cells[ys - y_min, xs - x_min] = canvas.flat[idx]
    return Particle(
        captured_at=now_ns() if captured_at is None else int(captured_at),
        start_x=int(x_min),
        start_y=int(y_min),
        width=width,
        height=height,
        cells=cells,
    )
