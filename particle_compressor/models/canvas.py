from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Iterable, Optional, Tuple

import numpy as np

from particle_compressor.errors import MalformedInput

if TYPE_CHECKING:
    from particle_compressor.models.particle import Particle


@dataclass(frozen=True)
class CanvasGeometry:
    """
    Fixed dimensions of the sensor canvas.

    width, height:
      Number of columns and rows. The reference detector is 256 x 256.
    dead_pixel:
      ``(x, y)`` of a permanently hot cell that is forced to zero after every load,
      or None to disable masking. The default is the cell at row 91, column 70
      (1-based) of the reference detector.
    """
    width: int = 256
    height: int = 256
    dead_pixel: Optional[Tuple[int, int]] = (69, 90)

    def __post_init__(self) -> None:
        if int(self.width) < 1 or int(self.height) < 1:
            raise ValueError(f"canvas dimensions must be >= 1, got {self.width}x{self.height}")
        if self.dead_pixel is not None:
            x, y = self.dead_pixel
            if not (0 <= x < self.width and 0 <= y < self.height):
                raise ValueError(f"dead_pixel {self.dead_pixel} outside {self.width}x{self.height} canvas")

    @property
    def area(self) -> int:
        return int(self.width) * int(self.height)

    @property
    def shape(self) -> Tuple[int, int]:
        """Array shape ``(height, width)``."""
        return (int(self.height), int(self.width))


DEFAULT_GEOMETRY = CanvasGeometry()


@dataclass(frozen=True)
class Canvas:
    """
    One sensor snapshot: a (height, width) int64 grid in row-major order.

    Notes
    - values is marked read-only; a Canvas never changes after load.
    - the dead pixel (if configured) is already zero.
    """
    geometry: CanvasGeometry
    values: np.ndarray = field(repr=False)

    def __post_init__(self) -> None:
        arr = np.array(self.values, dtype=np.int64, copy=True)
        if arr.shape != self.geometry.shape:
            raise ValueError(f"values shape {arr.shape} does not match geometry {self.geometry.shape}")
        arr.flags.writeable = False
        object.__setattr__(self, "values", arr)

    @property
    def flat(self) -> np.ndarray:
        return self.values.reshape(-1)

    @property
    def nonzero_count(self) -> int:
        return int(np.count_nonzero(self.values))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Canvas):
            return NotImplemented
        return self.geometry == other.geometry and np.array_equal(self.values, other.values)

    __hash__ = None  # type: ignore[assignment]


def empty_canvas(geometry: CanvasGeometry = DEFAULT_GEOMETRY) -> Canvas:
    return Canvas(geometry=geometry, values=np.zeros(geometry.shape, dtype=np.int64))


def load_canvas(path: str | Path, geometry: CanvasGeometry = DEFAULT_GEOMETRY) -> Canvas:
    """
    Read a raw text canvas.

    The reader is whitespace-agnostic: the first ``width * height`` tokens are taken in
    row-major order, line breaks are irrelevant and extra tokens are ignored.

    Raises
    ------
    MalformedInput
        Fewer than ``width * height`` tokens, or a token that is not an integer.
    """
    p = Path(path)
    tokens = p.read_text(errors="replace").split()
    n = geometry.area
    if len(tokens) < n:
        raise MalformedInput(f"{p}: expected {n} values, found {len(tokens)}")

    try:
        flat = np.array([int(tok) for tok in tokens[:n]], dtype=np.int64)
    except ValueError as e:
        raise MalformedInput(f"{p}: non-integer value ({e})") from e

    values = flat.reshape(geometry.shape)
    if geometry.dead_pixel is not None:
        x, y = geometry.dead_pixel
        values[y, x] = 0
    return Canvas(geometry=geometry, values=values)


def save_canvas_text(canvas: Canvas, path: str | Path) -> None:
    """Write one row per line, single spaces between columns (inverse of load_canvas)."""
    lines = [" ".join(str(int(v)) for v in row) for row in canvas.values]
    Path(path).write_text("\n".join(lines) + "\n")


def imprint(
    items: Iterable[Any],
    geometry: CanvasGeometry = DEFAULT_GEOMETRY,
    select: Optional[Callable[[Any], Optional["Particle"]]] = None,
) -> Canvas:
    """
    Project particles onto a zero canvas, keeping the maximum where they overlap.

    items:
      Particles, or arbitrary records when ``select`` is given.
    select:
      Maps one item to the Particle to draw, or None to skip the item.
    """
    values = np.zeros(geometry.shape, dtype=np.int64)
    for item in items:
        p = select(item) if select is not None else item
        if p is None:
            continue
        p.imprint_on(values)
    return Canvas(geometry=geometry, values=values)
