from __future__ import annotations

from typing import Iterable

import numpy as np
import pandas as pd

from particle_compressor.models.canvas import DEFAULT_GEOMETRY, CanvasGeometry
from particle_compressor.models.particle import Particle


PARTICLE_COLUMNS = (
    "captured_at",
    "start_x",
    "start_y",
    "width",
    "height",
    "n_pixels",
    "energy",
    "max_value",
    "touches_border",
)


def particles_to_frame(
    particles: Iterable[Particle],
    geometry: CanvasGeometry = DEFAULT_GEOMETRY,
) -> pd.DataFrame:
    """Tabulate the accessor surface of each particle, one row per particle.

    ``captured_at`` is a UTC ``datetime64[ns]`` column; the rest are integers except
    ``touches_border`` (bool). An empty input gives an empty frame with the same columns.
    """
    rows = [
        (
            p.captured_at,
            p.start_x,
            p.start_y,
            p.width,
            p.height,
            p.n_pixels,
            p.energy,
            p.max_value,
            p.touches_border(geometry),
        )
        for p in particles
    ]
    df = pd.DataFrame.from_records(rows, columns=list(PARTICLE_COLUMNS))
    df["captured_at"] = pd.to_datetime(df["captured_at"].astype(np.int64), unit="ns", utc=True)
    df["touches_border"] = df["touches_border"].astype(bool)
    return df
