"""
Binary record codec for one :class:`~particle_compressor.models.particle.Particle`.

Record layout (all little-endian):

    +--------------+---------+---------+-------+--------+------+--------------------+-----------------+
    | captured_at  | start_x | start_y | width | height |  G   | G x (start, length)| non-zero values |
    |   int64      |  u16    |  u16    |  u16  |  u16   | u16  |     u16, u16       |   u16 each      |
    +--------------+---------+---------+-------+--------+------+--------------------+-----------------+

Each (start, length) pair is one maximal run of zero cells in row-major rectangle
order, ascending. Every cell not covered by a run is stored as a value.
"""
from __future__ import annotations

import io
import struct
from typing import BinaryIO, Tuple

import numpy as np

from particle_compressor.errors import CorruptGapTable, TruncatedRecord, ValueOutOfRange
from particle_compressor.models.particle import Particle


RECORD_HEADER = struct.Struct("<qHHHHH")
U16_DTYPE = np.dtype("<u2")
U16_MAX = 0xFFFF


def zero_runs(flat: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Maximal runs of zeros in a 1D array.

    Returns (starts, lengths), both int64 and in increasing start order.
    """
    z = np.concatenate(([0], (np.asarray(flat) == 0).astype(np.int8), [0]))
    d = np.diff(z)
    starts = np.flatnonzero(d == 1)
    stops = np.flatnonzero(d == -1)
    return starts.astype(np.int64), (stops - starts).astype(np.int64)


def _check_u16(name: str, value: int) -> None:
    if not (0 <= int(value) <= U16_MAX):
        raise ValueOutOfRange(f"{name}={value} does not fit an unsigned 16-bit field")


def encode_particle(p: Particle) -> bytes:
    """Serialize one particle to its record bytes."""
    for name in ("start_x", "start_y", "width", "height"):
        _check_u16(name, getattr(p, name))
    if not (-(2**63) <= p.captured_at < 2**63):
        raise ValueOutOfRange(f"captured_at={p.captured_at} does not fit a signed 64-bit field")

    flat = p.flat_cells
    values = flat[flat != 0]
    if values.min() < 0 or values.max() > U16_MAX:
        raise ValueOutOfRange(
            f"cell values must be in [0, {U16_MAX}], got range [{values.min()}, {values.max()}]"
        )

    starts, lengths = zero_runs(flat)
    _check_u16("gap count", starts.size)
    if starts.size:
        # Largest start is < area; a run can only reach U16_MAX + 1 on an all-zero rectangle.
        _check_u16("gap start", int(starts[-1]))
        _check_u16("gap length", int(lengths.max()))

    gaps = np.empty(2 * starts.size, dtype=U16_DTYPE)
    gaps[0::2] = starts
    gaps[1::2] = lengths

    head = RECORD_HEADER.pack(p.captured_at, p.start_x, p.start_y, p.width, p.height, starts.size)
    return head + gaps.tobytes() + values.astype(U16_DTYPE).tobytes()


def write_particle(fh: BinaryIO, p: Particle) -> int:
    """Append one record at the current position of ``fh``; returns bytes written."""
    data = encode_particle(p)
    fh.write(data)
    return len(data)


def _read_exact(fh: BinaryIO, n: int, what: str) -> bytes:
    data = fh.read(n)
    if len(data) != n:
        raise TruncatedRecord(f"{what}: expected {n} bytes, got {len(data)}")
    return data


def _validate_gaps(starts: np.ndarray, lengths: np.ndarray, area: int) -> None:
    if starts.size == 0:
        return
    if np.any(lengths == 0):
        raise CorruptGapTable("zero-length gap")
    ends = starts + lengths
    if np.any(starts[1:] <= starts[:-1]):
        raise CorruptGapTable("gap starts are not strictly increasing")
    if np.any(starts[1:] < ends[:-1]):
        raise CorruptGapTable("gaps overlap")
    if int(ends[-1]) > area:
        raise CorruptGapTable(f"gap ends at {int(ends[-1])}, past rectangle area {area}")


def read_particle(fh: BinaryIO) -> Particle:
    """
    Decode one record from the current position of ``fh``.

    Raises
    ------
    TruncatedRecord
        The stream ends before the record does.
    CorruptGapTable
        The zero-run table is not a valid decomposition of the rectangle.
    """
    t, sx, sy, width, height, n_gaps = RECORD_HEADER.unpack(
        _read_exact(fh, RECORD_HEADER.size, "record header")
    )
    area = width * height
    if area == 0:
        raise CorruptGapTable(f"empty rectangle {width}x{height}")

    raw = np.frombuffer(_read_exact(fh, 4 * n_gaps, "gap table"), dtype=U16_DTYPE).astype(np.int64)
    starts, lengths = raw[0::2], raw[1::2]
    _validate_gaps(starts, lengths, area)

    keep = np.ones(area, dtype=bool)
    for s, n in zip(starts, lengths):
        keep[s:s + n] = False
    n_values = int(keep.sum())
    if n_values == 0:
        raise CorruptGapTable("gap table covers the whole rectangle")

    values = np.frombuffer(_read_exact(fh, 2 * n_values, "cell values"), dtype=U16_DTYPE)
    flat = np.zeros(area, dtype=np.int64)
    flat[keep] = values
    return Particle(captured_at=t, start_x=sx, start_y=sy, width=width, height=height, cells=flat.reshape(height, width))


def decode_particle(data: bytes, offset: int = 0) -> Tuple[Particle, int]:
    """Decode one record from a bytes buffer; returns (particle, bytes consumed)."""
    buf = io.BytesIO(data)
    buf.seek(offset)
    p = read_particle(buf)
    return p, buf.tell() - offset
