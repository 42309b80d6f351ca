"""Tests for the particle record codec."""

from __future__ import annotations

import io
import struct

import numpy as np
import pytest

from particle_compressor.errors import CorruptGapTable, TruncatedRecord, ValueOutOfRange
from particle_compressor.models.particle import Particle
from particle_compressor.storage.codec import (
    decode_particle,
    encode_particle,
    read_particle,
    write_particle,
    zero_runs,
)


T0 = 1_712_345_678_901_234_567


def _p(cells, sx: int = 3, sy: int = 4, t: int = T0) -> Particle:
    arr = np.asarray(cells, dtype=np.int64)
    return Particle(captured_at=t, start_x=sx, start_y=sy, width=arr.shape[1], height=arr.shape[0], cells=arr)


# -----------------------------------------------------------------------
# zero runs
# -----------------------------------------------------------------------


def test_zero_runs_are_maximal_and_ordered() -> None:
    starts, lengths = zero_runs(np.array([0, 0, 5, 0, 7, 7, 0, 0, 0]))
    assert starts.tolist() == [0, 3, 6]
    assert lengths.tolist() == [2, 1, 3]


def test_zero_runs_none() -> None:
    starts, lengths = zero_runs(np.array([1, 2, 3]))
    assert starts.size == 0
    assert lengths.size == 0


# -----------------------------------------------------------------------
# exact byte layout
# -----------------------------------------------------------------------


def test_single_cell_layout() -> None:
    p = _p([[7]], sx=3, sy=4, t=123)
    assert encode_particle(p) == struct.pack("<qHHHHH", 123, 3, 4, 1, 1, 0) + struct.pack("<H", 7)


def test_gap_layout() -> None:
    p = _p([[5, 0, 0], [0, 9, 0]], sx=0, sy=2, t=-1)
    expected = (
        struct.pack("<qHHHHH", -1, 0, 2, 3, 2, 2)
        + struct.pack("<HHHH", 1, 3, 5, 1)
        + struct.pack("<HH", 5, 9)
    )
    assert encode_particle(p) == expected


# -----------------------------------------------------------------------
# round trip
# -----------------------------------------------------------------------


@pytest.mark.parametrize(
    "cells",
    [
        [[1]],
        [[65535]],
        [[1, 2, 3], [4, 5, 6]],  # no zero at all
        [[0, 0, 0], [0, 8, 0], [0, 0, 0]],  # single non-zero cell surrounded by zeros
        [[0, 4], [4, 0]],
        [[3, 0, 0, 0, 0, 0, 0, 2]],
    ],
)
def test_roundtrip(cells) -> None:
    p = _p(cells)
    q, consumed = decode_particle(encode_particle(p))
    assert q == p
    assert consumed == len(encode_particle(p))


def test_roundtrip_random_sparse_rectangles() -> None:
    rng = np.random.default_rng(7)
    buf = io.BytesIO()
    originals = []
    for _ in range(25):
        h, w = int(rng.integers(1, 20)), int(rng.integers(1, 20))
        cells = rng.integers(0, 1000, size=(h, w)) * (rng.random((h, w)) < 0.3)
        cells[int(rng.integers(h)), int(rng.integers(w))] = int(rng.integers(1, 1000))
        p = _p(cells, sx=int(rng.integers(0, 200)), sy=int(rng.integers(0, 200)), t=int(rng.integers(0, 2**62)))
        originals.append(p)
        write_particle(buf, p)

    buf.seek(0)
    decoded = [read_particle(buf) for _ in originals]
    assert decoded == originals
    assert buf.read() == b""


# -----------------------------------------------------------------------
# errors
# -----------------------------------------------------------------------


def test_truncated_values() -> None:
    data = encode_particle(_p([[1, 0, 2]]))
    with pytest.raises(TruncatedRecord):
        decode_particle(data[:-1])


def test_truncated_header() -> None:
    with pytest.raises(TruncatedRecord):
        decode_particle(b"\x00" * 10)


def test_truncated_gap_table() -> None:
    data = struct.pack("<qHHHHH", 0, 0, 0, 4, 1, 3) + struct.pack("<HH", 1, 1)
    with pytest.raises(TruncatedRecord):
        decode_particle(data)


@pytest.mark.parametrize(
    "gaps",
    [
        [(2, 1), (1, 1)],  # not increasing
        [(1, 1), (1, 1)],  # repeated start
        [(0, 3), (2, 1)],  # overlapping
        [(3, 5)],  # past the rectangle (area 6)
        [(1, 0)],  # zero length
        [(0, 6)],  # nothing left to read
    ],
)
def test_corrupt_gap_table(gaps) -> None:
    head = struct.pack("<qHHHHH", 0, 0, 0, 3, 2, len(gaps))
    table = b"".join(struct.pack("<HH", s, n) for s, n in gaps)
    data = head + table + struct.pack("<6H", *([1] * 6))
    with pytest.raises(CorruptGapTable):
        decode_particle(data)


def test_encode_rejects_values_outside_u16() -> None:
    with pytest.raises(ValueOutOfRange):
        encode_particle(_p([[70000]]))
    with pytest.raises(ValueOutOfRange):
        encode_particle(_p([[-3, 1]]))
