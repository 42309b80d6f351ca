"""
Append-only batch (archive) files.

File format:
    <I  particle count (little-endian uint32)
    then that many particle records, see :mod:`particle_compressor.storage.codec`.

Every mutating operation rewrites the count header before it writes any payload.
Records are encoded before the header is touched, so a particle the format
cannot hold leaves the archive unchanged. A crash between header and payload
leaves the header ahead of the data; no recovery is attempted for that window.
One writer per archive.
"""
from __future__ import annotations

from dataclasses import dataclass
import logging
import os
import shutil
import struct
from pathlib import Path
from typing import BinaryIO, Callable, Iterator, Optional, Sequence, Tuple

from particle_compressor.errors import MissingArchive, SelfMerge, TruncatedRecord
from particle_compressor.models.particle import Particle
from particle_compressor.storage.codec import encode_particle, read_particle

logger = logging.getLogger(__name__)

COUNT_HEADER = struct.Struct("<I")

ParticlePredicate = Callable[[Particle], bool]


@dataclass(frozen=True)
class BatchContents:
    """
    Result of :func:`read_all`.

    declared_count:
      Count stored in the archive header (number of records decoded).
    particles:
      Decoded particles in file order, restricted to those accepted by the predicate.
    """
    path: Path
    declared_count: int
    particles: Tuple[Particle, ...]

    def __len__(self) -> int:
        return len(self.particles)

    def __iter__(self) -> Iterator[Particle]:
        return iter(self.particles)

    def __getitem__(self, i: int) -> Particle:
        return self.particles[i]


def _require(path: str | Path) -> Path:
    p = Path(path)
    if not p.is_file():
        raise MissingArchive(f"Archive does not exist: {p}")
    return p


def _read_count(fh: BinaryIO) -> int:
    fh.seek(0)
    data = fh.read(COUNT_HEADER.size)
    if len(data) != COUNT_HEADER.size:
        raise TruncatedRecord(f"archive header: expected {COUNT_HEADER.size} bytes, got {len(data)}")
    return int(COUNT_HEADER.unpack(data)[0])


def _write_count(fh: BinaryIO, n: int) -> None:
    fh.seek(0)
    fh.write(COUNT_HEADER.pack(int(n)))
    fh.flush()


def create_empty(path: str | Path) -> Path:
    """Create (or truncate) an archive holding zero particles."""
    p = Path(path)
    with open(p, "wb") as fh:
        _write_count(fh, 0)
    logger.info("Created empty archive %s", p)
    return p


def batch_size(path: str | Path) -> int:
    """Particle count declared in the archive header."""
    p = _require(path)
    with open(p, "rb") as fh:
        return _read_count(fh)


def append(path: str | Path, particles: Sequence[Particle]) -> int:
    """
    Append particles to an existing archive, in sequence order.

    Returns the new header count.

    Raises
    ------
    MissingArchive
        The archive was not created first.
    ValueOutOfRange
        A particle does not fit the record format. Nothing is written.
    """
    p = _require(path)
    # All records are encoded before the header changes.
    payload = b"".join(encode_particle(particle) for particle in particles)
    with open(p, "r+b") as fh:
        n = _read_count(fh) + len(particles)
        _write_count(fh, n)
        fh.seek(0, os.SEEK_END)
        fh.write(payload)
    logger.debug("Appended %d particles to %s (now %d)", len(particles), p, n)
    return n


def merge(destination: str | Path, source: str | Path) -> int:
    """
    Copy every record of ``source`` onto the end of ``destination``.

    Records are copied as raw bytes (no decode). Returns the destination's new count.
    """
    dst = _require(destination)
    src = _require(source)
    if os.path.samefile(dst, src):
        raise SelfMerge(f"Cannot merge an archive into itself: {dst}")

    with open(dst, "r+b") as fd, open(src, "rb") as fs:
        n = _read_count(fd) + _read_count(fs)
        _write_count(fd, n)
        fd.seek(0, os.SEEK_END)
        fs.seek(COUNT_HEADER.size)
        shutil.copyfileobj(fs, fd)
    logger.debug("Merged %s into %s (now %d)", src, dst, n)
    return n


def iter_particles(path: str | Path, predicate: Optional[ParticlePredicate] = None) -> Iterator[Particle]:
    """
    Stream decoded records in file order.

    Exactly the header-declared number of records is decoded; with a predicate, only
    the accepted ones are yielded, so rejected records are never accumulated.
    """
    p = _require(path)
    with open(p, "rb") as fh:
        n = _read_count(fh)
        for _ in range(n):
            particle = read_particle(fh)
            if predicate is None or predicate(particle):
                yield particle


def read_all(path: str | Path, predicate: Optional[ParticlePredicate] = None) -> BatchContents:
    p = _require(path)
    n = batch_size(p)
    logger.info("%s contains %d particles", p, n)
    return BatchContents(path=p, declared_count=n, particles=tuple(iter_particles(p, predicate)))
