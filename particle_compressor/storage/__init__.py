"""Storage package - particle record codec and append-only batch files.

Key entry points:
- encode_particle / read_particle: one record <-> bytes
- create_empty, append, merge: mutate an archive (header first, then payload)
- read_all, iter_particles: consumer-side reading, optionally filtered while streaming
"""
from .batch_file import (
    BatchContents,
    append,
    batch_size,
    create_empty,
    iter_particles,
    merge,
    read_all,
)
from .codec import decode_particle, encode_particle, read_particle, write_particle

__all__ = [
    "BatchContents",
    "append",
    "batch_size",
    "create_empty",
    "iter_particles",
    "merge",
    "read_all",
    "decode_particle",
    "encode_particle",
    "read_particle",
    "write_particle",
]
