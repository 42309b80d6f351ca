"""Ingest package - raw canvas files to archived particles.

This package handles:
- Naming of the numbered raw files and their descriptors (RawFileSequence)
- Connected-component extraction of particles from a canvas (find_particles)
- Batch and watch pipelines appending to an archive

Design principle:
- Raw files are processed strictly in index order
- A raw file is only deleted (watch mode) after its particles are stored
"""
from .discovery import RawFileSequence
from .extract import extract_file, find_particles
from .pipeline import IngestConfig, IngestReport, compress_batch, watch_and_compress

__all__ = [
    "RawFileSequence",
    "extract_file",
    "find_particles",
    "IngestConfig",
    "IngestReport",
    "compress_batch",
    "watch_and_compress",
]
