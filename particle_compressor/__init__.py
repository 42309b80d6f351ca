"""Particle Compressor -- connected-particle extraction and compact archives for pixel-detector canvases.

A pixel detector periodically writes its full canvas (a fixed grid of integer
intensities) as a text file. Almost every cell is zero; the interesting content
is the handful of connected regions ("particles") left by traversing radiation.

This package provides tools for:
- Loading raw text canvases and masking the known dead pixel
- Extracting 8-connected particles (the canvas wraps horizontally, not vertically)
- Encoding particles as compact binary records (zero runs + non-zero values)
- Appending particles to append-only archives and merging archives
- Ingesting numbered raw files in one shot or while they are being written
- Reading archives back, optionally filtered while streaming

Key principles:
- Archives are append-only: the count header is rewritten before any payload
- Records round-trip exactly: decode(encode(p)) == p
- Raw files are processed strictly in index order

Main subpackages:
- models: CanvasGeometry, Canvas, Particle, particle tables
- ingest: raw file naming, extraction, batch/watch pipelines
- storage: record codec and batch files
"""

__all__ = []
