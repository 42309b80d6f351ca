"""Exception types raised by particle_compressor.

Every error derives from :class:`ParticleCompressorError` and from the built-in
exception the rest of the code base would otherwise raise (``ValueError`` for
bad content, ``FileNotFoundError`` for missing archives), so callers catching the
built-ins keep working.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from particle_compressor.ingest.pipeline import IngestReport


class ParticleCompressorError(Exception):
    """Base class for all particle_compressor errors."""


class MalformedInput(ParticleCompressorError, ValueError):
    """Raw canvas file has too few tokens or a non-integer token."""


class MissingArchive(ParticleCompressorError, FileNotFoundError):
    """Append/merge target (or merge source) does not exist."""


class TruncatedRecord(ParticleCompressorError, ValueError):
    """Fewer bytes remain than a header or record declares."""


class CorruptGapTable(ParticleCompressorError, ValueError):
    """Zero-run table of a record is not a valid run decomposition."""


class ValueOutOfRange(ParticleCompressorError, ValueError):
    """A particle field or cell value does not fit its on-disk width."""


class RawFileTimeout(ParticleCompressorError, TimeoutError):
    """Watch mode waited the maximum time without the next raw file appearing."""

    def __init__(self, path: Path, waited_s: float, report: Optional["IngestReport"] = None):
        self.path = Path(path)
        self.waited_s = float(waited_s)
        self.report = report
        super().__init__(f"Could not find '{self.path}' in max time. Compressing stopped")


class SelfMerge(ParticleCompressorError, ValueError):
    """Merge source and destination are the same archive file."""
