"""
Ingestion pipeline: numbered raw canvas files -> particles -> archive.

Two modes:
- batch: process index 0..count-1, stop quietly at the first missing file.
- watch: process index 0, 1, ... as an external producer writes them; wait up to
  max_wait_ms for each file, delete raw inputs after they are stored.

Files are always handled in increasing index order. The archive is opened and
closed once per file (single writer).
"""
from __future__ import annotations

from dataclasses import dataclass, field
import logging
import time
from pathlib import Path
from typing import Callable, List, NoReturn, Optional, Tuple

from particle_compressor.errors import RawFileTimeout
from particle_compressor.ingest.discovery import RawFileSequence
from particle_compressor.ingest.extract import extract_file
from particle_compressor.models.canvas import DEFAULT_GEOMETRY, CanvasGeometry
from particle_compressor.storage.batch_file import append, batch_size

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestConfig:
    """
    geometry:
      Canvas dimensions and dead pixel of the raw files.
    settle_delay_s:
      Watch mode: pause between seeing a file and reading it, so the producer can
      finish writing.
    sleep, clock:
      Time sources (seconds). Replaced in tests.
    """
    geometry: CanvasGeometry = DEFAULT_GEOMETRY
    settle_delay_s: float = 0.5
    sleep: Callable[[float], None] = time.sleep
    clock: Callable[[], float] = time.monotonic


@dataclass(frozen=True)
class ProcessedFile:
    index: int
    path: Path
    n_particles: int


@dataclass
class IngestReport:
    """
    Progress of one pipeline run.

    stopped_at:
      Index that ended the run (missing file, timeout) or None.
    stop_reason:
      "missing" (batch mode, file absent), "count" (batch mode, all files done)
      or "timeout" (watch mode).
    """
    archive: Path
    processed: List[ProcessedFile] = field(default_factory=list)
    stopped_at: Optional[int] = None
    stop_reason: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def total_particles(self) -> int:
        return sum(f.n_particles for f in self.processed)

    @property
    def n_files(self) -> int:
        return len(self.processed)


def ingest_file(archive: str | Path, path: str | Path, geometry: CanvasGeometry = DEFAULT_GEOMETRY) -> int:
    """Extract one raw file and append its particles; returns the particle count."""
    particles = extract_file(path, geometry)
    append(archive, particles)
    return len(particles)


def compress_batch(
    archive: str | Path,
    sequence: RawFileSequence,
    count: int,
    config: Optional[IngestConfig] = None,
) -> IngestReport:
    """
    Batch mode: ingest raw files 0..count-1 into an existing archive.

    A missing file ends the run normally (stop_reason "missing").
    """
    cfg = config or IngestConfig()
    archive = Path(archive)
    batch_size(archive)  # MissingArchive before any raw file is touched

    report = IngestReport(archive=archive)
    for index in range(int(count)):
        path = sequence.path_for(index)
        if not path.is_file():
            logger.info("%s does not exist", path)
            report.stopped_at = index
            report.stop_reason = "missing"
            return report
        n = ingest_file(archive, path, cfg.geometry)
        report.processed.append(ProcessedFile(index=index, path=path, n_particles=n))

    report.stop_reason = "count"
    return report


def wait_for_file(
    path: Path,
    *,
    poll_interval_s: float,
    max_wait_s: float,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> Tuple[bool, float]:
    """
    Poll until ``path`` exists or ``max_wait_s`` has elapsed.

    Returns (found, waited_s).
    """
    t0 = clock()
    while not path.exists():
        waited = clock() - t0
        if waited >= max_wait_s:
            return False, waited
        logger.debug("Waiting for %s (%.3f s)", path, waited)
        sleep(poll_interval_s)
    return True, clock() - t0


def _remove_quietly(path: Path, report: IngestReport, *, missing_ok: bool = False) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        if missing_ok:
            logger.debug("No %s to remove", path)
            return
        msg = f"could not remove {path}: file not found"
        logger.warning(msg)
        report.warnings.append(msg)
    except OSError as e:
        msg = f"could not remove {path}: {e.strerror or e}"
        logger.warning(msg)
        report.warnings.append(msg)


def watch_and_compress(
    archive: str | Path,
    sequence: RawFileSequence,
    poll_interval_ms: int,
    max_wait_ms: int,
    config: Optional[IngestConfig] = None,
) -> NoReturn:
    """
    Watch mode: ingest raw files 0, 1, ... while they are being produced.

    For each index: poll every ``poll_interval_ms`` until the file exists; after
    ``max_wait_ms`` without it, the whole run ends with RawFileTimeout (the partial
    report is attached to the exception). Once found: wait the settle delay, ingest,
    then remove the raw file and its descriptor. Removal failures are logged and
    recorded, never fatal.
    """
    cfg = config or IngestConfig()
    archive = Path(archive)
    batch_size(archive)

    report = IngestReport(archive=archive)
    poll_s = max(0.0, float(poll_interval_ms) / 1000.0)
    max_s = max(0.0, float(max_wait_ms) / 1000.0)

    index = 0
    while True:
        path = sequence.path_for(index)
        found, waited = wait_for_file(path, poll_interval_s=poll_s, max_wait_s=max_s, sleep=cfg.sleep, clock=cfg.clock)
        if not found:
            report.stopped_at = index
            report.stop_reason = "timeout"
            err = RawFileTimeout(path, waited, report)
            logger.error(str(err))
            raise err

        if cfg.settle_delay_s > 0:
            cfg.sleep(cfg.settle_delay_s)
        n = ingest_file(archive, path, cfg.geometry)
        report.processed.append(ProcessedFile(index=index, path=path, n_particles=n))

        _remove_quietly(path, report)
        _remove_quietly(sequence.descriptor_for(index), report, missing_ok=True)
        index += 1
