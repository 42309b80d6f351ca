"""
Command-line interface.

    python -m particle_compressor new <archive>
    python -m particle_compressor batch <archive> <raw-prefix> <count> [digits]
    python -m particle_compressor auto <archive> <raw-prefix> <digits> <poll-interval-ms> <max-wait-ms>
    python -m particle_compressor append <destination> [source...]
    python -m particle_compressor info <archive> [--csv PATH]

Raw files are named ``<raw-prefix>_<index>.txt`` with the index zero-padded to
``digits``. In ``batch`` mode, ``digits`` defaults to the number of characters of
the ``count`` argument as typed (``batch a.bin data 10`` reads data_00.txt ...).
"""
from __future__ import annotations

import argparse
import logging
import sys
import textwrap
from typing import NoReturn, Optional, Sequence

from particle_compressor.errors import ParticleCompressorError, RawFileTimeout
from particle_compressor.ingest.discovery import RawFileSequence
from particle_compressor.ingest.pipeline import IngestConfig, compress_batch, watch_and_compress
from particle_compressor.logging_config import setup_logging
from particle_compressor.models.results import particles_to_frame
from particle_compressor.storage.batch_file import batch_size, create_empty, merge, read_all


UNKNOWN_COMMAND = "unknown command"


class _Parser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(1, f"{UNKNOWN_COMMAND}\n")


def _int_arg(text: str) -> int:
    try:
        return int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {text!r}")


def build_parser() -> argparse.ArgumentParser:
    p = _Parser(
        prog="python -m particle_compressor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description=textwrap.dedent(
            """\
            Extract particles from raw canvas files and store them in compact
            append-only archives.
            """
        ),
    )
    p.add_argument("--log-level", default="INFO", help="DEBUG, INFO, WARNING or ERROR (default: INFO)")
    p.add_argument("--log-file", default=None, help="Also append log messages to this file")

    sub = p.add_subparsers(dest="command", parser_class=_Parser)

    s = sub.add_parser("new", help="Create an empty archive")
    s.add_argument("archive")

    s = sub.add_parser("batch", help="Compress existing raw files into an archive")
    s.add_argument("archive")
    s.add_argument("raw_prefix")
    # Kept as text: the default digits is its length.
    s.add_argument("count")
    s.add_argument("digits", nargs="?", type=_int_arg, default=None)

    s = sub.add_parser("auto", help="Compress raw files while they are produced, deleting them afterwards")
    s.add_argument("archive")
    s.add_argument("raw_prefix")
    s.add_argument("digits", type=_int_arg)
    s.add_argument("poll_interval_ms", type=_int_arg)
    s.add_argument("max_wait_ms", type=_int_arg)

    s = sub.add_parser("append", help="Append archives to a destination archive")
    s.add_argument("destination")
    s.add_argument("sources", nargs="*")

    s = sub.add_parser("info", help="Show the particles stored in an archive")
    s.add_argument("archive")
    s.add_argument("--csv", default=None, help="Write the per-particle table to this CSV file")
    return p


def _cmd_new(ns: argparse.Namespace) -> int:
    create_empty(ns.archive)
    return 0


def _cmd_batch(ns: argparse.Namespace) -> int:
    try:
        count = int(ns.count)
    except ValueError:
        print(UNKNOWN_COMMAND, file=sys.stderr)
        return 1
    digits = ns.digits if ns.digits is not None else len(ns.count)
    report = compress_batch(ns.archive, RawFileSequence(ns.raw_prefix, digits), count, IngestConfig())
    print(f"[info] processed {report.n_files} files, {report.total_particles} particles")
    return 0


def _cmd_auto(ns: argparse.Namespace) -> int:
    seq = RawFileSequence(ns.raw_prefix, ns.digits)
    try:
        watch_and_compress(ns.archive, seq, ns.poll_interval_ms, ns.max_wait_ms, IngestConfig())
    except RawFileTimeout as e:
        print(str(e), file=sys.stderr)
        if e.report is not None:
            print(f"[info] processed {e.report.n_files} files, {e.report.total_particles} particles")
            for w in e.report.warnings:
                print(f"[warn] {w}", file=sys.stderr)
        return 1
    return 0


def _cmd_append(ns: argparse.Namespace) -> int:
    # No sources: only report the destination's count.
    for src in ns.sources:
        merge(ns.destination, src)
    print(f"{ns.destination} now contains {batch_size(ns.destination)} particles")
    return 0


def _cmd_info(ns: argparse.Namespace) -> int:
    contents = read_all(ns.archive)
    df = particles_to_frame(contents)
    print(f"{ns.archive} contains {contents.declared_count} particles")
    if len(df):
        print(
            f"  pixels: median={df['n_pixels'].median():.6g}, max={int(df['n_pixels'].max())}; "
            f"touching border: {int(df['touches_border'].sum())}"
        )
        print(f"  captured: {df['captured_at'].min()} .. {df['captured_at'].max()}")
    if ns.csv:
        df.to_csv(ns.csv, index=False)
        print(f"[info] wrote {ns.csv}")
    return 0


_COMMANDS = {
    "new": _cmd_new,
    "batch": _cmd_batch,
    "auto": _cmd_auto,
    "append": _cmd_append,
    "info": _cmd_info,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    p = build_parser()
    ns = p.parse_args(list(argv) if argv is not None else None)
    if ns.command is None:
        print(UNKNOWN_COMMAND, file=sys.stderr)
        return 1

    level = getattr(logging, str(ns.log_level).upper(), None)
    if not isinstance(level, int):
        print(UNKNOWN_COMMAND, file=sys.stderr)
        return 1
    setup_logging(level, ns.log_file)

    try:
        return _COMMANDS[ns.command](ns)
    except ParticleCompressorError as e:
        print(f"[error] {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
