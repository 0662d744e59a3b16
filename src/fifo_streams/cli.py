from __future__ import annotations

import argparse
import sys
from importlib.metadata import PackageNotFoundError, version
from typing import BinaryIO, Sequence, TextIO

from .copy_utils import StreamReadError
from .fifo_utils import FifoCreationError, FifoOpenError
from .log_utils import log, set_up_logging
from .range_list import RangeList, RangeListSyntaxError
from .size_utils import SizeFormatError, parse_size
from .splitter import DEFAULT_PREFIX, AnnounceError, FifoSplitter

__all__ = ["main", "build_parser", "EXIT_SUCCESS", "EXIT_FAILURE", "EXIT_DEGRADED"]

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
# 2 is argparse's exit status for usage errors
EXIT_DEGRADED = 3

DESCRIPTION = (
    "Splits a stream up into multiple FIFO chunk files, reads your stream from stdin."
    " The path of each chunk's FIFO is printed to stdout when it is ready to be read."
)


def get_version() -> str:
    try:
        return version("fifo_streams")
    except PackageNotFoundError:  # pragma: no cover
        return "unknown"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fifo-split", description=DESCRIPTION)
    parser.add_argument(
        "--chunk-size",
        required=True,
        help="size of chunks to divide input stream into (e.g. 5GB, 8MiB, 700000B)",
    )
    parser.add_argument(
        "--expected-size",
        help="expected total size of stream, so that chunk FIFOs can be preallocated"
        " (e.g. 4.5TiB)",
    )
    parser.add_argument(
        "--prefix",
        default=DEFAULT_PREFIX,
        help="prefix of filename for chunk FIFOs to generate (default: %(default)s)",
    )
    parser.add_argument(
        "--only-chunks",
        help="only output chunks with specified indexes, comma separated list of"
        " ranges (e.g. 0,5,10-)",
    )
    parser.add_argument(
        "--skip-chunks",
        help="skip chunks with specified indexes, comma separated list (e.g. -5,7,13-)",
    )
    parser.add_argument(
        "-0",
        "--print0",
        action="store_true",
        help="use nul characters instead of newlines to separate chunk filenames in"
        " output (for use with 'xargs -0')",
    )
    parser.add_argument(
        "--progress", action="store_true", help="show a progress bar on stderr"
    )
    parser.add_argument(
        "-q", "--quiet", action="store_true", help="only log errors to stderr"
    )
    parser.add_argument("--version", action="version", version=get_version())
    return parser


def parse_size_option(name: str, value: str) -> int | None:
    try:
        return parse_size(value)
    except SizeFormatError as exc:
        log.error(f"Invalid {name}: {exc}")
        return None


def parse_chunks_option(name: str, value: str | None) -> RangeList | None:
    try:
        return RangeList.parse(value)
    except RangeListSyntaxError as exc:
        log.error(f"Invalid {name}: {exc}")
        return None


def run(
    args: argparse.Namespace, stdin: BinaryIO, stdout: TextIO
) -> int:
    chunk_size = parse_size_option("chunk-size", args.chunk_size)
    if chunk_size is None:
        return EXIT_FAILURE
    log.info(f"Chunk size is {chunk_size}B")
    expected_size = 0
    if args.expected_size is not None:
        expected_size = parse_size_option("expected-size", args.expected_size)
        if expected_size is None:
            return EXIT_FAILURE
    only_chunks = parse_chunks_option("only-chunks", args.only_chunks)
    skip_chunks = parse_chunks_option("skip-chunks", args.skip_chunks)
    if only_chunks is None or skip_chunks is None:
        return EXIT_FAILURE
    if only_chunks:
        log.info(f"Only writing chunks {only_chunks}")
    if skip_chunks:
        log.info(f"Skipping chunks {skip_chunks}")
    splitter = FifoSplitter(
        chunk_size=chunk_size,
        expected_size=expected_size,
        prefix=args.prefix,
        only_chunks=only_chunks,
        skip_chunks=skip_chunks,
        zero_sep=args.print0,
        output=stdout,
        show_progress_bar=args.progress,
    )
    try:
        result = splitter.split(stdin)
    except (StreamReadError, FifoCreationError, FifoOpenError, AnnounceError) as exc:
        log.error(str(exc))
        return EXIT_FAILURE
    if result.degraded:
        chunks = ", ".join(map(str, result.degraded_chunks))
        log.warning(f"Consumers closed chunks {chunks} early: output is incomplete")
        return EXIT_DEGRADED
    log.info("Done!")
    return EXIT_SUCCESS


def main(
    argv: Sequence[str] | None = None,
    stdin: BinaryIO | None = None,
    stdout: TextIO | None = None,
) -> int:
    """
    Run ``fifo-split``, returning the exit status: 0 on success, 1 on any fatal error,
    or 3 if the run completed but a consumer closed its chunk's FIFO early.

    Args:
      argv   : command line arguments (default: :obj:`sys.argv`)
      stdin  : the stream to split (default: :obj:`sys.stdin` in binary mode)
      stdout : where to print the FIFO paths (default: :obj:`sys.stdout`)
    """
    args = build_parser().parse_args(argv)
    handler = set_up_logging(quiet=args.quiet)
    try:
        return run(
            args,
            stdin=sys.stdin.buffer if stdin is None else stdin,
            stdout=sys.stdout if stdout is None else stdout,
        )
    finally:
        log.removeHandler(handler)
