r""":mod:`fifo_streams.splitter` exposes a class
:class:`~fifo_streams.splitter.FifoSplitter`, which divides an input stream into
chunks of a fixed size, writing each chunk to its own FIFO.

The method :meth:`~fifo_streams.splitter.FifoSplitter.split` consumes the stream,
announcing the path of each chunk's FIFO (on stdout by default) as it is about to be
written, so that consumers can be started for each path in turn:

.. code-block:: sh

    some-producer | fifo-split --chunk-size 1GiB | xargs -n1 -P4 -I{} upload {}

Opening a FIFO for writing blocks until a consumer opens it for reading, and a slow
consumer slows down the writes, so the input is consumed only as fast as the
consumers read it.
"""

from __future__ import annotations

import sys
from typing import BinaryIO, NamedTuple, TextIO

from tqdm import tqdm

from .copy_utils import copy_stream, drain_stream
from .fifo_utils import create_fifo, fifo_path, open_fifo
from .log_utils import log
from .planner import plan_chunks, should_emit
from .range_list import RangeList

__all__ = [
    "FifoSplitter",
    "SplitResult",
    "StreamCursor",
    "AnnounceError",
    "DEFAULT_PREFIX",
]

DEFAULT_PREFIX = "chunk"


class AnnounceError(OSError):
    "A chunk's FIFO path could not be written to the output (e.g. it was closed)."

    def __init__(self, path: str, exc: OSError):
        msg = f"Failed to announce FIFO {path}: {exc.strerror or exc}"
        super().__init__(*((msg,) if exc.errno is None else (exc.errno, msg)))
        self.path = path


class SplitResult(NamedTuple):
    total_bytes: int
    "Total number of bytes consumed from the input stream"
    chunks_written: list[int]
    "Indexes of the chunks whose FIFOs were written (including degraded ones)"
    degraded_chunks: list[int]
    "Indexes of the chunks whose consumer closed the FIFO before the chunk was written"

    @property
    def degraded(self) -> bool:
        return bool(self.degraded_chunks)


class StreamCursor:
    """
    Running counts of the bytes consumed from the input stream, both overall and
    within the chunk currently being copied.
    """

    def __init__(self):
        self.total_bytes = 0
        self.chunk_bytes = 0

    def start_chunk(self) -> None:
        self.chunk_bytes = 0

    def advance(self, n: int) -> None:
        self.chunk_bytes += n
        self.total_bytes += n

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__} ⠶ {self.total_bytes} bytes "
            f"({self.chunk_bytes} in current chunk)"
        )


class FifoSplitter:
    """
    Split a stream into chunks of ``chunk_size`` bytes, each written to a FIFO at
    ``<prefix><index>`` (where the index counts from 0).

    If the ``expected_size`` of the stream is given (or the ``only_chunks`` filter
    names specific indexes), FIFOs are created for all of the expected chunks
    before any are written ("preallocated"), so that consumers can open them ahead
    of time. Otherwise each FIFO is created just before its chunk is written.

    A consumer closing its FIFO before reading the whole chunk does not stop the
    run: the rest of that chunk is skipped and the chunk recorded as 'degraded' in
    the :class:`SplitResult`.
    """

    def __init__(
        self,
        chunk_size: int,
        expected_size: int = 0,
        prefix: str = DEFAULT_PREFIX,
        only_chunks: RangeList | str | None = None,
        skip_chunks: RangeList | str | None = None,
        zero_sep: bool = False,
        output: TextIO | None = None,
        show_progress_bar: bool = False,
    ):
        """
        The chunk filters are parsed (if given as strings) when initialised, so that
        syntax errors are raised before any of the stream is read.

        Args:
          chunk_size        : (:class:`int`) Size of each chunk in bytes (the final
                              chunk may be shorter)
          expected_size     : (:class:`int`) Expected total size of the stream in
                              bytes, used to preallocate FIFOs (``0`` if unknown)
          prefix            : (:class:`str`) Prefix of the FIFO paths
          only_chunks       : (:class:`~fifo_streams.range_list.RangeList` |
                              :class:`str` | ``None``) Only write the chunks with
                              these indexes (all if empty)
          skip_chunks       : (:class:`~fifo_streams.range_list.RangeList` |
                              :class:`str` | ``None``) Skip the chunks with these
                              indexes
          zero_sep          : (:class:`bool`) Separate FIFO paths in the ``output``
                              with NUL characters rather than newlines
          output            : (:class:`io.TextIOBase` | ``None``) Where to announce
                              FIFO paths (default: :obj:`sys.stdout`)
          show_progress_bar : (:class:`bool`) Whether to show a progress bar of bytes
                              read (on stderr)
        """
        self.chunk_size = chunk_size
        self.expected_size = expected_size
        self.prefix = prefix
        self.only_chunks = self.to_range_list(only_chunks)
        self.skip_chunks = self.to_range_list(skip_chunks)
        self.zero_sep = zero_sep
        self.output = sys.stdout if output is None else output
        self.show_progress_bar = show_progress_bar
        self.plan = plan_chunks(
            chunk_size=chunk_size,
            expected_size=expected_size,
            only_chunks=self.only_chunks,
            skip_chunks=self.skip_chunks,
        )
        self.cursor = StreamCursor()

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__} ⠶ {self.chunk_size}B chunks @ "
            f"'{self.prefix}' ({self.plan})"
        )

    @staticmethod
    def to_range_list(chunks: RangeList | str | None) -> RangeList:
        if isinstance(chunks, RangeList):
            return chunks
        return RangeList.parse(chunks)

    @property
    def separator(self) -> str:
        return "\0" if self.zero_sep else "\n"

    @property
    def last_chunk_index(self) -> int | None:
        return self.plan.last_chunk_index

    @property
    def preallocated(self) -> int:
        return self.plan.preallocate_up_to

    def should_write_chunk(self, index: int) -> bool:
        return should_emit(index, self.only_chunks, self.skip_chunks)

    def chunk_path(self, index: int) -> str:
        return fifo_path(self.prefix, index)

    def preallocate(self) -> list[str]:
        """
        Create the FIFOs for every chunk to be written below the
        :attr:`~fifo_streams.planner.ChunkPlan.preallocate_up_to` bound of the
        :attr:`plan` (none if the number of chunks is not known).
        """
        paths = []
        for index in range(self.preallocated):
            if self.should_write_chunk(index):
                path = self.chunk_path(index)
                create_fifo(path)
                log.info(f'Preallocated FIFO for chunk {index} at "{path}"')
                paths.append(path)
        return paths

    def announce(self, path: str) -> None:
        """
        Print the path of a chunk's FIFO to the :attr:`output`. Raises
        :exc:`AnnounceError` if the output has gone away (e.g. ``| head -1``), as no
        consumer could then learn of any later chunk.
        """
        try:
            print(path, end=self.separator, file=self.output, flush=True)
        except OSError as exc:
            raise AnnounceError(path, exc) from exc

    def open_chunk_sink(self, path: str) -> BinaryIO:
        """
        Open the sink for a chunk: its FIFO, opened for writing (which blocks until
        there is a reader). Override this to write somewhere other than a FIFO.
        """
        return open_fifo(path)

    def write_chunk(self, stream: BinaryIO, index: int, progress=None) -> bool:
        """
        Copy the chunk at ``index`` from ``stream`` into its FIFO (creating it if it
        was not preallocated), returning whether the whole chunk was written.

        If the consumer closed the FIFO early, the remainder of the chunk is read
        and discarded so that the next chunk starts at the right offset.
        """
        path = self.chunk_path(index)
        if index >= self.preallocated:
            create_fifo(path)  # Since we didn't preallocate one
        self.announce(path)
        sink = self.open_chunk_sink(path)
        try:
            result = copy_stream(stream, self.chunk_size, sink=sink, progress=progress)
            self.cursor.advance(result.bytes_read)
        finally:
            closed = self.close_sink(sink)
        write_succeeded = result.write_succeeded and closed
        if not write_succeeded:
            log.warning(
                f"Chunk {index} was closed early by consumer. "
                "Skipping remainder of chunk..."
            )
            remaining = self.chunk_size - self.cursor.chunk_bytes
            self.cursor.advance(drain_stream(stream, remaining, progress=progress))
        return write_succeeded

    @staticmethod
    def close_sink(sink: BinaryIO) -> bool:
        """
        Close the sink, returning ``False`` if this failed because the consumer had
        already gone away.
        """
        try:
            sink.close()
        except BrokenPipeError:
            return False
        return True

    def skip_chunk(self, stream: BinaryIO, index: int, progress=None) -> None:
        log.info(f"Skipping chunk {index}...")
        self.cursor.advance(drain_stream(stream, self.chunk_size, progress=progress))

    def iter_chunk_indexes(self):
        "Chunk indexes in order, up to the last one wanted if that is known"
        index = 0
        while self.last_chunk_index is None or index <= self.last_chunk_index:
            yield index
            index += 1

    def split(self, stream: BinaryIO) -> SplitResult:
        """
        Split ``stream`` into chunks, writing each of those to be emitted to its FIFO
        in turn, until the input is exhausted (and every preallocated FIFO has been
        visited) or the last chunk wanted has been written.

        Raises :exc:`~fifo_streams.copy_utils.StreamReadError` if the stream cannot be
        read, or :exc:`~fifo_streams.fifo_utils.FifoCreationError` /
        :exc:`~fifo_streams.fifo_utils.FifoOpenError` if a FIFO cannot be set up, or
        :exc:`AnnounceError` if the FIFO paths can no longer be output.

        Args:
          stream : binary file-like object to read the input from
        """
        self.cursor = StreamCursor()
        written, degraded = [], []
        self.preallocate()
        pbar = tqdm(
            total=self.expected_size or None,
            unit="B",
            unit_scale=True,
            file=sys.stderr,
            disable=not self.show_progress_bar,
        )
        try:
            for index in self.iter_chunk_indexes():
                self.cursor.start_chunk()
                if self.should_write_chunk(index):
                    written.append(index)
                    if not self.write_chunk(stream, index, progress=pbar.update):
                        degraded.append(index)
                else:
                    self.skip_chunk(stream, index, progress=pbar.update)
                log.debug(f"Chunk {index}: read {self.cursor.chunk_bytes} bytes")
                if self.cursor.chunk_bytes < self.chunk_size:
                    # The input stream is exhausted, so this was its last chunk, but
                    # keep going if preallocated FIFOs are still to be closed
                    if index >= self.preallocated - 1:
                        break
        finally:
            pbar.close()
        log.info(f"Total stream size was {self.cursor.total_bytes} bytes")
        return SplitResult(
            total_bytes=self.cursor.total_bytes,
            chunks_written=written,
            degraded_chunks=degraded,
        )
