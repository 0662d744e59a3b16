import errno
import os
import stat
from io import BytesIO, StringIO

from pytest import fixture, mark, raises

from fifo_streams.copy_utils import BUFFER_SIZE, StreamReadError
from fifo_streams.range_list import RangeList, RangeListSyntaxError
from fifo_streams.splitter import AnnounceError, FifoSplitter, SplitResult, StreamCursor

from .data import (
    EXAMPLE_BYTES,
    EXAMPLE_CHUNK_SIZE,
    EXAMPLE_CHUNKS,
    LARGE_CHUNK_SIZE,
    make_bytes,
)
from .share import ClosedOutput, FailingSink, FifoReader, RecordingSink


class RecordingSplitter(FifoSplitter):
    """
    Writes each chunk into a :class:`RecordingSink` rather than opening its FIFO
    (which would block until a reader came along). The FIFOs are still created.
    """

    def __init__(self, *args, failing=(), **kwargs):
        super().__init__(*args, **kwargs)
        self.failing = set(failing)
        self.sinks = {}

    def open_chunk_sink(self, path):
        index = int(path[len(self.prefix) :])
        sink = FailingSink(fail_after=1) if index in self.failing else RecordingSink()
        self.sinks[index] = sink
        return sink

    @property
    def chunk_contents(self):
        return {i: sink.value for i, sink in self.sinks.items()}


@fixture
def prefix(tmp_path):
    return str(tmp_path / "chunk")


def make_splitter(prefix, output=None, chunk_size=EXAMPLE_CHUNK_SIZE, **kwargs):
    return FifoSplitter(
        chunk_size=chunk_size,
        prefix=prefix,
        output=StringIO() if output is None else output,
        **kwargs,
    )


def announced(splitter, sep="\n"):
    return splitter.output.getvalue().split(sep)[:-1]


def test_split_into_fifos(prefix):
    """
    The example input of 10 bytes in chunks of 3 gives 4 chunks, the last of which
    is shorter, each read by the external consumer from its own FIFO.
    """
    splitter = make_splitter(prefix)
    reader = FifoReader(prefix, range(4))
    reader.start()
    result = splitter.split(BytesIO(EXAMPLE_BYTES))
    assert reader.finish() == dict(enumerate(EXAMPLE_CHUNKS))
    assert result == SplitResult(
        total_bytes=10, chunks_written=[0, 1, 2, 3], degraded_chunks=[]
    )
    assert not result.degraded
    assert announced(splitter) == [f"{prefix}{i}" for i in range(4)]


def test_split_skip_chunks(prefix):
    "The skipped chunk's bytes are still consumed, so chunk 2 starts at offset 6"
    splitter = make_splitter(prefix, skip_chunks="1")
    reader = FifoReader(prefix, [0, 2, 3])
    reader.start()
    input_stream = BytesIO(EXAMPLE_BYTES)
    result = splitter.split(input_stream)
    assert reader.finish() == {0: b"ABC", 2: b"GHI", 3: b"J"}
    assert result.total_bytes == 10
    assert result.chunks_written == [0, 2, 3]
    assert announced(splitter) == [f"{prefix}{i}" for i in [0, 2, 3]]
    assert not os.path.exists(f"{prefix}1")


def test_split_print0(prefix):
    splitter = make_splitter(prefix, zero_sep=True)
    reader = FifoReader(prefix, range(4))
    reader.start()
    splitter.split(BytesIO(EXAMPLE_BYTES))
    reader.finish()
    output = splitter.output.getvalue()
    assert "\n" not in output
    assert announced(splitter, sep="\0") == [f"{prefix}{i}" for i in range(4)]


def test_preallocate(prefix):
    splitter = make_splitter(prefix, expected_size=10, skip_chunks="2")
    assert splitter.plan.preallocate_up_to == 4
    paths = splitter.preallocate()
    assert paths == [f"{prefix}{i}" for i in [0, 1, 3]]
    assert all(stat.S_ISFIFO(os.stat(p).st_mode) for p in paths)
    assert not os.path.exists(f"{prefix}2")


def test_split_preallocated_fifos(prefix):
    splitter = make_splitter(prefix, expected_size=10)
    reader = FifoReader(prefix, range(4))
    reader.start()
    result = splitter.split(BytesIO(EXAMPLE_BYTES))
    assert reader.finish() == dict(enumerate(EXAMPLE_CHUNKS))
    assert result.total_bytes == 10


def test_split_preallocated_beyond_end_of_input(prefix):
    "Every preallocated FIFO is visited (and closed, so its consumer sees EOF)"
    splitter = RecordingSplitter(
        chunk_size=3, expected_size=12, prefix=prefix, output=StringIO()
    )
    result = splitter.split(BytesIO(b"ABCD"))
    assert result.chunks_written == [0, 1, 2, 3]
    assert splitter.chunk_contents == {0: b"ABC", 1: b"D", 2: b"", 3: b""}
    assert result.total_bytes == 4


def test_split_empty_input(prefix):
    splitter = RecordingSplitter(chunk_size=3, prefix=prefix, output=StringIO())
    result = splitter.split(BytesIO(b""))
    assert result == SplitResult(total_bytes=0, chunks_written=[0], degraded_chunks=[])
    assert splitter.chunk_contents == {0: b""}


def test_split_exact_multiple(prefix):
    "An input filling its last chunk exactly is followed by an empty chunk"
    splitter = RecordingSplitter(chunk_size=5, prefix=prefix, output=StringIO())
    result = splitter.split(BytesIO(EXAMPLE_BYTES))
    assert splitter.chunk_contents == {0: b"ABCDE", 1: b"FGHIJ", 2: b""}
    assert result.total_bytes == 10


@mark.parametrize(
    "only,written,total",
    [
        # Known last chunk: the remaining input is left unread
        ("0-1", [0, 1], 6),
        ("1", [1], 6),
        ("2,0", [0, 2], 9),
        # Open-ended: read to the end of the input
        ("2-", [2, 3], 10),
    ],
)
def test_split_only_chunks(prefix, only, written, total):
    splitter = RecordingSplitter(
        chunk_size=3, prefix=prefix, only_chunks=only, output=StringIO()
    )
    input_stream = BytesIO(EXAMPLE_BYTES)
    result = splitter.split(input_stream)
    assert result.chunks_written == written
    assert result.total_bytes == total
    assert input_stream.tell() == total
    assert splitter.chunk_contents == {i: EXAMPLE_CHUNKS[i] for i in written}


def test_split_only_chunks_beyond_end_of_input(prefix):
    "Explicitly requested chunks past the end of the input are still produced, empty"
    splitter = RecordingSplitter(
        chunk_size=3, prefix=prefix, only_chunks="1,5", output=StringIO()
    )
    result = splitter.split(BytesIO(EXAMPLE_BYTES))
    assert result.chunks_written == [1, 5]
    assert splitter.chunk_contents == {1: b"DEF", 5: b""}
    assert result.total_bytes == 10


def test_degraded_chunk_keeps_alignment(prefix):
    """
    The consumer of chunk 0 goes away after the first buffer: the remainder of
    chunk 0 is drained, so chunk 1 still starts at the right offset.
    """
    data = make_bytes(LARGE_CHUNK_SIZE + 100)
    splitter = RecordingSplitter(
        chunk_size=LARGE_CHUNK_SIZE, prefix=prefix, failing=[0], output=StringIO()
    )
    result = splitter.split(BytesIO(data))
    assert result.degraded
    assert result.degraded_chunks == [0]
    assert result.chunks_written == [0, 1]
    assert result.total_bytes == len(data)
    assert splitter.chunk_contents[0] == data[:BUFFER_SIZE]
    assert splitter.chunk_contents[1] == data[LARGE_CHUNK_SIZE:]


def test_consumer_closes_fifo_early(prefix):
    "A real consumer closing its FIFO early gives a broken pipe, which is absorbed"
    chunk_size = 4 * 1024**2  # more than a pipe buffer holds
    data = make_bytes(chunk_size) + b"tail"
    splitter = make_splitter(prefix, chunk_size=chunk_size)
    reader = FifoReader(prefix, [0, 1], limits={0: 10})
    reader.start()
    result = splitter.split(BytesIO(data))
    contents = reader.finish()
    assert contents == {0: data[:10], 1: b"tail"}
    assert result.degraded_chunks == [0]
    assert result.total_bytes == len(data)


def test_stale_fifo_replaced(prefix):
    stale = f"{prefix}0"
    with open(stale, "wb") as f:
        f.write(b"previous run")
    splitter = make_splitter(prefix)
    reader = FifoReader(prefix, range(4))
    reader.start()
    splitter.split(BytesIO(EXAMPLE_BYTES))
    assert reader.finish()[0] == b"ABC"


def test_invalid_filter_raised_on_init(prefix):
    with raises(RangeListSyntaxError):
        make_splitter(prefix, only_chunks="1-x")


def test_filters_given_as_range_lists(prefix):
    only = RangeList.parse("0-2")
    splitter = make_splitter(prefix, only_chunks=only, skip_chunks=" 1 ")
    assert splitter.only_chunks is only
    assert splitter.skip_chunks == RangeList.parse("1")
    assert [i for i in range(4) if splitter.should_write_chunk(i)] == [0, 2]


def test_read_error_is_fatal(prefix):
    class BrokenStream(BytesIO):
        def read(self, size=-1):
            raise OSError(errno.EIO, "Input/output error")

    splitter = make_splitter(prefix, skip_chunks="0")
    with raises(StreamReadError):
        splitter.split(BrokenStream())


def test_stream_cursor():
    cursor = StreamCursor()
    cursor.advance(3)
    cursor.start_chunk()
    cursor.advance(2)
    assert (cursor.total_bytes, cursor.chunk_bytes) == (5, 2)


def test_closed_output_is_fatal(prefix):
    splitter = make_splitter(prefix, output=ClosedOutput())
    with raises(AnnounceError, match=f"Failed to announce FIFO {prefix}0") as exc_info:
        splitter.split(BytesIO(EXAMPLE_BYTES))
    assert exc_info.value.errno == errno.EPIPE
    assert isinstance(exc_info.value.__cause__, BrokenPipeError)
    # Nothing was read, as no consumer was told where to read from
    assert splitter.cursor.total_bytes == 0
