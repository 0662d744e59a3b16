r""":mod:`fifo_streams.copy_utils` copies bytes from the input stream to a chunk's sink
(or discards them) in bounded buffers.

Reads and writes are retried when interrupted by a signal. A failure to read the
input is fatal (:class:`StreamReadError` propagates to the caller), whereas a failure
to write to the sink (typically a consumer which closed its end of the FIFO early,
giving a :class:`BrokenPipeError`) is only reported through the
:attr:`~fifo_streams.copy_utils.CopyResult.write_succeeded` flag of the
:class:`CopyResult`, and it is then up to the caller to skip the rest of the chunk
(see :func:`drain_stream`).
"""
from __future__ import annotations

from typing import BinaryIO, Callable, NamedTuple

__all__ = [
    "BUFFER_SIZE",
    "CopyResult",
    "StreamReadError",
    "SinkWriteError",
    "retryable_read",
    "retryable_write",
    "copy_stream",
    "drain_stream",
]

BUFFER_SIZE = 128 * 1024


def _os_error_args(exc: OSError, msg: str) -> tuple:
    return (msg,) if exc.errno is None else (exc.errno, msg)


class StreamReadError(OSError):
    """
    The input stream could not be read (for any reason other than reaching its
    end). This aborts the run.
    """

    def __init__(self, exc: OSError):
        msg = f"Error reading from stream: {exc.strerror or exc}"
        super().__init__(*_os_error_args(exc, msg))


class SinkWriteError(OSError):
    """
    The sink could not be written to, most likely because the consumer closed its
    end of the FIFO. Only raised by :func:`retryable_write`: :func:`copy_stream`
    absorbs it into its :class:`CopyResult`.
    """

    def __init__(self, exc: OSError):
        msg = f"Error writing to stream: {exc.strerror or exc}"
        super().__init__(*_os_error_args(exc, msg))


class CopyResult(NamedTuple):
    bytes_read: int
    """
    Number of bytes read from the input stream, which will be lower than
    requested if the end of the input was reached (or the write failed).
    """
    write_succeeded: bool
    "Whether every byte read was written to the sink (always ``True`` if discarding)"


def retryable_read(stream: BinaryIO, size: int) -> bytes:
    """
    Read ``size`` bytes from ``stream``, returning fewer only if the end of the input
    is reached. Reads interrupted by a signal are retried; any other error raises
    :exc:`StreamReadError`.

    Args:
      stream : a binary file-like object to read from
      size   : the number of bytes wanted
    """
    parts = []
    remaining = size
    while remaining > 0:
        try:
            data = stream.read(remaining)
        except InterruptedError:
            # Interrupted before any data was read
            continue
        except OSError as exc:
            raise StreamReadError(exc) from exc
        if not data:
            break  # EOF
        parts.append(data)
        remaining -= len(data)
    return b"".join(parts)


def retryable_write(sink: BinaryIO, data: bytes) -> None:
    """
    Write all of ``data`` to ``sink``, continuing after partial writes and retrying
    writes interrupted by a signal. Raises :exc:`SinkWriteError` if the sink cannot
    be written to (e.g. :exc:`BrokenPipeError` when the reader has gone away).

    Args:
      sink : a binary file-like object to write to (unbuffered, so ``write`` may
             write fewer bytes than given)
      data : the bytes to write
    """
    view = memoryview(data)
    while view:
        try:
            written = sink.write(view)
        except InterruptedError:
            continue
        except OSError as exc:
            raise SinkWriteError(exc) from exc
        if written is None:
            # Non-blocking sink which would block: nothing written yet
            continue
        view = view[written:]


def copy_stream(
    stream: BinaryIO,
    bytes_to_copy: int,
    sink: BinaryIO | None = None,
    progress: Callable[[int], object] | None = None,
) -> CopyResult:
    """
    Copy up to ``bytes_to_copy`` bytes from ``stream`` to ``sink`` (or discard them
    if ``sink`` is ``None``), one buffer of at most :data:`BUFFER_SIZE` bytes at a time.

    Stops early at the end of the input, or at the first write failure. Read errors
    (:exc:`StreamReadError`) propagate.

    Args:
      stream        : the input stream
      bytes_to_copy : the number of bytes to copy
      sink          : the destination stream, or ``None`` to discard the bytes read
      progress      : optional callback passed the length of each buffer read
    """
    bytes_read = 0
    while bytes_to_copy > 0:
        to_read = min(bytes_to_copy, BUFFER_SIZE)
        buf = retryable_read(stream, to_read)
        bytes_read += len(buf)
        bytes_to_copy -= len(buf)
        if progress is not None and buf:
            progress(len(buf))
        if sink is not None:
            try:
                retryable_write(sink, buf)
            except SinkWriteError:
                return CopyResult(bytes_read=bytes_read, write_succeeded=False)
        if len(buf) != to_read:
            break  # Reached EOF of input stream early
    return CopyResult(bytes_read=bytes_read, write_succeeded=True)


def drain_stream(
    stream: BinaryIO, bytes_to_skip: int, progress: Callable[[int], object] | None = None
) -> int:
    """
    Read and discard ``bytes_to_skip`` bytes (or up to the end of the input),
    returning the number of bytes consumed.
    """
    if bytes_to_skip <= 0:
        return 0
    return copy_stream(stream, bytes_to_skip, progress=progress).bytes_read
