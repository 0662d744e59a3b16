from __future__ import annotations

import os
from typing import BinaryIO

from .log_utils import log

__all__ = [
    "FIFO_MODE",
    "FifoCreationError",
    "FifoOpenError",
    "fifo_path",
    "create_fifo",
    "open_fifo",
]

FIFO_MODE = 0o600


class FifoCreationError(OSError):
    """
    A FIFO could not be created (even after removing a stale file at its path).
    """

    def __init__(self, path: str, exc: OSError):
        super().__init__(exc.errno, f"Failed to create FIFO {path}: {exc.strerror}", path)


class FifoOpenError(OSError):
    "A FIFO could not be opened for writing."

    def __init__(self, path: str, exc: OSError):
        super().__init__(exc.errno, f"Failed to open FIFO {path}: {exc.strerror}", path)


def fifo_path(prefix: str, index: int) -> str:
    """
    The path of the FIFO for the chunk at ``index``: the ``prefix`` followed by the
    index, so the prefix may include a directory (``"/tmp/chunk"`` gives
    ``"/tmp/chunk0"``, ``"/tmp/chunk1"``, ...).
    """
    return f"{prefix}{index}"


def create_fifo(path: str, mode: int = FIFO_MODE) -> None:
    """
    Create a FIFO at ``path``. If something already exists there, it is presumed to
    be a defunct FIFO from a previous run, so it is removed and creation retried once.

    Raises :exc:`FifoCreationError` if the FIFO still cannot be created.

    Args:
      path : where to create the FIFO
      mode : permission bits of the FIFO (default: ``0o600``)
    """
    try:
        os.mkfifo(path, mode)
    except FileExistsError:
        log.warning(f"Replacing existing file at {path!r} (left over from a previous run?)")
        try:
            os.unlink(path)
            os.mkfifo(path, mode)
        except OSError as exc:
            raise FifoCreationError(path, exc) from exc
    except OSError as exc:
        raise FifoCreationError(path, exc) from exc


def open_fifo(path: str) -> BinaryIO:
    """
    Open the FIFO at ``path`` for (unbuffered) writing. This blocks until a consumer
    opens the same path for reading. The FIFO must already exist (it is never
    created here, unlike with :func:`open`).

    Raises :exc:`FifoOpenError` if the FIFO cannot be opened.
    """
    try:
        fd = os.open(path, os.O_WRONLY)
    except OSError as exc:
        raise FifoOpenError(path, exc) from exc
    return open(fd, "wb", buffering=0)
