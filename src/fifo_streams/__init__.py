r"""
:mod:`fifo_streams` splits a stream into chunks of a fixed size, writing each
chunk into its own `named pipe <https://man7.org/linux/man-pages/man7/fifo.7.html>`_
(FIFO), so that independent consumer processes can read the chunks one at a time
as they are produced (for example, to upload a stream of unknown length as a series
of parts without ever buffering a whole part on disk).

Chunk indexes are filtered using lists of ranges, represented with the
:class:`~ranges.Range` and :class:`~ranges.RangeSet` classes (from the externally
maintained `python-ranges <https://python-ranges.readthedocs.io/en/latest/>`_ library).
A :class:`~fifo_streams.range_list.RangeList` is parsed from a comma separated list of
ranges, any of which may be open-ended:

    >>> from fifo_streams import RangeList
    >>> skip = RangeList.parse("-5,7,13-")
    >>> [i for i in range(15) if i not in skip]
    [6, 8, 9, 10, 11, 12]

A :class:`~fifo_streams.splitter.FifoSplitter` is initialised by providing:

- the chunk size in bytes
- (optionally) the expected size of the stream in bytes, so that the FIFOs can all be
  created before the stream starts (so consumers can be started ahead of time)
- (optionally) a prefix for the FIFO paths (default: ``"chunk"``, giving the paths
  ``chunk0``, ``chunk1``, ...)
- (optionally) ``only_chunks`` and ``skip_chunks`` filters

and its :meth:`~fifo_streams.splitter.FifoSplitter.split` method then reads the
stream, printing each FIFO path as its chunk becomes available:

    >>> import sys
    >>> from fifo_streams import FifoSplitter
    >>> splitter = FifoSplitter(chunk_size=8 * 1024**2, prefix="/tmp/part-")
    >>> result = splitter.split(sys.stdin.buffer) # doctest: +SKIP
    /tmp/part-0
    /tmp/part-1
    >>> result.total_bytes # doctest: +SKIP
    12582912

The same is available on the command line as ``fifo-split``:

.. code-block:: sh

    producer | fifo-split --chunk-size 8MiB --prefix /tmp/part- | xargs -n1 consumer
"""

# Get classes into package namespace but exclude from __all__

from . import copy_utils, fifo_utils, planner, range_list, range_utils, size_utils
from .planner import ChunkPlan, plan_chunks
from .range_list import RangeList, RangeSpec
from .splitter import FifoSplitter, SplitResult

__all__ = [
    "splitter",
    "planner",
    "range_list",
    "range_utils",
    "copy_utils",
    "fifo_utils",
    "size_utils",
    "cli",
]

__author__ = "Louis Maddox"
__license__ = "MIT"
__description__ = "Split a stream into chunks written to named pipes (FIFOs)."
__url__ = "https://github.com/lmmx/fifo-streams"
__uri__ = __url__
__email__ = "louismmx@gmail.com"
