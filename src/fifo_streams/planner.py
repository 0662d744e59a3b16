from __future__ import annotations

from typing import NamedTuple

from .range_list import RangeList

__all__ = ["ChunkPlan", "plan_chunks", "should_emit"]


class ChunkPlan(NamedTuple):
    """
    The bounds of a run, computed once before streaming begins.

    ``last_chunk_index`` is only known when the ``only_chunks`` filter is finite,
    otherwise it is ``None`` and the input must be read until it is exhausted.
    FIFOs are preallocated for the emitted indexes below ``preallocate_up_to``.
    """

    expected_chunk_count: int
    last_chunk_index: int | None
    preallocate_up_to: int


def expected_chunk_count(chunk_size: int, expected_size: int) -> int:
    "The number of chunks ``expected_size`` bytes will fill (0 when it is unknown)."
    return -(-expected_size // chunk_size) if expected_size > 0 else 0


def plan_chunks(
    chunk_size: int,
    expected_size: int = 0,
    only_chunks: RangeList | None = None,
    skip_chunks: RangeList | None = None,
) -> ChunkPlan:
    """
    Reconcile the expected total size of the stream with the chunk filters.

    A finite ``only_chunks`` filter fixes the final chunk index (and overrides the
    chunk count estimated from ``expected_size``), and any index explicitly named in
    ``only_chunks`` is always covered by the preallocation, even if the expected
    size undercounts it.

    ``skip_chunks`` is accepted so that both filters can be passed alike (as to
    :func:`should_emit`), but it never affects the bounds: skipped chunks are still
    read from the stream, and their indexes still count towards the plan.

    Args:
      chunk_size    : size of each chunk in bytes (positive)
      expected_size : expected total size of the stream in bytes (0 if unknown)
      only_chunks   : only emit these chunk indexes (all if empty)
      skip_chunks   : never emit these chunk indexes
    """
    if chunk_size <= 0:
        raise ValueError(f"Chunk size must be positive (got {chunk_size})")
    if expected_size < 0:
        raise ValueError(f"Expected size cannot be negative (got {expected_size})")
    only_chunks = RangeList() if only_chunks is None else only_chunks
    count = expected_chunk_count(chunk_size, expected_size)
    last_chunk_index = None
    max_bound = only_chunks.largest_finite_bound()
    if max_bound is not None:
        if not only_chunks.contains_positive_infinity():
            # The final chunk is known, overriding the estimate from expected_size
            last_chunk_index = max_bound
            count = max_bound + 1
        # Preallocate FIFOs reaching every explicitly referenced index
        count = max(count, max_bound + 1)
    return ChunkPlan(
        expected_chunk_count=count,
        last_chunk_index=last_chunk_index,
        preallocate_up_to=count,
    )


def should_emit(
    index: int, only_chunks: RangeList | None, skip_chunks: RangeList | None
) -> bool:
    """
    Whether the chunk at ``index`` is written to a FIFO (rather than skipped).
    An empty ``only_chunks`` filter admits every index, an empty ``skip_chunks``
    filter excludes none.
    """
    admitted = not only_chunks or index in only_chunks
    return admitted and not (skip_chunks and index in skip_chunks)
