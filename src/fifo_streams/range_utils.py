from __future__ import annotations

__all__ = [
    "is_finite",
    "range_termini",
    "range_min",
    "range_max",
    "termini_range",
    "validate_range",
]

from math import isinf

from ranges import Range

POS_INF = float("inf")
NEG_INF = float("-inf")


def is_finite(bound) -> bool:
    """Whether a :class:`~ranges.Range` boundary is a (finite) chunk index. Finite
    boundaries are always integers, so anything else is one of the infinities.

    Args:
      bound : the ``start`` or ``end`` of a :class:`~ranges.Range`
    """
    return isinstance(bound, int) and not isinstance(bound, bool)


def range_termini(rng: Range) -> tuple[int | None, int | None]:
    """Get the inclusive start and end positions ``[start,end]``
    from a :class:`ranges.Range`. These are referred to as the
    'termini'. Ranges are always ascending. An infinite boundary has no
    terminus, and is given as ``None``.

    Args:
      rng : A :class:`~ranges.Range` (which by default will be
            half-closed, i.e. not inclusive of the end position).
    """
    if rng.isempty():
        raise ValueError("Empty range has no termini")
    start = end = None
    if is_finite(rng.start):
        start = rng.start if rng.include_start else rng.start + 1
    if is_finite(rng.end):
        end = rng.end if rng.include_end else rng.end - 1
    return start, end


def range_min(rng: Range) -> int | None:
    """Get the minimum (or start terminus) of a :class:`~ranges.Range`,
    or ``None`` if it is unbounded below.

    Args:
      rng : A :class:`~ranges.Range` (which by default will be
            half-closed, i.e. not inclusive of the end position).
    """
    if rng.isempty():
        raise ValueError("Empty range has no minimum")
    return range_termini(rng)[0]


def range_max(rng: Range) -> int | None:
    """Get the maximum (or end terminus) of a :class:`~ranges.Range`,
    or ``None`` if it is unbounded above.

    Args:
      rng : A :class:`~ranges.Range` (which by default will be
            half-closed, i.e. not inclusive of the end position).
    """
    if rng.isempty():
        raise ValueError("Empty range has no maximum")
    return range_termini(rng)[1]


def termini_range(start: int | None, end: int | None) -> Range:
    """Build the half-closed :class:`~ranges.Range` ``[start,end+1)`` from inclusive
    termini, where a missing terminus (``None``) makes the range unbounded in
    that direction.

    Args:
      start : inclusive start, or ``None`` for negative infinity
      end   : inclusive end, or ``None`` for positive infinity
    """
    range_start = NEG_INF if start is None else start
    range_end = POS_INF if end is None else end + 1
    return Range(range_start, range_end)


def validate_range(
    index_range: Range | tuple[int | None, int | None], allow_empty: bool = True
) -> Range:
    """Validate ``index_range`` and convert to a half-closed (i.e.
    not inclusive of the end position) ``[start,end)`` :class:`~ranges.Range`
    if given as a tuple of inclusive termini.

    Args:
      index_range : Either a :class:`tuple` of two inclusive positions (either
                    of which may be ``None`` to leave that side unbounded) with
                    which to create a :class:`~ranges.Range`; or simply a
                    :class:`~ranges.Range`.
    """
    complain_about_types = (
        f"{index_range=} must be a Range from the python-ranges"
        " package or a 2-tuple of integers (or None)"
    )
    if isinstance(index_range, tuple):
        if len(index_range) != 2:
            raise TypeError(complain_about_types)
        if not all(t is None or is_finite(t) for t in index_range):
            raise TypeError(complain_about_types)
        start, end = index_range
        if start is not None and end is not None and end < start:
            raise ValueError(f"End of range {end} cannot be before start {start}")
        index_range = termini_range(start, end)
    elif not isinstance(index_range, Range):
        raise TypeError(complain_about_types)
    elif any(
        isinstance(o, float) and not isinf(o)
        for o in [index_range.start, index_range.end]
    ):
        raise TypeError("Ranges must be discrete: use integers for start and end")
    if not allow_empty and index_range.isempty():
        raise ValueError("Range is empty")
    return index_range
