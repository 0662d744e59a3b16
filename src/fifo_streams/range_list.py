r""":mod:`fifo_streams.range_list` parses and queries the chunk index filters passed
as ``only_chunks`` and ``skip_chunks``, for example:

.. code-block:: python

    "2-2,5-9,11-"

which includes ``2``, ``5`` to ``9``, and all indexes from ``11`` onwards (but not
``1`` or ``10``). The terms of the comma-separated list are:

- ``N-M``: the inclusive interval ``[N,M]`` (``M`` must not be less than ``N``)
- ``N-``: ``N`` and every index after it
- ``-M``: every index up to and including ``M``
- ``N``: just ``N``

Whitespace is allowed anywhere between the numbers, dashes and commas.

    >>> from fifo_streams.range_list import RangeList
    >>> only = RangeList.parse("2-2,5-9,11-")
    >>> 11 in only, 10 in only
    (True, False)
    >>> only.contains_positive_infinity()
    True
"""
from __future__ import annotations

import re
from typing import Iterable, Iterator

from ranges import Range, RangeSet

from .range_utils import range_max, range_min, validate_range

__all__ = ["RangeSpec", "RangeList", "RangeListSyntaxError", "parse_range_list"]

_TOKEN_RE = re.compile(r"\s*(?:(?P<num>[0-9]+)|(?P<op>[-,])|(?P<end>\Z))")


class RangeListSyntaxError(ValueError):
    """
    A range filter could not be parsed, either because a term was malformed or
    because the text was not fully consumed (e.g. trailing garbage).
    """

    def __init__(self, message: str, text: str = "", position: int | None = None):
        self.text = text
        self.position = position
        if position is not None:
            message = f"{message} at position {position} in {text!r}"
        super().__init__(message)


class RangeSpec:
    """
    One term of a range filter: an inclusive interval of chunk indexes, where a
    ``start`` (``end``) of ``None`` means the interval is unbounded below (above).
    """

    def __init__(self, start: int | None = None, end: int | None = None):
        if start is not None and end is not None and end < start:
            raise RangeListSyntaxError(
                f"End of range cannot be before start ({start}-{end})"
            )
        self.start = start
        self.end = end

    @classmethod
    def single(cls, index: int) -> RangeSpec:
        return cls(start=index, end=index)

    @classmethod
    def from_range(cls, rng: Range | tuple[int | None, int | None]) -> RangeSpec:
        """
        Create the term covering the same indexes as a half-closed
        :class:`~ranges.Range` (or a 2-tuple of inclusive termini).
        """
        rng = validate_range(rng, allow_empty=False)
        return cls(start=range_min(rng), end=range_max(rng))

    @property
    def has_start(self) -> bool:
        return self.start is not None

    @property
    def has_end(self) -> bool:
        return self.end is not None

    def admits(self, index: int) -> bool:
        return (not self.has_start or index >= self.start) and (
            not self.has_end or index <= self.end
        )

    def to_range(self) -> Range:
        """
        The equivalent half-closed :class:`~ranges.Range` ``[start, end+1)``, using
        infinite boundaries for the missing termini.
        """
        return validate_range((self.start, self.end))

    def finite_bounds(self) -> list[int]:
        return [b for b in (self.start, self.end) if b is not None]

    def __eq__(self, other) -> bool:
        if not isinstance(other, RangeSpec):
            return NotImplemented
        return (self.start, self.end) == (other.start, other.end)

    def __hash__(self) -> int:
        return hash((self.start, self.end))

    def __str__(self) -> str:
        if self.has_start and self.start == self.end:
            return str(self.start)
        start = "" if self.start is None else self.start
        end = "" if self.end is None else self.end
        return f"{start}-{end}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(start={self.start!r}, end={self.end!r})"


def _tokenize(text: str) -> Iterator[tuple[str, str, int]]:
    """
    Yield ``(kind, value, position)`` tokens where ``kind`` is ``"num"``, ``"op"``
    or ``"end"`` (always the final token). Raises on any other character.
    """
    pos = 0
    while True:
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            offset = len(text) - len(text[pos:].lstrip())
            raise RangeListSyntaxError("Unexpected character", text, offset)
        kind = match.lastgroup
        yield kind, match.group(kind), match.start(kind)
        if kind == "end":
            return
        pos = match.end()


def parse_range_list(text: str) -> list[RangeSpec]:
    """
    Parse a comma separated range filter into a list of :class:`RangeSpec`,
    requiring the whole of ``text`` to be consumed. An empty (or whitespace only)
    string gives the empty list.

    Raises :exc:`RangeListSyntaxError` if any term is malformed.

    Args:
      text : the range filter, e.g. ``"0,5,10-"``
    """
    tokens = list(_tokenize(text))
    if tokens[0][0] == "end":
        return []
    specs = []
    i = 0

    def expect_num() -> int:
        nonlocal i
        kind, value, pos = tokens[i]
        if kind != "num":
            raise RangeListSyntaxError("Expected a chunk index", text, pos)
        i += 1
        return int(value)

    while True:
        kind, value, pos = tokens[i]
        if kind == "op" and value == "-":
            i += 1
            spec = RangeSpec(end=expect_num())
        else:
            start = expect_num()
            kind, value, pos = tokens[i]
            if kind == "op" and value == "-":
                i += 1
                end = expect_num() if tokens[i][0] == "num" else None
                try:
                    spec = RangeSpec(start=start, end=end)
                except RangeListSyntaxError as exc:
                    raise RangeListSyntaxError(str(exc), text, pos) from exc
            else:
                spec = RangeSpec.single(start)
        specs.append(spec)
        kind, value, pos = tokens[i]
        if kind == "end":
            return specs
        if kind == "op" and value == ",":
            i += 1
            continue
        raise RangeListSyntaxError("Expected ',' or end of input", text, pos)


class RangeList:
    """
    An ordered, immutable list of :class:`RangeSpec` terms, interpreted as their
    union (held as a :class:`~ranges.RangeSet` for membership tests). The order is
    only kept so the list can be printed back as it was given.

    An empty :class:`RangeList` means that no filter was given: what that implies
    (match everything, or match nothing) is up to the caller.
    """

    def __init__(self, specs: Iterable[RangeSpec] = ()):
        self._specs = tuple(specs)
        self._range_set = RangeSet()
        for spec in self._specs:
            self._range_set.add(spec.to_range())

    @classmethod
    def parse(cls, text: str | None) -> RangeList:
        """
        Parse a range filter such as ``"2-2,5-9,11-"``. ``None`` or an empty
        string gives the empty :class:`RangeList`.
        """
        return cls() if text is None else cls(parse_range_list(text))

    @classmethod
    def from_ranges(
        cls, ranges: Iterable[Range | tuple[int | None, int | None]]
    ) -> RangeList:
        return cls(RangeSpec.from_range(rng) for rng in ranges)

    @property
    def specs(self) -> tuple[RangeSpec, ...]:
        return self._specs

    def contains(self, index: int) -> bool:
        return index in self._range_set

    def __contains__(self, index: int) -> bool:
        return self.contains(index)

    def contains_positive_infinity(self) -> bool:
        return any(not spec.has_end for spec in self._specs)

    def contains_negative_infinity(self) -> bool:
        return any(not spec.has_start for spec in self._specs)

    def finite_bounds(self) -> list[int]:
        "Every finite start and end across the terms (in order of appearance)."
        return [b for spec in self._specs for b in spec.finite_bounds()]

    def smallest_finite_bound(self) -> int | None:
        """
        The smallest finite boundary (start or end) in the list, or ``None``
        if the list is empty or has no finite boundary.
        """
        return min(self.finite_bounds(), default=None)

    def largest_finite_bound(self) -> int | None:
        """
        The largest finite boundary (start or end) in the list, or ``None``
        if the list is empty or has no finite boundary.
        """
        return max(self.finite_bounds(), default=None)

    def is_empty(self) -> bool:
        return not self._specs

    def __bool__(self) -> bool:
        return not self.is_empty()

    def __len__(self) -> int:
        return len(self._specs)

    def __iter__(self) -> Iterator[RangeSpec]:
        return iter(self._specs)

    def __eq__(self, other) -> bool:
        if not isinstance(other, RangeList):
            return NotImplemented
        return self._specs == other._specs

    def __hash__(self) -> int:
        return hash(self._specs)

    def __str__(self) -> str:
        return ",".join(map(str, self._specs))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__} ⠶ {self}"
