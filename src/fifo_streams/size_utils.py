r"""Sizes are given on the command line as a number and an optional unit, for example
``5GB``, ``8MiB``, ``700000B``, ``4.5 TiB`` or just ``700000`` (bytes).

SI units are powers of 1000 (``kB``, ``MB``, ``GB``, ...) and binary units powers of
1024 (``KiB``, ``MiB``, ``GiB``, ...). ``KB`` is also accepted as 1024 bytes, as it is
commonly written that way (the SI kilobyte is only ever ``kB``). Units are case
sensitive, so that ``mB`` (millibytes!) is rejected rather than misread.
"""
from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from math import ceil

__all__ = ["SizeFormatError", "UNITS", "parse_size"]

UNITS = {
    "B": 1,
    "kB": 1000,
    "KB": 1024,
    "MB": 1000**2,
    "GB": 1000**3,
    "TB": 1000**4,
    "PB": 1000**5,
    "KiB": 1024,
    "MiB": 1024**2,
    "GiB": 1024**3,
    "TiB": 1024**4,
    "PiB": 1024**5,
}

_SIZE_RE = re.compile(r"^\s*(?P<value>\d+(?:\.\d*)?|\.\d+)\s*(?P<unit>[A-Za-z]*)\s*$")


class SizeFormatError(ValueError):
    "A size could not be parsed, or was not positive."

    def __init__(self, size: str, reason: str = "invalid size format"):
        super().__init__(f"{size!r}: {reason}")
        self.size = size


def parse_size(size: str) -> int:
    """
    Parse a size such as ``"8MiB"`` into a number of bytes, rounding fractional
    byte counts up. The size must be at least 1 byte.

      >>> from fifo_streams.size_utils import parse_size
      >>> parse_size("8MiB")
      8388608
      >>> parse_size("4.5kB")
      4500

    Raises :exc:`SizeFormatError` if the size is malformed, has an unknown unit, or
    is less than 1 byte.

    Args:
      size : a number optionally followed by one of the :data:`UNITS`
    """
    match = _SIZE_RE.match(size)
    if match is None:
        raise SizeFormatError(size)
    unit = match.group("unit") or "B"
    if unit not in UNITS:
        known = ", ".join(UNITS)
        raise SizeFormatError(size, f"unknown unit {unit!r} (expected one of {known})")
    try:
        value = Decimal(match.group("value"))
    except InvalidOperation:
        raise SizeFormatError(size)
    exact = value * UNITS[unit]
    if exact < 1:
        raise SizeFormatError(
            size, "must be positive (ensure units are properly capitalised)"
        )
    return ceil(exact)
