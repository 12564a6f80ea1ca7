"""Small parsing helpers."""

from __future__ import annotations

import re

_UINT_MAX = 0xFFFFFFFF
_ULONG_MAX = 0xFFFFFFFFFFFFFFFF
_LEADING_NUMBER = re.compile(r"\s*([+-]?)(\d+)")


def parse_uint(text: str) -> int:
    """Parse a leading base-10 number that must fit in 32 unsigned bits.

    Leading whitespace is skipped and trailing characters are ignored. A
    minus sign wraps the value the way ``strtoul`` does, so any negative
    number other than zero is out of range.

    Raises ValueError when no number is present and OverflowError when the
    value does not fit.
    """
    match = _LEADING_NUMBER.match(text)
    if not match:
        raise ValueError(f"no number in {text!r}")
    sign, digits = match.groups()
    value = int(digits)
    if value > _ULONG_MAX:
        raise OverflowError(f"{text!r} is out of range")
    if sign == "-" and value:
        value = _ULONG_MAX + 1 - value
    if value > _UINT_MAX:
        raise OverflowError(f"{text!r} does not fit in an unsigned int")
    return value