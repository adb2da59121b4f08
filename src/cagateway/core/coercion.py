"""Lenient integer coercion for form values.

Form fields arrive as text.  Serial numbers and reason codes are
converted with :func:`to_int`, which honours a leading (optionally
signed) run of digits and maps anything else to ``0`` instead of
rejecting the value.
"""

from __future__ import annotations

import re

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


def to_int(value: object) -> int:
    """Return the integer prefix of *value*, or ``0`` when there is none.

    ``"12345"`` → 12345, ``"12abc"`` → 12, ``"foo"`` → 0, ``None`` → 0.
    Integers pass through unchanged.
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if value is None:
        return 0
    match = _LEADING_INT_RE.match(str(value))
    if match is None:
        return 0
    return int(match.group(1))
