"""Natural ordering of external keys."""

import re
from typing import Any

_DIGITS = re.compile(r"(\d+)")


def natural_key(value: str | None) -> tuple[Any, ...]:
    """Sort key that orders embedded numbers numerically.

    ``"U2" < "U10"`` and ``"9" < "10"`` under this ordering, which matches the
    integer primary keys used by the source tables.

    Args:
        value: External key, or None (sorts first).

    Returns:
        Tuple usable as a sort key.
    """
    if value is None:
        return ()
    parts = _DIGITS.split(value)
    # Tag each part so ints and strs never compare with each other
    return tuple((0, int(part), part) if part.isdigit() else (1, 0, part) for part in parts if part)


def max_key(*keys: str | None) -> str | None:
    """Return the greatest key under natural ordering, ignoring None."""
    present = [k for k in keys if k is not None]
    if not present:
        return None
    return max(present, key=natural_key)
