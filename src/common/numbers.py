"""Lenient numeric parsing for loosely typed upstream payloads."""

from __future__ import annotations

import math


def safe_float(value: object, default: float | None = None) -> float | None:
    """Parse ``value`` as a finite float, returning ``default`` otherwise.

    Booleans, ``None``, unparsable strings, NaN and infinities all map to
    ``default``.
    """

    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return number


__all__ = ["safe_float"]
