"""Arbitrary-precision comparison and timestamp helpers."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime, timedelta
from typing import Any

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_NS_PER_MS = 1_000_000


def big_min(*xs: Any) -> Any:
    """Return the smallest argument (first one wins ties), or ``None`` when empty."""

    best = None
    for x in xs:
        if best is None or x < best:
            best = x
    return best


def big_max(*xs: Any) -> Any:
    """Return the largest argument (first one wins ties), or ``None`` when empty."""

    best = None
    for x in xs:
        if best is None or x > best:
            best = x
    return best


def _as_sequence(value: Any) -> Sequence[Any]:
    if value is None:
        return ()
    if isinstance(value, list | tuple):
        return value
    return (value,)


def _kind(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int | float):
        return "number"
    return type(value).__name__


def cmp(a: Any, b: Any) -> int:
    """Three-way compare scalars or sequences element by element.

    Scalars behave as one-element sequences and ``None`` as an empty one, so
    ``cmp(start, other_start) or cmp(id, other_id)`` sorts mixed keys without
    raising. Elements of different kinds are ordered by kind name.
    """

    left = _as_sequence(a)
    right = _as_sequence(b)
    for i in range(max(len(left), len(right))):
        if i >= len(left):
            return -1
        if i >= len(right):
            return 1
        x1, x2 = left[i], right[i]
        k1, k2 = _kind(x1), _kind(x2)
        if k1 != k2:
            return 1 if k1 > k2 else -1
        if x1 != x2:
            return 1 if x1 > x2 else -1
    return 0


def timestamp(ns: int, short: bool = False) -> str:
    """Format a nanosecond epoch timestamp in UTC.

    ``short`` stops at milliseconds; the long form appends the remaining
    micro/nano digits as ``uuu nnn UTC``.
    """

    ms = ns // _NS_PER_MS
    moment = _EPOCH + timedelta(milliseconds=ms)
    text = f"{moment:%Y-%m-%d %H:%M:%S}.{ms % 1000:03d}"
    if short:
        return text
    rest = f"{ns % _NS_PER_MS:06d}"
    return f"{text} {rest[:3]} {rest[3:]} UTC"


def format_value(value: Any) -> str:
    """Render an axis value: floats with six significant digits, ints verbatim."""

    if value is None:
        return ""
    if isinstance(value, float):
        return f"{value:#.6g}"
    return str(value)


__all__ = ["big_max", "big_min", "cmp", "format_value", "timestamp"]
