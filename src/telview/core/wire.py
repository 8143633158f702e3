"""Decoding of the backend's tagged JSON values.

The API encodes integers that may exceed a double's safe range as
``{"_int": "<decimal>"}`` and nanosecond timestamps as ``{"_ts": "<decimal>"}``.
Both are turned into exact Python integers here, before any payload reaches
the decoder or the graph engine.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from ..contracts.error import WireDecodeError
from .numeric import timestamp

INT_TAG = "_int"
TS_TAG = "_ts"


@dataclass(frozen=True, slots=True, order=True)
class Timestamp:
    """Nanoseconds since the Unix epoch."""

    ns: int

    def __str__(self) -> str:
        return timestamp(self.ns)


def _parse_decimal(tag: str, raw: Any) -> int:
    if isinstance(raw, bool) or not isinstance(raw, str | int):
        raise WireDecodeError(f"{tag} payload must be a decimal string; got {raw!r}")
    try:
        return int(raw)
    except ValueError as exc:
        raise WireDecodeError(f"{tag} payload is not a decimal integer: {raw!r}") from exc


def _object_hook(obj: dict[str, Any]) -> Any:
    if len(obj) == 1:
        if INT_TAG in obj:
            return _parse_decimal(INT_TAG, obj[INT_TAG])
        if TS_TAG in obj:
            return Timestamp(_parse_decimal(TS_TAG, obj[TS_TAG]))
    return obj


def decode_json(data: bytes | str) -> Any:
    """Parse an API response body, resolving ``_int`` and ``_ts`` tags."""

    if isinstance(data, bytes | bytearray):
        try:
            data = bytes(data).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise WireDecodeError(f"Response is not valid UTF-8: {exc}") from exc
    try:
        return json.loads(data, object_hook=_object_hook)
    except json.JSONDecodeError as exc:
        raise WireDecodeError(f"Invalid JSON payload: {exc}") from exc


def as_nanos(value: Any) -> int:
    """Coerce a decoded timestamp (``Timestamp``, int or decimal string) to nanoseconds."""

    if isinstance(value, Timestamp):
        return value.ns
    if isinstance(value, dict) and TS_TAG in value:
        return _parse_decimal(TS_TAG, value[TS_TAG])
    if isinstance(value, bool):
        raise WireDecodeError(f"Expected a timestamp; got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return _parse_decimal(TS_TAG, value)
    raise WireDecodeError(f"Expected a timestamp; got {value!r}")


__all__ = ["INT_TAG", "TS_TAG", "Timestamp", "as_nanos", "decode_json"]
