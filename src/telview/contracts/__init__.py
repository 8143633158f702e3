"""Contract helpers for the telemetry viewer."""

from .error import (
    BadInputError,
    EnvelopeError,
    ErrorEnvelope,
    Exit,
    FetchError,
    MetricDecodeError,
    PointDecodeError,
    WireDecodeError,
    die,
    guard_cli,
)

__all__ = [
    "Exit",
    "ErrorEnvelope",
    "EnvelopeError",
    "BadInputError",
    "FetchError",
    "WireDecodeError",
    "PointDecodeError",
    "MetricDecodeError",
    "guard_cli",
    "die",
]
