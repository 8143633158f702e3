"""Plottable point model and the typed raw point variants it is decoded from."""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, ClassVar

from ..contracts.error import PointDecodeError, WireDecodeError
from .wire import as_nanos

Number = int | float


class SeriesStyle(StrEnum):
    """Colour tokens for the plotted series."""

    PRIMARY = "#0f0"
    MARKER = "#888"
    MIN = "#f0f"
    MAX = "#0ff"
    MEAN = "#ff0"
    BACKGROUND = "#222"
    HALO = "#fff"


class MetricType(StrEnum):
    GAUGE = "Gauge"
    SUM = "Sum"
    HISTOGRAM = "Histogram"
    EXPONENTIAL_HISTOGRAM = "ExponentialHistogram"
    SUMMARY = "Summary"


class Tempo(StrEnum):
    DELTA = "Delta"
    CUMULATIVE = "Cumulative"


@dataclass(slots=True)
class Point:
    """One plotted sample. ``value is None`` marks a full-height tick."""

    time: int
    value: Number | None
    style: str
    props: Mapping[str, Any] | None = None

    @property
    def is_marker(self) -> bool:
        return self.value is None

    @property
    def focusable(self) -> bool:
        return bool(self.props)


@dataclass(frozen=True, slots=True)
class Bucket:
    count: int
    min: float | None = None
    max: float | None = None

    def as_props(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.min is not None:
            out["min"] = self.min
        if self.max is not None:
            out["max"] = self.max
        out["count"] = self.count
        return out


# --------------------------------------------------------------------
# Field coercion
# --------------------------------------------------------------------
_MISSING = object()


def _lookup(record: Mapping[str, Any], name: str, aliases: Sequence[str] = ()) -> Any:
    for key in (name, *aliases):
        if key in record and record[key] is not None:
            return record[key]
    return _MISSING


def _required(record: Mapping[str, Any], name: str, aliases: Sequence[str] = ()) -> Any:
    value = _lookup(record, name, aliases)
    if value is _MISSING:
        raise PointDecodeError(f"missing required field {name!r}")
    return value


def _optional(record: Mapping[str, Any], name: str, aliases: Sequence[str] = ()) -> Any:
    value = _lookup(record, name, aliases)
    return None if value is _MISSING else value


def _number(name: str, value: Any) -> Number:
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise PointDecodeError(f"field {name!r} must be numeric; got {value!r}")
    return value


def _optional_number(name: str, value: Any) -> Number | None:
    return None if value is None else _number(name, value)


def _float(name: str, value: Any) -> float:
    try:
        return float(_number(name, value))
    except OverflowError as exc:
        raise PointDecodeError(f"field {name!r} is out of float range") from exc


def _scale(value: Any) -> int:
    scale = _number("scale", value)
    if isinstance(scale, float):
        if not scale.is_integer():
            raise PointDecodeError(f"field 'scale' must be an integer; got {scale!r}")
        scale = int(scale)
    return scale


def _count(name: str, value: Any) -> int:
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise PointDecodeError(f"field {name!r} must be a non-negative integer; got {value!r}")
    return value


def _counts(name: str, value: Any) -> tuple[int, ...]:
    if not isinstance(value, list | tuple):
        raise PointDecodeError(f"field {name!r} must be a list; got {type(value).__name__}")
    return tuple(_count(name, item) for item in value)


def _time(record: Mapping[str, Any]) -> int:
    raw = _required(record, "time")
    try:
        return as_nanos(raw)
    except WireDecodeError as exc:
        raise PointDecodeError(f"field 'time' is not a timestamp: {exc}") from exc


# --------------------------------------------------------------------
# Raw point variants
# --------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class NumberPoint:
    """Gauge or Sum data point."""

    time: int
    value: Number

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> NumberPoint:
        return cls(time=_time(record), value=_number("val", _required(record, "val")))


@dataclass(frozen=True, slots=True)
class _Aggregates:
    """Optional aggregate fields shared by the histogram family."""

    sum: Number | None = None
    count: int | None = None
    min: Number | None = None
    max: Number | None = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> _Aggregates:
        raw_count = _optional(record, "count", ("cnt",))
        return cls(
            sum=_optional_number("sum", _optional(record, "sum")),
            count=None if raw_count is None else _count("count", raw_count),
            min=_optional_number("min", _optional(record, "min")),
            max=_optional_number("max", _optional(record, "max")),
        )


@dataclass(frozen=True, slots=True)
class HistogramPoint:
    time: int
    counts: tuple[int, ...]
    bounds: tuple[float, ...]
    aggregates: _Aggregates = field(default_factory=_Aggregates)

    RAW_FIELDS: ClassVar[tuple[str, ...]] = ("bucketCounts", "bucketBounds", "buckets", "bounds")

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> HistogramPoint:
        raw_counts = _optional(record, "bucketCounts", ("buckets",))
        counts = () if raw_counts is None else _counts("bucketCounts", raw_counts)
        raw_bounds = _optional(record, "bucketBounds", ("bounds",))
        if raw_bounds is None:
            raw_bounds = []
        if not isinstance(raw_bounds, list | tuple):
            raise PointDecodeError("field 'bucketBounds' must be a list")
        bounds = tuple(_float("bucketBounds", b) for b in raw_bounds)
        if counts and len(bounds) != len(counts) - 1:
            raise PointDecodeError(
                f"histogram has {len(counts)} bucket counts but {len(bounds)} bounds"
            )
        return cls(
            time=_time(record),
            counts=counts,
            bounds=bounds,
            aggregates=_Aggregates.from_record(record),
        )


@dataclass(frozen=True, slots=True)
class ExponentialHistogramPoint:
    time: int
    scale: int
    neg: tuple[int, ...]
    neg_offset: int
    zeros: int
    zeros_threshold: float
    pos: tuple[int, ...]
    pos_offset: int
    aggregates: _Aggregates = field(default_factory=_Aggregates)

    RAW_FIELDS: ClassVar[tuple[str, ...]] = (
        "neg",
        "negOffset",
        "neg.off",
        "zeros",
        "zerosThreshold",
        "zeros.thre",
        "pos",
        "posOffset",
        "pos.off",
    )

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> ExponentialHistogramPoint:
        neg_offset = _optional(record, "negOffset", ("neg.off",))
        pos_offset = _optional(record, "posOffset", ("pos.off",))
        threshold = _optional(record, "zerosThreshold", ("zeros.thre",))
        zeros = _optional(record, "zeros")
        for name, value in (("negOffset", neg_offset), ("posOffset", pos_offset)):
            if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
                raise PointDecodeError(f"field {name!r} must be an integer; got {value!r}")
        return cls(
            time=_time(record),
            scale=_scale(_required(record, "scale")),
            neg=_counts("neg", _optional(record, "neg") or ()),
            neg_offset=neg_offset or 0,
            zeros=0 if zeros is None else _count("zeros", zeros),
            zeros_threshold=0.0 if threshold is None else _float("zerosThreshold", threshold),
            pos=_counts("pos", _optional(record, "pos") or ()),
            pos_offset=pos_offset or 0,
            aggregates=_Aggregates.from_record(record),
        )

    def lower_bound(self, index: int) -> float:
        return math.pow(2.0, index * math.pow(2.0, -self.scale))


@dataclass(frozen=True, slots=True)
class Quantile:
    q: float
    v: Number


@dataclass(frozen=True, slots=True)
class SummaryPoint:
    time: int
    quantiles: tuple[Quantile, ...]
    sum: Number | None = None
    count: int | None = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> SummaryPoint:
        raw = _required(record, "quantiles")
        if not isinstance(raw, list | tuple):
            raise PointDecodeError("field 'quantiles' must be a list")
        quantiles = []
        for entry in raw:
            if not isinstance(entry, Mapping):
                raise PointDecodeError(f"quantile entry must be a mapping; got {entry!r}")
            quantiles.append(
                Quantile(
                    q=float(_number("q", _required(entry, "q"))),
                    v=_number("v", _required(entry, "v")),
                )
            )
        raw_count = _optional(record, "count", ("cnt",))
        return cls(
            time=_time(record),
            quantiles=tuple(quantiles),
            sum=_optional_number("sum", _optional(record, "sum")),
            count=None if raw_count is None else _count("count", raw_count),
        )


RawPoint = NumberPoint | HistogramPoint | ExponentialHistogramPoint | SummaryPoint

VARIANTS: dict[MetricType, type[Any]] = {
    MetricType.GAUGE: NumberPoint,
    MetricType.SUM: NumberPoint,
    MetricType.HISTOGRAM: HistogramPoint,
    MetricType.EXPONENTIAL_HISTOGRAM: ExponentialHistogramPoint,
    MetricType.SUMMARY: SummaryPoint,
}


__all__ = [
    "Bucket",
    "ExponentialHistogramPoint",
    "HistogramPoint",
    "MetricType",
    "Number",
    "NumberPoint",
    "Point",
    "Quantile",
    "RawPoint",
    "SeriesStyle",
    "SummaryPoint",
    "Tempo",
    "VARIANTS",
]
