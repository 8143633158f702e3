"""Metric point decoder.

Turns the per-type raw point records of a metric stream into the uniform
:class:`~telview.core.model.Point` model consumed by the graph engine.
Histogram-family records are reduced to a sparse bucket list; every
bucket-bearing record yields a value-less marker point carrying the decorated
record, plus synthetic min/max/mean points sharing its timestamp.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from ..contracts.error import MetricDecodeError, PointDecodeError
from .model import (
    VARIANTS,
    Bucket,
    ExponentialHistogramPoint,
    HistogramPoint,
    MetricType,
    Number,
    NumberPoint,
    Point,
    Quantile,
    SeriesStyle,
    SummaryPoint,
    Tempo,
)

logger = logging.getLogger(__name__)


def histogram_buckets(counts: Sequence[int], bounds: Sequence[float]) -> list[Bucket]:
    """Pair explicit-bound bucket counts with their ranges, dropping empty buckets.

    Bucket ``i`` spans ``(bounds[i-1], bounds[i]]``; the first bucket has no
    lower bound and the last no upper bound.
    """

    buckets: list[Bucket] = []
    for i, count in enumerate(counts):
        if count == 0:
            continue
        buckets.append(
            Bucket(
                count=count,
                min=bounds[i - 1] if i > 0 else None,
                max=bounds[i] if i < len(bounds) else None,
            )
        )
    return buckets


def exponential_buckets(point: ExponentialHistogramPoint) -> list[Bucket]:
    """Expand base-2 exponential buckets, ordered from most negative to most positive."""

    lower = point.lower_bound
    buckets: list[Bucket] = []
    for i in range(len(point.neg) - 1, -1, -1):
        count = point.neg[i]
        if count == 0:
            continue
        index = point.neg_offset + i
        buckets.append(Bucket(count=count, min=-lower(index + 1), max=-lower(index)))

    if point.zeros != 0:
        threshold = point.zeros_threshold
        buckets.append(Bucket(count=point.zeros, min=threshold, max=threshold))

    for i, count in enumerate(point.pos):
        if count == 0:
            continue
        index = point.pos_offset + i
        buckets.append(Bucket(count=count, min=lower(index), max=lower(index + 1)))
    return buckets


def summary_bounds(quantiles: Iterable[Quantile]) -> tuple[Number | None, Number | None]:
    """Return the values of the 0 and 1 quantiles (min and max), when reported."""

    low: Number | None = None
    high: Number | None = None
    for qv in quantiles:
        if qv.q == 0:
            low = qv.v
        if qv.q == 1:
            high = qv.v
    return low, high


def _decorate(
    record: Mapping[str, Any],
    drop: Iterable[str],
    buckets: list[Bucket] | None,
    **extra: Any,
) -> dict[str, Any]:
    dropped = set(drop)
    props = {key: value for key, value in record.items() if key not in dropped}
    if buckets is not None:
        props["buckets"] = [bucket.as_props() for bucket in buckets]
    for key, value in extra.items():
        if value is not None:
            props[key] = value
    return props


def _derived_points(
    time: int,
    props: dict[str, Any],
    low: Number | None,
    high: Number | None,
    total: Number | None,
    count: int | None,
) -> list[Point]:
    points = [Point(time, None, SeriesStyle.MARKER, props)]
    if low is not None:
        points.append(Point(time, low, SeriesStyle.MIN))
    if high is not None:
        points.append(Point(time, high, SeriesStyle.MAX))
    if total is not None and count:
        try:
            mean = total / count
        except OverflowError as exc:
            raise PointDecodeError("mean of 'sum' over 'count' is out of float range") from exc
        points.append(Point(time, mean, SeriesStyle.MEAN))
    return points


def decode_point(metric_type: MetricType, record: Mapping[str, Any]) -> list[Point]:
    """Decode one raw record into its plotted points.

    Raises :class:`PointDecodeError` when the record does not carry the fields
    its metric type requires.
    """

    if not isinstance(record, Mapping):
        raise PointDecodeError(f"point record must be a mapping; got {type(record).__name__}")
    raw = VARIANTS[metric_type].from_record(record)

    if isinstance(raw, NumberPoint):
        return [Point(raw.time, raw.value, SeriesStyle.PRIMARY, record)]

    if isinstance(raw, HistogramPoint):
        buckets = histogram_buckets(raw.counts, raw.bounds)
        agg = raw.aggregates
        props = _decorate(record, HistogramPoint.RAW_FIELDS, buckets)
        return _derived_points(raw.time, props, agg.min, agg.max, agg.sum, agg.count)

    if isinstance(raw, ExponentialHistogramPoint):
        try:
            buckets = exponential_buckets(raw)
        except OverflowError as exc:
            raise PointDecodeError(f"bucket bound overflows at scale {raw.scale}") from exc
        agg = raw.aggregates
        props = _decorate(record, ExponentialHistogramPoint.RAW_FIELDS, buckets)
        return _derived_points(raw.time, props, agg.min, agg.max, agg.sum, agg.count)

    if isinstance(raw, SummaryPoint):
        low, high = summary_bounds(raw.quantiles)
        props = _decorate(record, (), None, min=low, max=high)
        return _derived_points(raw.time, props, low, high, raw.sum, raw.count)

    raise PointDecodeError(f"no decoder for {type(raw).__name__}")  # pragma: no cover


@dataclass
class PointError:
    index: int
    message: str


@dataclass
class DecodedStream:
    stream_id: str
    attrs: Mapping[str, Any]
    points: list[Point] = field(default_factory=list)
    errors: list[PointError] = field(default_factory=list)


def decode_stream(
    metric_type: MetricType,
    raw_points: Iterable[Any],
    *,
    stream_id: str = "",
    attrs: Mapping[str, Any] | None = None,
) -> DecodedStream:
    """Decode all raw points of a stream, skipping records that fail to decode."""

    stream = DecodedStream(stream_id=stream_id, attrs=attrs or {})
    for index, record in enumerate(raw_points):
        try:
            stream.points.extend(decode_point(metric_type, record))
        except PointDecodeError as exc:
            logger.warning(
                "Skipping malformed %s point #%d in stream %s: %s",
                metric_type.value,
                index,
                stream_id or "?",
                exc,
            )
            stream.errors.append(PointError(index=index, message=str(exc)))
    return stream


@dataclass
class DecodedMetric:
    metric_type: MetricType
    name: str = ""
    unit: str = ""
    desc: str = ""
    tempo: Tempo | None = None
    mono: bool = False
    conflict: bool = False
    meta: Mapping[str, Any] | None = None
    streams: list[DecodedStream] = field(default_factory=list)


def parse_metric_type(raw: Any) -> MetricType:
    try:
        return MetricType(raw)
    except ValueError as exc:
        raise MetricDecodeError(
            f"Unsupported metric type {raw!r}",
            hint="expected one of " + ", ".join(t.value for t in MetricType),
        ) from exc


def decode_metric(record: Mapping[str, Any]) -> DecodedMetric:
    """Decode a metric envelope and all of its streams (sorted by stream id)."""

    if not isinstance(record, Mapping):
        raise MetricDecodeError("metric record must be a mapping")
    metric_type = parse_metric_type(record.get("type"))
    raw_tempo = record.get("tempo")
    try:
        tempo = Tempo(raw_tempo) if raw_tempo is not None else None
    except ValueError as exc:
        raise MetricDecodeError(f"Unsupported tempo {raw_tempo!r}") from exc

    raw_streams = record.get("streams") or {}
    if not isinstance(raw_streams, Mapping):
        raise MetricDecodeError("metric 'streams' must be a mapping")

    metric = DecodedMetric(
        metric_type=metric_type,
        name=str(record.get("name") or ""),
        unit=str(record.get("unit") or ""),
        desc=str(record.get("desc") or ""),
        tempo=tempo,
        mono=bool(record.get("mono", False)),
        conflict=bool(record.get("conflict", False)),
        meta=record.get("meta") or None,
    )
    for stream_id in sorted(raw_streams):
        stream = raw_streams[stream_id]
        if not isinstance(stream, Mapping):
            logger.warning("Skipping stream %s: expected a mapping", stream_id)
            continue
        attrs = stream.get("attr") if isinstance(stream.get("attr"), Mapping) else {}
        pts = stream.get("pts") if isinstance(stream.get("pts"), list) else []
        metric.streams.append(decode_stream(metric_type, pts, stream_id=stream_id, attrs=attrs))
    return metric


__all__ = [
    "DecodedMetric",
    "DecodedStream",
    "PointError",
    "decode_metric",
    "decode_point",
    "decode_stream",
    "exponential_buckets",
    "histogram_buckets",
    "parse_metric_type",
    "summary_bounds",
]
