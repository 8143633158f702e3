from __future__ import annotations

import logging
import math

import pytest

from telview.contracts.error import MetricDecodeError, PointDecodeError
from telview.core.decoder import (
    decode_metric,
    decode_point,
    decode_stream,
    exponential_buckets,
    histogram_buckets,
    summary_bounds,
)
from telview.core.model import (
    Bucket,
    ExponentialHistogramPoint,
    MetricType,
    Quantile,
    SeriesStyle,
)
from telview.core.wire import Timestamp


def test_gauge_point_is_primary_and_focusable() -> None:
    record = {"time": Timestamp(10), "val": 2**70, "attr": {"a": 1}}
    (point,) = decode_point(MetricType.GAUGE, record)
    assert point.time == 10
    assert point.value == 2**70
    assert point.style == SeriesStyle.PRIMARY
    assert point.props is record
    assert point.focusable


def test_sum_point_passes_nan_through() -> None:
    (point,) = decode_point(MetricType.SUM, {"time": 1, "val": float("nan")})
    assert math.isnan(point.value)


def test_histogram_buckets_skip_empty() -> None:
    assert histogram_buckets([0, 5, 0, 3], [1, 2, 3]) == [
        Bucket(count=5, min=1, max=2),
        Bucket(count=3, min=3, max=None),
    ]
    assert histogram_buckets([4], []) == [Bucket(count=4)]


def test_histogram_point_emits_marker_and_aggregates() -> None:
    record = {
        "time": 100,
        "bucketCounts": [0, 5, 0, 3],
        "bucketBounds": [1, 2, 3],
        "sum": 40,
        "count": 8,
        "min": 1.5,
        "max": 20,
        "flags": 0,
    }
    marker, low, high, mean = decode_point(MetricType.HISTOGRAM, record)
    assert marker.value is None
    assert marker.style == SeriesStyle.MARKER
    assert marker.props is not None
    assert "bucketCounts" not in marker.props
    assert "bucketBounds" not in marker.props
    assert marker.props["flags"] == 0
    assert marker.props["buckets"] == [{"min": 1.0, "max": 2.0, "count": 5}, {"min": 3.0, "count": 3}]
    assert (low.value, low.style) == (1.5, SeriesStyle.MIN)
    assert (high.value, high.style) == (20, SeriesStyle.MAX)
    assert (mean.value, mean.style) == (5, SeriesStyle.MEAN)
    assert {p.time for p in (marker, low, high, mean)} == {100}


def test_histogram_accepts_short_wire_aliases() -> None:
    record = {"time": 1, "buckets": [1, 2], "bounds": [10], "cnt": 3, "sum": 9}
    points = decode_point(MetricType.HISTOGRAM, record)
    assert points[0].props["buckets"] == [{"max": 10.0, "count": 1}, {"min": 10.0, "count": 2}]
    assert points[-1].value == 3


def test_histogram_without_count_has_no_mean() -> None:
    points = decode_point(MetricType.HISTOGRAM, {"time": 1, "sum": 9, "count": 0})
    assert [p.style for p in points] == [SeriesStyle.MARKER]


def test_histogram_rejects_mismatched_bounds() -> None:
    with pytest.raises(PointDecodeError):
        decode_point(MetricType.HISTOGRAM, {"time": 1, "bucketCounts": [1, 2], "bucketBounds": []})


def test_exponential_buckets_positive_range() -> None:
    point = ExponentialHistogramPoint.from_record({"time": 1, "scale": 0, "pos": [2, 0, 1]})
    assert exponential_buckets(point) == [
        Bucket(count=2, min=1.0, max=2.0),
        Bucket(count=1, min=4.0, max=8.0),
    ]


def test_exponential_buckets_negative_zero_and_offsets() -> None:
    point = ExponentialHistogramPoint.from_record(
        {
            "time": 1,
            "scale": 1,
            "neg": [1, 2],
            "neg.off": 0,
            "zeros": 4,
            "zeros.thre": 0.5,
            "pos": [3],
            "pos.off": 2,
        }
    )
    root2 = math.sqrt(2)
    buckets = exponential_buckets(point)
    assert [b.count for b in buckets] == [2, 1, 4, 3]
    assert buckets[0].min == pytest.approx(-2.0)
    assert buckets[0].max == pytest.approx(-root2)
    assert buckets[1].min == pytest.approx(-root2)
    assert buckets[1].max == pytest.approx(-1.0)
    assert (buckets[2].min, buckets[2].max) == (0.5, 0.5)
    assert buckets[3].min == pytest.approx(2.0)
    assert buckets[3].max == pytest.approx(2 * root2)


def test_exponential_point_drops_raw_fields() -> None:
    points = decode_point(
        MetricType.EXPONENTIAL_HISTOGRAM,
        {"time": 1, "scale": 0, "pos": [1], "posOffset": 1, "min": 2, "max": 3},
    )
    props = points[0].props
    assert props is not None
    assert "pos" not in props and "posOffset" not in props
    assert props["scale"] == 0
    assert props["buckets"] == [{"min": 2.0, "max": 4.0, "count": 1}]
    assert [p.value for p in points[1:]] == [2, 3]


def test_summary_bounds_and_points() -> None:
    quantiles = [Quantile(0, 1.5), Quantile(0.5, 4), Quantile(1, 20)]
    assert summary_bounds(quantiles) == (1.5, 20)
    record = {
        "time": 7,
        "quantiles": [{"q": 0, "v": 1.5}, {"q": 0.5, "v": 4}, {"q": 1, "v": 20}],
        "sum": 30,
        "count": 3,
    }
    marker, low, high, mean = decode_point(MetricType.SUMMARY, record)
    assert marker.props["min"] == 1.5
    assert marker.props["max"] == 20
    assert (low.value, high.value, mean.value) == (1.5, 20, 10)


def test_summary_without_extreme_quantiles() -> None:
    points = decode_point(MetricType.SUMMARY, {"time": 7, "quantiles": [{"q": 0.5, "v": 4}]})
    assert [p.style for p in points] == [SeriesStyle.MARKER]
    assert "min" not in points[0].props


@pytest.mark.parametrize(
    ("metric_type", "record"),
    [
        (MetricType.GAUGE, {"val": 1}),
        (MetricType.GAUGE, {"time": 1, "val": "x"}),
        (MetricType.GAUGE, {"time": "soon", "val": 1}),
        (MetricType.HISTOGRAM, {"time": 1, "bucketCounts": [-1]}),
        (MetricType.SUMMARY, {"time": 1}),
        (MetricType.EXPONENTIAL_HISTOGRAM, {"time": 1}),
        (MetricType.EXPONENTIAL_HISTOGRAM, {"time": 1, "scale": math.nan}),
        (MetricType.EXPONENTIAL_HISTOGRAM, {"time": 1, "scale": math.inf}),
        (MetricType.EXPONENTIAL_HISTOGRAM, {"time": 1, "scale": 0.5}),
        (MetricType.HISTOGRAM, {"time": 1, "bucketCounts": [1, 1], "bucketBounds": [10**400]}),
        (MetricType.SUMMARY, {"time": 1, "quantiles": [], "sum": 10**400, "count": 1}),
    ],
)
def test_malformed_points_raise(metric_type: MetricType, record: dict) -> None:
    with pytest.raises(PointDecodeError):
        decode_point(metric_type, record)


def test_decode_stream_skips_bad_points(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="telview.core.decoder"):
        stream = decode_stream(
            MetricType.GAUGE,
            [{"time": 1, "val": 1}, {"time": 2}, {"time": 3, "val": 3}],
            stream_id="s1",
        )
    assert [p.time for p in stream.points] == [1, 3]
    assert [e.index for e in stream.errors] == [1]
    assert "s1" in caplog.text


def test_decode_stream_keeps_points_next_to_out_of_range_ones() -> None:
    stream = decode_stream(
        MetricType.EXPONENTIAL_HISTOGRAM,
        [
            {"time": 1, "scale": math.nan, "pos": [1]},
            {"time": 2, "scale": 0, "pos": [1]},
            {"time": 3, "scale": 0, "pos": [1], "sum": 10**400, "count": 1},
        ],
    )
    assert [p.time for p in stream.points] == [2]
    assert [e.index for e in stream.errors] == [0, 2]


def test_integral_float_scale_is_accepted() -> None:
    (marker,) = decode_point(MetricType.EXPONENTIAL_HISTOGRAM, {"time": 1, "scale": 1.0})
    assert marker.style is SeriesStyle.MARKER


def test_decode_metric_sorts_streams() -> None:
    metric = decode_metric(
        {
            "type": "Sum",
            "name": "requests",
            "unit": "1",
            "tempo": "Cumulative",
            "mono": True,
            "conflict": True,
            "meta": {"k": "v"},
            "streams": {
                "b": {"attr": {"x": 2}, "pts": [{"time": 2, "val": 2}]},
                "a": {"attr": {"x": 1}, "pts": [{"time": 1, "val": 1}]},
            },
        }
    )
    assert metric.metric_type is MetricType.SUM
    assert [s.stream_id for s in metric.streams] == ["a", "b"]
    assert metric.streams[0].attrs == {"x": 1}
    assert metric.conflict is True
    assert metric.meta == {"k": "v"}
    assert metric.mono is True


def test_decode_metric_unknown_type() -> None:
    with pytest.raises(MetricDecodeError):
        decode_metric({"type": "Nope", "streams": {}})
    with pytest.raises(MetricDecodeError):
        decode_metric({"type": "Gauge", "tempo": "Sometimes"})
