"""Metric decoding and graph engine."""

from .cache import GraphCache
from .decoder import (
    DecodedMetric,
    DecodedStream,
    decode_metric,
    decode_point,
    decode_stream,
    exponential_buckets,
    histogram_buckets,
    summary_bounds,
)
from .graph import DEFOCUS_DELAY, Graph, GraphStyle, GraphSurface, Scene, Viewport
from .model import Bucket, MetricType, Point, SeriesStyle, Tempo
from .numeric import big_max, big_min, cmp, format_value, timestamp
from .wire import Timestamp, as_nanos, decode_json

__all__ = [
    "DEFOCUS_DELAY",
    "Bucket",
    "DecodedMetric",
    "DecodedStream",
    "Graph",
    "GraphCache",
    "GraphStyle",
    "GraphSurface",
    "MetricType",
    "Point",
    "Scene",
    "SeriesStyle",
    "Tempo",
    "Timestamp",
    "Viewport",
    "as_nanos",
    "big_max",
    "big_min",
    "cmp",
    "decode_json",
    "decode_metric",
    "decode_point",
    "decode_stream",
    "exponential_buckets",
    "format_value",
    "histogram_buckets",
    "summary_bounds",
    "timestamp",
]
