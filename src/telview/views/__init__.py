"""Toolkit-independent view models for traces, logs and metrics."""

from .logs import LogRow, summarize_logs
from .metrics import (
    MetricDetail,
    MetricRow,
    ResourceGroup,
    ScopeGroup,
    StreamView,
    build_metric_detail,
    display_unit,
    group_metrics,
    type_label,
)
from .props import PropNode, SpanLink, flatten, render_map, render_prop, to_lines
from .traces import SpanRow, TraceRow, bar_segments, span_context, summarize_traces

__all__ = [
    "LogRow",
    "MetricDetail",
    "MetricRow",
    "PropNode",
    "ResourceGroup",
    "ScopeGroup",
    "SpanLink",
    "SpanRow",
    "StreamView",
    "TraceRow",
    "bar_segments",
    "build_metric_detail",
    "display_unit",
    "flatten",
    "group_metrics",
    "render_map",
    "render_prop",
    "span_context",
    "summarize_logs",
    "summarize_traces",
    "to_lines",
    "type_label",
]
