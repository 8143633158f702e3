"""Metric list and metric detail models.

The detail builder is where decoded points meet the graph engine: every
stream of the selected metric gets its cached :class:`Graph`, re-attached to
the surface the front end provides for this pass, refilled and rendered.
"""

from __future__ import annotations

import functools
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from ..core.cache import GraphCache
from ..core.decoder import DecodedMetric, PointError, decode_metric
from ..core.graph import Graph, GraphSurface
from ..core.numeric import cmp

TYPE_LABELS = {
    "Gauge": "gauge",
    "Sum": "sum",
    "Histogram": "histo",
    "ExponentialHistogram": "exp-histo",
    "Summary": "summary",
}
TEMPO_MARKS = {"Delta": "Δ", "Cumulative": "Σ"}
_TEMPORAL_TYPES = {"Sum", "Histogram", "ExponentialHistogram"}

SurfaceFactory = Callable[[str], GraphSurface | None]


def type_label(metric: Mapping[str, Any]) -> str:
    """Short type tag such as ``sum Σ ↗`` for a cumulative monotonic sum."""

    metric_type = str(metric.get("type", ""))
    label = TYPE_LABELS.get(metric_type, metric_type.lower() or "?")
    if metric_type in _TEMPORAL_TYPES:
        mark = TEMPO_MARKS.get(str(metric.get("tempo", "")))
        if mark:
            label += f" {mark}"
    if metric_type == "Sum" and metric.get("mono"):
        label += " ↗"
    return label


def display_unit(unit: str | None) -> str:
    unit = unit or ""
    if unit.startswith("{") and unit.endswith("}"):
        return unit[1:-1]
    return unit


def _sorted_keys(mapping: Mapping[str, Any]) -> list[str]:
    return sorted(mapping, key=functools.cmp_to_key(cmp))


@dataclass
class MetricRow:
    id: str
    name: str
    unit: str
    type_label: str
    desc: str
    record: Mapping[str, Any] = field(default_factory=dict)

    @property
    def item_id(self) -> str:
        return f"metric-{self.id}"


@dataclass
class ScopeGroup:
    id: str
    props: Mapping[str, Any]
    metrics: list[MetricRow] = field(default_factory=list)


@dataclass
class ResourceGroup:
    id: str
    props: Mapping[str, Any]
    scopes: list[ScopeGroup] = field(default_factory=list)


def _ref(value: Any, tag: str) -> str:
    if isinstance(value, Mapping) and tag in value:
        return str(value[tag])
    return ""


def group_metrics(payload: Mapping[str, Any]) -> list[ResourceGroup]:
    """Nest ``/api/metrics`` entries as resource → scope → metric, each level sorted."""

    metrics = payload.get("metrics") or {}
    resources = payload.get("resources") or {}
    scopes = payload.get("scopes") or {}

    tree: dict[str, dict[str, dict[str, Mapping[str, Any]]]] = {}
    for metric_id, metric in metrics.items():
        res_id = _ref(metric.get("res"), "_res")
        scope_id = _ref(metric.get("scope"), "_scope")
        tree.setdefault(res_id, {}).setdefault(scope_id, {})[metric_id] = metric

    groups = []
    for res_id in _sorted_keys(tree):
        resource = ResourceGroup(id=res_id, props=resources.get(res_id) or {})
        for scope_id in _sorted_keys(tree[res_id]):
            scope = ScopeGroup(id=scope_id, props=scopes.get(scope_id) or {})
            by_id = tree[res_id][scope_id]
            for metric_id in _sorted_keys(by_id):
                metric = by_id[metric_id]
                scope.metrics.append(
                    MetricRow(
                        id=metric_id,
                        name=str(metric.get("name", "")),
                        unit=display_unit(metric.get("unit")),
                        type_label=type_label(metric),
                        desc=str(metric.get("desc") or ""),
                        record=metric,
                    )
                )
            resource.scopes.append(scope)
        groups.append(resource)
    return groups


@dataclass
class StreamView:
    id: str
    attrs: Mapping[str, Any]
    graph: Graph
    errors: list[PointError] = field(default_factory=list)


@dataclass
class MetricDetail:
    metric: DecodedMetric
    context: Mapping[str, Any]
    streams: list[StreamView] = field(default_factory=list)

    @property
    def conflict(self) -> bool:
        return self.metric.conflict

    @property
    def meta(self) -> Mapping[str, Any] | None:
        return self.metric.meta


def build_metric_detail(
    payload: Mapping[str, Any],
    cache: GraphCache,
    surface_for: SurfaceFactory,
) -> MetricDetail:
    """Decode ``/api/metric/{id}`` and render one graph per stream.

    Raises :class:`~telview.contracts.error.MetricDecodeError` for metric
    envelopes that cannot be decoded at all; malformed points are skipped.
    """

    metric = decode_metric(payload.get("metric") or {})
    detail = MetricDetail(metric=metric, context=payload)
    cache.begin_pass()
    for stream in metric.streams:
        graph = cache.get(stream.stream_id, surface_for(stream.stream_id))
        graph.set_context(payload)
        graph.extend(stream.points)
        graph.render()
        detail.streams.append(
            StreamView(id=stream.stream_id, attrs=stream.attrs, graph=graph, errors=stream.errors)
        )
    cache.sweep()
    return detail


__all__ = [
    "MetricDetail",
    "MetricRow",
    "ResourceGroup",
    "ScopeGroup",
    "StreamView",
    "build_metric_detail",
    "display_unit",
    "group_metrics",
    "type_label",
]
