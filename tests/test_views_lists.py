from __future__ import annotations

import pytest

from telview.core.wire import Timestamp
from telview.views.logs import level_class, summarize_logs
from telview.views.metrics import display_unit, group_metrics, type_label
from telview.views.traces import SpanRow, bar_segments, span_context, summarize_traces


def _span(name: str, start: int, end: int, status: str = "Unset") -> dict:
    return {"name": name, "start": Timestamp(start), "end": Timestamp(end), "status": status}


def test_summarize_traces_orders_and_scales() -> None:
    payload = {
        "late": {"s1": _span("late-root", 500, 600)},
        "early": {
            "child": _span("child", 150, 200, status="Error"),
            "root": _span("root", 100, 300),
        },
        "empty": {},
    }
    rows = summarize_traces(payload)
    assert [row.id for row in rows] == ["early", "late"]
    early = rows[0]
    assert (early.start, early.end) == (100, 300)
    assert [span.id for span in early.spans] == ["root", "child"]
    child = early.spans[1]
    assert child.offset_pct == pytest.approx(25)
    assert child.width_pct == pytest.approx(25)
    assert child.error is True
    assert child.item_id("early") == "span-early-child"


def test_zero_length_trace_does_not_divide_by_zero() -> None:
    rows = summarize_traces({"t": {"s": _span("x", 5, 5)}})
    assert rows[0].spans[0].offset_pct == 0
    assert rows[0].spans[0].width_pct == 0


def test_huge_timestamps_keep_precision() -> None:
    base = 2**62
    rows = summarize_traces({"t": {"a": _span("a", base, base + 10), "b": _span("b", base + 5, base + 10)}})
    assert rows[0].spans[1].offset_pct == pytest.approx(50)


def test_bar_segments_always_fill_one_cell() -> None:
    span = SpanRow("s", "n", 0, 0, offset_pct=100, width_pct=0)
    assert bar_segments(span, 10) == (9, 1, 0)
    span = SpanRow("s", "n", 0, 0, offset_pct=25, width_pct=50)
    assert bar_segments(span, 20) == (5, 10, 5)
    span = SpanRow("s", "n", 0, 0, offset_pct=0, width_pct=100)
    assert bar_segments(span, 8) == (0, 8, 0)


def test_span_context_adds_trace_id() -> None:
    payload = {"span": {}, "resource": {}}
    ctx = span_context(payload, "t1")
    assert ctx["traceId"] == "t1"
    assert "traceId" not in payload


def test_summarize_logs_sorted_by_time_with_positional_ids() -> None:
    rows = summarize_logs(
        [
            {"time": Timestamp(30), "sev": "Error2", "body": "late"},
            {"time": Timestamp(10), "sev": "Info", "body": "early"},
            {"time": Timestamp(20), "sev": "Debug"},
        ]
    )
    assert [row.id for row in rows] == [1, 2, 0]
    assert [row.level for row in rows] == [None, "debug", "error"]
    assert rows[0].item_id == "log-1"
    assert rows[1].body == ""


def test_level_class() -> None:
    assert level_class("Warn3") == "warn"
    assert level_class("Fatal") is None


def test_type_label_and_unit() -> None:
    assert type_label({"type": "Sum", "tempo": "Cumulative", "mono": True}) == "sum Σ ↗"
    assert type_label({"type": "Histogram", "tempo": "Delta"}) == "histo Δ"
    assert type_label({"type": "Gauge", "tempo": "Delta"}) == "gauge"
    assert type_label({"type": "Summary"}) == "summary"
    assert type_label({}) == "?"
    assert display_unit("{requests}") == "requests"
    assert display_unit("ms") == "ms"
    assert display_unit(None) == ""


def test_group_metrics_nests_and_sorts() -> None:
    payload = {
        "metrics": {
            "m2": {"name": "b", "type": "Gauge", "res": {"_res": "r1"}, "scope": {"_scope": "s1"}},
            "m1": {"name": "a", "type": "Sum", "res": {"_res": "r1"}, "scope": {"_scope": "s1"}},
            "m3": {"name": "c", "type": "Gauge", "res": {"_res": "r0"}, "scope": {"_scope": "s2"}},
        },
        "resources": {"r1": {"service.name": "api"}},
        "scopes": {"s2": {"name": "lib"}},
    }
    groups = group_metrics(payload)
    assert [g.id for g in groups] == ["r0", "r1"]
    assert groups[1].props == {"service.name": "api"}
    assert groups[0].props == {}
    assert groups[0].scopes[0].props == {"name": "lib"}
    assert [m.id for m in groups[1].scopes[0].metrics] == ["m1", "m2"]
    assert groups[1].scopes[0].metrics[0].item_id == "metric-m1"
    assert group_metrics({}) == []
