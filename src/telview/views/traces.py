"""Trace list model: traces ordered by start, spans laid out on a shared timeline."""

from __future__ import annotations

import functools
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from ..core.numeric import big_max, big_min, cmp
from ..core.wire import as_nanos


@dataclass
class SpanRow:
    id: str
    name: str
    start: int
    end: int
    offset_pct: float
    width_pct: float
    error: bool = False

    def item_id(self, trace_id: str) -> str:
        return f"span-{trace_id}-{self.id}"


@dataclass
class TraceRow:
    id: str
    start: int
    end: int
    spans: list[SpanRow] = field(default_factory=list)


def summarize_traces(payload: Mapping[str, Any]) -> list[TraceRow]:
    """Build trace rows from ``/api/traces`` (``{trace_id: {span_id: summary}}``)."""

    rows: list[TraceRow] = []
    for trace_id, spans in payload.items():
        if not isinstance(spans, Mapping) or not spans:
            continue
        timed = {
            span_id: (as_nanos(span["start"]), as_nanos(span["end"]), span)
            for span_id, span in spans.items()
        }
        start = big_min(*(s for s, _, _ in timed.values()))
        end = big_max(*(e for _, e, _ in timed.values()))
        duration = end - start
        if duration <= 0:
            duration = 1

        span_rows = [
            SpanRow(
                id=span_id,
                name=str(span.get("name", "")),
                start=s,
                end=e,
                offset_pct=(s - start) / duration * 100,
                width_pct=(e - s) / duration * 100,
                error=span.get("status") == "Error",
            )
            for span_id, (s, e, span) in timed.items()
        ]
        span_rows.sort(key=functools.cmp_to_key(lambda a, b: cmp(a.start, b.start) or cmp(a.id, b.id)))
        rows.append(TraceRow(id=trace_id, start=start, end=end, spans=span_rows))

    rows.sort(key=functools.cmp_to_key(lambda a, b: cmp(a.start, b.start) or cmp(a.id, b.id)))
    return rows


def bar_segments(span: SpanRow, width: int) -> tuple[int, int, int]:
    """Split a ``width``-cell bar into (lead, fill, trail) for ``span``; fill is never empty."""

    lead = min(int(span.offset_pct / 100 * width), width - 1)
    fill = max(1, int(round(span.width_pct / 100 * width)))
    fill = min(fill, width - lead)
    return lead, fill, width - lead - fill


def span_context(payload: Mapping[str, Any], trace_id: str) -> dict[str, Any]:
    """Context for rendering ``/api/span`` props: resolves resource/scope refs and the trace id."""

    ctx = dict(payload)
    ctx["traceId"] = trace_id
    return ctx


__all__ = ["SpanRow", "TraceRow", "bar_segments", "span_context", "summarize_traces"]
