"""Data shapes handed to the attribute-tree renderers.

Front ends turn :class:`PropNode` trees into widgets; this module only
decides the key, type tag, inline text and children of every node.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from ..core.numeric import timestamp
from ..core.wire import Timestamp

logger = logging.getLogger(__name__)

INLINE_STRING_LIMIT = 60


@dataclass(frozen=True)
class SpanLink:
    trace_id: str
    span_id: str


@dataclass
class PropNode:
    key: str | None
    type: str
    inline: str
    children: list[PropNode] = field(default_factory=list)
    block: str | None = None
    link: SpanLink | None = None


def _resolve_ref(
    ctx: Mapping[str, Any], single: str, plural: str, ref: str
) -> Mapping[str, Any] | None:
    direct = ctx.get(single)
    if isinstance(direct, Mapping):
        return direct
    table = ctx.get(plural)
    if isinstance(table, Mapping) and isinstance(table.get(ref), Mapping):
        return table[ref]
    return None


def _render_tagged(ctx: Mapping[str, Any], key: str | None, v: Mapping[str, Any]) -> PropNode | None:
    if "_byt" in v:
        return PropNode(key, "bytes", str(v["_byt"]))
    if "_flg" in v:
        return PropNode(key, "flags", str(v["_flg"]))
    if "_req" in v:
        return PropNode(key, "req", str(v["_req"]))
    for tag, single, plural, type_name in (
        ("_res", "resource", "resources", "res"),
        ("_scope", "scope", "scopes", "scope"),
    ):
        if tag in v:
            target = _resolve_ref(ctx, single, plural, str(v[tag]))
            if target is None:
                return PropNode(key, type_name, str(v[tag]))
            return PropNode(key, type_name, "", render_map(ctx, target))
    if "_span" in v:
        span = str(v["_span"])
        trace = v.get("_trace") or ctx.get("traceId")
        if trace:
            return PropNode(key, "span", f"{trace} / {span}", link=SpanLink(str(trace), span))
        return PropNode(key, "span", span)
    return None


def render_prop(ctx: Mapping[str, Any], key: str | None, value: Any) -> PropNode:
    """Describe one value; ``ctx`` resolves resource/scope references and span traces."""

    if isinstance(value, str):
        if len(value) <= INLINE_STRING_LIMIT:
            return PropNode(key, "str", json.dumps(value, ensure_ascii=False))
        return PropNode(key, "str", "", block=value)
    if isinstance(value, bool):
        return PropNode(key, "bool", "true" if value else "false")
    if isinstance(value, int):
        return PropNode(key, "int", str(value))
    if isinstance(value, float):
        return PropNode(key, "float", repr(value))
    if isinstance(value, Timestamp):
        return PropNode(key, "time", timestamp(value.ns))
    if isinstance(value, list | tuple):
        return PropNode(key, "array", "", [render_prop(ctx, None, item) for item in value])
    if isinstance(value, Mapping):
        tagged = _render_tagged(ctx, key, value)
        if tagged is not None:
            return tagged
        return PropNode(key, "map", "", render_map(ctx, value))
    return PropNode(key, "?", "?")


def render_map(ctx: Mapping[str, Any], mapping: Mapping[str, Any] | None) -> list[PropNode]:
    """Describe every entry of ``mapping``; ``__key`` is shown as ``_key``."""

    if not mapping:
        return []
    nodes = []
    for key, value in mapping.items():
        if key.startswith("__"):
            key = key[1:]
        elif key.startswith("_"):
            logger.warning("Unhandled reserved key: %s", key)
        nodes.append(render_prop(ctx, key, value))
    return nodes


def flatten(nodes: list[PropNode], depth: int = 0) -> list[tuple[int, PropNode]]:
    """Depth-first ``(depth, node)`` pairs, handy for plain-text renderers."""

    out: list[tuple[int, PropNode]] = []
    for node in nodes:
        out.append((depth, node))
        out.extend(flatten(node.children, depth + 1))
    return out


def to_lines(nodes: list[PropNode]) -> list[str]:
    """Indented ``key: value`` lines for renderers without a tree widget."""

    lines = []
    for depth, node in flatten(nodes):
        indent = "  " * depth
        head = f"{node.key}: " if node.key is not None else "- "
        lines.append(f"{indent}{head}{node.inline}".rstrip())
        if node.block is not None:
            lines.extend(f"{indent}  {line}" for line in node.block.splitlines())
    return lines


__all__ = [
    "INLINE_STRING_LIMIT",
    "PropNode",
    "SpanLink",
    "flatten",
    "render_map",
    "render_prop",
    "to_lines",
]
