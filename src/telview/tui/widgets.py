"""Textual widgets backing the terminal front end."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from rich.text import Text
from textual import events
from textual.app import ComposeResult
from textual.containers import Vertical
from textual.timer import Timer
from textual.widget import Widget
from textual.widgets import Static, Tree
from textual.widgets.tree import TreeNode

from ..core.graph import CancelHandle, Graph, GraphStyle, Scene
from ..views.props import PropNode, flatten, render_map
from .raster import time_axis, to_text

CELL_GRAPH_STYLE = GraphStyle(margin=1.0, point_size=1.0, line_width=1.0)
"""Graph geometry in character cells: one-cell margin, one-cell glyphs."""


class _TimerHandle:
    def __init__(self, timer: Timer) -> None:
        self._timer = timer

    def cancel(self) -> None:
        self._timer.stop()


def timer_scheduler(widget: Widget) -> Callable[[float, Callable[[], None]], CancelHandle]:
    """Adapt ``widget.set_timer`` to the graph's scheduler signature."""

    def schedule(delay: float, callback: Callable[[], None]) -> CancelHandle:
        return _TimerHandle(widget.set_timer(delay, callback))

    return schedule


def prop_label(node: PropNode) -> Text:
    label = Text()
    if node.key is not None:
        label.append(f"{node.key}: ", style="bold")
    if node.inline:
        label.append(node.inline)
    label.append(f"  {node.type}", style="dim")
    return label


def add_props(parent: TreeNode[Any], nodes: list[PropNode]) -> None:
    """Append ``nodes`` under ``parent``; span links carry the :class:`SpanLink` as data."""

    for node in nodes:
        if node.children or node.block is not None:
            branch = parent.add(prop_label(node), data=node.link, expand=True)
            if node.block is not None:
                branch.add_leaf(Text(node.block))
            add_props(branch, node.children)
        else:
            parent.add_leaf(prop_label(node), data=node.link)


def fill_props_tree(tree: Tree[Any], nodes: list[PropNode]) -> None:
    line = tree.cursor_line
    tree.clear()
    add_props(tree.root, nodes)
    tree.root.expand()
    tree.cursor_line = line


def props_text(nodes: list[PropNode]) -> Text:
    text = Text()
    for index, (depth, node) in enumerate(flatten(nodes)):
        if index:
            text.append("\n")
        text.append("  " * depth)
        text.append_text(prop_label(node))
        if node.block is not None:
            text.append("\n" + "  " * (depth + 1) + node.block)
    return text


class GraphCanvas(Widget):
    """Character-cell :class:`~telview.core.graph.GraphSurface`.

    The bottom row holds the time axis; everything above it is graph area.
    """

    DEFAULT_CSS = """
    GraphCanvas { height: 12; }
    """

    def __init__(
        self,
        style: GraphStyle = CELL_GRAPH_STYLE,
        on_scene: Callable[[Scene], None] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.graph_style = style
        self.graph: Graph | None = None
        self.scene: Scene | None = None
        self._on_scene = on_scene

    # GraphSurface
    def attach(self, graph: Graph) -> None:
        self.graph = graph
        width, height = self._graph_size()
        if width > 0 and height > 0:
            graph.resize(width, height)

    def detach(self, graph: Graph) -> None:
        if self.graph is graph:
            self.graph = None

    def present(self, scene: Scene) -> None:
        self.scene = scene
        if self._on_scene is not None:
            self._on_scene(scene)
        if self.is_mounted:
            self.refresh()

    def _graph_size(self) -> tuple[int, int]:
        return self.size.width, self.size.height - 1

    def render(self) -> Text:
        scene = self.scene
        if scene is None or not scene.shapes:
            return Text("No points", style="dim")
        text = to_text(scene, self.graph_style)
        text.append("\n" + time_axis(scene, scene.width), style="dim")
        return text

    def on_resize(self, event: events.Resize) -> None:
        if self.graph is not None:
            self.graph.resize(event.size.width, event.size.height - 1)

    def on_mouse_move(self, event: events.MouseMove) -> None:
        if self.graph is not None:
            self.graph.pointer_moved(float(event.x), float(event.y))

    def on_leave(self, event: events.Leave) -> None:
        if self.graph is not None:
            self.graph.pointer_left()


class StreamBox(Vertical):
    """One metric stream: its attributes, graph and the props of the focused point."""

    DEFAULT_CSS = """
    StreamBox { height: auto; border: round $primary-darken-2; margin-bottom: 1; }
    StreamBox > .stream-attrs { color: $text-muted; }
    StreamBox > .stream-focus { height: auto; min-height: 1; }
    """

    def __init__(self, stream_id: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.stream_id = stream_id
        self.border_title = stream_id
        self._attrs = Text()
        self._focus = Text()
        self.attrs_view = Static(self._attrs, classes="stream-attrs")
        self.focus_view = Static(self._focus, classes="stream-focus")
        self.canvas = GraphCanvas(on_scene=self._scene_changed)

    def compose(self) -> ComposeResult:
        yield self.attrs_view
        yield self.canvas
        yield self.focus_view

    def on_mount(self) -> None:
        self.attrs_view.update(self._attrs)
        self.focus_view.update(self._focus)

    def set_attrs(self, ctx: Mapping[str, Any], attrs: Mapping[str, Any]) -> None:
        self._attrs = props_text(render_map(ctx, attrs))
        if self.is_mounted:
            self.attrs_view.update(self._attrs)

    def _scene_changed(self, scene: Scene) -> None:
        if scene.focus is None:
            self._focus = Text()
        else:
            self._focus = props_text(render_map(scene.context or {}, scene.focus_props))
        if self.is_mounted:
            self.focus_view.update(self._focus)


__all__ = [
    "CELL_GRAPH_STYLE",
    "GraphCanvas",
    "StreamBox",
    "add_props",
    "fill_props_tree",
    "prop_label",
    "props_text",
    "timer_scheduler",
]
