"""Textual TUI for browsing traces, logs and metrics."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, cast

from rich.text import Text

from ..client import ApiClient
from ..config import ViewerConfig
from ..core.cache import GraphCache
from ..core.graph import Graph, GraphSurface
from ..core.numeric import timestamp
from ..session import (
    DEFAULT_VIEW,
    LOGS,
    METRICS,
    TRACES,
    VIEW_TITLES,
    PanelMessage,
    PanelModel,
    PropsPanel,
    ViewSession,
)
from ..views.logs import LogRow
from ..views.metrics import MetricDetail, ResourceGroup
from ..views.props import SpanLink, render_prop
from ..views.traces import SpanRow, TraceRow, bar_segments

logger = logging.getLogger(__name__)

_TEXTUAL_ERR: Exception | None = None
if TYPE_CHECKING:  # pragma: no cover - only for static analysis
    from textual.app import App as AppBase
    from textual.app import ComposeResult
    from textual.binding import Binding
    from textual.containers import Horizontal, Vertical, VerticalScroll
    from textual.reactive import reactive
    from textual.widgets import Footer, Header, Static, Tab, Tabs, Tree

    from .widgets import (
        CELL_GRAPH_STYLE,
        StreamBox,
        add_props,
        fill_props_tree,
        props_text,
        timer_scheduler,
    )
else:  # pragma: no cover - guarded runtime import
    try:
        from textual.app import App as AppBase  # type: ignore[import-not-found]
        from textual.app import ComposeResult
        from textual.binding import Binding  # type: ignore[import-not-found]
        from textual.containers import Horizontal, Vertical, VerticalScroll
        from textual.reactive import reactive  # type: ignore[import-not-found]
        from textual.widgets import Footer, Header, Static, Tab, Tabs, Tree

        from .widgets import (
            CELL_GRAPH_STYLE,
            StreamBox,
            add_props,
            fill_props_tree,
            props_text,
            timer_scheduler,
        )
    except Exception as exc:  # pragma: no cover  # noqa: BLE001
        _TEXTUAL_ERR = exc
        AppBase = cast(Any, object)
        reactive = cast(Any, lambda default=None: default)

BAR_WIDTH = 24
LEVEL_STYLES = {"debug": "dim", "warn": "yellow", "error": "bold red"}


def span_bar(span: SpanRow, width: int = BAR_WIDTH) -> Text:
    """Gantt-style bar placing ``span`` inside its trace's time range."""

    lead, fill, trail = bar_segments(span, width)
    bar = Text("·" * lead, style="dim")
    bar.append("█" * fill, style="red" if span.error else "green")
    bar.append("·" * trail, style="dim")
    return bar


def _mark(label: Text, selected: bool) -> Text:
    if selected:
        label.stylize("reverse")
    return label


def _resource_label(group: ResourceGroup) -> Text:
    name = group.props.get("service.name")
    return Text(str(name) if name else f"resource {group.id}", style="bold")


if _TEXTUAL_ERR is None:

    class TelviewApp(AppBase[None]):
        """Three-tab viewer with a side panel; implements the session's view sink."""

        live: reactive[bool] = reactive(True, init=False)

        TITLE = "telview"

        CSS = """
        #main { height: 1fr; }
        #items { width: 1fr; }
        #panel { width: 1fr; border-left: solid $primary-darken-2; display: none; }
        #panel.open { display: block; }
        #panel-title { background: $boost; padding: 0 1; text-style: bold; }
        #panel-body { height: 1fr; }
        #status { height: 1; padding: 0 1; background: $panel; }
        #status.error { color: $error; }
        """

        BINDINGS = [
            Binding("t", "show_view('traces')", "Traces"),
            Binding("l", "show_view('logs')", "Logs"),
            Binding("m", "show_view('metrics')", "Metrics"),
            Binding("space", "toggle_live", "Live"),
            Binding("escape", "close_panel", "Close panel"),
            Binding("q", "quit", "Quit"),
        ]

        def __init__(self, config: ViewerConfig, client: ApiClient | None = None) -> None:
            super().__init__()
            self.config = config
            self.client = client or ApiClient(config.endpoint, timeout=config.polling.timeout)
            graph_policy = config.graph
            self.graph_cache = GraphCache(
                lambda: Graph(
                    CELL_GRAPH_STYLE,
                    scheduler=timer_scheduler(self),
                    defocus_delay=graph_policy.defocus_delay,
                ),
                max_idle_passes=graph_policy.max_idle_passes,
            )
            self.session = ViewSession(
                self.client,
                self,
                interval=config.polling.interval,
                live=config.polling.live,
                graph_cache=self.graph_cache,
            )
            self._streams: dict[str, StreamBox] = {}
            self._panel_item: str | None = None
            self._panel_kind: str | None = None
            self.status_text = ""
            self.set_reactive(TelviewApp.live, config.polling.live)

        def compose(self) -> ComposeResult:
            yield Header()
            yield Tabs(
                Tab(VIEW_TITLES[TRACES], id=TRACES),
                Tab(VIEW_TITLES[LOGS], id=LOGS),
                Tab(VIEW_TITLES[METRICS], id=METRICS),
                id="tabs",
            )
            with Horizontal(id="main"):
                tree: Tree[Any] = Tree("items", id="items")
                tree.show_root = False
                yield tree
                with Vertical(id="panel"):
                    yield Static("", id="panel-title")
                    yield VerticalScroll(id="panel-body")
            yield Static("", id="status")
            yield Footer()

        def on_mount(self) -> None:
            self._items = self.query_one("#items", Tree)
            self._panel = self.query_one("#panel", Vertical)
            self._panel_title = self.query_one("#panel-title", Static)
            self._panel_body = self.query_one("#panel-body", VerticalScroll)
            self._status = self.query_one("#status", Static)
            self._update_status()

        # ------------------------------------------------------------
        # Actions
        # ------------------------------------------------------------
        def action_show_view(self, view: str) -> None:
            self.query_one("#tabs", Tabs).active = view

        def action_toggle_live(self) -> None:
            self.live = self.session.toggle_live()

        def watch_live(self, live: bool) -> None:
            self._update_status()

        def action_close_panel(self) -> None:
            self.session.close_panel()
            self._panel_item = None
            self._panel_kind = None
            self._streams.clear()
            self._panel.remove_class("open")
            self._panel_body.remove_children()

        async def action_quit(self) -> None:
            await self.session.close()
            self.exit()

        def on_tabs_tab_activated(self, event: Tabs.TabActivated) -> None:
            view = event.tab.id or DEFAULT_VIEW
            self.title = f"{VIEW_TITLES.get(view, view)} - telview"
            self._items.clear()
            self._items.root.add_leaf(Text("Loading...", style="dim"))
            self.run_worker(self.session.activate(view), group="activate")

        async def on_tree_node_selected(self, event: Tree.NodeSelected[Any]) -> None:
            data = event.node.data
            if isinstance(data, SpanLink):
                await self._open(self.session.select_span(data.trace_id, data.span_id).title)
            elif isinstance(data, tuple):
                kind = data[0]
                if kind == "span":
                    selection = self.session.select_span(data[1], data[2])
                elif kind == "log":
                    selection = self.session.select_log(data[1])
                elif kind == "metric":
                    selection = self.session.select_metric(data[1], data[2])
                else:
                    return
                await self._open(selection.title)

        async def _open(self, title: str) -> None:
            self._panel_item = None
            self._panel_kind = None
            self._streams.clear()
            self._panel.add_class("open")
            self._panel_title.update(title)
            await self._panel_body.remove_children()
            await self._panel_body.mount(Static("Loading..."))

        def _update_status(self, error: str | None = None) -> None:
            mode = "live" if self.live else "paused"
            text = f"[{mode}] {self.config.endpoint}"
            if error:
                text += f"  {error}"
                self._status.add_class("error")
            else:
                self._status.remove_class("error")
            self.status_text = text
            self._status.update(text)

        # ------------------------------------------------------------
        # ViewSink
        # ------------------------------------------------------------
        def show_list(self, view: str, model: Any) -> None:
            if view != self.session.view:
                return
            selected = self.session.selection.item_id if self.session.selection else None
            line = self._items.cursor_line
            self._items.clear()
            root = self._items.root
            if view == TRACES:
                self._fill_traces(root, model, selected)
            elif view == LOGS:
                self._fill_logs(root, model, selected)
            else:
                self._fill_metrics(root, model, selected)
            if not root.children:
                root.add_leaf(Text(f"No {view}.", style="dim"))
            root.expand()
            self._items.cursor_line = line
            self._update_status()

        def _fill_traces(self, root: Any, traces: list[TraceRow], selected: str | None) -> None:
            for trace in traces:
                label = Text(trace.id, style="bold")
                label.append(f"  {timestamp(trace.start)} → {timestamp(trace.end)}", style="dim")
                node = root.add(label, expand=True)
                for span in trace.spans:
                    item_id = span.item_id(trace.id)
                    span_label = span_bar(span)
                    span_label.append(f" {span.name} ", style="bold")
                    span_label.append(span.id, style="dim")
                    node.add_leaf(_mark(span_label, item_id == selected), data=("span", trace.id, span.id))

        def _fill_logs(self, root: Any, logs: list[LogRow], selected: str | None) -> None:
            for row in logs:
                label = Text(timestamp(row.time, short=True), style="dim")
                label.append(f" {row.sev:<6} ", style=LEVEL_STYLES.get(row.level or "", ""))
                label.append(row.body)
                root.add_leaf(_mark(label, row.item_id == selected), data=("log", row.id))

        def _fill_metrics(self, root: Any, groups: list[ResourceGroup], selected: str | None) -> None:
            for group in groups:
                res_node = root.add(_resource_label(group), expand=True)
                for scope in group.scopes:
                    name = scope.props.get("name")
                    scope_node = res_node.add(Text(str(name or f"scope {scope.id}"), style="italic"), expand=True)
                    for metric in scope.metrics:
                        label = Text(metric.name, style="bold")
                        if metric.unit:
                            label.append(f" ({metric.unit})")
                        label.append(f"  {metric.type_label}", style="cyan")
                        if metric.desc:
                            label.append(f"  {metric.desc}", style="dim")
                        scope_node.add_leaf(
                            _mark(label, metric.item_id == selected),
                            data=("metric", metric.id, metric.name),
                        )

        async def show_panel(self, item_id: str, model: PanelModel) -> None:
            if isinstance(model, MetricDetail):
                await self._show_metric(item_id, model)
            elif isinstance(model, PropsPanel):
                await self._show_props(item_id, model)
            elif isinstance(model, PanelMessage):
                await self._replace_body(item_id, "message", Static(model.text))

        async def _replace_body(self, item_id: str, kind: str, *widgets: Any) -> None:
            await self._panel_body.remove_children()
            if kind != "metric":
                self._streams.clear()
            self._panel_item = item_id
            self._panel_kind = kind
            await self._panel_body.mount_all(widgets)

        async def _show_props(self, item_id: str, model: PropsPanel) -> None:
            if self._panel_item == item_id and self._panel_kind == "props":
                fill_props_tree(self._panel_body.query_one(Tree), model.nodes)
                return
            tree: Tree[Any] = Tree("props")
            tree.show_root = False
            add_props(tree.root, model.nodes)
            tree.root.expand()
            await self._replace_body(item_id, "props", tree)

        async def _show_metric(self, item_id: str, detail: MetricDetail) -> None:
            wanted = [stream.id for stream in detail.streams]
            for stream in detail.streams:
                self._streams[stream.id].set_attrs(detail.context, stream.attrs)
            self._streams = {stream_id: self._streams[stream_id] for stream_id in wanted}
            header = self._metric_header(detail)
            if self._panel_item != item_id or self._panel_kind != "metric":
                await self._replace_body(
                    item_id, "metric", Static(header, id="metric-header"), *self._streams.values()
                )
                return
            self._panel_body.query_one("#metric-header", Static).update(header)
            mounted = {box.stream_id: box for box in self._panel_body.query(StreamBox)}
            for stream_id, box in mounted.items():
                if stream_id not in self._streams:
                    await box.remove()
            previous: Any = self._panel_body.query_one("#metric-header", Static)
            for stream_id, box in self._streams.items():
                if stream_id not in mounted:
                    await self._panel_body.mount(box, after=previous)
                previous = box

        def _metric_header(self, detail: MetricDetail) -> Text:
            header = Text()
            if detail.conflict:
                header.append("Conflicting description or metadata was received\n", style="bold red")
            if detail.meta:
                header.append_text(props_text([render_prop(detail.context, "meta", detail.meta)]))
            if not detail.streams:
                header.append("No streams.", style="dim")
            return header

        def show_error(self, message: str) -> None:
            self._update_status(message)

        def surface_for(self, stream_id: str) -> GraphSurface | None:
            box = self._streams.get(stream_id)
            if box is None:
                box = StreamBox(stream_id)
                self._streams[stream_id] = box
            return box.canvas

else:  # pragma: no cover - exercised only when Textual is absent

    class TelviewApp:  # type: ignore[no-redef]
        def __init__(self, *_args: Any, **_kwargs: Any) -> None:
            raise ImportError(
                "The terminal viewer requires 'textual'. Install with `pip install telview`."
            ) from _TEXTUAL_ERR


def run_tui(config: ViewerConfig) -> None:
    """Launch the Textual viewer against ``config.endpoint``."""

    logger.info("Starting terminal viewer against %s", config.endpoint)
    app = TelviewApp(config)
    app.run()


__all__ = ["TelviewApp", "run_tui", "span_bar"]
