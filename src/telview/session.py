"""Viewer session: which view is active, what the side panel shows, and the loop feeding both.

Front ends implement :class:`ViewSink` and drive a :class:`ViewSession`;
the session owns the single :class:`~telview.polling.PollLoop` and builds
the refreshers for the active list and the selected item.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from .client import ApiClient
from .contracts.error import FetchError, MetricDecodeError
from .core.cache import GraphCache
from .core.graph import GraphSurface
from .polling import DEFAULT_INTERVAL, PollLoop, Refresh
from .views.logs import summarize_logs
from .views.metrics import MetricDetail, build_metric_detail, group_metrics
from .views.props import PropNode, render_map
from .views.traces import span_context, summarize_traces

logger = logging.getLogger(__name__)

TRACES = "traces"
LOGS = "logs"
METRICS = "metrics"
VIEWS = (TRACES, LOGS, METRICS)
DEFAULT_VIEW = TRACES

VIEW_TITLES = {
    TRACES: "Traces",
    LOGS: "Logs",
    METRICS: "Metrics",
}


class ViewSink(Protocol):
    """What a front end exposes to the session. Methods may be sync or async."""

    def show_list(self, view: str, model: Any) -> Awaitable[None] | None: ...

    def show_panel(self, item_id: str, model: PanelModel) -> Awaitable[None] | None: ...

    def show_error(self, message: str) -> Awaitable[None] | None: ...

    def surface_for(self, stream_id: str) -> GraphSurface | None: ...


@dataclass
class PropsPanel:
    """Attribute tree for a span or a log record."""

    nodes: list[PropNode] = field(default_factory=list)


@dataclass
class PanelMessage:
    """Plain text shown instead of the panel body, e.g. after a failed fetch."""

    text: str


PanelModel = PropsPanel | MetricDetail | PanelMessage


@dataclass
class Selection:
    item_id: str
    title: str
    refresh: Refresh[Any] | None = None


def span_title(trace_id: str, span_id: str) -> str:
    return f"Trace {trace_id} | Span {span_id}"


def log_title(log_id: int) -> str:
    return f"Log {log_id}"


def metric_title(metric_id: str, name: str) -> str:
    return f"Metric {name} ({metric_id})"


Dispatch = Callable[[Callable[[], Any]], Awaitable[Any]]
"""Runs a UI callback on the thread that owns the widgets and awaits it."""


def _on_ui(refresh: Refresh[Any], dispatch: Dispatch) -> Refresh[Any]:
    on_error = refresh.on_error
    return Refresh(
        fetch=refresh.fetch,
        apply=lambda payload: dispatch(functools.partial(refresh.apply, payload)),
        on_error=(lambda exc: dispatch(functools.partial(on_error, exc))) if on_error else None,
        label=refresh.label,
    )


def _fetch_error_message(exc: FetchError) -> str:
    if exc.status_code is not None:
        return f"Request returned code {exc.status_code}"
    return str(exc)


class ViewSession:
    def __init__(
        self,
        client: ApiClient,
        sink: ViewSink,
        *,
        interval: float = DEFAULT_INTERVAL,
        live: bool = True,
        graph_cache: GraphCache | None = None,
        dispatch: Dispatch | None = None,
    ) -> None:
        self.client = client
        self.sink = sink
        self.interval = interval
        self.live = live
        self.graph_cache = graph_cache or GraphCache()
        self.view: str | None = None
        self.selection: Selection | None = None
        self._loop: PollLoop | None = None
        self._list_refresh: Refresh[Any] | None = None
        self._activating = False
        self._pending: str | None = None
        self._dispatch = dispatch

    @property
    def loop(self) -> PollLoop | None:
        return self._loop

    # ----------------------------------------------------------------
    # View switching
    # ----------------------------------------------------------------
    async def activate(self, view: str) -> str:
        """Stop the current loop, then start one for ``view``.

        Unknown names fall back to the traces view. A call made while a
        switch is in progress is queued; only the most recent one survives.
        """

        if self._activating:
            self._pending = view
            return self.view or DEFAULT_VIEW
        self._activating = True
        try:
            while True:
                await self._switch(view)
                if self._pending is None:
                    break
                view, self._pending = self._pending, None
        finally:
            self._activating = False
        return self.view or DEFAULT_VIEW

    async def _switch(self, view: str) -> None:
        if view not in VIEWS:
            logger.info("Unknown view %r, showing %s", view, DEFAULT_VIEW)
            view = DEFAULT_VIEW
        if self._loop is not None:
            await self._loop.stop()
            self._loop = None
        self.view = view
        self._list_refresh = self._build_list_refresh(view)
        self._loop = PollLoop(
            self._refreshers,
            interval=self.interval,
            is_live=lambda: self.live,
            name=f"poll-{view}",
        )
        self._loop.start()
        logger.debug("Activated %s view", view)

    def _refreshers(self) -> list[Refresh[Any]]:
        out: list[Refresh[Any]] = []
        if self._list_refresh is not None:
            out.append(self._list_refresh)
        if self.selection is not None and self.selection.refresh is not None:
            out.append(self.selection.refresh)
        dispatch = self._dispatch
        if dispatch is None:
            return out
        return [_on_ui(refresh, dispatch) for refresh in out]

    def set_live(self, live: bool) -> None:
        self.live = live
        if live and self._loop is not None:
            self._loop.trigger()

    def toggle_live(self) -> bool:
        self.set_live(not self.live)
        return self.live

    def refresh_now(self) -> None:
        if self._loop is not None:
            self._loop.trigger()

    # ----------------------------------------------------------------
    # Selection / side panel
    # ----------------------------------------------------------------
    def select(self, item_id: str, title: str, refresh: Refresh[Any] | None) -> Selection:
        """Show ``item_id`` in the side panel and fetch it without waiting for the next tick."""

        self.selection = Selection(item_id=item_id, title=title, refresh=refresh)
        self.refresh_now()
        return self.selection

    def select_span(self, trace_id: str, span_id: str) -> Selection:
        return self.select(
            f"span-{trace_id}-{span_id}",
            span_title(trace_id, span_id),
            self.span_refresh(trace_id, span_id),
        )

    def select_log(self, log_id: int) -> Selection:
        return self.select(f"log-{log_id}", log_title(log_id), self.log_refresh(log_id))

    def select_metric(self, metric_id: str, name: str) -> Selection:
        return self.select(f"metric-{metric_id}", metric_title(metric_id, name), self.metric_refresh(metric_id))

    def close_panel(self) -> None:
        self.selection = None

    async def close(self) -> None:
        if self._loop is not None:
            await self._loop.stop()
            self._loop = None

    # ----------------------------------------------------------------
    # Refresh builders
    # ----------------------------------------------------------------
    def _build_list_refresh(self, view: str) -> Refresh[Any]:
        if view == LOGS:
            fetch: Callable[[], Awaitable[Any]] = self.client.logs
            summarize: Callable[[Any], Any] = summarize_logs
        elif view == METRICS:
            fetch, summarize = self.client.metrics, group_metrics
        else:
            fetch, summarize = self.client.traces, summarize_traces

        def apply(payload: Any) -> Awaitable[None] | None:
            return self.sink.show_list(view, summarize(payload))

        return Refresh(fetch=fetch, apply=apply, on_error=self._report, label=f"{view} list")

    def span_refresh(self, trace_id: str, span_id: str) -> Refresh[Mapping[str, Any]]:
        item_id = f"span-{trace_id}-{span_id}"

        def apply(payload: Mapping[str, Any]) -> Awaitable[None] | None:
            ctx = span_context(payload, trace_id)
            return self._show_panel(item_id, PropsPanel(render_map(ctx, payload.get("span"))))

        return Refresh(
            fetch=lambda: self.client.span(trace_id, span_id),
            apply=apply,
            on_error=self._panel_error(item_id, "span", "span does not exist"),
            label=item_id,
        )

    def log_refresh(self, log_id: int) -> Refresh[Mapping[str, Any]]:
        item_id = f"log-{log_id}"

        def apply(payload: Mapping[str, Any]) -> Awaitable[None] | None:
            return self._show_panel(item_id, PropsPanel(render_map(payload, payload.get("log"))))

        return Refresh(
            fetch=lambda: self.client.log(log_id),
            apply=apply,
            on_error=self._panel_error(item_id, "log"),
            label=item_id,
        )

    def metric_refresh(self, metric_id: str) -> Refresh[Mapping[str, Any]]:
        item_id = f"metric-{metric_id}"

        def apply(payload: Mapping[str, Any]) -> Awaitable[None] | None:
            if not self._is_selected(item_id):
                return None
            try:
                detail = build_metric_detail(payload, self.graph_cache, self.sink.surface_for)
            except MetricDecodeError as exc:
                logger.warning("Cannot decode metric %s: %s", metric_id, exc)
                return self.sink.show_panel(item_id, PanelMessage(f"Failed to decode metric: {exc}"))
            return self.sink.show_panel(item_id, detail)

        return Refresh(
            fetch=lambda: self.client.metric(metric_id),
            apply=apply,
            on_error=self._panel_error(item_id, "metric"),
            label=item_id,
        )

    def _show_panel(self, item_id: str, model: PanelModel) -> Awaitable[None] | None:
        if not self._is_selected(item_id):
            return None
        return self.sink.show_panel(item_id, model)

    def _is_selected(self, item_id: str) -> bool:
        # The selection may have moved on while this payload was in flight.
        if self.selection is None or self.selection.item_id != item_id:
            logger.debug("Dropping stale panel payload for %s", item_id)
            return False
        return True

    def _panel_error(
        self, item_id: str, kind: str, not_found: str | None = None
    ) -> Callable[[FetchError], Awaitable[None] | None]:
        def on_error(exc: FetchError) -> Awaitable[None] | None:
            text = f"Failed to load {kind}"
            if not_found and exc.status_code == 404:
                text += f": {not_found}"
            return self._show_panel(item_id, PanelMessage(text))

        return on_error

    def _report(self, exc: FetchError) -> Awaitable[None] | None:
        return self.sink.show_error(_fetch_error_message(exc))


async def wait_closed(session: ViewSession, timeout: float | None = None) -> None:
    """Close ``session``, giving up after ``timeout`` seconds."""

    if timeout is None:
        await session.close()
        return
    try:
        async with asyncio.timeout(timeout):
            await session.close()
    except TimeoutError:
        logger.warning("Timed out waiting for the poll loop to stop")


__all__ = [
    "DEFAULT_VIEW",
    "LOGS",
    "METRICS",
    "TRACES",
    "VIEWS",
    "VIEW_TITLES",
    "PanelMessage",
    "PanelModel",
    "PropsPanel",
    "Dispatch",
    "Selection",
    "ViewSession",
    "ViewSink",
    "log_title",
    "metric_title",
    "span_title",
    "wait_closed",
]
