# mypy: ignore-errors
"""Glue between the Qt window and the asyncio session running on a worker thread.

Every ``apply`` of the poll loop is posted to the GUI thread through
:class:`_UiBridge` and the worker awaits its completion, so widget updates and
graph rendering only ever happen on the GUI thread while iterations stay
serialized.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any, Protocol

from ..client import ApiClient
from ..config import ViewerConfig
from ..core.cache import GraphCache
from ..core.graph import Graph, GraphStyle, GraphSurface
from ..session import (
    DEFAULT_VIEW,
    PanelModel,
    ViewSession,
    log_title,
    metric_title,
    span_title,
)
from .widgets import qt_scheduler

logger = logging.getLogger(__name__)

SHUTDOWN_TIMEOUT = 5.0

try:  # pragma: no cover - only available when PyQt6 is installed
    from PyQt6.QtCore import QObject, pyqtSignal  # type: ignore[import-not-found]
except ImportError:  # pragma: no cover - headless environments
    QObject = None  # type: ignore[assignment]
    pyqtSignal = None  # type: ignore[assignment]  # noqa: N816


if QObject is not None:  # pragma: no cover - requires PyQt6

    class _UiBridge(QObject):  # type: ignore[misc]
        call = pyqtSignal(object)

        def __init__(self) -> None:
            super().__init__()
            self.call.connect(self._dispatch)  # type: ignore[attr-defined]

        def submit(self, func: Callable[[], None]) -> None:
            self.call.emit(func)  # type: ignore[attr-defined]

        def _dispatch(self, payload: object) -> None:
            if callable(payload):
                payload()

else:  # pragma: no cover - PyQt6 missing

    class _UiBridge:
        def submit(self, func: Callable[[], None]) -> None:
            func()


class ViewWindow(Protocol):
    """What the controller needs from the window; all calls happen on the GUI thread."""

    def show_list(self, view: str, model: Any) -> None: ...

    def show_panel(self, item_id: str, model: PanelModel) -> None: ...

    def show_error(self, message: str) -> None: ...

    def surface_for(self, stream_id: str) -> GraphSurface | None: ...


class DesktopController:
    """Owns the worker thread, its event loop and the :class:`ViewSession`."""

    def __init__(
        self,
        config: ViewerConfig,
        window: ViewWindow,
        *,
        client: ApiClient | None = None,
        graph_style: GraphStyle | None = None,
        bridge: Any = None,
    ) -> None:
        self.config = config
        self.window = window
        self._ui = bridge or _UiBridge()
        self._pending: set[concurrent.futures.Future[Any]] = set()
        self._lock = threading.Lock()
        self._closed = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._ready = threading.Event()
        self._stop: asyncio.Event | None = None

        policy = config.graph
        style = graph_style or GraphStyle(margin=policy.margin, point_size=policy.point_size)
        self.graph_cache = GraphCache(
            lambda: Graph(style, scheduler=qt_scheduler(), defocus_delay=policy.defocus_delay),
            max_idle_passes=policy.max_idle_passes,
        )
        self.session = ViewSession(
            client or ApiClient(config.endpoint, timeout=config.polling.timeout),
            self,
            interval=config.polling.interval,
            live=config.polling.live,
            graph_cache=self.graph_cache,
            dispatch=self._on_ui,
        )

    # ------------------------------------------------------------
    # Worker thread
    # ------------------------------------------------------------
    def start(self, view: str = DEFAULT_VIEW) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, args=(view,), name="telview-poll", daemon=True)
        self._thread.start()
        self._ready.wait()

    def _run(self, view: str) -> None:
        asyncio.run(self._main(view))

    async def _main(self, view: str) -> None:
        self._loop = asyncio.get_running_loop()
        self._stop = asyncio.Event()
        self._ready.set()
        try:
            await self.session.activate(view)
            await self._stop.wait()
        finally:
            await self.session.close()
            logger.debug("Worker loop finished")

    def _submit(self, coro: Coroutine[Any, Any, Any]) -> concurrent.futures.Future[Any] | None:
        if self._loop is None or self._loop.is_closed():
            coro.close()
            return None
        return asyncio.run_coroutine_threadsafe(coro, self._loop)

    def _call_soon(self, func: Callable[..., Any], *args: Any) -> None:
        if self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(func, *args)

    def shutdown(self) -> None:
        """Stop polling and join the worker. Call from the GUI thread."""

        if self._closed:
            return
        with self._lock:
            self._closed = True
            pending = list(self._pending)
            self._pending.clear()
        # The GUI thread is about to block; release any apply still waiting on it.
        for future in pending:
            if not future.done():
                future.set_result(None)
        if self._stop is not None:
            self._call_soon(self._stop.set)
        if self._thread is not None:
            self._thread.join(SHUTDOWN_TIMEOUT)
            if self._thread.is_alive():
                logger.warning("Poll worker did not stop within %.1fs", SHUTDOWN_TIMEOUT)
            self._thread = None

    # ------------------------------------------------------------
    # GUI-thread marshalling
    # ------------------------------------------------------------
    def _on_ui(self, func: Callable[[], Any]) -> Awaitable[Any]:
        future: concurrent.futures.Future[Any] = concurrent.futures.Future()
        with self._lock:
            if self._closed:
                future.set_result(None)
                return asyncio.wrap_future(future)
            self._pending.add(future)

        def run() -> None:
            with self._lock:
                self._pending.discard(future)
            if future.done() or not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(func())
            except BaseException as exc:  # noqa: BLE001 - re-raised in the worker
                future.set_exception(exc)

        self._ui.submit(run)
        return asyncio.wrap_future(future)

    # ------------------------------------------------------------
    # Window actions (GUI thread)
    # ------------------------------------------------------------
    def show_view(self, view: str) -> None:
        self._submit(self.session.activate(view))

    def set_live(self, live: bool) -> None:
        self._call_soon(self.session.set_live, live)

    def select_span(self, trace_id: str, span_id: str) -> str:
        self._call_soon(self.session.select_span, trace_id, span_id)
        return span_title(trace_id, span_id)

    def select_log(self, log_id: int) -> str:
        self._call_soon(self.session.select_log, log_id)
        return log_title(log_id)

    def select_metric(self, metric_id: str, name: str) -> str:
        self._call_soon(self.session.select_metric, metric_id, name)
        return metric_title(metric_id, name)

    def close_panel(self) -> None:
        self._call_soon(self.session.close_panel)

    def selected_item(self) -> str | None:
        selection = self.session.selection
        return selection.item_id if selection is not None else None

    # ------------------------------------------------------------
    # ViewSink: called through _on_ui, so already on the GUI thread
    # ------------------------------------------------------------
    def show_list(self, view: str, model: Any) -> None:
        if view == self.session.view:
            self.window.show_list(view, model)

    def show_panel(self, item_id: str, model: PanelModel) -> None:
        self.window.show_panel(item_id, model)

    def show_error(self, message: str) -> None:
        self.window.show_error(message)

    def surface_for(self, stream_id: str) -> GraphSurface | None:
        return self.window.surface_for(stream_id)


__all__ = ["DesktopController", "ViewWindow"]
