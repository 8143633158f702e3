from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import Any

from telview.config import ViewerConfig
from telview.core.graph import Graph, Scene
from telview.core.wire import Timestamp
from telview.desktop.controller import DesktopController
from telview.session import LOGS, PropsPanel


class StubClient:
    async def traces(self) -> Any:
        return {"t1": {"s1": {"name": "root", "start": Timestamp(1), "end": Timestamp(2)}}}

    async def logs(self) -> Any:
        return [{"time": Timestamp(1), "sev": "Info", "body": "hello"}]

    async def metrics(self) -> Any:
        return {"metrics": {}}

    async def log(self, log_id: int) -> Any:
        return {"log": {"body": "hello"}}


class Surface:
    def attach(self, graph: Graph) -> None:
        pass

    def detach(self, graph: Graph) -> None:
        pass

    def present(self, scene: Scene) -> None:
        pass


class FakeWindow:
    def __init__(self) -> None:
        self.lists: list[tuple[str, Any]] = []
        self.panels: list[tuple[str, Any]] = []
        self.errors: list[str] = []
        self.threads: set[str] = set()

    def show_list(self, view: str, model: Any) -> None:
        self.threads.add(threading.current_thread().name)
        self.lists.append((view, model))

    def show_panel(self, item_id: str, model: Any) -> None:
        self.threads.add(threading.current_thread().name)
        self.panels.append((item_id, model))

    def show_error(self, message: str) -> None:
        self.errors.append(message)

    def surface_for(self, stream_id: str) -> Surface:
        return Surface()


class QueueBridge:
    """Collects UI callbacks; the test thread drains them like a GUI event loop."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._queue: list[Callable[[], None]] = []

    def submit(self, func: Callable[[], None]) -> None:
        with self._lock:
            self._queue.append(func)

    def drain(self) -> None:
        with self._lock:
            queue, self._queue = self._queue, []
        for func in queue:
            func()


def _pump(bridge: QueueBridge, until: Callable[[], bool], timeout: float = 3.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        bridge.drain()
        if until():
            return True
        time.sleep(0.01)
    return False


def _controller(window: FakeWindow, bridge: QueueBridge) -> DesktopController:
    config = ViewerConfig()
    config.polling.live = False
    config.polling.interval = 5
    return DesktopController(config, window, client=StubClient(), bridge=bridge)  # type: ignore[arg-type]


def test_updates_run_on_the_draining_thread() -> None:
    window, bridge = FakeWindow(), QueueBridge()
    controller = _controller(window, bridge)
    controller.start()
    try:
        assert _pump(bridge, lambda: bool(window.lists))
        assert window.lists[0][0] == "traces"
        assert window.threads == {threading.current_thread().name}
    finally:
        controller.shutdown()


def test_switch_view_and_select_log() -> None:
    window, bridge = FakeWindow(), QueueBridge()
    controller = _controller(window, bridge)
    controller.start()
    try:
        assert _pump(bridge, lambda: bool(window.lists))
        controller.show_view(LOGS)
        assert _pump(bridge, lambda: window.lists[-1][0] == LOGS)
        assert controller.select_log(0) == "Log 0"
        assert _pump(bridge, lambda: bool(window.panels))
        item_id, panel = window.panels[-1]
        assert item_id == "log-0"
        assert isinstance(panel, PropsPanel)
        assert controller.selected_item() == "log-0"
        controller.close_panel()
        assert _pump(bridge, lambda: controller.selected_item() is None)
    finally:
        controller.shutdown()


def test_shutdown_releases_pending_ui_calls() -> None:
    window, bridge = FakeWindow(), QueueBridge()
    controller = _controller(window, bridge)
    controller.start()
    # Never drain: the worker is parked waiting on the first UI call.
    time.sleep(0.1)
    started = time.monotonic()
    controller.shutdown()
    assert time.monotonic() - started < 3.0
    assert window.lists == []
    # A second shutdown is a no-op.
    controller.shutdown()


def test_titles_returned_for_selections() -> None:
    window, bridge = FakeWindow(), QueueBridge()
    controller = _controller(window, bridge)
    assert controller.select_span("t", "s") == "Trace t | Span s"
    assert controller.select_metric("m1", "cpu") == "Metric cpu (m1)"
