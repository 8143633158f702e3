from __future__ import annotations

import asyncio
from typing import Any

import pytest

pytest.importorskip("textual")

from textual.widgets import Static, Tree  # noqa: E402

from telview.config import ViewerConfig  # noqa: E402
from telview.core.wire import Timestamp  # noqa: E402
from telview.tui.app import TelviewApp, span_bar  # noqa: E402
from telview.tui.widgets import StreamBox  # noqa: E402
from telview.views.traces import SpanRow  # noqa: E402

pytestmark = pytest.mark.tui


class StubClient:
    async def traces(self) -> Any:
        return {
            "t1": {
                "s1": {"name": "root", "start": Timestamp(1_000), "end": Timestamp(2_000)},
            }
        }

    async def logs(self) -> Any:
        return [{"time": Timestamp(5), "sev": "Warn", "body": "disk low"}]

    async def metrics(self) -> Any:
        return {
            "metrics": {
                "m1": {"name": "cpu", "type": "Gauge", "res": {"_res": "r1"}, "scope": {"_scope": "s1"}},
            },
            "resources": {"r1": {"service.name": "api"}},
            "scopes": {"s1": {"name": "lib"}},
        }

    async def span(self, trace_id: str, span_id: str) -> Any:
        return {"span": {"name": "root", "kind": "Server"}}

    async def log(self, log_id: int) -> Any:
        return {"log": {"body": "disk low", "sev": "Warn"}}

    async def metric(self, metric_id: str) -> Any:
        return {
            "metric": {
                "type": "Gauge",
                "name": "cpu",
                "conflict": True,
                "streams": {
                    "a": {"attr": {"core": 0}, "pts": [{"time": Timestamp(1), "val": 1}]},
                    "b": {"attr": {"core": 1}, "pts": [{"time": Timestamp(2), "val": 2}]},
                },
            }
        }


def _app() -> TelviewApp:
    config = ViewerConfig()
    config.polling.live = False
    return TelviewApp(config, client=StubClient())  # type: ignore[arg-type]


async def _select_line(app: TelviewApp, pilot: Any, line: int) -> None:
    tree = app.query_one("#items", Tree)
    tree.focus()
    tree.cursor_line = line
    await pilot.press("enter")
    await pilot.pause(0.2)


def test_span_bar_width() -> None:
    bar = span_bar(SpanRow("s", "n", 0, 0, offset_pct=50, width_pct=10), width=10)
    assert bar.plain == "·····█····"


def test_traces_listed_on_start() -> None:
    async def scenario() -> None:
        app = _app()
        async with app.run_test() as pilot:
            await pilot.pause(0.2)
            tree = app.query_one("#items", Tree)
            trace = tree.root.children[0]
            assert str(trace.label).startswith("t1")
            assert trace.children[0].data == ("span", "t1", "s1")
            assert app.status_text.startswith("[paused]")
            await app.session.close()

    asyncio.run(scenario())


def test_log_selection_opens_props_panel() -> None:
    async def scenario() -> None:
        app = _app()
        async with app.run_test() as pilot:
            await pilot.pause(0.2)
            await pilot.press("l")
            await pilot.pause(0.2)
            tree = app.query_one("#items", Tree)
            assert tree.root.children[0].data == ("log", 0)
            await _select_line(app, pilot, 0)
            assert app.session.selection is not None
            assert app.session.selection.item_id == "log-0"
            assert app.session.selection.title == "Log 0"
            assert app.query_one("#panel").has_class("open")
            props = app.query_one("#panel-body").query_one(Tree)
            keys = [str(node.label) for node in props.root.children]
            assert any(key.startswith("body") for key in keys)
            await pilot.press("escape")
            await pilot.pause()
            assert app.session.selection is None
            await app.session.close()

    asyncio.run(scenario())


def test_metric_selection_renders_stream_graphs() -> None:
    async def scenario() -> None:
        app = _app()
        async with app.run_test(size=(120, 60)) as pilot:
            await pilot.pause(0.2)
            await pilot.press("m")
            await pilot.pause(0.2)
            await _select_line(app, pilot, 2)
            boxes = list(app.query(StreamBox))
            assert [box.stream_id for box in boxes] == ["a", "b"]
            assert all(box.canvas.scene is not None for box in boxes)
            assert app.query_one("#metric-header", Static) is not None
            # A second refresh reuses the mounted boxes.
            app.session.refresh_now()
            await pilot.pause(0.2)
            assert list(app.query(StreamBox)) == boxes
            await app.session.close()

    asyncio.run(scenario())


def test_toggle_live_updates_status() -> None:
    async def scenario() -> None:
        app = _app()
        async with app.run_test() as pilot:
            await pilot.pause(0.1)
            await pilot.press("space")
            await pilot.pause(0.1)
            assert app.session.live is True
            assert app.status_text.startswith("[live]")
            await app.session.close()

    asyncio.run(scenario())


def test_metric_header_lists_conflict_and_meta() -> None:
    from telview.core.decoder import DecodedMetric
    from telview.core.model import MetricType
    from telview.views.metrics import MetricDetail

    detail = MetricDetail(
        metric=DecodedMetric(MetricType.GAUGE, conflict=True, meta={"owner": "infra"}),
        context={},
    )
    text = _app()._metric_header(detail).plain
    assert "Conflicting description or metadata was received" in text
    assert "owner" in text
    assert "No streams." in text
