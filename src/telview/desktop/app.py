# mypy: ignore-errors
"""Desktop viewer window.

A tab bar picks the view, the item tree lists traces, logs or metrics, and the
side panel shows the selected item. When PyQt6 is unavailable (e.g. headless
CI), launching the window raises a friendly error.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Sequence
from typing import Any, cast

from ..config import ViewerConfig
from ..core.graph import GraphSurface
from ..core.numeric import timestamp
from ..session import LOGS, METRICS, TRACES, VIEW_TITLES, PanelMessage, PanelModel, PropsPanel
from ..views.logs import LogRow
from ..views.metrics import MetricDetail, ResourceGroup
from ..views.props import SpanLink, render_prop, to_lines
from ..views.traces import TraceRow, bar_segments
from .controller import DesktopController

logger = logging.getLogger(__name__)

_QT_IMPORT_ERROR: Exception | None = None

try:  # pragma: no cover - only executed when PyQt6 is installed
    from PyQt6.QtCore import Qt  # type: ignore[import-not-found]
    from PyQt6.QtGui import QBrush, QColor  # type: ignore[import-not-found]
    from PyQt6.QtWidgets import (  # type: ignore[import-not-found]
        QApplication,
        QCheckBox,
        QHBoxLayout,
        QLabel,
        QMainWindow,
        QPushButton,
        QScrollArea,
        QSplitter,
        QTabBar,
        QTreeWidget,
        QTreeWidgetItem,
        QVBoxLayout,
        QWidget,
    )
except Exception as exc:  # pragma: no cover - most environments won't have PyQt6
    _QT_IMPORT_ERROR = exc
    Qt = None  # type: ignore[assignment]
    QApplication = cast(Any, object)
    QMainWindow = cast(Any, object)

from .widgets import PropsTree, StreamPanel

VIEW_ORDER = (TRACES, LOGS, METRICS)
BAR_WIDTH = 24
LEVEL_COLOURS = {"debug": "#888888", "warn": "#e0b000", "error": "#ff5555"}


def _bar(lead: int, fill: int, trail: int) -> str:
    return "·" * lead + "█" * fill + "·" * trail


if Qt is not None:  # pragma: no cover - only when PyQt6 is present

    class _MetricBody(QWidget):  # type: ignore[misc]
        def __init__(self, header: str, panels: list[StreamPanel]) -> None:
            super().__init__()
            self.stream_ids = [panel.stream_id for panel in panels]
            layout = QVBoxLayout(self)
            self.header = QLabel(header)
            layout.addWidget(self.header)
            for panel in panels:
                layout.addWidget(panel)
            layout.addStretch(1)

    class ViewerWindow(QMainWindow):  # type: ignore[misc]
        def __init__(self, config: ViewerConfig) -> None:
            super().__init__()
            self.setWindowTitle("telview")
            self.resize(1280, 800)
            self._controller: DesktopController | None = None
            self._streams: dict[str, StreamPanel] = {}
            self._panel_item: str | None = None
            self._panel_kind: str | None = None
            self._endpoint = config.endpoint

            self.tabs = QTabBar()
            for view in VIEW_ORDER:
                self.tabs.addTab(VIEW_TITLES[view])
            self.tabs.currentChanged.connect(self._tab_changed)  # type: ignore[attr-defined]

            self.items = QTreeWidget()
            self.items.setHeaderHidden(True)
            self.items.itemActivated.connect(self._item_activated)  # type: ignore[attr-defined]
            self.items.itemClicked.connect(self._item_activated)  # type: ignore[attr-defined]

            self.panel = QWidget()
            panel_layout = QVBoxLayout(self.panel)
            header = QHBoxLayout()
            self.panel_title = QLabel("")
            self.panel_title.setStyleSheet("font-weight: bold;")
            close_button = QPushButton("Close")
            close_button.clicked.connect(self.close_panel)  # type: ignore[attr-defined]
            header.addWidget(self.panel_title, 1)
            header.addWidget(close_button)
            panel_layout.addLayout(header)
            self.panel_scroll = QScrollArea()
            self.panel_scroll.setWidgetResizable(True)
            panel_layout.addWidget(self.panel_scroll, 1)
            self.panel.hide()

            splitter = QSplitter(Qt.Orientation.Horizontal)
            splitter.addWidget(self.items)
            splitter.addWidget(self.panel)

            central = QWidget()
            layout = QVBoxLayout(central)
            layout.addWidget(self.tabs)
            layout.addWidget(splitter, 1)
            self.setCentralWidget(central)

            self.live_box = QCheckBox("Live")
            self.live_box.setChecked(config.polling.live)
            self.live_box.toggled.connect(self._live_toggled)  # type: ignore[attr-defined]
            self.status = QLabel("")
            self.statusBar().addWidget(self.live_box)
            self.statusBar().addWidget(self.status, 1)
            self.show_error("")

        def set_controller(self, controller: DesktopController) -> None:
            self._controller = controller

        def closeEvent(self, event) -> None:  # type: ignore[override]  # noqa: N802
            if self._controller is not None:
                self._controller.shutdown()
            super().closeEvent(event)

        # ------------------------------------------------------------
        # User actions
        # ------------------------------------------------------------
        def _tab_changed(self, index: int) -> None:
            view = VIEW_ORDER[index] if 0 <= index < len(VIEW_ORDER) else TRACES
            self.setWindowTitle(f"{VIEW_TITLES[view]} - telview")
            self.items.clear()
            QTreeWidgetItem(self.items, ["Loading..."])
            if self._controller is not None:
                self._controller.show_view(view)

        def _live_toggled(self, checked: bool) -> None:
            if self._controller is not None:
                self._controller.set_live(checked)

        def _item_activated(self, item: QTreeWidgetItem, _column: int = 0) -> None:
            data = item.data(0, Qt.ItemDataRole.UserRole)
            if not isinstance(data, tuple) or self._controller is None:
                return
            kind = data[0]
            if kind == "span":
                title = self._controller.select_span(data[1], data[2])
            elif kind == "log":
                title = self._controller.select_log(data[1])
            elif kind == "metric":
                title = self._controller.select_metric(data[1], data[2])
            else:
                return
            self._open(title)

        def _open_link(self, link: SpanLink) -> None:
            if self._controller is not None:
                self._open(self._controller.select_span(link.trace_id, link.span_id))

        def _open(self, title: str) -> None:
            self._release_streams()
            self._panel_item = None
            self._panel_kind = None
            self.panel_title.setText(title)
            self._set_body(QLabel("Loading..."))
            self.panel.show()

        def close_panel(self) -> None:
            if self._controller is not None:
                self._controller.close_panel()
            self._release_streams()
            self._panel_item = None
            self._panel_kind = None
            self.panel.hide()

        def _release_streams(self, keep: Sequence[str] = ()) -> None:
            for stream_id, panel in list(self._streams.items()):
                if stream_id not in keep:
                    panel.release()
                    del self._streams[stream_id]

        def _set_body(self, widget: QWidget) -> None:
            old = self.panel_scroll.takeWidget()
            if old is not None:
                old.deleteLater()
            self.panel_scroll.setWidget(widget)

        # ------------------------------------------------------------
        # Controller callbacks (GUI thread)
        # ------------------------------------------------------------
        def show_list(self, view: str, model: Any) -> None:
            selected = self._controller.selected_item() if self._controller else None
            scroll = self.items.verticalScrollBar().value()
            self.items.clear()
            if view == TRACES:
                self._fill_traces(model, selected)
            elif view == LOGS:
                self._fill_logs(model, selected)
            else:
                self._fill_metrics(model, selected)
            if self.items.topLevelItemCount() == 0:
                QTreeWidgetItem(self.items, [f"No {view}."])
            self.items.expandAll()
            self.items.verticalScrollBar().setValue(scroll)
            self.show_error("")

        def _leaf(self, parent: Any, text: str, data: tuple[Any, ...], selected: bool) -> QTreeWidgetItem:
            item = QTreeWidgetItem(parent, [text])
            item.setData(0, Qt.ItemDataRole.UserRole, data)
            if selected:
                item.setSelected(True)
            return item

        def _fill_traces(self, traces: list[TraceRow], selected: str | None) -> None:
            for trace in traces:
                node = QTreeWidgetItem(
                    self.items, [f"{trace.id}  {timestamp(trace.start)} → {timestamp(trace.end)}"]
                )
                for span in trace.spans:
                    text = f"{_bar(*bar_segments(span, BAR_WIDTH))}  {span.name}  {span.id}"
                    item = self._leaf(
                        node, text, ("span", trace.id, span.id), span.item_id(trace.id) == selected
                    )
                    if span.error:
                        item.setForeground(0, QBrush(QColor(LEVEL_COLOURS["error"])))

        def _fill_logs(self, logs: list[LogRow], selected: str | None) -> None:
            for row in logs:
                text = f"{timestamp(row.time, short=True)}  {row.sev:<6}  {row.body}"
                item = self._leaf(self.items, text, ("log", row.id), row.item_id == selected)
                colour = LEVEL_COLOURS.get(row.level or "")
                if colour:
                    item.setForeground(0, QBrush(QColor(colour)))

        def _fill_metrics(self, groups: list[ResourceGroup], selected: str | None) -> None:
            for group in groups:
                name = group.props.get("service.name")
                res_item = QTreeWidgetItem(self.items, [str(name) if name else f"resource {group.id}"])
                for scope in group.scopes:
                    scope_name = scope.props.get("name")
                    scope_item = QTreeWidgetItem(res_item, [str(scope_name or f"scope {scope.id}")])
                    for metric in scope.metrics:
                        text = metric.name
                        if metric.unit:
                            text += f" ({metric.unit})"
                        text += f"  [{metric.type_label}]"
                        if metric.desc:
                            text += f"  {metric.desc}"
                        self._leaf(
                            scope_item,
                            text,
                            ("metric", metric.id, metric.name),
                            metric.item_id == selected,
                        )

        def show_panel(self, item_id: str, model: PanelModel) -> None:
            if isinstance(model, MetricDetail):
                self._show_metric(item_id, model)
            elif isinstance(model, PropsPanel):
                if self._panel_item == item_id and self._panel_kind == "props":
                    self.panel_scroll.widget().set_nodes(model.nodes)
                    return
                tree = PropsTree(on_link=self._open_link)
                tree.set_nodes(model.nodes)
                self._replace(item_id, "props", tree)
            elif isinstance(model, PanelMessage):
                self._replace(item_id, "message", QLabel(model.text))

        def _replace(self, item_id: str, kind: str, widget: QWidget) -> None:
            if kind != "metric":
                self._release_streams()
            self._panel_item = item_id
            self._panel_kind = kind
            self._set_body(widget)

        def _show_metric(self, item_id: str, detail: MetricDetail) -> None:
            wanted = [stream.id for stream in detail.streams]
            for stream in detail.streams:
                self._streams[stream.id].set_attrs(detail.context, stream.attrs)
            self._release_streams(keep=wanted)
            self._streams = {stream_id: self._streams[stream_id] for stream_id in wanted}
            header_lines = []
            if detail.conflict:
                header_lines.append("Conflicting description or metadata was received")
            if detail.meta:
                header_lines.extend(to_lines([render_prop(detail.context, "meta", detail.meta)]))
            if not detail.streams:
                header_lines.append("No streams.")

            body = self.panel_scroll.widget()
            if (
                self._panel_item == item_id
                and self._panel_kind == "metric"
                and isinstance(body, _MetricBody)
                and body.stream_ids == wanted
            ):
                body.header.setText("\n".join(header_lines))
                return
            body = _MetricBody("\n".join(header_lines), list(self._streams.values()))
            self._replace(item_id, "metric", body)

        def show_error(self, message: str) -> None:
            text = self._endpoint
            if message:
                text += f"  {message}"
                self.status.setStyleSheet(f"color: {LEVEL_COLOURS['error']};")
            else:
                self.status.setStyleSheet("")
            self.status.setText(text)

        def surface_for(self, stream_id: str) -> GraphSurface | None:
            panel = self._streams.get(stream_id)
            if panel is None:
                panel = StreamPanel(stream_id)
                self._streams[stream_id] = panel
            return panel.graph_widget

else:  # pragma: no cover - PyQt6 missing
    ViewerWindow = cast(Any, object)


def _require_qt() -> None:
    if _QT_IMPORT_ERROR is not None:
        raise RuntimeError(
            "The desktop viewer requires PyQt6. Install with `pip install telview[gui]` or `pip install PyQt6`."
        ) from _QT_IMPORT_ERROR


def run_desktop(config: ViewerConfig, argv: Sequence[str] | None = None) -> int:
    """Launch the desktop viewer; returns the Qt exit code."""

    _require_qt()
    app = QApplication(list(argv) if argv is not None else sys.argv[:1])
    app.setStyle("Fusion")
    window = ViewerWindow(config)
    controller = DesktopController(config, window)
    window.set_controller(controller)
    controller.start()
    window.show()
    logger.info("Starting desktop viewer against %s", config.endpoint)
    try:
        return app.exec()
    finally:
        controller.shutdown()


__all__ = ["ViewerWindow", "run_desktop"]
