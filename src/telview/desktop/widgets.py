# mypy: ignore-errors
"""PyQt6 widgets for the desktop viewer: the QPainter graph surface and attribute views."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, cast

from ..core.graph import CancelHandle, Diamond, Graph, GraphStyle, Scene, VLine
from ..views.props import PropNode, SpanLink, render_map, to_lines

QT_IMPORT_ERROR: Exception | None = None

try:  # pragma: no cover - only when PyQt6 is present
    from PyQt6.QtCore import QPointF, QRectF, Qt, QTimer
    from PyQt6.QtGui import QColor, QPainter, QPen, QPolygonF
    from PyQt6.QtWidgets import (
        QFrame,
        QLabel,
        QTreeWidget,
        QTreeWidgetItem,
        QVBoxLayout,
        QWidget,
    )
except Exception as exc:  # pragma: no cover - CI or headless environments  # noqa: BLE001
    QT_IMPORT_ERROR = exc
    QPointF = cast(Any, object)
    QRectF = cast(Any, object)
    Qt = None  # type: ignore[assignment]
    QTimer = cast(Any, None)
    QColor = cast(Any, object)
    QPainter = cast(Any, object)
    QPen = cast(Any, object)
    QPolygonF = cast(Any, object)
    QFrame = cast(Any, object)
    QLabel = cast(Any, object)
    QTreeWidget = cast(Any, object)
    QTreeWidgetItem = cast(Any, object)
    QVBoxLayout = cast(Any, object)
    QWidget = cast(Any, object)

LABEL_COLOUR = "#aaaaaa"
GRAPH_MIN_HEIGHT = 160


class _QtTimerHandle:
    def __init__(self, timer: QTimer) -> None:
        self._timer = timer

    def cancel(self) -> None:
        self._timer.stop()
        self._timer.deleteLater()


def qt_scheduler(parent: Any = None) -> Callable[[float, Callable[[], None]], CancelHandle]:
    """Single-shot ``QTimer`` scheduler for graph defocus; must be used on the GUI thread."""

    def schedule(delay: float, callback: Callable[[], None]) -> CancelHandle:
        timer = QTimer(parent)
        timer.setSingleShot(True)
        timer.timeout.connect(callback)  # type: ignore[attr-defined]
        timer.timeout.connect(timer.deleteLater)  # type: ignore[attr-defined]
        timer.start(int(delay * 1000))
        return _QtTimerHandle(timer)

    return schedule


def paint_scene(painter: QPainter, scene: Scene) -> None:
    """Replay ``scene`` onto ``painter``: background, shapes in order, then axis labels."""

    painter.fillRect(QRectF(0, 0, scene.width, scene.height), QColor(scene.background))
    for shape in scene.shapes:
        if isinstance(shape, Diamond):
            size = shape.size
            painter.setPen(Qt.PenStyle.NoPen)
            painter.setBrush(QColor(shape.colour))
            painter.drawPolygon(
                QPolygonF(
                    [
                        QPointF(shape.x - size, shape.y),
                        QPointF(shape.x, shape.y - size),
                        QPointF(shape.x + size, shape.y),
                        QPointF(shape.x, shape.y + size),
                    ]
                )
            )
        elif isinstance(shape, VLine):
            pen = QPen(QColor(shape.colour))
            pen.setWidthF(shape.width)
            painter.setPen(pen)
            painter.drawLine(QPointF(shape.x, 0), QPointF(shape.x, scene.height))

    labels = scene.labels
    painter.setPen(QColor(LABEL_COLOUR))
    metrics = painter.fontMetrics()
    line = metrics.height()
    painter.drawText(QPointF(2, line), labels.max_value)
    painter.drawText(QPointF(2, scene.height - line - 4), labels.min_value)
    painter.drawText(QPointF(2, scene.height - 4), labels.min_time)
    right = scene.width - metrics.horizontalAdvance(labels.max_time) - 2
    painter.drawText(QPointF(right, scene.height - 4), labels.max_time)


if Qt is not None:  # pragma: no cover - requires PyQt6

    class GraphWidget(QWidget):  # type: ignore[misc]
        """QPainter-backed :class:`~telview.core.graph.GraphSurface`."""

        def __init__(
            self,
            parent: QWidget | None = None,
            on_scene: Callable[[Scene], None] | None = None,
        ) -> None:
            super().__init__(parent)
            self.graph: Graph | None = None
            self.scene: Scene | None = None
            self._on_scene = on_scene
            self.setMouseTracking(True)
            self.setMinimumHeight(GRAPH_MIN_HEIGHT)

        def attach(self, graph: Graph) -> None:
            self.graph = graph
            if self.width() > 0 and self.height() > 0:
                graph.resize(self.width(), self.height())

        def detach(self, graph: Graph) -> None:
            if self.graph is graph:
                self.graph = None

        def present(self, scene: Scene) -> None:
            self.scene = scene
            if self._on_scene is not None:
                self._on_scene(scene)
            self.update()

        def paintEvent(self, event) -> None:  # type: ignore[override]  # noqa: N802
            painter = QPainter(self)
            try:
                painter.setRenderHint(QPainter.RenderHint.Antialiasing)
                if self.scene is None:
                    painter.fillRect(self.rect(), QColor(GraphStyle().background))
                else:
                    paint_scene(painter, self.scene)
            finally:
                painter.end()

        def resizeEvent(self, event) -> None:  # type: ignore[override]  # noqa: N802
            super().resizeEvent(event)
            if self.graph is not None:
                self.graph.resize(event.size().width(), event.size().height())

        def mouseMoveEvent(self, event) -> None:  # type: ignore[override]  # noqa: N802
            if self.graph is not None:
                pos = event.position()
                self.graph.pointer_moved(pos.x(), pos.y())

        def leaveEvent(self, event) -> None:  # type: ignore[override]  # noqa: N802
            super().leaveEvent(event)
            if self.graph is not None:
                self.graph.pointer_left()

    class PropsTree(QTreeWidget):  # type: ignore[misc]
        """Tree of :class:`PropNode`; activating a span link calls ``on_link``."""

        def __init__(
            self,
            parent: QWidget | None = None,
            on_link: Callable[[SpanLink], None] | None = None,
        ) -> None:
            super().__init__(parent)
            self.setColumnCount(3)
            self.setHeaderLabels(["Key", "Value", "Type"])
            self._on_link = on_link
            self.itemActivated.connect(self._activated)  # type: ignore[attr-defined]

        def set_nodes(self, nodes: list[PropNode]) -> None:
            self.clear()
            self._add(self.invisibleRootItem(), nodes)
            self.expandAll()

        def _add(self, parent: QTreeWidgetItem, nodes: list[PropNode]) -> None:
            for node in nodes:
                item = QTreeWidgetItem(parent, [node.key or "", node.inline, node.type])
                if node.link is not None:
                    item.setData(0, Qt.ItemDataRole.UserRole, node.link)
                    item.setToolTip(1, "Open span")
                if node.block is not None:
                    QTreeWidgetItem(item, ["", node.block, ""])
                self._add(item, node.children)

        def _activated(self, item: QTreeWidgetItem, _column: int) -> None:
            link = item.data(0, Qt.ItemDataRole.UserRole)
            if isinstance(link, SpanLink) and self._on_link is not None:
                self._on_link(link)

    class StreamPanel(QFrame):  # type: ignore[misc]
        """One metric stream: attribute lines, the graph and the focused point's props."""

        def __init__(self, stream_id: str, parent: QWidget | None = None) -> None:
            super().__init__(parent)
            self.stream_id = stream_id
            self.setFrameShape(QFrame.Shape.StyledPanel)
            layout = QVBoxLayout(self)
            self.attrs_label = QLabel("")
            self.attrs_label.setTextInteractionFlags(Qt.TextInteractionFlag.TextSelectableByMouse)
            self.graph_widget = GraphWidget(self, on_scene=self._scene_changed)
            self.focus_label = QLabel("")
            self.focus_label.setTextInteractionFlags(Qt.TextInteractionFlag.TextSelectableByMouse)
            layout.addWidget(self.attrs_label)
            layout.addWidget(self.graph_widget)
            layout.addWidget(self.focus_label)

        def release(self) -> None:
            """Detach the graph so nothing renders into this panel once it is discarded."""

            graph = self.graph_widget.graph
            if graph is not None:
                graph.reset(None)

        def set_attrs(self, ctx: Mapping[str, Any], attrs: Mapping[str, Any]) -> None:
            self.attrs_label.setText("\n".join(to_lines(render_map(ctx, attrs))))

        def _scene_changed(self, scene: Scene) -> None:
            if scene.focus is None:
                self.focus_label.setText("")
                return
            self.focus_label.setText(
                "\n".join(to_lines(render_map(scene.context or {}, scene.focus_props)))
            )

else:  # pragma: no cover - PyQt6 missing
    GraphWidget = cast(Any, object)
    PropsTree = cast(Any, object)
    StreamPanel = cast(Any, object)


__all__ = [
    "QT_IMPORT_ERROR",
    "GraphWidget",
    "PropsTree",
    "StreamPanel",
    "paint_scene",
    "qt_scheduler",
]
