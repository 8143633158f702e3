"""Headless time-series graph engine.

A :class:`Graph` owns the points of one metric stream, maps ``(time, value)``
pairs onto a margin-inset pixel canvas, works out which point sits nearest the
pointer and produces a :class:`Scene`: an ordered list of primitive shapes plus
axis labels and the focused point. Toolkit front ends implement
:class:`GraphSurface` to paint scenes and to feed pointer and resize events
back into the graph.
"""

from __future__ import annotations

import asyncio
import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from .model import Number, Point, SeriesStyle
from .numeric import format_value, timestamp

DEFOCUS_DELAY = 0.25
"""Seconds between the pointer leaving a graph and its focus being cleared."""

TIME_EPSILON = 1
INT_VALUE_EPSILON = 1
FLOAT_VALUE_EPSILON = 0.5


class CancelHandle(Protocol):
    def cancel(self) -> None: ...


Scheduler = Callable[[float, Callable[[], None]], CancelHandle]


def asyncio_scheduler(delay: float, callback: Callable[[], None]) -> CancelHandle:
    """Default scheduler: run ``callback`` on the running event loop after ``delay``."""

    return asyncio.get_running_loop().call_later(delay, callback)


@dataclass(frozen=True)
class GraphStyle:
    margin: float = 10.0
    point_size: float = 5.0
    line_width: float = 1.0
    halo_scale: float = 1.5
    background: str = SeriesStyle.BACKGROUND.value
    halo: str = SeriesStyle.HALO.value


@dataclass(frozen=True)
class Diamond:
    x: float
    y: float
    size: float
    colour: str


@dataclass(frozen=True)
class VLine:
    x: float
    width: float
    colour: str


Shape = Diamond | VLine


@dataclass(frozen=True)
class AxisLabels:
    min_time: str = ""
    max_time: str = ""
    min_value: str = ""
    max_value: str = ""


@dataclass
class Scene:
    width: int
    height: int
    background: str
    shapes: list[Shape] = field(default_factory=list)
    labels: AxisLabels = field(default_factory=AxisLabels)
    focus: Point | None = None
    context: Mapping[str, Any] | None = None

    @property
    def focus_props(self) -> Mapping[str, Any]:
        if self.focus is None or not self.focus.props:
            return {}
        return self.focus.props


@dataclass(frozen=True)
class Viewport:
    """Axis ranges after widening, bound to a canvas size."""

    min_time: int
    max_time: int
    min_value: Number | None
    max_value: Number | None
    width: int
    height: int
    margin: float

    @property
    def time_span(self) -> float:
        return _to_float(self.max_time - self.min_time)

    @property
    def value_span(self) -> float | None:
        if self.min_value is None or self.max_value is None:
            return None
        return _to_float(self.max_value - self.min_value)

    @property
    def inner_width(self) -> float:
        return self.width - 2 * self.margin

    @property
    def inner_height(self) -> float:
        return self.height - 2 * self.margin

    def x(self, time: int) -> float:
        return self.margin + _to_float(time - self.min_time) / self.time_span * self.inner_width

    def y(self, value: Number) -> float:
        span = self.value_span
        if span is None or self.max_value is None:
            raise ValueError("graph has no value range")
        return self.margin + _to_float(self.max_value - value) / span * self.inner_height


def _to_float(value: Number) -> float:
    # ints past the float range saturate to infinity
    try:
        return float(value)
    except OverflowError:
        return math.inf if value > 0 else -math.inf


def _widen(low: Any, high: Any, epsilon: Any) -> tuple[Any, Any]:
    if low == high:
        return low - epsilon, high + epsilon
    return low, high


class GraphSurface(Protocol):
    """Render target a graph is attached to."""

    def attach(self, graph: Graph) -> None: ...

    def detach(self, graph: Graph) -> None: ...

    def present(self, scene: Scene) -> None: ...


class Graph:
    """Point set plus pointer state for one metric stream."""

    def __init__(
        self,
        style: GraphStyle | None = None,
        *,
        scheduler: Scheduler | None = None,
        defocus_delay: float = DEFOCUS_DELAY,
        width: int = 0,
        height: int = 0,
    ) -> None:
        self.style = style or GraphStyle()
        self.defocus_delay = defocus_delay
        self.width = width
        self.height = height
        self.pointer: tuple[float, float] | None = None
        self.context: Mapping[str, Any] | None = None
        self.last_scene: Scene | None = None
        self._scheduler: Scheduler = scheduler or asyncio_scheduler
        self._defocus_handle: CancelHandle | None = None
        self._surface: GraphSurface | None = None
        self.min_time: int | None = None
        self.max_time: int | None = None
        self.min_value: Number | None = None
        self.max_value: Number | None = None
        self.points: list[Point] = []

    @property
    def surface(self) -> GraphSurface | None:
        return self._surface

    # ----------------------------------------------------------------
    # Point set
    # ----------------------------------------------------------------
    def reset(self, surface: GraphSurface | None = None) -> None:
        """Clear points and ranges and attach to ``surface``.

        Pointer position and canvas size are kept so a graph re-attached on
        the next poll keeps its hover state.
        """

        previous = self._surface
        if previous is not None and previous is not surface:
            previous.detach(self)
        self.min_time = None
        self.max_time = None
        self.min_value = None
        self.max_value = None
        self.points = []
        self.context = None
        self._surface = surface
        if surface is not None and surface is not previous:
            surface.attach(self)

    def set_context(self, context: Mapping[str, Any] | None) -> None:
        self.context = context

    def add_point(
        self,
        style: str,
        time: int,
        value: Number | None = None,
        props: Mapping[str, Any] | None = None,
    ) -> None:
        if self.min_time is None or time < self.min_time:
            self.min_time = time
        if self.max_time is None or time > self.max_time:
            self.max_time = time
        if value is not None:
            if self.min_value is None or value < self.min_value:
                self.min_value = value
            if self.max_value is None or value > self.max_value:
                self.max_value = value
        self.points.append(Point(time, value, style, props))

    def extend(self, points: list[Point]) -> None:
        for point in points:
            self.add_point(point.style, point.time, point.value, point.props)

    # ----------------------------------------------------------------
    # Geometry
    # ----------------------------------------------------------------
    def viewport(self) -> Viewport | None:
        if self.min_time is None or self.max_time is None:
            return None
        min_time, max_time = _widen(self.min_time, self.max_time, TIME_EPSILON)
        min_value, max_value = self.min_value, self.max_value
        if min_value is not None and max_value is not None:
            epsilon = INT_VALUE_EPSILON if isinstance(min_value, int) else FLOAT_VALUE_EPSILON
            min_value, max_value = _widen(min_value, max_value, epsilon)
        return Viewport(
            min_time=min_time,
            max_time=max_time,
            min_value=min_value,
            max_value=max_value,
            width=self.width,
            height=self.height,
            margin=self.style.margin,
        )

    def find_focus(self, viewport: Viewport | None = None) -> Point | None:
        """Return the focusable point nearest the pointer; later points win ties."""

        if self.pointer is None:
            return None
        if viewport is None:
            viewport = self.viewport()
        if viewport is None:
            return None
        mx, my = self.pointer
        best = math.inf
        focus: Point | None = None
        for point in self.points:
            if not point.focusable:
                continue
            dx = viewport.x(point.time) - mx
            dist = dx * dx
            if point.value is not None:
                dy = viewport.y(point.value) - my
                dist += dy * dy
            if dist <= best:
                best = dist
                focus = point
        return focus

    # ----------------------------------------------------------------
    # Rendering
    # ----------------------------------------------------------------
    def build_scene(self) -> Scene:
        style = self.style
        scene = Scene(
            width=self.width,
            height=self.height,
            background=style.background,
            context=self.context,
        )
        viewport = self.viewport()
        if viewport is None:
            return scene

        focus = self.find_focus(viewport)
        for point in self.points:
            x = viewport.x(point.time)
            if point.value is not None:
                y = viewport.y(point.value)
                if point is focus:
                    scene.shapes.append(Diamond(x, y, style.point_size * style.halo_scale, style.halo))
                scene.shapes.append(Diamond(x, y, style.point_size, str(point.style)))
            else:
                if point is focus:
                    scene.shapes.append(VLine(x, style.line_width * 2, style.halo))
                scene.shapes.append(VLine(x, style.line_width, str(point.style)))

        scene.labels = AxisLabels(
            min_time=timestamp(viewport.min_time),
            max_time=timestamp(viewport.max_time),
            min_value=format_value(viewport.min_value),
            max_value=format_value(viewport.max_value),
        )
        scene.focus = focus
        return scene

    def render(self) -> Scene:
        scene = self.build_scene()
        self.last_scene = scene
        if self._surface is not None:
            self._surface.present(scene)
        return scene

    # ----------------------------------------------------------------
    # Interaction
    # ----------------------------------------------------------------
    def pointer_moved(self, x: float, y: float) -> None:
        self._cancel_defocus()
        self.pointer = (x, y)
        self.render()

    def pointer_left(self) -> None:
        self._cancel_defocus()
        self._defocus_handle = self._scheduler(self.defocus_delay, self._defocus)

    def resize(self, width: int, height: int) -> bool:
        """Adopt a new backing size; returns ``True`` when a re-render happened."""

        if width <= 0 or height <= 0:
            return False
        if (width, height) == (self.width, self.height):
            return False
        self.width = width
        self.height = height
        self.render()
        return True

    def _cancel_defocus(self) -> None:
        handle = self._defocus_handle
        self._defocus_handle = None
        if handle is not None:
            handle.cancel()

    def _defocus(self) -> None:
        self._defocus_handle = None
        self.pointer = None
        self.render()


__all__ = [
    "DEFOCUS_DELAY",
    "AxisLabels",
    "CancelHandle",
    "Diamond",
    "Graph",
    "GraphStyle",
    "GraphSurface",
    "Scene",
    "Scheduler",
    "Shape",
    "VLine",
    "Viewport",
    "asyncio_scheduler",
]
