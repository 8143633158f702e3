from __future__ import annotations

import pytest

from telview.core.cache import GraphCache
from telview.core.graph import Graph, Scene


class Surface:
    def __init__(self) -> None:
        self.graph: Graph | None = None

    def attach(self, graph: Graph) -> None:
        self.graph = graph

    def detach(self, graph: Graph) -> None:
        if self.graph is graph:
            self.graph = None

    def present(self, scene: Scene) -> None:
        pass


def test_get_returns_same_graph_for_same_id() -> None:
    cache = GraphCache()
    cache.begin_pass()
    first = cache.get("a")
    cache.begin_pass()
    assert cache.get("a") is first
    assert len(cache) == 1
    assert "a" in cache


def test_get_resets_points_and_attaches_surface() -> None:
    cache = GraphCache()
    cache.begin_pass()
    graph = cache.get("a")
    graph.add_point("#0f0", 1, 1)
    surface = Surface()
    cache.begin_pass()
    assert cache.get("a", surface) is graph
    assert graph.points == []
    assert surface.graph is graph


def test_sweep_evicts_after_idle_passes() -> None:
    cache = GraphCache(max_idle_passes=2)
    surface = Surface()
    cache.begin_pass()
    cache.get("a", surface)
    cache.get("b")
    for _ in range(2):
        cache.begin_pass()
        cache.get("b")
        assert cache.sweep() == []
    cache.begin_pass()
    cache.get("b")
    assert cache.sweep() == ["a"]
    assert "a" not in cache
    assert surface.graph is None
    assert cache.peek("b") is not None


def test_zero_idle_passes_evicts_untouched_immediately() -> None:
    cache = GraphCache(max_idle_passes=0)
    cache.begin_pass()
    cache.get("a")
    cache.begin_pass()
    assert cache.sweep() == ["a"]


def test_factory_and_clear() -> None:
    made: list[Graph] = []

    def factory() -> Graph:
        graph = Graph(width=10, height=10)
        made.append(graph)
        return graph

    cache = GraphCache(factory)
    cache.begin_pass()
    cache.get("x")
    cache.get("y")
    assert len(made) == 2
    assert sorted(cache) == ["x", "y"]
    cache.clear()
    assert len(cache) == 0


def test_negative_idle_passes_rejected() -> None:
    with pytest.raises(ValueError):
        GraphCache(max_idle_passes=-1)
