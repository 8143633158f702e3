"""Identity cache that keeps one :class:`Graph` per metric stream across polls."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass

from .graph import Graph, GraphSurface

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    graph: Graph
    last_pass: int


class GraphCache:
    """Map stream ids to long-lived graphs with pass-based eviction.

    Every render pass starts with :meth:`begin_pass`; graphs fetched with
    :meth:`get` during the pass are marked as touched. :meth:`sweep` drops the
    graphs that have not been touched for more than ``max_idle_passes`` passes.
    """

    def __init__(
        self,
        factory: Callable[[], Graph] = Graph,
        *,
        max_idle_passes: int = 2,
    ) -> None:
        if max_idle_passes < 0:
            raise ValueError("max_idle_passes must be >= 0")
        self._factory = factory
        self._max_idle = max_idle_passes
        self._entries: dict[str, _Entry] = {}
        self._pass = 0

    @property
    def current_pass(self) -> int:
        return self._pass

    def begin_pass(self) -> int:
        self._pass += 1
        return self._pass

    def get(self, graph_id: str, surface: GraphSurface | None = None) -> Graph:
        """Return the graph for ``graph_id``, creating it lazily, reset onto ``surface``."""

        entry = self._entries.get(graph_id)
        if entry is None:
            entry = _Entry(graph=self._factory(), last_pass=self._pass)
            self._entries[graph_id] = entry
            logger.debug("Created graph for stream %s", graph_id)
        entry.last_pass = self._pass
        entry.graph.reset(surface)
        return entry.graph

    def peek(self, graph_id: str) -> Graph | None:
        entry = self._entries.get(graph_id)
        return entry.graph if entry is not None else None

    def sweep(self) -> list[str]:
        """Evict idle graphs and return their ids."""

        horizon = self._pass - self._max_idle
        stale = [gid for gid, entry in self._entries.items() if entry.last_pass < horizon]
        for gid in stale:
            entry = self._entries.pop(gid)
            entry.graph.reset(None)
        if stale:
            logger.debug("Evicted %d idle graph(s)", len(stale))
        return stale

    def clear(self) -> None:
        for entry in self._entries.values():
            entry.graph.reset(None)
        self._entries.clear()

    def __contains__(self, graph_id: object) -> bool:
        return graph_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)


__all__ = ["GraphCache"]
