"""Log list model."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from ..core.wire import as_nanos


@dataclass
class LogRow:
    id: int
    time: int
    sev: str
    body: str
    level: str | None = None

    @property
    def item_id(self) -> str:
        return f"log-{self.id}"


def level_class(sev: str) -> str | None:
    for prefix, level in (("Debug", "debug"), ("Warn", "warn"), ("Error", "error")):
        if sev.startswith(prefix):
            return level
    return None


def summarize_logs(payload: Iterable[Mapping[str, Any]]) -> list[LogRow]:
    """Rows for ``/api/logs``; ids are positions in the backend list, rows sorted by time."""

    rows = []
    for index, entry in enumerate(payload):
        sev = str(entry.get("sev") or "")
        rows.append(
            LogRow(
                id=index,
                time=as_nanos(entry["time"]),
                sev=sev,
                body=str(entry.get("body") or ""),
                level=level_class(sev),
            )
        )
    rows.sort(key=lambda row: row.time)
    return rows


__all__ = ["LogRow", "level_class", "summarize_logs"]
