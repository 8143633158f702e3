"""Cooperative refresh loop driving the active view.

Each iteration fetches and applies every :class:`Refresh` the owner currently
supplies, one after the other. Only one iteration is ever in flight, and
:meth:`PollLoop.stop` waits for it, so a replacement loop never races the
previous one. A payload that arrives after a stop was requested is dropped
without being applied.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from .contracts.error import FetchError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_INTERVAL = 0.5


@dataclass
class Refresh(Generic[T]):
    """Two-phase updater: ``fetch`` the data, then ``apply`` it to the view."""

    fetch: Callable[[], Awaitable[T]]
    apply: Callable[[T], Awaitable[None] | None]
    on_error: Callable[[FetchError], Awaitable[None] | None] | None = None
    label: str = ""


async def _maybe_await(result: Any) -> None:
    if inspect.isawaitable(result):
        await result


class PollLoop:
    """Re-run the supplied refreshers every ``interval`` seconds while live.

    The first iteration always runs. Later iterations run only while
    ``is_live()`` returns ``True`` or after :meth:`trigger`.
    """

    def __init__(
        self,
        refreshers: Callable[[], Sequence[Refresh[Any]]],
        *,
        interval: float = DEFAULT_INTERVAL,
        is_live: Callable[[], bool] | None = None,
        name: str = "poll",
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be > 0")
        self._refreshers = refreshers
        self.interval = interval
        self._is_live = is_live or (lambda: True)
        self.name = name
        self._task: asyncio.Task[None] | None = None
        self._wake: asyncio.Event | None = None
        self._stopping = False
        self._forced = False
        self.iterations = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def stopping(self) -> bool:
        return self._stopping

    def start(self) -> None:
        if self.running:
            return
        self._stopping = False
        self._forced = False
        self._wake = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)
        logger.debug("Started poll loop %s", self.name)

    def trigger(self) -> None:
        """Run one iteration as soon as the current one (if any) finishes."""

        self._forced = True
        if self._wake is not None:
            self._wake.set()

    async def stop(self) -> None:
        task = self._task
        if task is None:
            return
        self._stopping = True
        if self._wake is not None:
            self._wake.set()
        if task is asyncio.current_task():
            return
        try:
            await task
        finally:
            self._task = None
            logger.debug("Stopped poll loop %s", self.name)

    async def _run(self) -> None:
        first = True
        while not self._stopping:
            if first or self._forced or self._is_live():
                first = False
                self._forced = False
                if self._wake is not None:
                    self._wake.clear()
                await self._iterate()
                self.iterations += 1
            if self._stopping:
                break
            await self._sleep()

    async def _sleep(self) -> None:
        if self._wake is None:  # pragma: no cover - set in start()
            await asyncio.sleep(self.interval)
            return
        try:
            async with asyncio.timeout(self.interval):
                await self._wake.wait()
        except TimeoutError:
            pass

    async def _iterate(self) -> None:
        for refresh in list(self._refreshers()):
            if self._stopping:
                return
            try:
                payload = await refresh.fetch()
            except FetchError as exc:
                logger.warning("Fetch failed for %s: %s", refresh.label or self.name, exc)
                if not self._stopping and refresh.on_error is not None:
                    await self._guarded(refresh.on_error, exc)
                continue
            except Exception:
                logger.exception("Failed to fetch %s", refresh.label or self.name)
                continue
            if self._stopping:
                logger.debug("Discarding %s payload fetched after stop", refresh.label or self.name)
                return
            await self._guarded(refresh.apply, payload)

    async def _guarded(self, func: Callable[[Any], Any], arg: Any) -> None:
        try:
            await _maybe_await(func(arg))
        except Exception:
            logger.exception("Failed to update UI (%s)", self.name)


__all__ = ["DEFAULT_INTERVAL", "PollLoop", "Refresh"]
