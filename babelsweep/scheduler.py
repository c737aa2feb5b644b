"""Timer port used for debouncing, so sweeps can run against a fake clock."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(ABC):
    """Schedules callbacks and coroutines on the UI event loop."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], Any]) -> TimerHandle:
        """Run `callback` after `delay` seconds unless the handle is cancelled."""

    @abstractmethod
    def spawn(self, coroutine: Awaitable[Any]) -> "asyncio.Future[Any]":
        """Start `coroutine` concurrently and return its future."""


class AsyncioScheduler(Scheduler):
    """Scheduler backed by the running asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def call_later(self, delay: float, callback: Callable[[], Any]) -> TimerHandle:
        return self.loop.call_later(max(0.0, delay), callback)

    def spawn(self, coroutine: Awaitable[Any]) -> "asyncio.Future[Any]":
        return asyncio.ensure_future(coroutine, loop=self.loop)
