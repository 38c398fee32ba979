"""Deferred continuations for work that cannot run inside the current publish."""

from __future__ import annotations

import asyncio
import concurrent.futures
from collections import deque
from contextlib import AbstractContextManager, contextmanager, nullcontext
from typing import Any, Callable, Iterator, Protocol

from loguru import logger


class Scheduler(Protocol):
    def call_soon(self, callback: Callable[..., Any], *args: Any) -> None: ...

    def create_future(self) -> Any: ...

    def turn(self) -> AbstractContextManager[None]: ...


class TurnQueue:
    """FIFO work queue drained when the outermost turn unwinds.

    A turn is opened around every top-level publish. Callbacks scheduled while
    a turn is open run after it closes, each one in order. Callbacks scheduled
    while draining are picked up by the same drain.
    """

    def __init__(self) -> None:
        self._tasks: deque[tuple[Callable[..., Any], tuple[Any, ...]]] = deque()
        self._depth = 0
        self._draining = False

    @property
    def pending(self) -> int:
        return len(self._tasks)

    @property
    def in_turn(self) -> bool:
        return self._depth > 0 or self._draining

    def call_soon(self, callback: Callable[..., Any], *args: Any) -> None:
        self._tasks.append((callback, args))
        if not self.in_turn:
            self.run_pending()

    def create_future(self) -> concurrent.futures.Future:
        return concurrent.futures.Future()

    @contextmanager
    def turn(self) -> Iterator[None]:
        self._depth += 1
        try:
            yield
        finally:
            self._depth -= 1
            if self._depth == 0:
                self.run_pending()

    def run_pending(self) -> int:
        """Run queued callbacks until the queue is empty; returns how many ran."""
        if self._draining:
            return 0
        self._draining = True
        ran = 0
        try:
            while self._tasks:
                callback, args = self._tasks.popleft()
                try:
                    callback(*args)
                except Exception:
                    logger.exception("Deferred task {} failed", getattr(callback, "__qualname__", callback))
                ran += 1
        finally:
            self._draining = False
        return ran


class LoopScheduler:
    """Schedules deferred work on an asyncio event loop.

    Without an explicit loop the running loop is looked up on every call, so
    the scheduler must then be used from inside a coroutine or loop callback.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def call_soon(self, callback: Callable[..., Any], *args: Any) -> None:
        self._get_loop().call_soon(callback, *args)

    def create_future(self) -> asyncio.Future:
        return self._get_loop().create_future()

    def turn(self) -> AbstractContextManager[None]:
        return nullcontext()
