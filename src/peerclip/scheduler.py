#!/usr/bin/env python3
"""Cancellable timers and background tasks on the asyncio event loop.

Every recurring timer and every fire-and-forget coroutine started by the
sync service goes through a Scheduler so that shutdown can cancel all
outstanding timers in one call. Background tasks (pushes, pulls) are
tracked only to keep them referenced until they finish; they are
abandoned rather than cancelled on shutdown.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any

logger = logging.getLogger(__name__)


class TimerHandle:
    """Handle to a recurring timer created by Scheduler.call_every."""

    def __init__(self, scheduler: Scheduler, task: asyncio.Task[None], name: str) -> None:
        self._scheduler = scheduler
        self._task = task
        self.name = name

    @property
    def cancelled(self) -> bool:
        return self._task.cancelled() or self._task.done()

    def cancel(self) -> None:
        """Stop the timer; pending ticks never fire."""
        self._task.cancel()
        self._scheduler._timers.discard(self)


class Scheduler:
    """Owner of all timers and background tasks of one sync context."""

    def __init__(self) -> None:
        self._timers: set[TimerHandle] = set()
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def timer_count(self) -> int:
        return len(self._timers)

    def call_every(
        self,
        interval: float,
        callback: Callable[[], Awaitable[Any] | None],
        name: str = "timer",
    ) -> TimerHandle:
        """Run callback every interval seconds until cancelled.

        The first call happens one interval after scheduling. When the
        callback returns an awaitable it is spawned as an independent
        task, so a slow tick never delays or blocks the next one.

        Args:
            interval: Seconds between ticks.
            callback: Function invoked on each tick.
            name: Label used in log messages.

        Returns:
            A handle that cancels the timer.
        """
        task = asyncio.get_running_loop().create_task(
            self._run_timer(interval, callback, name)
        )
        handle = TimerHandle(self, task, name)
        self._timers.add(handle)
        return handle

    async def _run_timer(
        self,
        interval: float,
        callback: Callable[[], Awaitable[Any] | None],
        name: str,
    ) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                result = callback()
            except Exception as e:
                logger.error("Timer %s failed: %s", name, e)
                continue
            if inspect.isawaitable(result):
                self.spawn(result, name=name)

    def spawn(self, awaitable: Awaitable[Any], name: str = "task") -> asyncio.Task[Any]:
        """Run awaitable in the background and log any failure.

        Args:
            awaitable: Coroutine or future to run.
            name: Label used in log messages.

        Returns:
            The created task.
        """
        if inspect.iscoroutine(awaitable):
            coro: Coroutine[Any, Any, Any] = awaitable
        else:
            coro = _await(awaitable)
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)

        def on_done(done: asyncio.Task[Any]) -> None:
            self._tasks.discard(done)
            if done.cancelled():
                return
            exc = done.exception()
            if exc is not None:
                logger.error("Background %s failed: %s", name, exc)

        task.add_done_callback(on_done)
        return task

    def cancel_all(self) -> None:
        """Cancel every outstanding timer."""
        for handle in list(self._timers):
            handle.cancel()


async def _await(awaitable: Awaitable[Any]) -> Any:
    return await awaitable
