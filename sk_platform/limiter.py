# /sk_platform/limiter.py
# Synkuru - request admission control
# Copyright (c) 2025-2026 Synkuru
from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable

from ._log import log as sk_log

__all__ = ["Limiter"]

SleepFn = Callable[[float], Awaitable[Any]]


def _dbg(msg: str, **fields: Any) -> None:
    sk_log("LIMITER", "admission", "debug", msg, **fields)


class Limiter:
    """Concurrency ceiling + token reservoir + minimum spacing, FIFO admission.

    Waiters pass one admission lock in arrival order (asyncio locks are fair),
    so a request that queued first is dispatched first. A shared pause set by
    `pause()` holds every dispatch, queued or new, until it elapses.
    """

    def __init__(
        self,
        *,
        max_concurrent: int = 5,
        reservoir: int = 30,
        refresh_amount: int = 30,
        refresh_interval: float = 60.0,
        min_time: float = 0.2,
        clock: Callable[[], float] = time.monotonic,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.max_concurrent = max(1, int(max_concurrent))
        self.refresh_amount = max(1, int(refresh_amount))
        self.refresh_interval = max(0.001, float(refresh_interval))
        self.min_time = max(0.0, float(min_time))
        self._clock = clock
        self._sleep = sleep

        self._tokens = max(0, int(reservoir))
        self._refreshed_at: float | None = None
        self._last_dispatch: float | None = None
        self._running = 0
        self._queued = 0

        self._admission = asyncio.Lock()
        self._slots = asyncio.Semaphore(self.max_concurrent)
        self._pause: asyncio.Task[None] | None = None

    # pause ------------------------------------------------------------------

    @property
    def paused(self) -> bool:
        return self._pause is not None and not self._pause.done()

    def pause(self, seconds: float) -> asyncio.Task[None]:
        """Start the shared pause unless one is already running; return it."""
        if self._pause is not None and not self._pause.done():
            return self._pause
        delay = max(0.0, float(seconds))
        task = asyncio.ensure_future(self._sleep(delay))
        task.add_done_callback(self._pause_elapsed)
        self._pause = task
        sk_log("LIMITER", "throttle", "warn", "pausing dispatch", seconds=delay)
        return task

    def _pause_elapsed(self, task: asyncio.Task[None]) -> None:
        if self._pause is task:
            self._pause = None
            _dbg("pause elapsed")

    async def wait_pause(self) -> None:
        while self._pause is not None and not self._pause.done():
            await asyncio.shield(self._pause)

    # reservoir --------------------------------------------------------------

    def _refill(self, now: float) -> None:
        if self._refreshed_at is None:
            self._refreshed_at = now
            return
        elapsed = now - self._refreshed_at
        if elapsed >= self.refresh_interval:
            periods = int(elapsed // self.refresh_interval)
            self._refreshed_at += periods * self.refresh_interval
            self._tokens = self.refresh_amount

    async def _take_token(self) -> None:
        while True:
            now = self._clock()
            self._refill(now)
            if self._tokens > 0:
                self._tokens -= 1
                return
            refreshed = self._refreshed_at if self._refreshed_at is not None else now
            wait = max(0.0, refreshed + self.refresh_interval - now)
            _dbg("reservoir empty", wait_s=round(wait, 3))
            await self._sleep(wait)

    async def _space(self) -> None:
        if self._last_dispatch is None or self.min_time <= 0:
            return
        wait = self._last_dispatch + self.min_time - self._clock()
        if wait > 0:
            await self._sleep(wait)

    # admission --------------------------------------------------------------

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        self._queued += 1
        acquired = False
        try:
            async with self._admission:
                await self.wait_pause()
                await self._slots.acquire()
                acquired = True
                try:
                    await self._take_token()
                    await self._space()
                    await self.wait_pause()
                except BaseException:
                    self._slots.release()
                    acquired = False
                    raise
                self._last_dispatch = self._clock()
        finally:
            self._queued -= 1
        self._running += 1
        try:
            yield
        finally:
            self._running -= 1
            if acquired:
                self._slots.release()

    async def schedule(self, fn: Callable[[], Awaitable[Any]]) -> Any:
        async with self.slot():
            return await fn()

    def stats(self) -> dict[str, Any]:
        return {
            "running": self._running,
            "queued": self._queued,
            "tokens": self._tokens,
            "paused": self.paused,
        }
