# /sk_platform/cache.py
# Synkuru - in-process TTL caches
# Copyright (c) 2025-2026 Synkuru
from __future__ import annotations

import asyncio
import functools
import json
import time
from typing import Any, Awaitable, Callable, Hashable, Mapping, TypeVar

from cachetools import TTLCache

from ._log import log as sk_log

__all__ = ["cache_key", "QueryCache", "MemoCache"]

T = TypeVar("T")


def _dbg(msg: str, **fields: Any) -> None:
    sk_log("CACHE", "query", "trace", msg, **fields)


def cache_key(operation: str, params: Mapping[str, Any] | None = None) -> str:
    """Deterministic key for (operation, params); field order does not matter."""
    return json.dumps(
        {"query": operation, "variables": dict(params or {})},
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )


class QueryCache:
    """Result memoization that shares one in-flight computation per key.

    Entries hold the asyncio future of the computation, so a concurrent caller
    for the same key awaits the pending fetch instead of starting another one.
    A finished future keeps its original insertion time; failed or cancelled
    computations are evicted.
    """

    def __init__(
        self,
        maxsize: int = 500,
        ttl: float = 600.0,
        *,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._data: TTLCache[str, asyncio.Future[Any]] = TTLCache(maxsize=maxsize, ttl=ttl, timer=timer)

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    async def get_or_compute(self, key: str, compute: Callable[[], Awaitable[T]]) -> T:
        fut = self._data.get(key)
        if fut is None:
            _dbg("miss", key=key[:120])
            fut = asyncio.ensure_future(compute())
            self._data[key] = fut
            fut.add_done_callback(functools.partial(self._settle, key))
        else:
            _dbg("hit", key=key[:120], pending=not fut.done())
        return await asyncio.shield(fut)

    def _settle(self, key: str, fut: asyncio.Future[Any]) -> None:
        if not fut.cancelled() and fut.exception() is None:
            return
        if self._data.get(key) is fut:
            self._data.pop(key, None)
        _dbg("evicted failed entry", key=key[:120])

    def invalidate(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        n = len(self._data)
        self._data.clear()
        if n:
            sk_log("CACHE", "query", "debug", "cleared", entries=n)


class MemoCache:
    """Bounded TTL memo; `has` tells a cached None apart from a miss."""

    def __init__(
        self,
        maxsize: int,
        ttl: float,
        *,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._data: TTLCache[Hashable, Any] = TTLCache(maxsize=maxsize, ttl=ttl, timer=timer)

    def __len__(self) -> int:
        return len(self._data)

    def has(self, key: Hashable) -> bool:
        return key in self._data

    def get(self, key: Hashable, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: Hashable, value: Any) -> None:
        self._data[key] = value

    def clear(self) -> None:
        self._data.clear()
