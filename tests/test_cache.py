# Synkuru test scripts
from __future__ import annotations

import asyncio

import pytest

from sk_platform.cache import MemoCache, QueryCache, cache_key


def test_cache_key_ignores_field_order() -> None:
    q = "query ($a: Int, $b: Int) { x }"
    k1 = cache_key(q, {"a": 1, "b": {"y": 2, "x": [1, 2]}})
    k2 = cache_key(q, {"b": {"x": [1, 2], "y": 2}, "a": 1})
    assert k1 == k2
    assert k1 != cache_key(q, {"a": 2, "b": {"x": [1, 2], "y": 2}})


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_compute() -> None:
    cache = QueryCache()
    calls = 0
    gate = asyncio.Event()

    async def compute() -> dict:
        nonlocal calls
        calls += 1
        await gate.wait()
        return {"ok": True}

    tasks = [asyncio.ensure_future(cache.get_or_compute("k", compute)) for _ in range(8)]
    await asyncio.sleep(0)
    gate.set()
    results = await asyncio.gather(*tasks)

    assert calls == 1
    assert all(r == {"ok": True} for r in results)
    assert "k" in cache


@pytest.mark.asyncio
async def test_failed_compute_is_evicted_and_retried() -> None:
    cache = QueryCache()
    calls = 0

    async def flaky() -> str:
        nonlocal calls
        calls += 1
        if calls == 1:
            raise RuntimeError("boom")
        return "second"

    with pytest.raises(RuntimeError):
        await cache.get_or_compute("k", flaky)
    assert "k" not in cache

    assert await cache.get_or_compute("k", flaky) == "second"
    assert calls == 2


@pytest.mark.asyncio
async def test_entries_expire_after_ttl(clock) -> None:
    cache = QueryCache(maxsize=10, ttl=600, timer=clock)
    calls = 0

    async def compute() -> int:
        nonlocal calls
        calls += 1
        return calls

    assert await cache.get_or_compute("k", compute) == 1
    clock.advance(599)
    assert await cache.get_or_compute("k", compute) == 1
    clock.advance(2)
    assert await cache.get_or_compute("k", compute) == 2


@pytest.mark.asyncio
async def test_clear_drops_everything() -> None:
    cache = QueryCache()

    async def compute() -> int:
        return 1

    await cache.get_or_compute("a", compute)
    await cache.get_or_compute("b", compute)
    assert len(cache) == 2
    cache.clear()
    assert len(cache) == 0


def test_memo_cache_keeps_cached_none(clock) -> None:
    memo = MemoCache(maxsize=2, ttl=60, timer=clock)
    memo.set("logo_1_TV", None)
    assert memo.has("logo_1_TV")
    assert memo.get("logo_1_TV", "missing") is None
    assert not memo.has("logo_2_TV")
    clock.advance(61)
    assert not memo.has("logo_1_TV")
