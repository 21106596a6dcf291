import asyncio
from unittest.mock import AsyncMock

import pytest

from console.detail_cache import DetailCache
from fakes import FakeClock


@pytest.mark.asyncio
async def test_concurrent_fetches_invoke_fetcher_once():
    release = asyncio.Event()
    calls = []

    async def fetcher(entity_id):
        calls.append(entity_id)
        await release.wait()
        return {"id": entity_id, "messages": ["hi"]}

    cache = DetailCache()
    first = asyncio.ensure_future(cache.fetch_and_cache("c1", fetcher))
    second = asyncio.ensure_future(cache.fetch_and_cache("c1", fetcher))
    await asyncio.sleep(0)
    assert cache.is_loading("c1")

    release.set()
    results = await asyncio.gather(first, second)

    assert calls == ["c1"]
    assert results[0] == results[1] == {"id": "c1", "messages": ["hi"]}
    assert cache.get("c1").detail == {"id": "c1", "messages": ["hi"]}


@pytest.mark.asyncio
async def test_loaded_entry_is_reused_without_fetch():
    fetcher = AsyncMock(return_value={"id": "c1"})
    cache = DetailCache()

    await cache.fetch_and_cache("c1", fetcher)
    await cache.fetch_and_cache("c1", fetcher)

    fetcher.assert_awaited_once_with("c1")


@pytest.mark.asyncio
async def test_invalidate_forces_refetch():
    fetcher = AsyncMock(side_effect=[{"v": 1}, {"v": 2}])
    cache = DetailCache()

    assert await cache.fetch_and_cache("c1", fetcher) == {"v": 1}
    cache.invalidate("c1")

    assert cache.get("c1") is None
    assert await cache.fetch_and_cache("c1", fetcher) == {"v": 2}


@pytest.mark.asyncio
async def test_fetch_in_flight_during_invalidate_is_not_cached():
    release = asyncio.Event()

    async def fetcher(entity_id):
        await release.wait()
        return {"stale": True}

    cache = DetailCache()
    pending = asyncio.ensure_future(cache.fetch_and_cache("c1", fetcher))
    await asyncio.sleep(0)

    cache.invalidate("c1")
    release.set()

    assert await pending == {"stale": True}
    assert cache.get("c1") is None


@pytest.mark.asyncio
async def test_update_patches_cached_detail_in_place():
    cache = DetailCache()
    cache.put("c1", {"id": "c1", "messages": ["a"]})

    entry = cache.update("c1", lambda d: {**d, "messages": d["messages"] + ["b"]})

    assert entry.detail["messages"] == ["a", "b"]
    assert cache.get("c1").detail["messages"] == ["a", "b"]


@pytest.mark.asyncio
async def test_update_without_entry_returns_none():
    cache = DetailCache()

    assert cache.update("c1", lambda d: d) is None
    assert "c1" not in cache


@pytest.mark.asyncio
async def test_fetch_error_propagates_and_nothing_is_cached():
    fetcher = AsyncMock(side_effect=RuntimeError("down"))
    cache = DetailCache()

    with pytest.raises(RuntimeError):
        await cache.fetch_and_cache("c1", fetcher)

    assert cache.get("c1") is None
    assert not cache.is_loading("c1")


@pytest.mark.asyncio
async def test_max_age_expires_entries():
    clock = FakeClock()
    fetcher = AsyncMock(side_effect=[{"v": 1}, {"v": 2}])
    cache = DetailCache(max_age=30, clock=clock)

    await cache.fetch_and_cache("d1", fetcher)
    clock.advance(29)
    assert await cache.fetch_and_cache("d1", fetcher) == {"v": 1}

    clock.advance(2)
    assert await cache.fetch_and_cache("d1", fetcher) == {"v": 2}
