"""Read-Through Cache — TTL, stale-while-revalidate and stampede suppression.

Tests cover:
    - HIT inside TTL, MISS just after expiry when stale serving is off
    - M concurrent cold callers → one loader call, one MISS, M-1 WAIT, same value
    - STALE returns immediately and refreshes exactly once in the background
    - A STALE refresh and a concurrent cold caller collapse into one load
    - Loader failures reach every sharer as CacheLoadError and cache nothing
    - Failed background refresh keeps the stale entry and retries on next access
    - invalidate()/clear() force a MISS; orphaned loads do not repopulate
    - Cancelling one waiter does not cancel the shared load
    - Entry count never exceeds max_entries; the least recently used key goes first
"""

import asyncio

import pytest

from coupon_server.core.domain_types import CacheOrigin
from coupon_server.core.errors import CacheLoadError
from coupon_server.infrastructure.read_through_cache import ReadThroughCache


class CountingLoader:
    """Loader returning value-1, value-2, ... optionally held behind a gate."""

    def __init__(self, gate: asyncio.Event | None = None, fail_on: set[int] | None = None):
        self.calls = 0
        self.gate = gate
        self.fail_on = fail_on or set()

    async def __call__(self):
        self.calls += 1
        call = self.calls
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        if call in self.fail_on:
            raise RuntimeError(f"upstream down (call {call})")
        return f"value-{call}"


async def _settle(cache: ReadThroughCache) -> None:
    for _ in range(100):
        if cache.stats()["in_flight"] == 0:
            return
        await asyncio.sleep(0)
    raise AssertionError("background load never finished")


@pytest.fixture
def cache(clock):
    return ReadThroughCache("test", ttl_ms=1000, allow_stale=False, clock=clock)


async def test_first_get_is_miss_then_hit(cache):
    loader = CountingLoader()

    first = await cache.get("k", loader)
    second = await cache.get("k", loader)

    assert first == ("value-1", CacheOrigin.MISS)
    assert second == ("value-1", CacheOrigin.HIT)
    assert loader.calls == 1


async def test_hit_at_999ms_and_miss_at_1001ms(cache, clock):
    loader = CountingLoader()
    await cache.get("k", loader, ttl_ms=1000, allow_stale=False)

    clock.set_ms(999)
    hit = await cache.get("k", loader, ttl_ms=1000, allow_stale=False)
    clock.set_ms(1001)
    miss = await cache.get("k", loader, ttl_ms=1000, allow_stale=False)

    assert hit.origin is CacheOrigin.HIT
    assert hit.value == "value-1"
    assert miss.origin is CacheOrigin.MISS
    assert miss.value == "value-2"
    assert loader.calls == 2


async def test_concurrent_cold_callers_share_one_load(cache):
    loader = CountingLoader()
    callers = 25

    results = await asyncio.gather(*(cache.get("k", loader) for _ in range(callers)))

    assert loader.calls == 1
    assert {r.value for r in results} == {"value-1"}
    origins = [r.origin for r in results]
    assert origins.count(CacheOrigin.MISS) == 1
    assert origins.count(CacheOrigin.WAIT) == callers - 1


async def test_stale_value_returned_immediately_and_refreshed_once(cache, clock):
    gate = asyncio.Event()
    loader = CountingLoader()
    await cache.get("k", loader)
    clock.set_ms(1500)
    loader.gate = gate

    first = await cache.get("k", loader, allow_stale=True)
    second = await cache.get("k", loader, allow_stale=True)

    assert first == ("value-1", CacheOrigin.STALE)
    assert second == ("value-1", CacheOrigin.STALE)
    await asyncio.sleep(0)
    assert loader.calls == 2  # initial load + one refresh

    gate.set()
    await _settle(cache)

    refreshed = await cache.get("k", loader, allow_stale=True)
    assert refreshed == ("value-2", CacheOrigin.HIT)
    assert loader.calls == 2


async def test_stale_refresh_and_cold_caller_collapse_into_one_load(cache, clock):
    gate = asyncio.Event()
    loader = CountingLoader()
    await cache.get("k", loader)
    clock.set_ms(2000)
    loader.gate = gate

    stale = await cache.get("k", loader, allow_stale=True)
    strict = asyncio.create_task(cache.get("k", loader, allow_stale=False))
    await asyncio.sleep(0)
    gate.set()
    waited = await strict

    assert stale.origin is CacheOrigin.STALE
    assert waited == ("value-2", CacheOrigin.WAIT)
    assert loader.calls == 2


async def test_loader_failure_reaches_every_sharer(cache):
    gate = asyncio.Event()
    loader = CountingLoader(gate=gate, fail_on={1})

    tasks = [asyncio.create_task(cache.get("k", loader)) for _ in range(5)]
    await asyncio.sleep(0)
    gate.set()
    results = await asyncio.gather(*tasks, return_exceptions=True)

    assert loader.calls == 1
    assert all(isinstance(r, CacheLoadError) for r in results)
    assert isinstance(results[0].__cause__, RuntimeError)
    assert results[0].key == "k"
    assert cache.stats()["entries"] == 0

    retry = await cache.get("k", loader)
    assert retry == ("value-2", CacheOrigin.MISS)


async def test_failure_for_one_key_leaves_other_keys_alone(cache):
    good = CountingLoader()
    bad = CountingLoader(fail_on={1})
    await cache.get("good", good)

    with pytest.raises(CacheLoadError):
        await cache.get("bad", bad)

    assert await cache.get("good", good) == ("value-1", CacheOrigin.HIT)


async def test_failed_background_refresh_keeps_stale_entry(cache, clock):
    loader = CountingLoader(fail_on={2})
    await cache.get("k", loader)
    clock.set_ms(1500)

    stale = await cache.get("k", loader, allow_stale=True)
    await _settle(cache)

    again = await cache.get("k", loader, allow_stale=True)
    await _settle(cache)
    fresh = await cache.get("k", loader, allow_stale=True)

    assert stale == ("value-1", CacheOrigin.STALE)
    assert again == ("value-1", CacheOrigin.STALE)
    assert fresh == ("value-3", CacheOrigin.HIT)
    assert loader.calls == 3


async def test_invalidate_forces_miss(cache):
    loader = CountingLoader()
    await cache.get("k", loader)

    cache.invalidate("k")

    assert await cache.get("k", loader) == ("value-2", CacheOrigin.MISS)


async def test_clear_forces_miss_for_every_key(cache):
    loader = CountingLoader()
    await cache.get("a", loader)
    await cache.get("b", loader)

    cache.clear()

    assert cache.stats()["entries"] == 0
    assert (await cache.get("a", loader)).origin is CacheOrigin.MISS
    assert (await cache.get("b", loader)).origin is CacheOrigin.MISS


async def test_orphaned_load_resolves_but_does_not_repopulate(cache):
    gate = asyncio.Event()
    loader = CountingLoader(gate=gate)

    pending = asyncio.create_task(cache.get("k", loader))
    await asyncio.sleep(0)
    cache.invalidate("k")
    gate.set()

    assert await pending == ("value-1", CacheOrigin.MISS)
    assert cache.stats()["entries"] == 0


async def test_cancelled_waiter_does_not_cancel_shared_load(cache):
    gate = asyncio.Event()
    loader = CountingLoader(gate=gate)

    first = asyncio.create_task(cache.get("k", loader))
    second = asyncio.create_task(cache.get("k", loader))
    await asyncio.sleep(0)
    second.cancel()
    await asyncio.sleep(0)
    gate.set()

    assert await first == ("value-1", CacheOrigin.MISS)
    with pytest.raises(asyncio.CancelledError):
        await second
    assert loader.calls == 1


async def test_instance_defaults_apply_when_not_overridden(clock):
    cache = ReadThroughCache("defaults", ttl_ms=50, allow_stale=True, clock=clock)
    loader = CountingLoader()
    await cache.get("k", loader)
    clock.set_ms(60)

    result = await cache.get("k", loader)

    assert result.origin is CacheOrigin.STALE
    assert cache.stats() == {
        "name": "defaults", "entries": 1, "in_flight": 1,
        "ttl_ms": 50, "allow_stale": True, "max_entries": 1000,
    }
    await _settle(cache)


async def test_entry_count_is_bounded(clock):
    cache = ReadThroughCache("bounded", ttl_ms=1000, max_entries=3, clock=clock)
    loader = CountingLoader()

    for i in range(4):
        await cache.get(f"k{i}", loader)

    assert cache.stats()["entries"] == 3
    assert (await cache.get("k0", loader)).origin is CacheOrigin.MISS
    assert cache.stats()["entries"] == 3


async def test_recently_read_key_survives_eviction(clock):
    cache = ReadThroughCache("bounded", ttl_ms=1000, max_entries=2, clock=clock)
    loader = CountingLoader()
    await cache.get("a", loader)
    await cache.get("b", loader)

    await cache.get("a", loader)
    await cache.get("c", loader)

    assert (await cache.get("a", loader)).origin is CacheOrigin.HIT
    assert (await cache.get("b", loader)).origin is CacheOrigin.MISS


def test_max_entries_must_be_positive():
    with pytest.raises(ValueError):
        ReadThroughCache("broken", max_entries=0)
