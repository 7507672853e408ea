import asyncio

import pytest

from caseflow.core import BackingApiException, StaleDataException, TransientFetchException
from caseflow.shared.infrastructure.cache import (
    CachePolicy,
    CacheSource,
    RequestCoalescer,
    cache_key,
    key_matches,
)


# ========== StaleCache ==========

def test_get_within_ttl_is_fresh(cache):
    cache.set("specializations:list:{}", [1, 2])

    hit = cache.get("specializations:list:{}")

    assert hit.data == [1, 2]
    assert hit.is_stale is False


def test_expired_entry_is_returned_stale(cache, clock):
    cache.set("specializations:list:{}", [1, 2])
    clock.advance(121)

    hit = cache.get("specializations:list:{}")

    assert hit.data == [1, 2]
    assert hit.is_stale is True
    assert "specializations:list:{}" in cache


def test_missing_key_returns_none(cache):
    assert cache.get("nope") is None


def test_namespace_ttls(cache, clock):
    cache.set("workload:stats", 1)
    cache.set("help:faqs:{}", 2)
    clock.advance(300)

    assert cache.get("workload:stats").is_stale is True
    assert cache.get("help:faqs:{}").is_stale is False


def test_explicit_ttl_overrides_policy(cache, clock):
    cache.set("help:faqs:{}", 1, ttl=5)
    clock.advance(6)
    assert cache.get("help:faqs:{}").is_stale is True


def test_set_overwrites(cache):
    cache.set("tickets:list", "old")
    cache.set("tickets:list", "new")
    assert cache.get("tickets:list").data == "new"


def test_invalidate_namespace_leaves_others(cache):
    for key in ("specializations:list:{}", "specializations:list:{\"category_id\":1}",
                "workload:stats", "help:faqs:{}", "specializationsx"):
        cache.set(key, key)

    removed = cache.invalidate("specializations")

    assert removed == 2
    assert sorted(cache.keys()) == ["help:faqs:{}", "specializationsx", "workload:stats"]


def test_invalidate_glob(cache):
    cache.set("help:faqs:{}", 1)
    cache.set("help:categories:{}", 2)
    cache.set("tickets:list", 3)

    assert cache.invalidate("help:*") == 2
    assert cache.keys() == ["tickets:list"]


def test_invalidate_exact_key(cache):
    cache.set("workload:stats", 1)
    cache.set("workload:stats:extra", 2)

    assert cache.invalidate("workload:stats:extra") == 1
    assert cache.keys() == ["workload:stats"]


def test_invalidate_without_pattern_clears_everything(cache):
    cache.set("a", 1)
    cache.set("b", 2)

    assert cache.invalidate() == 2
    assert len(cache) == 0


def test_cleanup_removes_entries_past_three_ttls(cache, clock):
    cache.set("tickets:list", 1)
    cache.set("help:faqs:{}", 2)
    clock.advance(181)

    assert cache.cleanup() == 1
    assert cache.keys() == ["help:faqs:{}"]


def test_cleanup_keeps_stale_entries_within_bound(cache, clock):
    cache.set("tickets:list", 1)
    clock.advance(120)

    assert cache.cleanup() == 0
    assert cache.get("tickets:list").is_stale is True


def test_stats(cache, clock):
    cache.set("tickets:list", 1)
    cache.set("help:faqs:{}", 2)
    clock.advance(61)

    stats = cache.stats()

    assert stats["size"] == 2
    assert stats["stale"] == 1
    assert stats["fresh"] == 1


def test_policy_longest_prefix_wins(policy):
    assert policy.ttl_for("help:faqs:{}") == 900
    assert policy.ttl_for("help:categories:{}") == 1800
    assert policy.ttl_for("unknown:key") == 600


def test_policy_rejects_non_positive_ttl():
    with pytest.raises(ValueError):
        CachePolicy({"tickets": 0}, default_ttl=60)


def test_cache_key_is_stable_and_drops_none():
    first = cache_key("specializations", "list", params={"b": 2, "a": 1, "c": None})
    second = cache_key("specializations", "list", params={"a": 1, "b": 2})

    assert first == second == 'specializations:list:{"a":1,"b":2}'


def test_key_matches():
    assert key_matches("help:faqs:{}", "help")
    assert not key_matches("helpdesk", "help")
    assert key_matches("help:faqs:{}", "help:*")


# ========== RequestCoalescer ==========

async def test_identical_requests_share_one_call(clock):
    coalescer = RequestCoalescer(2.0, clock=clock)
    calls = 0
    release = asyncio.Event()

    async def fetch():
        nonlocal calls
        calls += 1
        await release.wait()
        return "payload"

    first = asyncio.ensure_future(coalescer.run("k", fetch))
    second = asyncio.ensure_future(coalescer.run("k", fetch))
    await asyncio.sleep(0)
    release.set()

    assert await asyncio.gather(first, second) == ["payload", "payload"]
    assert calls == 1
    assert coalescer.joined_count == 1
    assert coalescer.pending_count == 0


async def test_request_outside_window_is_not_joined(clock):
    coalescer = RequestCoalescer(2.0, clock=clock)
    calls = 0
    release = asyncio.Event()

    async def fetch():
        nonlocal calls
        calls += 1
        await release.wait()
        return calls

    first = asyncio.ensure_future(coalescer.run("k", fetch))
    await asyncio.sleep(0)
    clock.advance(3)
    second = asyncio.ensure_future(coalescer.run("k", fetch))
    await asyncio.sleep(0)
    release.set()
    await asyncio.gather(first, second)

    assert calls == 2


async def test_failure_reaches_every_joined_caller(clock):
    coalescer = RequestCoalescer(2.0, clock=clock)
    release = asyncio.Event()

    async def fetch():
        await release.wait()
        raise TransientFetchException("down")

    first = asyncio.ensure_future(coalescer.run("k", fetch))
    second = asyncio.ensure_future(coalescer.run("k", fetch))
    await asyncio.sleep(0)
    release.set()
    outcomes = await asyncio.gather(first, second, return_exceptions=True)

    assert all(isinstance(o, TransientFetchException) for o in outcomes)
    assert not coalescer.is_pending("k")


async def test_cancelled_caller_does_not_cancel_shared_call(clock):
    coalescer = RequestCoalescer(2.0, clock=clock)
    release = asyncio.Event()

    async def fetch():
        await release.wait()
        return "done"

    first = asyncio.ensure_future(coalescer.run("k", fetch))
    second = asyncio.ensure_future(coalescer.run("k", fetch))
    await asyncio.sleep(0)
    first.cancel()
    await asyncio.sleep(0)
    release.set()

    assert await second == "done"
    assert first.cancelled()


# ========== CachedReader ==========

async def test_reader_caches_network_result(reader):
    calls = []

    async def fetch():
        calls.append(1)
        return ("a",)

    first = await reader.read("tickets:list", fetch)
    second = await reader.read("tickets:list", fetch)

    assert first.source is CacheSource.NETWORK
    assert second.source is CacheSource.CACHE
    assert second.data == ("a",)
    assert len(calls) == 1


async def test_force_refresh_skips_fresh_cache(reader):
    calls = []

    async def fetch():
        calls.append(1)
        return len(calls)

    await reader.read("tickets:list", fetch)
    refreshed = await reader.read("tickets:list", fetch, force_refresh=True)

    assert refreshed.data == 2
    assert refreshed.source is CacheSource.NETWORK


async def test_stale_entry_triggers_refetch(reader, clock):
    values = iter(["old", "new"])

    async def fetch():
        return next(values)

    await reader.read("tickets:list", fetch)
    clock.advance(61)
    result = await reader.read("tickets:list", fetch)

    assert result.data == "new"
    assert result.is_stale is False


async def test_backing_failure_serves_stale_copy(reader, clock):
    async def ok():
        return "cached"

    async def down():
        raise TransientFetchException("Could not reach server")

    await reader.read("tickets:list", ok)
    clock.advance(61)
    result = await reader.read("tickets:list", down)

    assert result.data == "cached"
    assert result.is_stale is True
    assert result.source is CacheSource.STALE_FALLBACK


async def test_fresh_fallback_on_forced_refresh_is_still_flagged_stale(reader):
    async def ok():
        return "cached"

    async def rejected():
        raise BackingApiException("Server said no", status_code=400)

    await reader.read("tickets:list", ok)
    result = await reader.read("tickets:list", rejected, force_refresh=True)

    assert result.is_stale is True
    assert result.data == "cached"


async def test_backing_failure_without_cache_propagates(reader):
    async def down():
        raise TransientFetchException("Could not reach server")

    with pytest.raises(TransientFetchException):
        await reader.read("tickets:list", down)


async def test_unwrap_requires_explicit_choice(reader, clock):
    async def ok():
        return "cached"

    async def down():
        raise TransientFetchException("down")

    await reader.read("tickets:list", ok)
    clock.advance(61)
    result = await reader.read("tickets:list", down)

    with pytest.raises(StaleDataException):
        result.unwrap(allow_stale=False)
    assert result.unwrap(allow_stale=True) == "cached"
    with pytest.raises(TypeError):
        result.unwrap(True)
