"""
Stale-Tolerant Cache
====================

Memory-resident, namespaced key/value cache shared by every read-heavy
context (specializations, workload stats, staff, tickets, help catalog).

Provides:
- StaleCache: TTL-bound entries that are never evicted on read. Expired
  entries are returned flagged ``is_stale``; only explicit invalidation or
  the periodic cleanup sweep removes them.
- CachePolicy: per-namespace TTLs resolved by longest key prefix.
- RequestCoalescer: identical in-flight requests share one backing call.
- CachedReader: the read path every context uses (cache first, coalesced
  fetch, stale fallback on backing failure).

Keys look like ``<namespace>:<detail>``, e.g. ``help:faqs:{"page":1}`` or
``specializations:list:{}``.
"""

import asyncio
import fnmatch
import json
import time
from dataclasses import dataclass
from enum import Enum
from typing import (
    Any, Awaitable, Callable, Dict, Generic, List, Mapping, Optional, TypeVar
)

from caseflow.core import ExternalServiceException, StaleDataException
from caseflow.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Clock = Callable[[], float]

_GLOB_CHARS = "*?["


def cache_key(namespace: str, *parts: Any, params: Optional[Mapping[str, Any]] = None) -> str:
    """
    Build a stable cache key.

    ``None`` params are dropped and the rest are serialised with sorted keys,
    so the same filters always produce the same key.
    """
    segments = [namespace, *(str(p) for p in parts)]
    if params is not None:
        cleaned = {k: v for k, v in params.items() if v is not None}
        segments.append(json.dumps(cleaned, sort_keys=True, separators=(",", ":"), default=str))
    return ":".join(segments)


def key_matches(key: str, pattern: str) -> bool:
    """
    Glob patterns (containing ``*``, ``?`` or ``[``) match with fnmatch.
    Plain patterns match the exact key or any key inside that namespace.
    """
    if any(ch in pattern for ch in _GLOB_CHARS):
        return fnmatch.fnmatchcase(key, pattern)
    return key == pattern or key.startswith(pattern + ":")


@dataclass
class CacheEntry(Generic[T]):
    """One cached payload with its write time and ttl (seconds)."""
    key: str
    payload: T
    timestamp: float
    ttl: float

    def age(self, now: float) -> float:
        return now - self.timestamp

    def is_stale(self, now: float) -> bool:
        return self.age(now) > self.ttl


@dataclass(frozen=True)
class CacheHit(Generic[T]):
    """Result of ``StaleCache.get``."""
    data: T
    is_stale: bool


class CachePolicy:
    """
    Per-namespace TTL configuration.

    The longest configured namespace that prefixes a key decides its TTL,
    so ``help:faqs`` takes precedence over ``help``.
    """

    def __init__(
        self,
        namespaces: Mapping[str, float],
        default_ttl: float,
        expiry_multiplier: float = 3
    ):
        for name, ttl in namespaces.items():
            if ttl <= 0:
                raise ValueError(f"TTL for namespace '{name}' must be positive")
        if default_ttl <= 0:
            raise ValueError("default_ttl must be positive")
        self._namespaces = dict(namespaces)
        self._ordered = sorted(self._namespaces, key=len, reverse=True)
        self.default_ttl = default_ttl
        self.expiry_multiplier = expiry_multiplier

    @classmethod
    def from_settings(cls, settings) -> "CachePolicy":
        return cls(
            namespaces=settings.namespace_ttls(),
            default_ttl=settings.cache_default_ttl_seconds,
            expiry_multiplier=settings.cache_expiry_multiplier,
        )

    @property
    def namespaces(self) -> Dict[str, float]:
        return dict(self._namespaces)

    def ttl_for(self, key: str) -> float:
        for name in self._ordered:
            if key == name or key.startswith(name + ":"):
                return self._namespaces[name]
        return self.default_ttl

    def with_overrides(self, overrides: Mapping[str, float]) -> "CachePolicy":
        """New policy with some namespace TTLs replaced or added."""
        merged = {**self._namespaces, **overrides}
        return CachePolicy(merged, self.default_ttl, self.expiry_multiplier)


class StaleCache:
    """
    Namespaced TTL cache that never evicts on read.

    ``set``, ``get`` and ``invalidate`` are synchronous in-memory operations.
    """

    def __init__(self, policy: CachePolicy, clock: Clock = time.monotonic):
        self._policy = policy
        self._clock = clock
        self._entries: Dict[str, CacheEntry[Any]] = {}

    @property
    def policy(self) -> CachePolicy:
        return self._policy

    @policy.setter
    def policy(self, policy: CachePolicy) -> None:
        # Existing entries keep the ttl they were written with
        self._policy = policy

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store ``value`` under ``key``, overwriting any previous entry."""
        effective_ttl = ttl if ttl is not None else self._policy.ttl_for(key)
        self._entries[key] = CacheEntry(
            key=key,
            payload=value,
            timestamp=self._clock(),
            ttl=effective_ttl,
        )

    def get(self, key: str) -> Optional[CacheHit[Any]]:
        """Most recent value for ``key`` (flagged stale past its ttl), or None."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        return CacheHit(data=entry.payload, is_stale=entry.is_stale(self._clock()))

    def invalidate(self, pattern: Optional[str] = None) -> int:
        """
        Remove every key matching ``pattern``; with no pattern, clear everything.

        Returns:
            Number of entries removed
        """
        if pattern is None:
            removed = len(self._entries)
            self._entries.clear()
            logger.info("Cache cleared", extra={"removed": removed})
            return removed

        doomed = [key for key in self._entries if key_matches(key, pattern)]
        for key in doomed:
            del self._entries[key]
        if doomed:
            logger.debug("Cache invalidated", extra={"pattern": pattern, "removed": len(doomed)})
        return len(doomed)

    def cleanup(self) -> int:
        """
        Drop entries older than ``expiry_multiplier`` times their own ttl.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        multiplier = self._policy.expiry_multiplier
        doomed = [
            key for key, entry in self._entries.items()
            if entry.age(now) > entry.ttl * multiplier
        ]
        for key in doomed:
            del self._entries[key]
        if doomed:
            logger.info("Cache cleanup removed expired entries", extra={"removed": len(doomed)})
        return len(doomed)

    def keys(self) -> List[str]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def stats(self) -> Dict[str, Any]:
        now = self._clock()
        stale = sum(1 for entry in self._entries.values() if entry.is_stale(now))
        return {
            "size": len(self._entries),
            "stale": stale,
            "fresh": len(self._entries) - stale,
            "keys": sorted(self._entries),
        }


class CacheSource(str, Enum):
    """Where a read's data came from."""
    CACHE = "cache"
    NETWORK = "network"
    STALE_FALLBACK = "stale_fallback"


@dataclass(frozen=True)
class CacheRead(Generic[T]):
    """
    Outcome of a cached read.

    ``unwrap`` takes a mandatory ``allow_stale`` flag so that every consumer
    decides explicitly whether outdated data is acceptable.
    """
    key: str
    data: T
    is_stale: bool
    source: CacheSource

    def unwrap(self, *, allow_stale: bool) -> T:
        if self.is_stale and not allow_stale:
            raise StaleDataException(self.key)
        return self.data


@dataclass
class _InFlight:
    task: "asyncio.Future[Any]"
    started_at: float


class RequestCoalescer:
    """
    Shares one backing call among identical concurrent requests.

    A request whose key matches an unfinished call started less than
    ``window_seconds`` ago awaits that call instead of issuing its own.
    The shared call is shielded: one caller being cancelled never cancels
    the call for the others.
    """

    def __init__(self, window_seconds: float, clock: Clock = time.monotonic):
        self._window = window_seconds
        self._clock = clock
        self._inflight: Dict[str, _InFlight] = {}
        self.joined_count = 0
        self.issued_count = 0

    @property
    def pending_count(self) -> int:
        return sum(1 for entry in self._inflight.values() if not entry.task.done())

    def is_pending(self, key: str) -> bool:
        entry = self._inflight.get(key)
        return entry is not None and not entry.task.done()

    async def run(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        now = self._clock()
        entry = self._inflight.get(key)
        if entry is not None and not entry.task.done() and now - entry.started_at < self._window:
            self.joined_count += 1
            logger.debug("Joining in-flight request", extra={"cache_key": key})
            return await asyncio.shield(entry.task)

        task = asyncio.ensure_future(factory())
        entry = _InFlight(task=task, started_at=now)
        self._inflight[key] = entry
        self.issued_count += 1
        task.add_done_callback(lambda _done, k=key, e=entry: self._release(k, e))
        return await asyncio.shield(task)

    def _release(self, key: str, entry: _InFlight) -> None:
        if self._inflight.get(key) is entry:
            del self._inflight[key]


class CachedReader:
    """
    Read path shared by every cached fetch.

    1. Unless ``force_refresh``, a fresh cache hit is returned directly.
    2. Otherwise the fetch runs through the coalescer and its result is cached.
    3. If the backing call fails, the last cached value (even stale) is
       returned tagged ``is_stale``; with nothing cached the error propagates.
    """

    def __init__(self, cache: StaleCache, coalescer: RequestCoalescer):
        self._cache = cache
        self._coalescer = coalescer

    @property
    def cache(self) -> StaleCache:
        return self._cache

    async def read(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[T]],
        *,
        force_refresh: bool = False,
        ttl: Optional[float] = None
    ) -> CacheRead[T]:
        if not force_refresh:
            hit = self._cache.get(key)
            if hit is not None and not hit.is_stale:
                logger.debug("Cache hit", extra={"cache_key": key})
                return CacheRead(key=key, data=hit.data, is_stale=False, source=CacheSource.CACHE)

        try:
            data = await self._coalescer.run(key, lambda: self._fetch_and_store(key, fetcher, ttl))
        except ExternalServiceException as exc:
            fallback = self._cache.get(key)
            if fallback is None:
                raise
            logger.warning(
                "Backing fetch failed, serving stale cache",
                extra={"cache_key": key, "error": exc.message}
            )
            return CacheRead(key=key, data=fallback.data, is_stale=True, source=CacheSource.STALE_FALLBACK)

        return CacheRead(key=key, data=data, is_stale=False, source=CacheSource.NETWORK)

    async def _fetch_and_store(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[T]],
        ttl: Optional[float]
    ) -> T:
        data = await fetcher()
        self._cache.set(key, data, ttl)
        return data
