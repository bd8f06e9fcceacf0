"""
Response cache for idempotent reads.

Features:
- Memory-based store with a fixed capacity
- Per-entry TTL; an entry is served only while now - stored_at <= ttl
- Oldest-first eviction (by insertion time) when a new key arrives at capacity
- CacheStage: the pipeline stage that short-circuits GETs on a fresh hit
"""

import asyncio
import hashlib
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable

import httpx
from loguru import logger

from orbguard.endpoints import default_ttl_for
from orbguard.services.models import ApiRequest, ApiResponse
from orbguard.settings import Settings

Clock = Callable[[], datetime]
Handler = Callable[[ApiRequest], Awaitable[ApiResponse]]


@dataclass
class CacheEntry:
    """A single cached response."""

    key: str
    payload: bytes
    status_code: int
    headers: dict[str, str]
    stored_at: datetime
    ttl: timedelta

    def is_fresh(self, now: datetime) -> bool:
        """Check if entry may still be served."""
        return now - self.stored_at <= self.ttl

    def to_response(self) -> ApiResponse:
        return ApiResponse(
            status_code=self.status_code,
            headers=dict(self.headers),
            content=self.payload,
            from_cache=True,
        )


class CacheManager:
    """
    Async-compatible response store with TTL and capacity-bound eviction.

    Usage:
        cache = CacheManager(max_size=100)

        entry = await cache.get(key)
        if entry:
            return entry.to_response()

        response = await fetch()
        await cache.set(key, response, ttl=timedelta(minutes=5))
    """

    def __init__(
        self,
        max_size: int = 100,
        clock: Clock = datetime.now,
        debug: bool = False,
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._memory: dict[str, CacheEntry] = {}
        self._max_size = max_size
        self._clock = clock
        self._debug = debug
        self._lock = asyncio.Lock()
        self._stats = CacheStats()

    @staticmethod
    def generate_key(
        method: str, path: str, params: dict[str, Any] | None = None
    ) -> str:
        """Generate a cache key from method, path and sorted query params."""
        # None values are dropped, matching what the transport sends
        pairs = sorted((k, str(v)) for k, v in (params or {}).items() if v is not None)
        full_key = f"{method.upper()}:{path}?{httpx.QueryParams(pairs)}"

        # Hash long keys
        if len(full_key) > 200:
            return hashlib.md5(full_key.encode()).hexdigest()

        return full_key

    async def get(self, key: str) -> CacheEntry | None:
        """Return the entry for ``key`` if present and fresh."""
        async with self._lock:
            entry = self._memory.get(key)
            if entry is None:
                self._stats.misses += 1
                self._log(f"MISS: {key[:50]}")
                return None

            if not entry.is_fresh(self._clock()):
                del self._memory[key]
                self._stats.misses += 1
                self._stats.expirations += 1
                self._log(f"EXPIRED: {key[:50]}")
                return None

            self._stats.hits += 1
            self._log(f"HIT: {key[:50]}")
            return entry

    async def set(self, key: str, response: ApiResponse, ttl: timedelta) -> None:
        """Store a response under ``key``, evicting the oldest entry if full."""
        entry = CacheEntry(
            key=key,
            payload=response.content,
            status_code=response.status_code,
            headers=dict(response.headers),
            stored_at=self._clock(),
            ttl=ttl,
        )

        async with self._lock:
            if len(self._memory) >= self._max_size and key not in self._memory:
                self._evict_oldest()

            self._memory[key] = entry
            self._log(f"SET: {key[:50]} (TTL: {ttl.total_seconds()}s)")

    async def invalidate(self, fragment: str) -> int:
        """Drop every entry whose key contains ``fragment``. Returns the count."""
        async with self._lock:
            removed = self._drop(k for k in self._memory if fragment in k)
        if removed:
            self._log(f"INVALIDATE '{fragment}': {removed} entries")
        return removed

    async def clear(self) -> None:
        async with self._lock:
            removed = self._drop(self._memory)
        self._log(f"CLEAR: {removed} entries")

    async def cleanup_expired(self) -> int:
        """Drop entries past their TTL without waiting for a read to find them."""
        now = self._clock()
        async with self._lock:
            removed = self._drop(k for k, e in self._memory.items() if not e.is_fresh(now))
            self._stats.expirations += removed
        return removed

    def __len__(self) -> int:
        return len(self._memory)

    def __contains__(self, key: str) -> bool:
        return key in self._memory

    def _drop(self, keys) -> int:
        doomed = list(keys)
        for key in doomed:
            self._memory.pop(key, None)
        return len(doomed)

    def _evict_oldest(self) -> None:
        # Insertion time only; reads do not refresh an entry's position
        victim = min(self._memory.values(), key=lambda e: e.stored_at, default=None)
        if victim is None:
            return
        del self._memory[victim.key]
        self._stats.evictions += 1
        self._log(f"EVICT: {victim.key[:50]} (stored {victim.stored_at:%H:%M:%S})")

    def get_stats(self) -> "CacheStats":
        self._stats.size = len(self._memory)
        self._stats.max_size = self._max_size
        return self._stats

    def _log(self, message: str) -> None:
        if self._debug:
            logger.debug(f"[CacheManager] {message}")


@dataclass
class CacheStats:
    """Counters reported through the pipeline health status."""

    hits: int = 0
    misses: int = 0
    expirations: int = 0
    evictions: int = 0
    size: int = 0
    max_size: int = 0

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "expirations": self.expirations,
            "evictions": self.evictions,
            "size": self.size,
            "max_size": self.max_size,
            "hit_rate": round(self.hit_rate, 4),
        }


@dataclass
class CacheStage:
    """Serves fresh cached reads and stores successful ones."""

    cache: CacheManager
    settings: Settings
    bypassed: int = field(default=0, init=False)

    def is_cacheable(self, request: ApiRequest) -> bool:
        return request.is_read and request.cache.enabled

    def ttl_for(self, request: ApiRequest) -> timedelta:
        if request.cache.ttl is not None:
            return request.cache.ttl
        return default_ttl_for(request.path, self.settings)

    async def handle(self, request: ApiRequest, call_next: Handler) -> ApiResponse:
        if not self.is_cacheable(request):
            return await call_next(request)

        key = self.cache.generate_key(
            request.method, request.path, request.query_params
        )

        if request.cache.force_refresh:
            self.bypassed += 1
        else:
            entry = await self.cache.get(key)
            if entry is not None:
                return entry.to_response()

        response = await call_next(request)

        if response.is_success:
            await self.cache.set(key, response, self.ttl_for(request))

        return response
