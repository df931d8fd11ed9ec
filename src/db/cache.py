"""Result cache — TTL store plus single-flight de-duplication of computations.

Concurrent requests for the same key share one in-flight computation. The
computation runs as its own task shielded from caller cancellation, so a
client disconnect never aborts work other callers are waiting on. A store
that is unreachable is bypassed: the value is computed fresh and the request
still succeeds.
"""

import asyncio
import json
import time
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass
from typing import Any, Protocol

from loguru import logger
from redis.asyncio import Redis
from redis.exceptions import RedisError

from src.analytics.exceptions import CacheError

KEY_PREFIX = "wallet-analytics"


def make_cache_key(domain: str, subject: str, variant: str = "default") -> str:
    """``{domain}:{subject}:{variant}`` with a lowercased subject."""
    return f"{domain}:{subject.lower()}:{variant}"


class CacheStore(Protocol):
    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any, ttl_ms: int) -> None: ...


class MemoryCacheStore:
    """In-process store; entries expire lazily when read after their TTL."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}

    async def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: Any, ttl_ms: int) -> None:
        if ttl_ms <= 0:
            return
        self._entries[key] = (self._clock() + ttl_ms / 1000, value)

    def __len__(self) -> int:
        return len(self._entries)


class RedisCacheStore:
    """Redis-backed store. Values are JSON; TTL is set with PX."""

    def __init__(self, redis: Redis, *, prefix: str = KEY_PREFIX) -> None:
        self._redis = redis
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    async def get(self, key: str) -> Any | None:
        try:
            raw = await self._redis.get(self._key(key))
        except (RedisError, OSError) as e:
            raise CacheError(f"Redis GET failed: {type(e).__name__}") from e
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as e:
            raise CacheError(f"Corrupt cache entry for {key}") from e

    async def set(self, key: str, value: Any, ttl_ms: int) -> None:
        if ttl_ms <= 0:
            return
        try:
            await self._redis.set(self._key(key), json.dumps(value), px=ttl_ms)
        except (RedisError, OSError) as e:
            raise CacheError(f"Redis SET failed: {type(e).__name__}") from e


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    joined: int = 0  # callers that attached to an in-flight computation
    computes: int = 0
    errors: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


class ResultCache:
    def __init__(self, store: CacheStore) -> None:
        self._store = store
        self._inflight: dict[str, asyncio.Task] = {}
        self.stats = CacheStats()

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    async def get_or_compute(
        self,
        key: str,
        ttl_ms: int,
        compute: Callable[[], Awaitable[Any]],
    ) -> tuple[Any, bool]:
        """Return ``(value, cached)``.

        ``cached`` is True only when the value came from the store. The store
        read runs inside the shared task, so a caller arriving while another
        is still reading or computing always joins it. Errors raised by
        ``compute`` reach every waiter and are never cached.
        """
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._load(key, ttl_ms, compute))
            self._inflight[key] = task
            task.add_done_callback(lambda t, k=key: self._forget(k, t))
        else:
            self.stats.joined += 1
            logger.debug(f"[CACHE] joined in-flight computation for {key}")

        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # Retrieve the exception so an abandoned failed task is not reported.
        if not task.cancelled():
            task.exception()

    async def _load(
        self, key: str, ttl_ms: int, compute: Callable[[], Awaitable[Any]]
    ) -> tuple[Any, bool]:
        try:
            value = await self._store.get(key)
        except CacheError as e:
            self.stats.errors += 1
            logger.warning(f"[CACHE] read bypassed for {key}: {e}")
            value = None

        if value is not None:
            self.stats.hits += 1
            return value, True

        self.stats.misses += 1
        self.stats.computes += 1
        value = await compute()
        try:
            await self._store.set(key, value, ttl_ms)
        except CacheError as e:
            self.stats.errors += 1
            logger.warning(f"[CACHE] write bypassed for {key}: {e}")
        return value, False
