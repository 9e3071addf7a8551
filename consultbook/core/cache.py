"""Cache backends (in-memory and Redis) used for availability hints and slot locks."""

from __future__ import annotations

import asyncio
import fnmatch
import time
from collections.abc import Callable
from typing import Any, Protocol

from redis.exceptions import RedisError

from consultbook.core.config import Settings, get_settings
from consultbook.shared.exceptions import CacheUnavailableError


class CacheBackend(Protocol):
    """Protocol for cache providers (Redis, memory, etc.)."""

    async def get(self, key: str) -> str | None:
        """Get cached value by key."""

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        """Set cached value with optional TTL."""

    async def delete(self, key: str) -> None:
        """Delete cached value by key."""

    async def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        """Set value only when key is missing. Return True when set."""

    async def delete_if_equals(self, key: str, value: str) -> bool:
        """Delete key only while it still holds ``value``."""

    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern."""

    async def ping(self) -> bool:
        """Return True when backend answers."""


_REDIS_COMPARE_AND_DELETE_SCRIPT = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
  return redis.call('DEL', KEYS[1])
end
return 0
"""


class InMemoryCacheBackend:
    """Per-process cache with expiry, for development and tests."""

    def __init__(self, now_provider: Callable[[], float] | None = None) -> None:
        self._entries: dict[str, tuple[str, float | None]] = {}
        self._lock = asyncio.Lock()
        self._now = now_provider or time.monotonic

    def _live_value(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= self._now():
            del self._entries[key]
            return None
        return value

    def _expiry(self, ttl_seconds: int | None) -> float | None:
        if ttl_seconds is None:
            return None
        return self._now() + ttl_seconds

    async def get(self, key: str) -> str | None:
        async with self._lock:
            return self._live_value(key)

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        async with self._lock:
            self._entries[key] = (value, self._expiry(ttl_seconds))

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._entries.pop(key, None)

    async def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        async with self._lock:
            if self._live_value(key) is not None:
                return False
            self._entries[key] = (value, self._expiry(ttl_seconds))
            return True

    async def delete_if_equals(self, key: str, value: str) -> bool:
        async with self._lock:
            if self._live_value(key) != value:
                return False
            del self._entries[key]
            return True

    async def delete_pattern(self, pattern: str) -> int:
        async with self._lock:
            matched = [key for key in self._entries if fnmatch.fnmatchcase(key, pattern)]
            for key in matched:
                del self._entries[key]
            return len(matched)

    async def ping(self) -> bool:
        return True

    async def clear(self) -> None:
        """Drop all entries (for tests)."""
        async with self._lock:
            self._entries.clear()


class RedisCacheBackend:
    """Redis-backed cache shared across app instances.

    Every call is bounded by ``operation_timeout_seconds``; transport errors and
    deadline overruns surface as ``CacheUnavailableError`` so callers can apply
    their own degradation policy.
    """

    def __init__(self, *, redis_url: str, operation_timeout_seconds: float) -> None:
        self._redis_url = redis_url
        self._timeout = operation_timeout_seconds
        self._init_lock = asyncio.Lock()
        self._client: Any | None = None
        self._compare_and_delete: Any | None = None

    async def _ensure_initialized(self) -> None:
        if self._client is not None and self._compare_and_delete is not None:
            return

        async with self._init_lock:
            if self._client is None:
                from redis.asyncio import from_url

                self._client = from_url(
                    self._redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                )

            if self._compare_and_delete is None:
                self._compare_and_delete = self._client.register_script(
                    _REDIS_COMPARE_AND_DELETE_SCRIPT,
                )

    async def _call(self, operation: Callable[[], Any]) -> Any:
        try:
            async with asyncio.timeout(self._timeout):
                await self._ensure_initialized()
                return await operation()
        except (RedisError, OSError, TimeoutError) as exc:
            raise CacheUnavailableError(f"cache backend unavailable: {exc!r}") from exc

    async def get(self, key: str) -> str | None:
        return await self._call(lambda: self._client.get(key))

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        await self._call(lambda: self._client.set(key, value, ex=ttl_seconds))

    async def delete(self, key: str) -> None:
        await self._call(lambda: self._client.delete(key))

    async def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        result = await self._call(lambda: self._client.set(key, value, ex=ttl_seconds, nx=True))
        return bool(result)

    async def delete_if_equals(self, key: str, value: str) -> bool:
        result = await self._call(lambda: self._compare_and_delete(keys=[key], args=[value]))
        return bool(int(result or 0))

    async def delete_pattern(self, pattern: str) -> int:
        async def _scan_and_delete() -> int:
            deleted = 0
            cursor: int = 0
            while True:
                cursor, keys = await self._client.scan(cursor=cursor, match=pattern, count=100)
                if keys:
                    deleted += int(await self._client.delete(*keys))
                if int(cursor) == 0:
                    return deleted

        return await self._call(_scan_and_delete)

    async def ping(self) -> bool:
        return bool(await self._call(lambda: self._client.ping()))

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            self._compare_and_delete = None


_cache_backend: CacheBackend | None = None
_cache_backend_signature: tuple[str, str | None, float] | None = None


def _build_cache_backend(settings: Settings) -> CacheBackend:
    if settings.cache_backend == "redis":
        return RedisCacheBackend(
            redis_url=settings.redis_url or "",
            operation_timeout_seconds=settings.cache_operation_timeout_seconds,
        )
    return InMemoryCacheBackend()


def get_cache_backend() -> CacheBackend:
    """Return shared cache instance for configured backend."""
    global _cache_backend, _cache_backend_signature
    settings = get_settings()
    signature = (
        settings.cache_backend,
        settings.redis_url,
        settings.cache_operation_timeout_seconds,
    )
    if _cache_backend is None or _cache_backend_signature != signature:
        _cache_backend = _build_cache_backend(settings)
        _cache_backend_signature = signature
    return _cache_backend


async def close_cache_backend() -> None:
    """Release Redis connections on shutdown."""
    global _cache_backend, _cache_backend_signature
    if isinstance(_cache_backend, RedisCacheBackend):
        await _cache_backend.close()
    _cache_backend = None
    _cache_backend_signature = None
