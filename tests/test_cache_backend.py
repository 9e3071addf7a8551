from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from consultbook.core import cache as cache_module
from consultbook.core.cache import InMemoryCacheBackend, RedisCacheBackend
from consultbook.shared.exceptions import CacheUnavailableError


@pytest.mark.asyncio
async def test_in_memory_entries_expire_after_ttl() -> None:
    now_point = [100.0]
    backend = InMemoryCacheBackend(now_provider=lambda: now_point[0])

    await backend.set("k", "v", ttl_seconds=10)
    assert await backend.get("k") == "v"

    now_point[0] = 110.0
    assert await backend.get("k") is None


@pytest.mark.asyncio
async def test_in_memory_set_if_absent_respects_live_and_expired_keys() -> None:
    now_point = [0.0]
    backend = InMemoryCacheBackend(now_provider=lambda: now_point[0])

    assert await backend.set_if_absent("lock", "a", ttl_seconds=300) is True
    assert await backend.set_if_absent("lock", "b", ttl_seconds=300) is False

    now_point[0] = 301.0
    assert await backend.set_if_absent("lock", "b", ttl_seconds=300) is True
    assert await backend.get("lock") == "b"


@pytest.mark.asyncio
async def test_in_memory_delete_if_equals_only_removes_owned_value() -> None:
    backend = InMemoryCacheBackend(now_provider=lambda: 0.0)
    await backend.set("lock", "owner-token", ttl_seconds=60)

    assert await backend.delete_if_equals("lock", "someone-else") is False
    assert await backend.get("lock") == "owner-token"

    assert await backend.delete_if_equals("lock", "owner-token") is True
    assert await backend.get("lock") is None


@pytest.mark.asyncio
async def test_in_memory_delete_pattern_scopes_to_prefix() -> None:
    backend = InMemoryCacheBackend(now_provider=lambda: 0.0)
    await backend.set("availability:e1:2025-06-02", "1")
    await backend.set("availability:e1:2025-06-03", "0")
    await backend.set("availability:e10:2025-06-02", "1")
    await backend.set("booking_lock:e1:x:y", "t")

    deleted = await backend.delete_pattern("availability:e1:*")

    assert deleted == 2
    assert await backend.get("availability:e10:2025-06-02") == "1"
    assert await backend.get("booking_lock:e1:x:y") == "t"


class _FailingRedisClient:
    async def get(self, key: str):
        raise RedisConnectionError("connection refused")

    async def set(self, *args, **kwargs):
        raise RedisConnectionError("connection refused")


class _SlowRedisClient:
    async def get(self, key: str):
        await asyncio.sleep(1)
        return "1"


def _redis_backend_with_client(client, timeout: float = 0.5) -> RedisCacheBackend:
    backend = RedisCacheBackend(redis_url="redis://localhost:6379/0", operation_timeout_seconds=timeout)
    backend._client = client
    backend._compare_and_delete = object()
    return backend


@pytest.mark.asyncio
async def test_redis_backend_wraps_transport_errors() -> None:
    backend = _redis_backend_with_client(_FailingRedisClient())

    with pytest.raises(CacheUnavailableError):
        await backend.get("k")
    with pytest.raises(CacheUnavailableError):
        await backend.set_if_absent("k", "v", ttl_seconds=10)


@pytest.mark.asyncio
async def test_redis_backend_bounds_calls_by_timeout() -> None:
    backend = _redis_backend_with_client(_SlowRedisClient(), timeout=0.01)

    with pytest.raises(CacheUnavailableError):
        await backend.get("k")


def _settings(backend: str, redis_url: str | None = None) -> SimpleNamespace:
    return SimpleNamespace(
        cache_backend=backend,
        redis_url=redis_url,
        cache_operation_timeout_seconds=1.0,
    )


def test_get_cache_backend_uses_redis_when_configured(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cache_module, "get_settings", lambda: _settings("redis", "redis://redis:6379/0"))
    monkeypatch.setattr(cache_module, "_cache_backend", None)
    monkeypatch.setattr(cache_module, "_cache_backend_signature", None)

    backend = cache_module.get_cache_backend()

    assert isinstance(backend, RedisCacheBackend)


def test_get_cache_backend_reuses_instance_for_same_signature(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cache_module, "get_settings", lambda: _settings("memory"))
    monkeypatch.setattr(cache_module, "_cache_backend", None)
    monkeypatch.setattr(cache_module, "_cache_backend_signature", None)

    first = cache_module.get_cache_backend()
    second = cache_module.get_cache_backend()

    assert isinstance(first, InMemoryCacheBackend)
    assert first is second


def test_get_cache_backend_rebuilds_when_signature_changes(monkeypatch: pytest.MonkeyPatch) -> None:
    state = {"backend": "memory", "redis_url": None}
    monkeypatch.setattr(
        cache_module,
        "get_settings",
        lambda: _settings(state["backend"], state["redis_url"]),
    )
    monkeypatch.setattr(cache_module, "_cache_backend", None)
    monkeypatch.setattr(cache_module, "_cache_backend_signature", None)

    first = cache_module.get_cache_backend()
    state.update(backend="redis", redis_url="redis://redis:6379/1")
    second = cache_module.get_cache_backend()

    assert isinstance(first, InMemoryCacheBackend)
    assert isinstance(second, RedisCacheBackend)
