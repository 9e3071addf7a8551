"""Short-lived admission locks keyed by (expert, start, end)."""

from __future__ import annotations

import logging
from datetime import datetime
from uuid import UUID, uuid4

from consultbook.core.cache import CacheBackend, get_cache_backend
from consultbook.core.config import get_settings
from consultbook.shared.exceptions import CacheUnavailableError
from consultbook.shared.utils import ensure_utc

logger = logging.getLogger(__name__)


class SlotLockManager:
    """Owner-token locks on the cache backend.

    ``acquire`` raises ``CacheUnavailableError`` when the backend is down so the
    caller can pick its fallback; ``release`` only deletes a lock it still owns.
    """

    def __init__(self, backend: CacheBackend, ttl_seconds: int, namespace: str = "booking_lock") -> None:
        self.backend = backend
        self.ttl_seconds = ttl_seconds
        self.namespace = namespace

    def key(self, expert_id: UUID, start: datetime, end: datetime) -> str:
        return (
            f"{self.namespace}:{expert_id}:"
            f"{ensure_utc(start).isoformat()}:{ensure_utc(end).isoformat()}"
        )

    async def acquire(self, key: str) -> str | None:
        """Return an owner token, or None when the lock is held elsewhere."""
        token = uuid4().hex
        if await self.backend.set_if_absent(key, token, self.ttl_seconds):
            return token
        return None

    async def release(self, key: str, token: str) -> None:
        try:
            released = await self.backend.delete_if_equals(key, token)
        except CacheUnavailableError:
            logger.warning("Failed to release admission lock %s; it expires in %ss", key, self.ttl_seconds)
            return
        if not released:
            logger.warning("Admission lock %s expired before release", key)


def get_slot_lock_manager() -> SlotLockManager:
    """Dependency provider for admission locks."""
    settings = get_settings()
    return SlotLockManager(
        backend=get_cache_backend(),
        ttl_seconds=settings.booking_lock_ttl_seconds,
        namespace=settings.booking_lock_namespace,
    )
