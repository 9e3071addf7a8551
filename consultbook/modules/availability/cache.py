"""Read-through availability hints keyed by (expert, regional date)."""

from __future__ import annotations

import logging
from datetime import date
from uuid import UUID

from consultbook.core.cache import CacheBackend, get_cache_backend
from consultbook.core.config import get_settings
from consultbook.core.metrics import record_cache_lookup
from consultbook.shared.exceptions import CacheUnavailableError

logger = logging.getLogger(__name__)

_TRUE = "1"
_FALSE = "0"


class AvailabilityCache:
    """Advisory cache of "bookable on this date at all" hints.

    Backend failures never propagate: a failed read is a miss, a failed write
    or invalidation is logged and dropped.
    """

    def __init__(self, backend: CacheBackend, ttl_seconds: int, namespace: str = "availability") -> None:
        self.backend = backend
        self.ttl_seconds = ttl_seconds
        self.namespace = namespace

    def key(self, expert_id: UUID, day: date) -> str:
        return f"{self.namespace}:{expert_id}:{day.isoformat()}"

    def _expert_pattern(self, expert_id: UUID) -> str:
        return f"{self.namespace}:{expert_id}:*"

    async def get(self, expert_id: UUID, day: date) -> bool | None:
        """Return cached hint, or None on miss or backend failure."""
        key = self.key(expert_id, day)
        try:
            raw = await self.backend.get(key)
        except CacheUnavailableError:
            logger.warning("Availability cache get failed for %s", key, exc_info=True)
            record_cache_lookup("error")
            return None

        if raw is None:
            record_cache_lookup("miss")
            return None
        record_cache_lookup("hit")
        return raw == _TRUE

    async def set(self, expert_id: UUID, day: date, value: bool) -> None:
        key = self.key(expert_id, day)
        try:
            await self.backend.set(key, _TRUE if value else _FALSE, ttl_seconds=self.ttl_seconds)
        except CacheUnavailableError:
            logger.warning("Availability cache set failed for %s", key, exc_info=True)

    async def invalidate_expert(self, expert_id: UUID) -> int:
        """Drop every cached date for the expert. Returns deleted key count."""
        try:
            deleted = await self.backend.delete_pattern(self._expert_pattern(expert_id))
        except CacheUnavailableError:
            logger.warning("Availability cache invalidation failed for expert %s", expert_id, exc_info=True)
            return 0
        logger.debug("Invalidated %s availability entries for expert %s", deleted, expert_id)
        return deleted


def get_availability_cache() -> AvailabilityCache:
    """Dependency provider for availability cache."""
    settings = get_settings()
    return AvailabilityCache(
        backend=get_cache_backend(),
        ttl_seconds=settings.availability_cache_ttl_seconds,
        namespace=settings.availability_cache_namespace,
    )
