"""Decide whether an expert is bookable at an instant."""

from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from consultbook.core.config import get_settings
from consultbook.core.database import get_db_session
from consultbook.modules.availability.cache import AvailabilityCache, get_availability_cache
from consultbook.modules.availability.schemas import AvailabilityCheckRequest
from consultbook.modules.experts.repository import ExpertRepository
from consultbook.modules.scheduling.models import Schedule
from consultbook.modules.scheduling.repository import SchedulingRepository
from consultbook.shared.exceptions import NotFoundException
from consultbook.shared.utils import combine_local, to_local_parts, weekday_sunday_first

logger = logging.getLogger(__name__)


def schedule_windows(schedules: list[Schedule]) -> list[tuple[int, int]]:
    """Return (start, end) minute windows, skipping malformed entries."""
    windows = []
    for schedule in schedules:
        start, end = schedule.start_minute, schedule.end_minute
        if start is None or end is None or start >= end:
            logger.debug("Skipping malformed schedule %s", getattr(schedule, "id", None))
            continue
        windows.append((start, end))
    return windows


class AvailabilityResolver:
    """Availability decision over expert status, off-times and weekly schedules.

    The cache holds a per-date hint: ``False`` means the expert cannot be booked
    anywhere on that date and short-circuits; ``True`` only means some window
    exists, so the probed minute is always rechecked against schedules.
    """

    def __init__(
        self,
        expert_repository: ExpertRepository,
        scheduling_repository: SchedulingRepository,
        cache: AvailabilityCache,
        zone: tzinfo,
    ) -> None:
        self.expert_repository = expert_repository
        self.scheduling_repository = scheduling_repository
        self.cache = cache
        self.zone = zone

    async def is_available(self, expert_id: UUID, instant: datetime) -> bool:
        expert = await self.expert_repository.get_by_id(expert_id)
        if expert is None:
            raise NotFoundException("Expert not found")
        if not expert.is_active:
            return False

        day, minute = to_local_parts(instant, self.zone)

        cached = await self.cache.get(expert_id, day)
        if cached is False:
            return False

        off_times = await self.scheduling_repository.list_off_times_covering(expert_id, day)
        if off_times:
            await self.cache.set(expert_id, day, False)
            return False

        schedules = await self.scheduling_repository.list_active_schedules_for_day(
            expert_id,
            weekday_sunday_first(day),
        )
        windows = schedule_windows(schedules)
        if cached is None or cached != bool(windows):
            await self.cache.set(expert_id, day, bool(windows))

        # closed start, open end
        return any(start <= minute < end for start, end in windows)

    async def check(self, payload: AvailabilityCheckRequest) -> bool:
        """Probe using a regional date and HH:MM."""
        instant = combine_local(payload.date, payload.time, self.zone)
        return await self.is_available(payload.expert_id, instant)


def build_availability_resolver(session: AsyncSession, cache: AvailabilityCache) -> AvailabilityResolver:
    return AvailabilityResolver(
        expert_repository=ExpertRepository(session),
        scheduling_repository=SchedulingRepository(session),
        cache=cache,
        zone=get_settings().region_zone,
    )


async def get_availability_resolver(
    session: AsyncSession = Depends(get_db_session),
    cache: AvailabilityCache = Depends(get_availability_cache),
) -> AvailabilityResolver:
    """Dependency provider for availability resolver."""
    return build_availability_resolver(session, cache)
