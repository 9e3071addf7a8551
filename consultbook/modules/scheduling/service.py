"""Scheduling business logic layer."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from consultbook.core.database import get_db_session
from consultbook.core.security import Actor
from consultbook.modules.availability.cache import AvailabilityCache, get_availability_cache
from consultbook.modules.experts.models import Expert
from consultbook.modules.experts.repository import ExpertRepository
from consultbook.modules.experts.service import is_expert_owner
from consultbook.modules.scheduling.models import OffTime, Schedule
from consultbook.modules.scheduling.repository import SchedulingRepository
from consultbook.modules.scheduling.schemas import OffTimeCreate, ScheduleCreate, ScheduleUpdate
from consultbook.shared.exceptions import ForbiddenException, NotFoundException, ValidationException
from consultbook.shared.utils import parse_minute_of_day

logger = logging.getLogger(__name__)


class SchedulingService:
    """Schedules and off-times of experts.

    Every mutation is committed before the owning expert's cached availability
    is dropped, so readers never repopulate the cache from pre-commit rows.
    """

    def __init__(
        self,
        repository: SchedulingRepository,
        expert_repository: ExpertRepository,
        cache: AvailabilityCache,
    ) -> None:
        self.repository = repository
        self.expert_repository = expert_repository
        self.cache = cache

    async def _get_expert(self, expert_id: UUID) -> Expert:
        expert = await self.expert_repository.get_by_id(expert_id)
        if expert is None:
            raise NotFoundException("Expert not found")
        return expert

    async def _get_managed_expert(self, expert_id: UUID, actor: Actor) -> Expert:
        expert = await self._get_expert(expert_id)
        if not actor.is_admin and not is_expert_owner(expert, actor):
            raise ForbiddenException("Only admin or the expert can manage this schedule")
        return expert

    async def _commit_and_invalidate(self, expert_id: UUID) -> None:
        await self.repository.commit()
        await self.cache.invalidate_expert(expert_id)

    async def create_schedule(self, expert_id: UUID, payload: ScheduleCreate, actor: Actor) -> Schedule:
        """Add weekly window for expert."""
        await self._get_managed_expert(expert_id, actor)
        schedule = await self.repository.create_schedule(
            expert_id=expert_id,
            day_of_week=payload.day_of_week,
            start_time=payload.start_time,
            end_time=payload.end_time,
        )
        await self._commit_and_invalidate(expert_id)
        logger.info("Schedule %s created for expert %s", schedule.id, expert_id)
        return schedule

    async def list_schedules(self, expert_id: UUID, include_inactive: bool = False) -> list[Schedule]:
        await self._get_expert(expert_id)
        return await self.repository.list_schedules_by_expert(expert_id, include_inactive=include_inactive)

    async def _get_schedule(self, schedule_id: UUID) -> Schedule:
        schedule = await self.repository.get_schedule(schedule_id)
        if schedule is None:
            raise NotFoundException("Schedule not found")
        return schedule

    async def update_schedule(self, schedule_id: UUID, payload: ScheduleUpdate, actor: Actor) -> Schedule:
        schedule = await self._get_schedule(schedule_id)
        await self._get_managed_expert(schedule.expert_id, actor)

        changes = payload.model_dump(exclude_none=True)
        start_minute = parse_minute_of_day(changes.get("start_time", schedule.start_time))
        end_minute = parse_minute_of_day(changes.get("end_time", schedule.end_time))
        if start_minute is None or end_minute is None or start_minute >= end_minute:
            raise ValidationException("start_time must be before end_time")

        schedule = await self.repository.update_schedule(schedule, **changes)
        await self._commit_and_invalidate(schedule.expert_id)
        return schedule

    async def deactivate_schedule(self, schedule_id: UUID, actor: Actor) -> Schedule:
        """Soft delete: keep the row, stop offering the window."""
        schedule = await self._get_schedule(schedule_id)
        await self._get_managed_expert(schedule.expert_id, actor)
        schedule = await self.repository.deactivate_schedule(schedule)
        await self._commit_and_invalidate(schedule.expert_id)
        logger.info("Schedule %s deactivated", schedule.id)
        return schedule

    async def create_off_time(self, expert_id: UUID, payload: OffTimeCreate, actor: Actor) -> OffTime:
        await self._get_managed_expert(expert_id, actor)
        off_time = await self.repository.create_off_time(
            expert_id=expert_id,
            start_date=payload.start_date,
            end_date=payload.end_date,
            reason=payload.reason,
        )
        await self._commit_and_invalidate(expert_id)
        logger.info(
            "Off-time %s created for expert %s (%s..%s)",
            off_time.id,
            expert_id,
            payload.start_date,
            payload.end_date,
        )
        return off_time

    async def list_off_times(self, expert_id: UUID) -> list[OffTime]:
        await self._get_expert(expert_id)
        return await self.repository.list_off_times_by_expert(expert_id)

    async def delete_off_time(self, off_time_id: UUID, actor: Actor) -> None:
        off_time = await self.repository.get_off_time(off_time_id)
        if off_time is None:
            raise NotFoundException("Off-time not found")
        expert_id = off_time.expert_id
        await self._get_managed_expert(expert_id, actor)
        await self.repository.delete_off_time(off_time)
        await self._commit_and_invalidate(expert_id)


async def get_scheduling_service(
    session: AsyncSession = Depends(get_db_session),
    cache: AvailabilityCache = Depends(get_availability_cache),
) -> SchedulingService:
    """Dependency provider for scheduling service."""
    return SchedulingService(SchedulingRepository(session), ExpertRepository(session), cache)
