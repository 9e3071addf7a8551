"""Scheduling repository layer."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from consultbook.modules.scheduling.models import OffTime, Schedule


class SchedulingRepository:
    """DB access for schedules and off-times."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_schedule(
        self,
        expert_id: UUID,
        day_of_week: int,
        start_time: str,
        end_time: str,
    ) -> Schedule:
        schedule = Schedule(
            expert_id=expert_id,
            day_of_week=day_of_week,
            start_time=start_time,
            end_time=end_time,
            is_active=True,
        )
        self.session.add(schedule)
        await self.session.flush()
        return schedule

    async def get_schedule(self, schedule_id: UUID) -> Schedule | None:
        stmt = select(Schedule).where(Schedule.id == schedule_id)
        return await self.session.scalar(stmt)

    async def list_schedules_by_expert(
        self,
        expert_id: UUID,
        include_inactive: bool = False,
    ) -> list[Schedule]:
        stmt: Select[tuple[Schedule]] = select(Schedule).where(Schedule.expert_id == expert_id)
        if not include_inactive:
            stmt = stmt.where(Schedule.is_active.is_(True))
        stmt = stmt.order_by(Schedule.day_of_week.asc(), Schedule.start_time.asc())
        return (await self.session.scalars(stmt)).all()

    async def list_active_schedules_for_day(self, expert_id: UUID, day_of_week: int) -> list[Schedule]:
        stmt = (
            select(Schedule)
            .where(
                Schedule.expert_id == expert_id,
                Schedule.day_of_week == day_of_week,
                Schedule.is_active.is_(True),
            )
            .order_by(Schedule.start_time.asc())
        )
        return (await self.session.scalars(stmt)).all()

    async def update_schedule(self, schedule: Schedule, **changes) -> Schedule:
        for key, value in changes.items():
            if value is not None:
                setattr(schedule, key, value)
        await self.session.flush()
        return schedule

    async def deactivate_schedule(self, schedule: Schedule) -> Schedule:
        schedule.is_active = False
        await self.session.flush()
        return schedule

    async def create_off_time(
        self,
        expert_id: UUID,
        start_date: date,
        end_date: date,
        reason: str | None,
    ) -> OffTime:
        off_time = OffTime(
            expert_id=expert_id,
            start_date=start_date,
            end_date=end_date,
            reason=reason,
        )
        self.session.add(off_time)
        await self.session.flush()
        return off_time

    async def get_off_time(self, off_time_id: UUID) -> OffTime | None:
        stmt = select(OffTime).where(OffTime.id == off_time_id)
        return await self.session.scalar(stmt)

    async def list_off_times_by_expert(self, expert_id: UUID) -> list[OffTime]:
        stmt = (
            select(OffTime)
            .where(OffTime.expert_id == expert_id)
            .order_by(OffTime.start_date.asc())
        )
        return (await self.session.scalars(stmt)).all()

    async def list_off_times_covering(self, expert_id: UUID, day: date) -> list[OffTime]:
        stmt = select(OffTime).where(
            OffTime.expert_id == expert_id,
            OffTime.start_date <= day,
            OffTime.end_date >= day,
        )
        return (await self.session.scalars(stmt)).all()

    async def delete_off_time(self, off_time: OffTime) -> None:
        await self.session.delete(off_time)
        await self.session.flush()

    async def commit(self) -> None:
        await self.session.commit()
