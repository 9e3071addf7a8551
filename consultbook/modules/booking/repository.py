"""Booking repository layer."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from consultbook.core.enums import ACTIVE_BOOKING_STATUSES, BookingStatusEnum, BookingTypeEnum
from consultbook.modules.booking.models import Booking
from consultbook.modules.booking.schemas import BookingListFilter


class BookingRepository:
    """DB operations for booking domain."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_booking(
        self,
        expert_id: UUID,
        user_id: UUID,
        start_time: datetime,
        end_time: datetime,
        booking_type: BookingTypeEnum,
        location: str | None,
        meeting_link: str | None,
        notes: str | None,
    ) -> Booking:
        booking = Booking(
            expert_id=expert_id,
            user_id=user_id,
            start_time=start_time,
            end_time=end_time,
            type=booking_type,
            status=BookingStatusEnum.PENDING,
            location=location,
            meeting_link=meeting_link,
            notes=notes,
        )
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def get_booking_by_id(self, booking_id: UUID) -> Booking | None:
        stmt = select(Booking).where(Booking.id == booking_id)
        return await self.session.scalar(stmt)

    async def save(self, booking: Booking) -> Booking:
        await self.session.flush()
        return booking

    async def _list(
        self,
        base_stmt: Select[tuple[Booking]],
        filters: BookingListFilter,
        limit: int,
        offset: int,
        descending: bool,
    ) -> tuple[list[Booking], int]:
        if filters.status is not None:
            base_stmt = base_stmt.where(Booking.status == filters.status)
        if filters.start_from is not None:
            base_stmt = base_stmt.where(Booking.start_time >= filters.start_from)
        if filters.start_to is not None:
            base_stmt = base_stmt.where(Booking.start_time < filters.start_to)

        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        order = Booking.start_time.desc() if descending else Booking.start_time.asc()
        stmt = base_stmt.order_by(order).limit(limit).offset(offset)
        items = (await self.session.scalars(stmt)).all()
        return items, total

    async def list_by_expert(
        self,
        expert_id: UUID,
        filters: BookingListFilter,
        limit: int,
        offset: int,
        descending: bool = False,
    ) -> tuple[list[Booking], int]:
        base_stmt = select(Booking).where(Booking.expert_id == expert_id)
        return await self._list(base_stmt, filters, limit, offset, descending)

    async def list_by_user(
        self,
        user_id: UUID,
        filters: BookingListFilter,
        limit: int,
        offset: int,
        descending: bool = False,
    ) -> tuple[list[Booking], int]:
        base_stmt = select(Booking).where(Booking.user_id == user_id)
        return await self._list(base_stmt, filters, limit, offset, descending)

    async def list_expert_bookings_on_date(
        self,
        expert_id: UUID,
        day_start: datetime,
        day_end: datetime,
    ) -> list[Booking]:
        """Active bookings overlapping the UTC range of one regional day."""
        stmt = (
            select(Booking)
            .where(
                Booking.expert_id == expert_id,
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
                Booking.start_time < day_end,
                Booking.end_time > day_start,
            )
            .order_by(Booking.start_time.asc())
        )
        return (await self.session.scalars(stmt)).all()

    @staticmethod
    def _overlap_conditions(owner_clause, start: datetime, end: datetime, exclude_id: UUID | None) -> list:
        conditions = [
            owner_clause,
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            Booking.start_time < end,
            Booking.end_time > start,
        ]
        if exclude_id is not None:
            conditions.append(Booking.id != exclude_id)
        return conditions

    async def _has_overlap(self, owner_clause, start: datetime, end: datetime, exclude_id: UUID | None) -> bool:
        conditions = self._overlap_conditions(owner_clause, start, end, exclude_id)
        return bool(await self.session.scalar(select(exists().where(*conditions))))

    async def has_expert_conflict(
        self,
        expert_id: UUID,
        start: datetime,
        end: datetime,
        exclude_id: UUID | None = None,
    ) -> bool:
        return await self._has_overlap(Booking.expert_id == expert_id, start, end, exclude_id)

    async def has_user_conflict(
        self,
        user_id: UUID,
        start: datetime,
        end: datetime,
        exclude_id: UUID | None = None,
    ) -> bool:
        return await self._has_overlap(Booking.user_id == user_id, start, end, exclude_id)

    async def list_conflicts(
        self,
        expert_id: UUID,
        user_id: UUID | None,
        start: datetime,
        end: datetime,
        exclude_id: UUID | None = None,
    ) -> list[Booking]:
        """Active bookings of the expert, or of the user when given, overlapping [start, end)."""
        owner_clause = Booking.expert_id == expert_id
        if user_id is not None:
            owner_clause = or_(owner_clause, Booking.user_id == user_id)
        stmt = (
            select(Booking)
            .where(*self._overlap_conditions(owner_clause, start, end, exclude_id))
            .order_by(Booking.start_time.asc())
        )
        return (await self.session.scalars(stmt)).all()

    @staticmethod
    def _owner_filters(user_id: UUID | None, expert_id: UUID | None) -> list:
        conditions = []
        if user_id is not None:
            conditions.append(Booking.user_id == user_id)
        if expert_id is not None:
            conditions.append(Booking.expert_id == expert_id)
        return conditions

    async def count_by_status(
        self,
        user_id: UUID | None = None,
        expert_id: UUID | None = None,
    ) -> dict[BookingStatusEnum, int]:
        stmt = (
            select(Booking.status, func.count(Booking.id))
            .where(*self._owner_filters(user_id, expert_id))
            .group_by(Booking.status)
        )
        rows = (await self.session.execute(stmt)).all()
        return {status: int(count) for status, count in rows}

    async def count_by_type(
        self,
        user_id: UUID | None = None,
        expert_id: UUID | None = None,
    ) -> dict[BookingTypeEnum, int]:
        stmt = (
            select(Booking.type, func.count(Booking.id))
            .where(*self._owner_filters(user_id, expert_id))
            .group_by(Booking.type)
        )
        rows = (await self.session.execute(stmt)).all()
        return {booking_type: int(count) for booking_type, count in rows}

    async def list_overdue_active(self, now: datetime, limit: int) -> list[Booking]:
        stmt = (
            select(Booking)
            .where(
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
                Booking.end_time <= now,
            )
            .order_by(Booking.end_time.asc())
            .limit(limit)
        )
        return (await self.session.scalars(stmt)).all()

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()
