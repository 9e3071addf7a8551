"""Status history and outbox repository layer."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from consultbook.core.enums import BookingStatusEnum, OutboxStatusEnum, RoleEnum
from consultbook.modules.audit.models import OutboxEvent, StatusHistory


class AuditRepository:
    """DB operations for status history and outbox."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def append_status_history(
        self,
        booking_id: UUID,
        from_status: BookingStatusEnum | None,
        to_status: BookingStatusEnum,
        actor_id: UUID | None,
        actor_role: RoleEnum,
        note: str | None = None,
        reason: str | None = None,
        recorded_at: datetime | None = None,
    ) -> StatusHistory:
        entry = StatusHistory(
            booking_id=booking_id,
            from_status=from_status,
            to_status=to_status,
            actor_id=actor_id,
            actor_role=actor_role,
            note=note,
            reason=reason,
        )
        if recorded_at is not None:
            entry.created_at = recorded_at
            entry.updated_at = recorded_at
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def list_status_history(self, booking_id: UUID) -> list[StatusHistory]:
        stmt = (
            select(StatusHistory)
            .where(StatusHistory.booking_id == booking_id)
            .order_by(StatusHistory.created_at.asc(), StatusHistory.sequence.asc())
        )
        return (await self.session.scalars(stmt)).all()

    async def create_outbox_event(
        self,
        aggregate_type: str,
        aggregate_id: str,
        event_type: str,
        payload: dict,
    ) -> OutboxEvent:
        event = OutboxEvent(
            aggregate_type=aggregate_type,
            aggregate_id=aggregate_id,
            event_type=event_type,
            payload=payload,
            status=OutboxStatusEnum.PENDING,
        )
        self.session.add(event)
        await self.session.flush()
        return event

    async def get_outbox_event(self, event_id: UUID) -> OutboxEvent | None:
        stmt = select(OutboxEvent).where(OutboxEvent.id == event_id)
        return await self.session.scalar(stmt)

    async def list_pending_outbox(self, limit: int) -> list[OutboxEvent]:
        stmt = (
            select(OutboxEvent)
            .where(OutboxEvent.status == OutboxStatusEnum.PENDING)
            .order_by(OutboxEvent.occurred_at.asc())
            .limit(limit)
        )
        return (await self.session.scalars(stmt)).all()

    async def mark_outbox_processed(
        self,
        event: OutboxEvent,
        processed_at: datetime,
    ) -> OutboxEvent:
        event.status = OutboxStatusEnum.PROCESSED
        event.processed_at = processed_at
        event.error_message = None
        await self.session.flush()
        return event
