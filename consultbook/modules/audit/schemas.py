"""Status history and outbox schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from consultbook.core.enums import BookingStatusEnum, OutboxStatusEnum, RoleEnum


class StatusHistoryRead(BaseModel):
    """Status history entry response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    booking_id: UUID
    from_status: BookingStatusEnum | None
    to_status: BookingStatusEnum
    actor_id: UUID | None
    actor_role: RoleEnum
    note: str | None
    reason: str | None
    created_at: datetime


class OutboxEventRead(BaseModel):
    """Outbox event response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    aggregate_type: str
    aggregate_id: str
    event_type: str
    payload: dict
    status: OutboxStatusEnum
    occurred_at: datetime
    processed_at: datetime | None
    retries: int
    error_message: str | None
    created_at: datetime
    updated_at: datetime
