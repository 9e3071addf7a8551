"""Booking schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from consultbook.core.enums import BookingStatusEnum, BookingTypeEnum
from consultbook.shared.utils import ensure_utc


class BookingCreate(BaseModel):
    """Create booking request; give end_time or duration_minutes."""

    expert_id: UUID
    start_time: datetime
    end_time: datetime | None = None
    duration_minutes: int | None = Field(default=None, ge=1)
    type: BookingTypeEnum = BookingTypeEnum.ONLINE
    notes: str | None = Field(default=None, max_length=2000)
    location: str | None = Field(default=None, max_length=255)
    meeting_link: str | None = Field(default=None, max_length=512)


class BookingUpdate(BaseModel):
    """Patch booking request."""

    start_time: datetime | None = None
    end_time: datetime | None = None
    duration_minutes: int | None = Field(default=None, ge=1)
    type: BookingTypeEnum | None = None
    notes: str | None = Field(default=None, max_length=2000)
    location: str | None = Field(default=None, max_length=255)
    meeting_link: str | None = Field(default=None, max_length=512)


class BookingStatusUpdate(BaseModel):
    """Generic status change request."""

    status: BookingStatusEnum
    note: str | None = Field(default=None, max_length=2000)
    reason: str | None = Field(default=None, max_length=512)
    meeting_link: str | None = Field(default=None, max_length=512)


class BookingActionRequest(BaseModel):
    """Optional body for confirm/reject/cancel/complete."""

    note: str | None = Field(default=None, max_length=2000)
    reason: str | None = Field(default=None, max_length=512)
    meeting_link: str | None = Field(default=None, max_length=512)


class BookingListFilter(BaseModel):
    """Booking list filters."""

    status: BookingStatusEnum | None = None
    start_from: datetime | None = None
    start_to: datetime | None = None


class BookingRead(BaseModel):
    """Booking response schema with derived flags."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    expert_id: UUID
    user_id: UUID
    start_time: datetime
    end_time: datetime
    type: BookingTypeEnum
    status: BookingStatusEnum
    location: str | None
    meeting_link: str | None
    notes: str | None
    confirmed_at: datetime | None
    cancelled_at: datetime | None
    completed_at: datetime | None
    cancellation_reason: str | None
    rejection_reason: str | None
    created_at: datetime
    updated_at: datetime
    can_be_cancelled: bool
    can_be_confirmed: bool
    is_expired: bool
    duration_minutes: int


class MissedSweepRead(BaseModel):
    """Result of a missed-bookings sweep."""

    marked_missed: int


class ConflictCheckRequest(BaseModel):
    """Proposed time range to test against active bookings."""

    expert_id: UUID
    start_time: datetime
    end_time: datetime
    user_id: UUID | None = None
    exclude_id: UUID | None = None

    @model_validator(mode="after")
    def validate_range(self) -> ConflictCheckRequest:
        if ensure_utc(self.end_time) <= ensure_utc(self.start_time):
            raise ValueError("end_time must be after start_time")
        return self


class ConflictingBookingRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    expert_id: UUID
    start_time: datetime
    end_time: datetime
    status: BookingStatusEnum


class ConflictCheckRead(BaseModel):
    has_conflict: bool
    conflict_bookings: list[ConflictingBookingRead] = Field(default_factory=list)


class BookingStatsRead(BaseModel):
    """Per-status and per-type booking counts for one user or expert."""

    total_bookings: int
    status_breakdown: dict[BookingStatusEnum, int]
    type_breakdown: dict[BookingTypeEnum, int]
