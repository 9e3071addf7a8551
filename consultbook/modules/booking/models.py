"""Booking ORM models."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, Enum as SAEnum, ForeignKey, Index, String, Text
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column

from consultbook.core.config import get_settings
from consultbook.core.database import Base, BaseModelMixin
from consultbook.core.enums import BookingStatusEnum, BookingTypeEnum
from consultbook.modules.booking import rules
from consultbook.shared.utils import utc_now


class Booking(BaseModelMixin, Base):
    """Reservation of an expert for the half-open range [start_time, end_time)."""

    __tablename__ = "bookings"
    __table_args__ = (
        Index("ix_bookings_expert_id_start_time", "expert_id", "start_time"),
        Index("ix_bookings_user_id_start_time", "user_id", "start_time"),
        CheckConstraint("end_time > start_time", name="time_range"),
    )

    expert_id: Mapped[UUID] = mapped_column(
        ForeignKey("experts.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), nullable=False)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    type: Mapped[BookingTypeEnum] = mapped_column(
        SAEnum(BookingTypeEnum, name="booking_type_enum", native_enum=False),
        default=BookingTypeEnum.ONLINE,
        nullable=False,
    )
    status: Mapped[BookingStatusEnum] = mapped_column(
        SAEnum(BookingStatusEnum, name="booking_status_enum", native_enum=False),
        default=BookingStatusEnum.PENDING,
        nullable=False,
        index=True,
    )
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    meeting_link: Mapped[str | None] = mapped_column(String(512), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(String(512), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(String(512), nullable=True)

    @property
    def duration_minutes(self) -> int:
        return int((self.end_time - self.start_time).total_seconds() // 60)

    @property
    def can_be_cancelled(self) -> bool:
        cancel_lead = rules.SlotPolicy.from_settings(get_settings()).cancel_lead
        return rules.can_be_cancelled(self.status, self.start_time, utc_now(), cancel_lead)

    @property
    def can_be_confirmed(self) -> bool:
        return rules.can_be_confirmed(self.status)

    @property
    def is_expired(self) -> bool:
        return rules.is_expired(self.status, self.end_time, utc_now())
