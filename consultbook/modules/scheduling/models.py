"""Scheduling ORM models."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from consultbook.core.database import Base, BaseModelMixin
from consultbook.shared.utils import parse_minute_of_day


class Schedule(BaseModelMixin, Base):
    """Weekly recurring availability window (day 0=Sunday)."""

    __tablename__ = "schedules"
    __table_args__ = (Index("ix_schedules_expert_id_day_of_week", "expert_id", "day_of_week"),)

    expert_id: Mapped[UUID] = mapped_column(
        ForeignKey("experts.id", ondelete="CASCADE"),
        nullable=False,
    )
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    @property
    def start_minute(self) -> int | None:
        return parse_minute_of_day(self.start_time)

    @property
    def end_minute(self) -> int | None:
        return parse_minute_of_day(self.end_time)


class OffTime(BaseModelMixin, Base):
    """One-shot unavailability window, dates inclusive."""

    __tablename__ = "off_times"
    __table_args__ = (
        Index("ix_off_times_expert_id_start_date_end_date", "expert_id", "start_date", "end_date"),
    )

    expert_id: Mapped[UUID] = mapped_column(
        ForeignKey("experts.id", ondelete="CASCADE"),
        nullable=False,
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    reason: Mapped[str | None] = mapped_column(String(512), nullable=True)
