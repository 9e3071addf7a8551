"""Scheduling schemas."""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from consultbook.shared.utils import parse_minute_of_day


def _require_hhmm(value: str | None) -> str | None:
    if value is None:
        return value
    value = value.strip()
    if parse_minute_of_day(value) is None:
        raise ValueError("time must use HH:MM format (00:00-23:59)")
    return value


class ScheduleCreate(BaseModel):
    """Create weekly schedule request."""

    day_of_week: int = Field(ge=0, le=6, description="0=Sunday .. 6=Saturday")
    start_time: str
    end_time: str

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_times(cls, value: str | None) -> str | None:
        return _require_hhmm(value)

    @model_validator(mode="after")
    def validate_window(self) -> "ScheduleCreate":
        if parse_minute_of_day(self.start_time) >= parse_minute_of_day(self.end_time):
            raise ValueError("start_time must be before end_time")
        return self


class ScheduleUpdate(BaseModel):
    """Update weekly schedule request."""

    day_of_week: int | None = Field(default=None, ge=0, le=6)
    start_time: str | None = None
    end_time: str | None = None
    is_active: bool | None = None

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_times(cls, value: str | None) -> str | None:
        return _require_hhmm(value)


class ScheduleRead(BaseModel):
    """Schedule response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    expert_id: UUID
    day_of_week: int
    start_time: str
    end_time: str
    is_active: bool
    created_at: datetime
    updated_at: datetime


class OffTimeCreate(BaseModel):
    """Create off-time request."""

    start_date: date
    end_date: date
    reason: str | None = Field(default=None, max_length=512)

    @model_validator(mode="after")
    def validate_range(self) -> "OffTimeCreate":
        if self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


class OffTimeRead(BaseModel):
    """Off-time response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    expert_id: UUID
    start_date: date
    end_date: date
    reason: str | None
    created_at: datetime
    updated_at: datetime
