"""Availability schemas."""

from __future__ import annotations

import datetime as dt
from uuid import UUID

from pydantic import BaseModel, field_validator

from consultbook.shared.utils import parse_minute_of_day


class AvailabilityCheckRequest(BaseModel):
    """Probe an expert at a regional date and HH:MM."""

    expert_id: UUID
    date: dt.date
    time: str

    @field_validator("time")
    @classmethod
    def validate_time(cls, value: str) -> str:
        value = value.strip()
        if parse_minute_of_day(value) is None:
            raise ValueError("time must use HH:MM format (00:00-23:59)")
        return value


class AvailabilityCheckRead(BaseModel):
    """Availability probe result."""

    expert_id: UUID
    date: dt.date
    time: str
    available: bool
