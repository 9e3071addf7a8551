"""Experts schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from consultbook.core.enums import ExpertStatusEnum


class ExpertCreate(BaseModel):
    """Create expert request."""

    user_id: UUID
    name: str = Field(min_length=2, max_length=128)
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    expertise: str = Field(min_length=1, max_length=128)
    bio: str = Field(default="", max_length=5000)
    status: ExpertStatusEnum = ExpertStatusEnum.ACTIVE


class ExpertUpdate(BaseModel):
    """Update expert request."""

    name: str | None = Field(default=None, min_length=2, max_length=128)
    expertise: str | None = Field(default=None, min_length=1, max_length=128)
    bio: str | None = Field(default=None, max_length=5000)
    status: ExpertStatusEnum | None = None


class ExpertRead(BaseModel):
    """Expert response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    name: str
    email: str
    expertise: str
    bio: str
    status: ExpertStatusEnum
    created_at: datetime
    updated_at: datetime
