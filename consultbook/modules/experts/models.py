"""Experts ORM models."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import Enum as SAEnum
from sqlalchemy import String, Text
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column

from consultbook.core.database import Base, BaseModelMixin
from consultbook.core.enums import ExpertStatusEnum


class Expert(BaseModelMixin, Base):
    """Bookable expert linked to an external user account."""

    __tablename__ = "experts"

    user_id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    expertise: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    bio: Mapped[str] = mapped_column(Text, default="", nullable=False)
    status: Mapped[ExpertStatusEnum] = mapped_column(
        SAEnum(ExpertStatusEnum, name="expert_status_enum", native_enum=False),
        default=ExpertStatusEnum.ACTIVE,
        nullable=False,
        index=True,
    )

    @property
    def is_active(self) -> bool:
        return self.status == ExpertStatusEnum.ACTIVE
