"""Experts repository layer."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from consultbook.core.enums import ExpertStatusEnum
from consultbook.modules.experts.models import Expert


class ExpertRepository:
    """DB operations for experts domain."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_expert(
        self,
        user_id: UUID,
        name: str,
        email: str,
        expertise: str,
        bio: str,
        status: ExpertStatusEnum,
    ) -> Expert:
        expert = Expert(
            user_id=user_id,
            name=name,
            email=email,
            expertise=expertise,
            bio=bio,
            status=status,
        )
        self.session.add(expert)
        await self.session.flush()
        return expert

    async def get_by_id(self, expert_id: UUID) -> Expert | None:
        stmt = select(Expert).where(Expert.id == expert_id)
        return await self.session.scalar(stmt)

    async def get_by_email(self, email: str) -> Expert | None:
        stmt = select(Expert).where(func.lower(Expert.email) == email.strip().lower())
        return await self.session.scalar(stmt)

    async def get_by_user_id(self, user_id: UUID) -> Expert | None:
        stmt = select(Expert).where(Expert.user_id == user_id)
        return await self.session.scalar(stmt)

    async def list_experts(self, limit: int, offset: int) -> tuple[list[Expert], int]:
        base_stmt: Select[tuple[Expert]] = select(Expert)
        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(Expert.created_at.desc()).limit(limit).offset(offset)
        items = (await self.session.scalars(stmt)).all()
        return items, total

    async def list_by_expertise(self, tag: str) -> list[Expert]:
        stmt = (
            select(Expert)
            .where(func.lower(Expert.expertise) == tag.strip().lower())
            .order_by(Expert.name.asc())
        )
        return (await self.session.scalars(stmt)).all()

    async def update_expert(self, expert: Expert, **changes) -> Expert:
        for key, value in changes.items():
            if value is not None:
                setattr(expert, key, value)
        await self.session.flush()
        return expert

    async def delete_expert(self, expert: Expert) -> None:
        await self.session.delete(expert)
        await self.session.flush()

    async def lock_for_admission(self, expert_id: UUID) -> Expert | None:
        """Row-lock the expert so concurrent admissions for it serialize."""
        stmt = select(Expert).where(Expert.id == expert_id).with_for_update()
        return await self.session.scalar(stmt)

    async def commit(self) -> None:
        await self.session.commit()
