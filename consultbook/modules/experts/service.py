"""Experts business logic layer."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from consultbook.core.database import get_db_session
from consultbook.core.enums import RoleEnum
from consultbook.core.security import Actor
from consultbook.modules.availability.cache import AvailabilityCache, get_availability_cache
from consultbook.modules.experts.models import Expert
from consultbook.modules.experts.repository import ExpertRepository
from consultbook.modules.experts.schemas import ExpertCreate, ExpertUpdate
from consultbook.shared.exceptions import ConflictException, ForbiddenException, NotFoundException

logger = logging.getLogger(__name__)


def is_expert_owner(expert: Expert, actor: Actor) -> bool:
    return actor.role == RoleEnum.EXPERT and expert.user_id == actor.id


class ExpertsService:
    """Experts domain service."""

    def __init__(self, repository: ExpertRepository, cache: AvailabilityCache) -> None:
        self.repository = repository
        self.cache = cache

    async def create_expert(self, payload: ExpertCreate, actor: Actor) -> Expert:
        """Create expert (admin only)."""
        if not actor.is_admin:
            raise ForbiddenException("Only admin can create experts")

        if await self.repository.get_by_email(payload.email) is not None:
            raise ConflictException("Expert with this email already exists")
        if await self.repository.get_by_user_id(payload.user_id) is not None:
            raise ConflictException("Expert already exists for user")

        expert = await self.repository.create_expert(
            user_id=payload.user_id,
            name=payload.name,
            email=payload.email.strip().lower(),
            expertise=payload.expertise,
            bio=payload.bio,
            status=payload.status,
        )
        logger.info("Expert created id=%s", expert.id)
        return expert

    async def get_expert(self, expert_id: UUID) -> Expert:
        expert = await self.repository.get_by_id(expert_id)
        if expert is None:
            raise NotFoundException("Expert not found")
        return expert

    async def get_expert_by_email(self, email: str, actor: Actor) -> Expert:
        if not actor.is_admin:
            raise ForbiddenException("Only admin can look up experts by email")
        expert = await self.repository.get_by_email(email)
        if expert is None:
            raise NotFoundException("Expert not found")
        return expert

    async def list_experts(self, limit: int, offset: int) -> tuple[list[Expert], int]:
        return await self.repository.list_experts(limit=limit, offset=offset)

    async def list_by_expertise(self, tag: str) -> list[Expert]:
        return await self.repository.list_by_expertise(tag)

    async def update_expert(self, expert_id: UUID, payload: ExpertUpdate, actor: Actor) -> Expert:
        """Update expert; status changes are admin-only and drop cached availability."""
        expert = await self.get_expert(expert_id)
        if not actor.is_admin and not is_expert_owner(expert, actor):
            raise ForbiddenException("Only admin or owner can update expert")

        changes = payload.model_dump(exclude_none=True)
        if "status" in changes and not actor.is_admin:
            raise ForbiddenException("Only admin can change expert status")

        status_changed = "status" in changes and changes["status"] != expert.status
        expert = await self.repository.update_expert(expert, **changes)
        if status_changed:
            await self.repository.commit()
            await self.cache.invalidate_expert(expert.id)
            logger.info("Expert %s status changed to %s", expert.id, expert.status)
        return expert

    async def delete_expert(self, expert_id: UUID, actor: Actor) -> None:
        if not actor.is_admin:
            raise ForbiddenException("Only admin can delete experts")
        expert = await self.get_expert(expert_id)
        await self.repository.delete_expert(expert)
        await self.repository.commit()
        await self.cache.invalidate_expert(expert_id)
        logger.info("Expert deleted id=%s", expert_id)


async def get_experts_service(
    session: AsyncSession = Depends(get_db_session),
    cache: AvailabilityCache = Depends(get_availability_cache),
) -> ExpertsService:
    """Dependency provider for experts service."""
    return ExpertsService(ExpertRepository(session), cache)
