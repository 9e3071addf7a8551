"""Outbox management for external event consumers."""

from __future__ import annotations

from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from consultbook.core.database import get_db_session
from consultbook.core.security import Actor
from consultbook.modules.audit.models import OutboxEvent
from consultbook.modules.audit.repository import AuditRepository
from consultbook.shared.exceptions import ForbiddenException, NotFoundException
from consultbook.shared.utils import utc_now


class AuditService:
    """Service for outbox inspection and acknowledgement."""

    def __init__(self, repository: AuditRepository) -> None:
        self.repository = repository

    async def list_pending_outbox(self, actor: Actor, limit: int) -> list[OutboxEvent]:
        """List pending outbox events (admin only)."""
        if not actor.is_admin:
            raise ForbiddenException("Only admin can view outbox")
        return await self.repository.list_pending_outbox(limit)

    async def mark_processed(self, event_id: UUID, actor: Actor) -> OutboxEvent:
        """Acknowledge delivery of an outbox event (admin only)."""
        if not actor.is_admin:
            raise ForbiddenException("Only admin can acknowledge outbox events")
        event = await self.repository.get_outbox_event(event_id)
        if event is None:
            raise NotFoundException("Outbox event not found")
        return await self.repository.mark_outbox_processed(event, utc_now())


async def get_audit_service(session: AsyncSession = Depends(get_db_session)) -> AuditService:
    """Dependency provider for audit service."""
    return AuditService(AuditRepository(session))
