"""Audit API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from consultbook.core.enums import RoleEnum
from consultbook.core.security import Actor, require_roles
from consultbook.modules.audit.schemas import OutboxEventRead
from consultbook.modules.audit.service import AuditService, get_audit_service
from consultbook.shared.responses import ApiResponse, ok

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("/outbox/pending", response_model=ApiResponse[list[OutboxEventRead]])
async def list_pending_outbox(
    limit: int = Query(default=100, ge=1, le=500),
    service: AuditService = Depends(get_audit_service),
    actor: Actor = Depends(require_roles(RoleEnum.ADMIN)),
) -> ApiResponse[list[OutboxEventRead]]:
    """List pending outbox events."""
    items = await service.list_pending_outbox(actor, limit=limit)
    return ok([OutboxEventRead.model_validate(item) for item in items])


@router.post("/outbox/{event_id}/processed", response_model=ApiResponse[OutboxEventRead])
async def mark_outbox_processed(
    event_id: UUID,
    service: AuditService = Depends(get_audit_service),
    actor: Actor = Depends(require_roles(RoleEnum.ADMIN)),
) -> ApiResponse[OutboxEventRead]:
    """Acknowledge outbox event delivery."""
    event = await service.mark_processed(event_id, actor)
    return ok(OutboxEventRead.model_validate(event), "Outbox event processed")
