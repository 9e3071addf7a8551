"""Experts API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from consultbook.core.security import Actor, get_current_actor
from consultbook.modules.experts.schemas import ExpertCreate, ExpertRead, ExpertUpdate
from consultbook.modules.experts.service import ExpertsService, get_experts_service
from consultbook.shared.pagination import Page, build_page, get_pagination_params
from consultbook.shared.responses import ApiResponse, ok

router = APIRouter(prefix="/experts", tags=["experts"])


@router.post("", response_model=ApiResponse[ExpertRead], status_code=status.HTTP_201_CREATED)
async def create_expert(
    payload: ExpertCreate,
    service: ExpertsService = Depends(get_experts_service),
    actor: Actor = Depends(get_current_actor),
) -> ApiResponse[ExpertRead]:
    """Create expert."""
    expert = await service.create_expert(payload, actor)
    return ok(ExpertRead.model_validate(expert), "Expert created")


@router.get("", response_model=ApiResponse[Page[ExpertRead]])
async def list_experts(
    pagination=Depends(get_pagination_params),
    service: ExpertsService = Depends(get_experts_service),
) -> ApiResponse[Page[ExpertRead]]:
    """List experts."""
    items, total = await service.list_experts(pagination.limit, pagination.offset)
    serialized = [ExpertRead.model_validate(item) for item in items]
    return ok(build_page(serialized, total, pagination))


@router.get("/by-email", response_model=ApiResponse[ExpertRead])
async def get_expert_by_email(
    email: str = Query(min_length=3, max_length=255),
    service: ExpertsService = Depends(get_experts_service),
    actor: Actor = Depends(get_current_actor),
) -> ApiResponse[ExpertRead]:
    """Look up expert by email (admin)."""
    expert = await service.get_expert_by_email(email, actor)
    return ok(ExpertRead.model_validate(expert))


@router.get("/by-expertise/{tag}", response_model=ApiResponse[list[ExpertRead]])
async def list_experts_by_expertise(
    tag: str,
    service: ExpertsService = Depends(get_experts_service),
) -> ApiResponse[list[ExpertRead]]:
    """List experts with a given expertise tag."""
    items = await service.list_by_expertise(tag)
    return ok([ExpertRead.model_validate(item) for item in items])


@router.get("/{expert_id}", response_model=ApiResponse[ExpertRead])
async def get_expert(
    expert_id: UUID,
    service: ExpertsService = Depends(get_experts_service),
) -> ApiResponse[ExpertRead]:
    """Get expert by id."""
    expert = await service.get_expert(expert_id)
    return ok(ExpertRead.model_validate(expert))


@router.patch("/{expert_id}", response_model=ApiResponse[ExpertRead])
async def update_expert(
    expert_id: UUID,
    payload: ExpertUpdate,
    service: ExpertsService = Depends(get_experts_service),
    actor: Actor = Depends(get_current_actor),
) -> ApiResponse[ExpertRead]:
    """Update expert."""
    expert = await service.update_expert(expert_id, payload, actor)
    return ok(ExpertRead.model_validate(expert), "Expert updated")


@router.delete("/{expert_id}", response_model=ApiResponse[None])
async def delete_expert(
    expert_id: UUID,
    service: ExpertsService = Depends(get_experts_service),
    actor: Actor = Depends(get_current_actor),
) -> ApiResponse[None]:
    """Delete expert."""
    await service.delete_expert(expert_id, actor)
    return ok(None, "Expert deleted")
