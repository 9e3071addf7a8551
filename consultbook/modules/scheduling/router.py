"""Scheduling API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from consultbook.core.security import Actor, get_current_actor
from consultbook.modules.scheduling.schemas import (
    OffTimeCreate,
    OffTimeRead,
    ScheduleCreate,
    ScheduleRead,
    ScheduleUpdate,
)
from consultbook.modules.scheduling.service import SchedulingService, get_scheduling_service
from consultbook.shared.responses import ApiResponse, ok

router = APIRouter(tags=["scheduling"])


@router.post(
    "/experts/{expert_id}/schedules",
    response_model=ApiResponse[ScheduleRead],
    status_code=status.HTTP_201_CREATED,
)
async def create_schedule(
    expert_id: UUID,
    payload: ScheduleCreate,
    service: SchedulingService = Depends(get_scheduling_service),
    actor: Actor = Depends(get_current_actor),
) -> ApiResponse[ScheduleRead]:
    """Create weekly schedule window."""
    schedule = await service.create_schedule(expert_id, payload, actor)
    return ok(ScheduleRead.model_validate(schedule), "Schedule created")


@router.get("/experts/{expert_id}/schedules", response_model=ApiResponse[list[ScheduleRead]])
async def list_schedules(
    expert_id: UUID,
    include_inactive: bool = Query(default=False),
    service: SchedulingService = Depends(get_scheduling_service),
) -> ApiResponse[list[ScheduleRead]]:
    """List expert schedules."""
    items = await service.list_schedules(expert_id, include_inactive=include_inactive)
    return ok([ScheduleRead.model_validate(item) for item in items])


@router.patch("/schedules/{schedule_id}", response_model=ApiResponse[ScheduleRead])
async def update_schedule(
    schedule_id: UUID,
    payload: ScheduleUpdate,
    service: SchedulingService = Depends(get_scheduling_service),
    actor: Actor = Depends(get_current_actor),
) -> ApiResponse[ScheduleRead]:
    """Update schedule window."""
    schedule = await service.update_schedule(schedule_id, payload, actor)
    return ok(ScheduleRead.model_validate(schedule), "Schedule updated")


@router.delete("/schedules/{schedule_id}", response_model=ApiResponse[ScheduleRead])
async def deactivate_schedule(
    schedule_id: UUID,
    service: SchedulingService = Depends(get_scheduling_service),
    actor: Actor = Depends(get_current_actor),
) -> ApiResponse[ScheduleRead]:
    """Deactivate schedule window."""
    schedule = await service.deactivate_schedule(schedule_id, actor)
    return ok(ScheduleRead.model_validate(schedule), "Schedule deactivated")


@router.post(
    "/experts/{expert_id}/off-times",
    response_model=ApiResponse[OffTimeRead],
    status_code=status.HTTP_201_CREATED,
)
async def create_off_time(
    expert_id: UUID,
    payload: OffTimeCreate,
    service: SchedulingService = Depends(get_scheduling_service),
    actor: Actor = Depends(get_current_actor),
) -> ApiResponse[OffTimeRead]:
    """Create off-time window."""
    off_time = await service.create_off_time(expert_id, payload, actor)
    return ok(OffTimeRead.model_validate(off_time), "Off-time created")


@router.get("/experts/{expert_id}/off-times", response_model=ApiResponse[list[OffTimeRead]])
async def list_off_times(
    expert_id: UUID,
    service: SchedulingService = Depends(get_scheduling_service),
) -> ApiResponse[list[OffTimeRead]]:
    """List expert off-times."""
    items = await service.list_off_times(expert_id)
    return ok([OffTimeRead.model_validate(item) for item in items])


@router.delete("/off-times/{off_time_id}", response_model=ApiResponse[None])
async def delete_off_time(
    off_time_id: UUID,
    service: SchedulingService = Depends(get_scheduling_service),
    actor: Actor = Depends(get_current_actor),
) -> ApiResponse[None]:
    """Delete off-time window."""
    await service.delete_off_time(off_time_id, actor)
    return ok(None, "Off-time deleted")
