"""Availability API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from consultbook.modules.availability.resolver import AvailabilityResolver, get_availability_resolver
from consultbook.modules.availability.schemas import AvailabilityCheckRead, AvailabilityCheckRequest
from consultbook.shared.responses import ApiResponse, ok

router = APIRouter(prefix="/availability", tags=["availability"])


@router.post("/check", response_model=ApiResponse[AvailabilityCheckRead])
async def check_availability(
    payload: AvailabilityCheckRequest,
    resolver: AvailabilityResolver = Depends(get_availability_resolver),
) -> ApiResponse[AvailabilityCheckRead]:
    """Check whether an expert is bookable at a regional date and time."""
    available = await resolver.check(payload)
    return ok(
        AvailabilityCheckRead(
            expert_id=payload.expert_id,
            date=payload.date,
            time=payload.time,
            available=available,
        ),
    )
