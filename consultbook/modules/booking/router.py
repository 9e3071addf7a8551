"""Booking API router."""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from consultbook.core.enums import BookingStatusEnum
from consultbook.core.security import Actor, get_current_actor
from consultbook.modules.audit.schemas import StatusHistoryRead
from consultbook.modules.booking.schemas import (
    BookingActionRequest,
    BookingCreate,
    BookingListFilter,
    BookingRead,
    BookingStatsRead,
    BookingStatusUpdate,
    BookingUpdate,
    ConflictCheckRead,
    ConflictCheckRequest,
    ConflictingBookingRead,
    MissedSweepRead,
)
from consultbook.modules.booking.service import BookingService, get_booking_service
from consultbook.shared.pagination import Page, PaginationParams, build_page, get_pagination_params
from consultbook.shared.responses import ApiResponse, ok

router = APIRouter(prefix="/bookings", tags=["bookings"])


def get_booking_filter(
    status_filter: BookingStatusEnum | None = Query(default=None, alias="status"),
    start_from: datetime | None = Query(default=None),
    start_to: datetime | None = Query(default=None),
) -> BookingListFilter:
    """FastAPI dependency for booking list filters."""
    return BookingListFilter(status=status_filter, start_from=start_from, start_to=start_to)


def _page(items, total: int, pagination: PaginationParams) -> Page[BookingRead]:
    serialized = [BookingRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)


@router.post("", response_model=ApiResponse[BookingRead], status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor),
) -> ApiResponse[BookingRead]:
    """Request a booking; it starts as pending."""
    booking = await service.create_booking(payload, actor)
    return ok(BookingRead.model_validate(booking), "Booking created")


@router.get("/my", response_model=ApiResponse[Page[BookingRead]])
async def list_my_bookings(
    filters: BookingListFilter = Depends(get_booking_filter),
    pagination: PaginationParams = Depends(get_pagination_params),
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor),
) -> ApiResponse[Page[BookingRead]]:
    """List bookings of the current user."""
    items, total = await service.list_user_bookings(
        actor,
        filters,
        pagination.limit,
        pagination.offset,
        descending=pagination.sort_order == "desc",
    )
    return ok(_page(items, total, pagination))


@router.get("/expert/{expert_id}", response_model=ApiResponse[Page[BookingRead]])
async def list_expert_bookings(
    expert_id: UUID,
    filters: BookingListFilter = Depends(get_booking_filter),
    pagination: PaginationParams = Depends(get_pagination_params),
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor),
) -> ApiResponse[Page[BookingRead]]:
    """List bookings of an expert."""
    items, total = await service.list_expert_bookings(
        expert_id,
        actor,
        filters,
        pagination.limit,
        pagination.offset,
        descending=pagination.sort_order == "desc",
    )
    return ok(_page(items, total, pagination))


@router.get("/expert/{expert_id}/day/{day}", response_model=ApiResponse[list[BookingRead]])
async def list_expert_bookings_on_date(
    expert_id: UUID,
    day: date,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor),
) -> ApiResponse[list[BookingRead]]:
    items = await service.list_expert_bookings_on_date(expert_id, day, actor)
    return ok([BookingRead.model_validate(item) for item in items])


@router.post("/conflicts/check", response_model=ApiResponse[ConflictCheckRead])
async def check_booking_conflict(
    payload: ConflictCheckRequest,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor),
) -> ApiResponse[ConflictCheckRead]:
    """Report active bookings that overlap a proposed range."""
    conflicts = await service.check_conflict(payload, actor)
    return ok(
        ConflictCheckRead(
            has_conflict=bool(conflicts),
            conflict_bookings=[ConflictingBookingRead.model_validate(item) for item in conflicts],
        ),
    )


@router.get("/stats", response_model=ApiResponse[BookingStatsRead])
async def get_booking_statistics(
    expert_id: UUID | None = Query(default=None),
    user_id: UUID | None = Query(default=None),
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor),
) -> ApiResponse[BookingStatsRead]:
    return ok(await service.get_statistics(actor, expert_id=expert_id, user_id=user_id))


@router.post("/missed/sweep", response_model=ApiResponse[MissedSweepRead])
async def sweep_missed_bookings(
    limit: int = Query(default=500, ge=1, le=5000),
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor),
) -> ApiResponse[MissedSweepRead]:
    """Mark overdue bookings as missed (admin task endpoint)."""
    marked = await service.sweep_missed_bookings(actor, limit=limit)
    return ok(MissedSweepRead(marked_missed=marked))


@router.get("/{booking_id}", response_model=ApiResponse[BookingRead])
async def get_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor),
) -> ApiResponse[BookingRead]:
    """Get booking by id."""
    booking = await service.get_booking(booking_id, actor)
    return ok(BookingRead.model_validate(booking))


@router.patch("/{booking_id}", response_model=ApiResponse[BookingRead])
async def update_booking(
    booking_id: UUID,
    payload: BookingUpdate,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor),
) -> ApiResponse[BookingRead]:
    """Update booking details or time range."""
    booking = await service.update_booking(booking_id, payload, actor)
    return ok(BookingRead.model_validate(booking), "Booking updated")


@router.post("/{booking_id}/confirm", response_model=ApiResponse[BookingRead])
async def confirm_booking(
    booking_id: UUID,
    payload: BookingActionRequest | None = None,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor),
) -> ApiResponse[BookingRead]:
    """Confirm pending booking."""
    payload = payload or BookingActionRequest()
    booking = await service.confirm_booking(
        booking_id,
        actor,
        meeting_link=payload.meeting_link,
        note=payload.note,
    )
    return ok(BookingRead.model_validate(booking), "Booking confirmed")


@router.post("/{booking_id}/reject", response_model=ApiResponse[BookingRead])
async def reject_booking(
    booking_id: UUID,
    payload: BookingActionRequest | None = None,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor),
) -> ApiResponse[BookingRead]:
    """Reject pending booking; reason is required."""
    payload = payload or BookingActionRequest()
    booking = await service.reject_booking(booking_id, actor, reason=payload.reason, note=payload.note)
    return ok(BookingRead.model_validate(booking), "Booking rejected")


@router.post("/{booking_id}/cancel", response_model=ApiResponse[BookingRead])
async def cancel_booking(
    booking_id: UUID,
    payload: BookingActionRequest | None = None,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor),
) -> ApiResponse[BookingRead]:
    """Cancel booking."""
    payload = payload or BookingActionRequest()
    booking = await service.cancel_booking(booking_id, actor, reason=payload.reason, note=payload.note)
    return ok(BookingRead.model_validate(booking), "Booking cancelled")


@router.post("/{booking_id}/complete", response_model=ApiResponse[BookingRead])
async def complete_booking(
    booking_id: UUID,
    payload: BookingActionRequest | None = None,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor),
) -> ApiResponse[BookingRead]:
    """Mark confirmed booking as completed."""
    payload = payload or BookingActionRequest()
    booking = await service.complete_booking(booking_id, actor, note=payload.note)
    return ok(BookingRead.model_validate(booking), "Booking completed")


@router.put("/{booking_id}/status", response_model=ApiResponse[BookingRead])
async def change_booking_status(
    booking_id: UUID,
    payload: BookingStatusUpdate,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor),
) -> ApiResponse[BookingRead]:
    """Drive a status transition."""
    booking = await service.change_status(booking_id, payload, actor)
    return ok(BookingRead.model_validate(booking), "Booking status updated")


@router.get("/{booking_id}/history", response_model=ApiResponse[list[StatusHistoryRead]])
async def get_booking_history(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor),
) -> ApiResponse[list[StatusHistoryRead]]:
    """List status history of a booking."""
    items = await service.get_history(booking_id, actor)
    return ok([StatusHistoryRead.model_validate(item) for item in items])
