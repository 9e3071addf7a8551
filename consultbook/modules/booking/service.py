"""Booking business logic layer: admission, status transitions and history."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import date, datetime
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from consultbook.core.database import get_db_session
from consultbook.core.enums import BookingStatusEnum, BookingTypeEnum, RoleEnum
from consultbook.core.metrics import record_admission, record_transition
from consultbook.core.security import Actor
from consultbook.modules.audit.models import StatusHistory
from consultbook.modules.audit.repository import AuditRepository
from consultbook.modules.availability.cache import AvailabilityCache, get_availability_cache
from consultbook.modules.availability.resolver import AvailabilityResolver, build_availability_resolver
from consultbook.modules.booking.locks import SlotLockManager, get_slot_lock_manager
from consultbook.modules.booking.models import Booking
from consultbook.modules.booking.repository import BookingRepository
from consultbook.modules.booking.rules import (
    TERMINAL_STATUSES,
    SlotPolicy,
    check_transition,
    reoccupies_slot,
    resolve_end_time,
    validate_mode,
    validate_slot,
)
from consultbook.modules.booking.schemas import (
    BookingCreate,
    BookingListFilter,
    BookingStatsRead,
    BookingStatusUpdate,
    BookingUpdate,
    ConflictCheckRequest,
)
from consultbook.modules.experts.repository import ExpertRepository
from consultbook.shared.exceptions import (
    AppException,
    CacheUnavailableError,
    ConflictException,
    ForbiddenException,
    LockBusyException,
    NotFoundException,
    ValidationException,
)
from consultbook.shared.utils import ensure_utc, local_day_bounds, utc_now

logger = logging.getLogger(__name__)

_PRIVILEGED_ROLES = frozenset({RoleEnum.ADMIN, RoleEnum.SYSTEM})


class BookingService:
    """Booking domain service.

    Admission runs under a short-lived slot lock on the cache backend and, inside
    the database transaction, under a row lock on the expert. When the cache
    backend is down the row lock alone serializes admissions for that expert.
    """

    def __init__(
        self,
        booking_repository: BookingRepository,
        expert_repository: ExpertRepository,
        audit_repository: AuditRepository,
        resolver: AvailabilityResolver,
        cache: AvailabilityCache,
        locks: SlotLockManager,
        policy: SlotPolicy | None = None,
    ) -> None:
        self.booking_repository = booking_repository
        self.expert_repository = expert_repository
        self.audit_repository = audit_repository
        self.resolver = resolver
        self.cache = cache
        self.locks = locks
        self.policy = policy or SlotPolicy.from_settings()

    async def _is_participant(self, booking: Booking, actor: Actor) -> bool:
        if actor.role in _PRIVILEGED_ROLES:
            return True
        if actor.role == RoleEnum.USER:
            return booking.user_id == actor.id
        if actor.role == RoleEnum.EXPERT:
            expert = await self.expert_repository.get_by_id(booking.expert_id)
            return expert is not None and expert.user_id == actor.id
        return False

    async def _get_accessible_booking(self, booking_id: UUID, actor: Actor) -> Booking:
        booking = await self.booking_repository.get_booking_by_id(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found")
        if not await self._is_participant(booking, actor):
            raise ForbiddenException("You cannot access this booking")
        return booking

    async def _record_change(
        self,
        booking: Booking,
        from_status: BookingStatusEnum | None,
        to_status: BookingStatusEnum,
        actor: Actor,
        *,
        event_type: str,
        now: datetime,
        note: str | None = None,
        reason: str | None = None,
    ) -> None:
        """Append history and queue the outbox event in the current transaction."""
        await self.audit_repository.append_status_history(
            booking_id=booking.id,
            from_status=from_status,
            to_status=to_status,
            actor_id=None if actor.role == RoleEnum.SYSTEM else actor.id,
            actor_role=actor.role,
            note=note,
            reason=reason,
            recorded_at=now,
        )
        await self.audit_repository.create_outbox_event(
            aggregate_type="booking",
            aggregate_id=str(booking.id),
            event_type=event_type,
            payload={
                "booking_id": str(booking.id),
                "expert_id": str(booking.expert_id),
                "user_id": str(booking.user_id),
                "from_status": str(from_status) if from_status is not None else None,
                "to_status": str(to_status),
                "actor_role": str(actor.role),
                "start_time": ensure_utc(booking.start_time).isoformat(),
                "end_time": ensure_utc(booking.end_time).isoformat(),
                "reason": reason,
            },
        )

    async def _check_admission(
        self,
        expert_id: UUID,
        user_id: UUID,
        start: datetime,
        end: datetime,
        exclude_id: UUID | None,
    ) -> None:
        if await self.booking_repository.has_expert_conflict(expert_id, start, end, exclude_id=exclude_id):
            raise ConflictException("Expert already has a booking in this time range")
        if await self.booking_repository.has_user_conflict(user_id, start, end, exclude_id=exclude_id):
            raise ConflictException("You already have a booking in this time range")
        if not await self.resolver.is_available(expert_id, start):
            raise ConflictException("Requested time is outside the expert's schedule")

    async def _admit_in_transaction(
        self,
        expert_id: UUID,
        user_id: UUID,
        start: datetime,
        end: datetime,
        exclude_id: UUID | None,
        write: Callable[[], Awaitable[Booking]],
    ) -> Booking:
        try:
            expert = await self.expert_repository.lock_for_admission(expert_id)
            if expert is None or not expert.is_active:
                raise NotFoundException("Expert not found or inactive")
            await self._check_admission(expert_id, user_id, start, end, exclude_id)
            booking = await write()
            await self.booking_repository.commit()
        except AppException as exc:
            await self.booking_repository.rollback()
            if isinstance(exc, ConflictException):
                record_admission("conflict")
            raise

        await self.cache.invalidate_expert(expert_id)
        return booking

    async def _admit(
        self,
        expert_id: UUID,
        user_id: UUID,
        start: datetime,
        end: datetime,
        exclude_id: UUID | None,
        write: Callable[[], Awaitable[Booking]],
    ) -> Booking:
        key = self.locks.key(expert_id, start, end)
        try:
            token = await self.locks.acquire(key)
        except CacheUnavailableError:
            logger.warning("Admission lock unavailable for %s, falling back to row lock", key, exc_info=True)
            record_admission("fallback")
            return await self._admit_in_transaction(expert_id, user_id, start, end, exclude_id, write)

        if token is None:
            record_admission("lock_busy")
            raise LockBusyException("Another booking for this time slot is in progress, retry shortly")

        try:
            return await self._admit_in_transaction(expert_id, user_id, start, end, exclude_id, write)
        finally:
            await self.locks.release(key, token)

    async def create_booking(self, payload: BookingCreate, actor: Actor) -> Booking:
        """Admit a new pending booking."""
        if actor.role != RoleEnum.USER:
            raise ForbiddenException("Only users can create bookings")

        now = utc_now()
        start = ensure_utc(payload.start_time)
        try:
            end = resolve_end_time(start, payload.end_time, payload.duration_minutes)
            validate_slot(start, end, now, self.policy)
            validate_mode(payload.type, payload.location, payload.meeting_link)
        except ValidationException:
            record_admission("validation")
            raise

        expert = await self.expert_repository.get_by_id(payload.expert_id)
        if expert is None or not expert.is_active:
            raise NotFoundException("Expert not found or inactive")

        async def _write() -> Booking:
            booking = await self.booking_repository.create_booking(
                expert_id=payload.expert_id,
                user_id=actor.id,
                start_time=start,
                end_time=end,
                booking_type=payload.type,
                location=payload.location,
                meeting_link=payload.meeting_link,
                notes=payload.notes,
            )
            await self._record_change(
                booking,
                None,
                BookingStatusEnum.PENDING,
                actor,
                event_type="booking.created",
                now=now,
                note="Booking created",
            )
            return booking

        booking = await self._admit(payload.expert_id, actor.id, start, end, None, _write)
        record_admission("admitted")
        record_transition(None, BookingStatusEnum.PENDING)
        logger.info(
            "Booking %s admitted for expert %s [%s, %s)",
            booking.id,
            booking.expert_id,
            start.isoformat(),
            end.isoformat(),
        )
        return booking

    async def get_booking(self, booking_id: UUID, actor: Actor) -> Booking:
        return await self._get_accessible_booking(booking_id, actor)

    async def update_booking(self, booking_id: UUID, payload: BookingUpdate, actor: Actor) -> Booking:
        """Patch a future, non-final booking; a new time range goes through admission again."""
        booking = await self._get_accessible_booking(booking_id, actor)
        if booking.status in TERMINAL_STATUSES:
            raise ValidationException(f"Booking in status {booking.status} cannot be updated")

        now = utc_now()
        current_start = ensure_utc(booking.start_time)
        current_end = ensure_utc(booking.end_time)
        if current_start <= now:
            raise ValidationException("Booking has already started")
        if not actor.is_admin and now + self.policy.cancel_lead > current_start:
            raise ValidationException(
                f"Bookings can only be changed at least {self.policy.cancel_lead_minutes} minutes before start",
            )

        changes = payload.model_dump(exclude_unset=True)
        new_start = ensure_utc(payload.start_time) if payload.start_time is not None else current_start
        if payload.end_time is not None or payload.duration_minutes is not None:
            new_end = resolve_end_time(new_start, payload.end_time, payload.duration_minutes)
        else:
            new_end = new_start + (current_end - current_start)
        new_type = payload.type or booking.type
        new_location = changes["location"] if "location" in changes else booking.location
        new_meeting_link = changes["meeting_link"] if "meeting_link" in changes else booking.meeting_link

        validate_mode(new_type, new_location, new_meeting_link)
        time_changed = (new_start, new_end) != (current_start, current_end)
        if time_changed:
            validate_slot(new_start, new_end, now, self.policy)

        async def _write() -> Booking:
            booking.start_time = new_start
            booking.end_time = new_end
            booking.type = new_type
            booking.location = new_location
            booking.meeting_link = new_meeting_link
            if "notes" in changes:
                booking.notes = changes["notes"]
            await self.booking_repository.save(booking)
            await self._record_change(
                booking,
                booking.status,
                booking.status,
                actor,
                event_type="booking.updated",
                now=now,
                note="Booking updated",
            )
            return booking

        if time_changed:
            booking = await self._admit(booking.expert_id, booking.user_id, new_start, new_end, booking.id, _write)
        else:
            booking = await _write()
            await self.booking_repository.commit()
            await self.cache.invalidate_expert(booking.expert_id)

        logger.info("Booking %s updated by %s", booking.id, actor.role)
        return booking

    def _apply_status(
        self,
        booking: Booking,
        to_status: BookingStatusEnum,
        now: datetime,
        reason: str | None,
        meeting_link: str | None,
    ) -> None:
        booking.status = to_status
        if to_status == BookingStatusEnum.CONFIRMED:
            booking.confirmed_at = now
            if meeting_link:
                booking.meeting_link = meeting_link
        elif to_status == BookingStatusEnum.CANCELLED:
            booking.cancelled_at = now
            booking.cancellation_reason = reason
        elif to_status == BookingStatusEnum.REJECTED:
            booking.rejection_reason = reason
        elif to_status == BookingStatusEnum.COMPLETED:
            booking.completed_at = now

    async def _transition(
        self,
        booking_id: UUID,
        to_status: BookingStatusEnum,
        actor: Actor,
        note: str | None = None,
        reason: str | None = None,
        meeting_link: str | None = None,
    ) -> Booking:
        booking = await self._get_accessible_booking(booking_id, actor)
        from_status = booking.status
        check_transition(from_status, to_status, actor.role)

        now = utc_now()
        if (
            to_status == BookingStatusEnum.CANCELLED
            and actor.role not in _PRIVILEGED_ROLES
            and now + self.policy.cancel_lead > ensure_utc(booking.start_time)
        ):
            raise ValidationException(
                f"Bookings can only be cancelled at least {self.policy.cancel_lead_minutes} minutes before start",
            )
        if to_status == BookingStatusEnum.REJECTED and not (reason and reason.strip()):
            raise ValidationException("A reason is required to reject a booking")
        if meeting_link:
            if to_status != BookingStatusEnum.CONFIRMED:
                raise ValidationException("meeting_link can only be set when confirming a booking")
            if booking.type == BookingTypeEnum.OFFLINE:
                raise ValidationException("meeting_link is not allowed for offline bookings")

        async def _write() -> Booking:
            self._apply_status(booking, to_status, now, reason, meeting_link)
            await self.booking_repository.save(booking)
            await self._record_change(
                booking,
                from_status,
                to_status,
                actor,
                event_type="booking.status_changed",
                now=now,
                note=note,
                reason=reason,
            )
            return booking

        if reoccupies_slot(from_status, to_status):
            # Back on the calendar: same locks and checks as a new request.
            start = ensure_utc(booking.start_time)
            end = ensure_utc(booking.end_time)
            if start <= now:
                raise ValidationException("Booking has already started")
            booking = await self._admit(booking.expert_id, booking.user_id, start, end, booking.id, _write)
        else:
            await _write()
            await self.booking_repository.commit()
            await self.cache.invalidate_expert(booking.expert_id)

        record_transition(from_status, to_status)
        logger.info("Booking %s moved %s -> %s by %s", booking.id, from_status, to_status, actor.role)
        return booking

    async def confirm_booking(
        self,
        booking_id: UUID,
        actor: Actor,
        meeting_link: str | None = None,
        note: str | None = None,
    ) -> Booking:
        return await self._transition(
            booking_id,
            BookingStatusEnum.CONFIRMED,
            actor,
            note=note,
            meeting_link=meeting_link,
        )

    async def reject_booking(
        self,
        booking_id: UUID,
        actor: Actor,
        reason: str | None,
        note: str | None = None,
    ) -> Booking:
        return await self._transition(booking_id, BookingStatusEnum.REJECTED, actor, note=note, reason=reason)

    async def cancel_booking(
        self,
        booking_id: UUID,
        actor: Actor,
        reason: str | None = None,
        note: str | None = None,
    ) -> Booking:
        return await self._transition(booking_id, BookingStatusEnum.CANCELLED, actor, note=note, reason=reason)

    async def complete_booking(self, booking_id: UUID, actor: Actor, note: str | None = None) -> Booking:
        return await self._transition(booking_id, BookingStatusEnum.COMPLETED, actor, note=note)

    async def change_status(self, booking_id: UUID, payload: BookingStatusUpdate, actor: Actor) -> Booking:
        """Drive any permitted transition from a generic status payload."""
        return await self._transition(
            booking_id,
            payload.status,
            actor,
            note=payload.note,
            reason=payload.reason,
            meeting_link=payload.meeting_link,
        )

    async def list_user_bookings(
        self,
        actor: Actor,
        filters: BookingListFilter,
        limit: int,
        offset: int,
        descending: bool = False,
    ) -> tuple[list[Booking], int]:
        return await self.booking_repository.list_by_user(actor.id, filters, limit, offset, descending)

    async def list_expert_bookings(
        self,
        expert_id: UUID,
        actor: Actor,
        filters: BookingListFilter,
        limit: int,
        offset: int,
        descending: bool = False,
    ) -> tuple[list[Booking], int]:
        await self._check_expert_access(expert_id, actor)
        return await self.booking_repository.list_by_expert(expert_id, filters, limit, offset, descending)

    async def list_expert_bookings_on_date(self, expert_id: UUID, day: date, actor: Actor) -> list[Booking]:
        """Active bookings of the expert overlapping one regional calendar day."""
        await self._check_expert_access(expert_id, actor)
        day_start, day_end = local_day_bounds(day, self.resolver.zone)
        return await self.booking_repository.list_expert_bookings_on_date(expert_id, day_start, day_end)

    async def check_conflict(self, payload: ConflictCheckRequest, actor: Actor) -> list[Booking]:
        """Active bookings that a booking over the proposed range would collide with.

        Covers the expert's calendar and, when known, the user's own bookings.
        Users always check against their own bookings.
        """
        user_id = payload.user_id
        if actor.role not in _PRIVILEGED_ROLES:
            if user_id is not None and user_id != actor.id:
                raise ForbiddenException("Only admin can check another user's bookings")
            if actor.role == RoleEnum.USER:
                user_id = actor.id

        expert = await self.expert_repository.get_by_id(payload.expert_id)
        if expert is None:
            raise NotFoundException("Expert not found")
        return await self.booking_repository.list_conflicts(
            payload.expert_id,
            user_id,
            ensure_utc(payload.start_time),
            ensure_utc(payload.end_time),
            exclude_id=payload.exclude_id,
        )

    async def get_statistics(
        self,
        actor: Actor,
        expert_id: UUID | None = None,
        user_id: UUID | None = None,
    ) -> BookingStatsRead:
        """Count bookings per status and per type for one expert or one user."""
        if expert_id is not None:
            await self._check_expert_access(expert_id, actor)
        elif actor.role == RoleEnum.EXPERT:
            expert = await self.expert_repository.get_by_user_id(actor.id)
            if expert is None:
                raise NotFoundException("Expert profile not found")
            expert_id = expert.id
        elif actor.role == RoleEnum.USER:
            if user_id is not None and user_id != actor.id:
                raise ForbiddenException("You can only view your own statistics")
            user_id = actor.id
        elif user_id is None:
            raise ValidationException("user_id or expert_id is required")

        by_status = await self.booking_repository.count_by_status(user_id=user_id, expert_id=expert_id)
        by_type = await self.booking_repository.count_by_type(user_id=user_id, expert_id=expert_id)
        return BookingStatsRead(
            total_bookings=sum(by_status.values()),
            status_breakdown=by_status,
            type_breakdown=by_type,
        )

    async def _check_expert_access(self, expert_id: UUID, actor: Actor) -> None:
        expert = await self.expert_repository.get_by_id(expert_id)
        if expert is None:
            raise NotFoundException("Expert not found")
        if actor.role not in _PRIVILEGED_ROLES and not (
            actor.role == RoleEnum.EXPERT and expert.user_id == actor.id
        ):
            raise ForbiddenException("Only admin or the expert can list these bookings")

    async def get_history(self, booking_id: UUID, actor: Actor) -> list[StatusHistory]:
        booking = await self._get_accessible_booking(booking_id, actor)
        return await self.audit_repository.list_status_history(booking.id)

    async def sweep_missed_bookings(self, actor: Actor, limit: int = 500) -> int:
        """Mark pending/confirmed bookings whose end has passed as missed."""
        if actor.role not in _PRIVILEGED_ROLES:
            raise ForbiddenException("Only admin or system can sweep missed bookings")

        now = utc_now()
        overdue = await self.booking_repository.list_overdue_active(now, limit)
        affected_experts: set[UUID] = set()
        for booking in overdue:
            from_status = booking.status
            booking.status = BookingStatusEnum.MISSED
            await self.booking_repository.save(booking)
            await self._record_change(
                booking,
                from_status,
                BookingStatusEnum.MISSED,
                actor,
                event_type="booking.status_changed",
                now=now,
                note="End time passed without completion",
            )
            affected_experts.add(booking.expert_id)
            record_transition(from_status, BookingStatusEnum.MISSED)

        await self.booking_repository.commit()
        for expert_id in affected_experts:
            await self.cache.invalidate_expert(expert_id)

        if overdue:
            logger.info("Marked %s bookings as missed", len(overdue))
        return len(overdue)


def build_booking_service(
    session: AsyncSession,
    cache: AvailabilityCache,
    locks: SlotLockManager,
) -> BookingService:
    return BookingService(
        booking_repository=BookingRepository(session),
        expert_repository=ExpertRepository(session),
        audit_repository=AuditRepository(session),
        resolver=build_availability_resolver(session, cache),
        cache=cache,
        locks=locks,
    )


async def get_booking_service(
    session: AsyncSession = Depends(get_db_session),
    cache: AvailabilityCache = Depends(get_availability_cache),
    locks: SlotLockManager = Depends(get_slot_lock_manager),
) -> BookingService:
    """Dependency provider for booking service."""
    return build_booking_service(session, cache, locks)
