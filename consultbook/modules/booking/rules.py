"""Booking slot policy and status state machine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from consultbook.core.config import Settings, get_settings
from consultbook.core.enums import ACTIVE_BOOKING_STATUSES, BookingStatusEnum, BookingTypeEnum, RoleEnum
from consultbook.shared.exceptions import ForbiddenException, InvalidTransitionException, ValidationException
from consultbook.shared.utils import ensure_utc

_USER = RoleEnum.USER
_EXPERT = RoleEnum.EXPERT
_ADMIN = RoleEnum.ADMIN
_SYSTEM = RoleEnum.SYSTEM

ALLOWED_TRANSITIONS: dict[tuple[BookingStatusEnum, BookingStatusEnum], frozenset[RoleEnum]] = {
    (BookingStatusEnum.PENDING, BookingStatusEnum.CONFIRMED): frozenset({_EXPERT, _ADMIN}),
    (BookingStatusEnum.PENDING, BookingStatusEnum.REJECTED): frozenset({_EXPERT, _ADMIN}),
    (BookingStatusEnum.PENDING, BookingStatusEnum.CANCELLED): frozenset({_USER, _EXPERT, _ADMIN}),
    (BookingStatusEnum.PENDING, BookingStatusEnum.MISSED): frozenset({_ADMIN, _SYSTEM}),
    (BookingStatusEnum.CONFIRMED, BookingStatusEnum.COMPLETED): frozenset({_EXPERT, _ADMIN}),
    (BookingStatusEnum.CONFIRMED, BookingStatusEnum.CANCELLED): frozenset({_USER, _EXPERT, _ADMIN}),
    (BookingStatusEnum.CONFIRMED, BookingStatusEnum.MISSED): frozenset({_ADMIN, _SYSTEM}),
    (BookingStatusEnum.REJECTED, BookingStatusEnum.PENDING): frozenset({_ADMIN}),
    (BookingStatusEnum.REJECTED, BookingStatusEnum.CONFIRMED): frozenset({_ADMIN}),
    (BookingStatusEnum.CANCELLED, BookingStatusEnum.PENDING): frozenset({_ADMIN}),
    (BookingStatusEnum.CANCELLED, BookingStatusEnum.CONFIRMED): frozenset({_ADMIN}),
}

TERMINAL_STATUSES = frozenset(
    {
        BookingStatusEnum.REJECTED,
        BookingStatusEnum.CANCELLED,
        BookingStatusEnum.COMPLETED,
        BookingStatusEnum.MISSED,
    },
)


@dataclass(frozen=True)
class SlotPolicy:
    """Duration, alignment and lead-time limits for bookings."""

    min_duration_minutes: int = 15
    max_duration_minutes: int = 240
    granularity_minutes: int = 15
    max_lead_days: int = 180
    cancel_lead_minutes: int = 60

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "SlotPolicy":
        settings = settings or get_settings()
        return cls(
            min_duration_minutes=settings.booking_min_duration_minutes,
            max_duration_minutes=settings.booking_max_duration_minutes,
            granularity_minutes=settings.booking_slot_granularity_minutes,
            max_lead_days=settings.booking_max_lead_days,
            cancel_lead_minutes=settings.booking_cancel_lead_minutes,
        )

    @property
    def cancel_lead(self) -> timedelta:
        return timedelta(minutes=self.cancel_lead_minutes)


def resolve_end_time(
    start: datetime,
    end: datetime | None,
    duration_minutes: int | None,
) -> datetime:
    """Return end instant from an explicit end or a duration; exactly one is required."""
    if end is not None and duration_minutes is not None:
        raise ValidationException("Provide either end_time or duration_minutes, not both")
    if end is not None:
        return ensure_utc(end)
    if duration_minutes is not None:
        return ensure_utc(start) + timedelta(minutes=duration_minutes)
    raise ValidationException("end_time or duration_minutes is required")


def _is_aligned(instant: datetime, granularity_minutes: int) -> bool:
    return (
        instant.second == 0
        and instant.microsecond == 0
        and (instant.hour * 60 + instant.minute) % granularity_minutes == 0
    )


def validate_slot(start: datetime, end: datetime, now: datetime, policy: SlotPolicy) -> None:
    """Raise ValidationException when the time range breaks slot rules."""
    start = ensure_utc(start)
    end = ensure_utc(end)

    if end <= start:
        raise ValidationException("end_time must be after start_time")
    if start <= now:
        raise ValidationException("Cannot book a time in the past")
    if start > now + timedelta(days=policy.max_lead_days):
        raise ValidationException(f"Bookings can be made at most {policy.max_lead_days} days ahead")

    duration = int((end - start).total_seconds() // 60)
    if duration < policy.min_duration_minutes:
        raise ValidationException(f"Booking must last at least {policy.min_duration_minutes} minutes")
    if duration > policy.max_duration_minutes:
        raise ValidationException(f"Booking must last at most {policy.max_duration_minutes} minutes")
    if (end - start) % timedelta(minutes=policy.granularity_minutes):
        raise ValidationException(
            f"Booking duration must be a multiple of {policy.granularity_minutes} minutes",
        )
    if not _is_aligned(start, policy.granularity_minutes) or not _is_aligned(end, policy.granularity_minutes):
        raise ValidationException(
            f"Booking must start and end on {policy.granularity_minutes}-minute boundaries",
        )


def validate_mode(
    booking_type: BookingTypeEnum,
    location: str | None,
    meeting_link: str | None,
) -> None:
    """Offline needs a location and no link; online takes no location."""
    if booking_type == BookingTypeEnum.OFFLINE:
        if not location or not location.strip():
            raise ValidationException("location is required for offline bookings")
        if meeting_link:
            raise ValidationException("meeting_link is not allowed for offline bookings")
    elif location:
        raise ValidationException("location is not allowed for online bookings")


def is_transition_allowed(
    from_status: BookingStatusEnum,
    to_status: BookingStatusEnum,
    role: RoleEnum,
) -> bool:
    return role in ALLOWED_TRANSITIONS.get((from_status, to_status), frozenset())


def check_transition(
    from_status: BookingStatusEnum,
    to_status: BookingStatusEnum,
    role: RoleEnum,
) -> None:
    """Raise when the move is not in the table, or not for this role."""
    allowed_roles = ALLOWED_TRANSITIONS.get((from_status, to_status))
    if allowed_roles is None:
        raise InvalidTransitionException(
            f"Cannot change booking status from {from_status} to {to_status}",
        )
    if role not in allowed_roles:
        raise ForbiddenException(f"Role {role} cannot change booking status from {from_status} to {to_status}")


def reoccupies_slot(from_status: BookingStatusEnum, to_status: BookingStatusEnum) -> bool:
    return from_status not in ACTIVE_BOOKING_STATUSES and to_status in ACTIVE_BOOKING_STATUSES


def can_be_cancelled(
    status: BookingStatusEnum,
    start: datetime,
    now: datetime,
    cancel_lead: timedelta,
) -> bool:
    return status in ACTIVE_BOOKING_STATUSES and now + cancel_lead <= ensure_utc(start)


def can_be_confirmed(status: BookingStatusEnum) -> bool:
    return status == BookingStatusEnum.PENDING


def is_expired(status: BookingStatusEnum, end: datetime, now: datetime) -> bool:
    return status == BookingStatusEnum.PENDING and now > ensure_utc(end)
