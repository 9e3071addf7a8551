"""Core enums used across modules."""

from enum import StrEnum


class RoleEnum(StrEnum):
    """Caller roles. SYSTEM is reserved for in-process jobs."""

    USER = "user"
    EXPERT = "expert"
    ADMIN = "admin"
    SYSTEM = "system"


class ExpertStatusEnum(StrEnum):
    """Expert bookability status."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class BookingTypeEnum(StrEnum):
    """Consultation mode."""

    ONLINE = "online"
    OFFLINE = "offline"


class BookingStatusEnum(StrEnum):
    """Booking lifecycle status."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    MISSED = "missed"


ACTIVE_BOOKING_STATUSES = frozenset({BookingStatusEnum.PENDING, BookingStatusEnum.CONFIRMED})


class OutboxStatusEnum(StrEnum):
    """Outbox event status for integration publishing."""

    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"
