from __future__ import annotations

from datetime import UTC, datetime, timedelta
from types import SimpleNamespace

import pytest

from consultbook.core.enums import BookingStatusEnum, BookingTypeEnum, RoleEnum
from consultbook.modules.booking.rules import (
    ALLOWED_TRANSITIONS,
    SlotPolicy,
    can_be_cancelled,
    check_transition,
    is_expired,
    is_transition_allowed,
    reoccupies_slot,
    resolve_end_time,
    validate_mode,
    validate_slot,
)
from consultbook.shared.exceptions import ForbiddenException, InvalidTransitionException, ValidationException

NOW = datetime(2025, 5, 30, 12, 0, tzinfo=UTC)
START = datetime(2025, 6, 2, 10, 0, tzinfo=UTC)
POLICY = SlotPolicy()


def test_resolve_end_time_accepts_exactly_one_of_end_or_duration() -> None:
    assert resolve_end_time(START, None, 45) == START + timedelta(minutes=45)
    assert resolve_end_time(START, START + timedelta(hours=1), None) == START + timedelta(hours=1)

    with pytest.raises(ValidationException):
        resolve_end_time(START, START + timedelta(hours=1), 60)
    with pytest.raises(ValidationException):
        resolve_end_time(START, None, None)


def test_resolve_end_time_treats_naive_end_as_utc() -> None:
    assert resolve_end_time(START, datetime(2025, 6, 2, 11, 0), None) == datetime(2025, 6, 2, 11, 0, tzinfo=UTC)


@pytest.mark.parametrize("minutes", [15, 30, 45, 240])
def test_validate_slot_accepts_policy_durations(minutes: int) -> None:
    validate_slot(START, START + timedelta(minutes=minutes), NOW, POLICY)


@pytest.mark.parametrize(
    ("start", "end", "message"),
    [
        (START, START, "after start_time"),
        (START, START - timedelta(minutes=15), "after start_time"),
        (NOW, NOW + timedelta(minutes=30), "in the past"),
        (NOW + timedelta(days=181), NOW + timedelta(days=181, minutes=30), "at most 180 days"),
        (START, START + timedelta(minutes=5), "at least 15 minutes"),
        (START, START + timedelta(minutes=255), "at most 240 minutes"),
        (START, START + timedelta(minutes=25), "multiple of 15"),
        (START + timedelta(minutes=10), START + timedelta(minutes=40), "15-minute boundaries"),
        (START + timedelta(seconds=30), START + timedelta(minutes=30, seconds=30), "15-minute boundaries"),
    ],
)
def test_validate_slot_rejects(start: datetime, end: datetime, message: str) -> None:
    with pytest.raises(ValidationException, match=message):
        validate_slot(start, end, NOW, POLICY)


def test_validate_slot_accepts_exactly_max_lead() -> None:
    start = NOW + timedelta(days=180)
    validate_slot(start, start + timedelta(minutes=30), NOW, POLICY)


def test_validate_mode_rules() -> None:
    validate_mode(BookingTypeEnum.ONLINE, None, "https://meet.example.com/x")
    validate_mode(BookingTypeEnum.OFFLINE, "Office 2, Main st.", None)

    with pytest.raises(ValidationException):
        validate_mode(BookingTypeEnum.OFFLINE, None, None)
    with pytest.raises(ValidationException):
        validate_mode(BookingTypeEnum.OFFLINE, "Office", "https://meet.example.com/x")
    with pytest.raises(ValidationException):
        validate_mode(BookingTypeEnum.ONLINE, "Office", None)


@pytest.mark.parametrize(
    ("from_status", "to_status", "role"),
    [
        (BookingStatusEnum.PENDING, BookingStatusEnum.CONFIRMED, RoleEnum.EXPERT),
        (BookingStatusEnum.PENDING, BookingStatusEnum.REJECTED, RoleEnum.ADMIN),
        (BookingStatusEnum.PENDING, BookingStatusEnum.CANCELLED, RoleEnum.USER),
        (BookingStatusEnum.PENDING, BookingStatusEnum.MISSED, RoleEnum.SYSTEM),
        (BookingStatusEnum.CONFIRMED, BookingStatusEnum.COMPLETED, RoleEnum.EXPERT),
        (BookingStatusEnum.CONFIRMED, BookingStatusEnum.CANCELLED, RoleEnum.EXPERT),
        (BookingStatusEnum.CONFIRMED, BookingStatusEnum.MISSED, RoleEnum.ADMIN),
        (BookingStatusEnum.REJECTED, BookingStatusEnum.PENDING, RoleEnum.ADMIN),
        (BookingStatusEnum.CANCELLED, BookingStatusEnum.CONFIRMED, RoleEnum.ADMIN),
    ],
)
def test_allowed_transitions(from_status, to_status, role) -> None:
    assert is_transition_allowed(from_status, to_status, role)
    check_transition(from_status, to_status, role)


@pytest.mark.parametrize(
    ("from_status", "to_status", "role"),
    [
        (BookingStatusEnum.PENDING, BookingStatusEnum.CONFIRMED, RoleEnum.USER),
        (BookingStatusEnum.CONFIRMED, BookingStatusEnum.COMPLETED, RoleEnum.USER),
        (BookingStatusEnum.PENDING, BookingStatusEnum.MISSED, RoleEnum.EXPERT),
        (BookingStatusEnum.REJECTED, BookingStatusEnum.PENDING, RoleEnum.EXPERT),
        (BookingStatusEnum.CANCELLED, BookingStatusEnum.CONFIRMED, RoleEnum.USER),
    ],
)
def test_transition_by_wrong_role_is_forbidden(from_status, to_status, role) -> None:
    assert not is_transition_allowed(from_status, to_status, role)
    with pytest.raises(ForbiddenException):
        check_transition(from_status, to_status, role)


@pytest.mark.parametrize(
    ("from_status", "to_status"),
    [
        (BookingStatusEnum.COMPLETED, BookingStatusEnum.PENDING),
        (BookingStatusEnum.MISSED, BookingStatusEnum.CONFIRMED),
        (BookingStatusEnum.PENDING, BookingStatusEnum.COMPLETED),
        (BookingStatusEnum.CONFIRMED, BookingStatusEnum.PENDING),
        (BookingStatusEnum.PENDING, BookingStatusEnum.PENDING),
    ],
)
def test_unlisted_transition_is_invalid_for_every_role(from_status, to_status) -> None:
    for role in RoleEnum:
        with pytest.raises(InvalidTransitionException):
            check_transition(from_status, to_status, role)


def test_terminal_statuses_have_no_outgoing_moves_except_admin_restores() -> None:
    sources = {from_status for from_status, _ in ALLOWED_TRANSITIONS}
    assert BookingStatusEnum.COMPLETED not in sources
    assert BookingStatusEnum.MISSED not in sources
    for (from_status, _), roles in ALLOWED_TRANSITIONS.items():
        if from_status in {BookingStatusEnum.REJECTED, BookingStatusEnum.CANCELLED}:
            assert roles == frozenset({RoleEnum.ADMIN})


def test_reoccupies_slot_only_when_leaving_inactive_state() -> None:
    assert reoccupies_slot(BookingStatusEnum.CANCELLED, BookingStatusEnum.PENDING)
    assert reoccupies_slot(BookingStatusEnum.REJECTED, BookingStatusEnum.CONFIRMED)
    assert not reoccupies_slot(BookingStatusEnum.PENDING, BookingStatusEnum.CONFIRMED)
    assert not reoccupies_slot(BookingStatusEnum.CONFIRMED, BookingStatusEnum.CANCELLED)


def test_derived_flags() -> None:
    lead = POLICY.cancel_lead
    assert can_be_cancelled(BookingStatusEnum.CONFIRMED, START, START - timedelta(minutes=60), lead)
    assert not can_be_cancelled(BookingStatusEnum.CONFIRMED, START, START - timedelta(minutes=59), lead)
    assert not can_be_cancelled(BookingStatusEnum.COMPLETED, START, NOW, lead)

    end = START + timedelta(minutes=30)
    assert is_expired(BookingStatusEnum.PENDING, end, end + timedelta(seconds=1))
    assert not is_expired(BookingStatusEnum.PENDING, end, end)
    assert not is_expired(BookingStatusEnum.CONFIRMED, end, end + timedelta(hours=1))


def test_slot_policy_from_settings() -> None:
    settings = SimpleNamespace(
        booking_min_duration_minutes=30,
        booking_max_duration_minutes=120,
        booking_slot_granularity_minutes=30,
        booking_max_lead_days=30,
        booking_cancel_lead_minutes=1440,
    )

    policy = SlotPolicy.from_settings(settings)

    assert policy.granularity_minutes == 30
    assert policy.cancel_lead == timedelta(days=1)
    with pytest.raises(ValidationException):
        validate_slot(START, START + timedelta(minutes=45), NOW, policy)
