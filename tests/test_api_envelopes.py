from __future__ import annotations

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

import consultbook.main as main_module
from consultbook.core.enums import BookingStatusEnum, BookingTypeEnum, RoleEnum
from consultbook.core.security import create_access_token
from consultbook.modules.availability.resolver import get_availability_resolver
from consultbook.modules.booking.schemas import BookingStatsRead
from consultbook.modules.booking.service import get_booking_service
from consultbook.shared.exceptions import InvalidTransitionException, LockBusyException

API = main_module.settings.api_prefix


class StubResolver:
    async def check(self, payload) -> bool:
        return payload.time == "10:00"


class StubBookingService:
    async def create_booking(self, payload, actor):
        raise LockBusyException("Another booking for this time slot is in progress, retry shortly")

    async def complete_booking(self, booking_id, actor, note=None):
        raise InvalidTransitionException("Cannot change booking status from missed to completed")

    async def check_conflict(self, payload, actor):
        return []

    async def get_statistics(self, actor, expert_id=None, user_id=None):
        return BookingStatsRead(
            total_bookings=2,
            status_breakdown={BookingStatusEnum.PENDING: 2},
            type_breakdown={BookingTypeEnum.ONLINE: 2},
        )


@pytest.fixture
def client():
    main_module.app.dependency_overrides[get_availability_resolver] = lambda: StubResolver()
    main_module.app.dependency_overrides[get_booking_service] = lambda: StubBookingService()
    yield TestClient(main_module.app)
    main_module.app.dependency_overrides.clear()


def _auth(role: RoleEnum = RoleEnum.USER) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(str(uuid4()), role)}"}


def test_availability_check_returns_success_envelope(client: TestClient) -> None:
    expert_id = str(uuid4())

    response = client.post(
        f"{API}/availability/check",
        json={"expert_id": expert_id, "date": "2025-06-02", "time": "10:00"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"] == {"expert_id": expert_id, "date": "2025-06-02", "time": "10:00", "available": True}


def test_malformed_time_is_validation_error(client: TestClient) -> None:
    response = client.post(
        f"{API}/availability/check",
        json={"expert_id": str(uuid4()), "date": "2025-06-02", "time": "25:00"},
    )

    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "validation_error"
    assert "time" in body["message"]


def test_missing_token_is_unauthorized(client: TestClient) -> None:
    response = client.get(f"{API}/bookings/{uuid4()}")

    assert response.status_code == 401
    assert response.json() == {"success": False, "message": "Authentication required", "error": "unauthorized"}


def test_lock_busy_is_reported_as_retryable_conflict(client: TestClient) -> None:
    response = client.post(
        f"{API}/bookings",
        json={"expert_id": str(uuid4()), "start_time": "2025-06-02T10:00:00Z", "duration_minutes": 30},
        headers=_auth(),
    )

    assert response.status_code == 409
    assert response.json()["error"] == "lock_busy"


def test_invalid_transition_has_its_own_error_kind(client: TestClient) -> None:
    response = client.post(f"{API}/bookings/{uuid4()}/complete", headers=_auth(RoleEnum.EXPERT))

    assert response.status_code == 409
    assert response.json()["error"] == "invalid_transition"


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_conflict_check_route_is_not_shadowed_by_booking_id(client: TestClient) -> None:
    response = client.post(
        f"{API}/bookings/conflicts/check",
        json={
            "expert_id": str(uuid4()),
            "start_time": "2025-06-02T10:00:00Z",
            "end_time": "2025-06-02T10:30:00Z",
        },
        headers=_auth(),
    )

    assert response.status_code == 200
    assert response.json()["data"] == {"has_conflict": False, "conflict_bookings": []}


def test_conflict_check_rejects_inverted_range(client: TestClient) -> None:
    response = client.post(
        f"{API}/bookings/conflicts/check",
        json={
            "expert_id": str(uuid4()),
            "start_time": "2025-06-02T10:30:00Z",
            "end_time": "2025-06-02T10:00:00Z",
        },
        headers=_auth(),
    )

    assert response.status_code == 422
    assert response.json()["error"] == "validation_error"


def test_stats_route_returns_breakdowns(client: TestClient) -> None:
    response = client.get(f"{API}/bookings/stats", headers=_auth())

    assert response.status_code == 200
    assert response.json()["data"] == {
        "total_bookings": 2,
        "status_breakdown": {"pending": 2},
        "type_breakdown": {"online": 2},
    }
