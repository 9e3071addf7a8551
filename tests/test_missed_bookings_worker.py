from __future__ import annotations

import pytest

import consultbook.workers.missed_bookings_worker as worker_module
from consultbook.core.enums import RoleEnum


class FakeSession:
    async def __aenter__(self) -> "FakeSession":
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None


class FakeBookingService:
    def __init__(self) -> None:
        self.calls: list[tuple] = []

    async def sweep_missed_bookings(self, actor, limit: int = 500) -> int:
        self.calls.append((actor.role, limit))
        return 3


@pytest.mark.asyncio
async def test_run_cycle_sweeps_as_system_actor(monkeypatch: pytest.MonkeyPatch) -> None:
    service = FakeBookingService()
    monkeypatch.setenv("MISSED_WORKER_BATCH_SIZE", "50")
    monkeypatch.setattr(worker_module, "SessionLocal", FakeSession)
    monkeypatch.setattr(worker_module, "get_availability_cache", lambda: object())
    monkeypatch.setattr(worker_module, "get_slot_lock_manager", lambda: object())
    monkeypatch.setattr(worker_module, "build_booking_service", lambda session, cache, locks: service)

    marked = await worker_module.run_cycle()

    assert marked == 3
    assert service.calls == [(RoleEnum.SYSTEM, 50)]


@pytest.mark.asyncio
async def test_once_mode_runs_single_cycle_and_releases_resources(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[str] = []

    async def _run_cycle() -> int:
        calls.append("cycle")
        return 0

    async def _close_cache() -> None:
        calls.append("close_cache")

    async def _close_engine() -> None:
        calls.append("close_engine")

    monkeypatch.setenv("MISSED_WORKER_MODE", "once")
    monkeypatch.setattr(worker_module, "run_cycle", _run_cycle)
    monkeypatch.setattr(worker_module, "close_cache_backend", _close_cache)
    monkeypatch.setattr(worker_module, "close_engine", _close_engine)

    await worker_module.main()

    assert calls == ["cycle", "close_cache", "close_engine"]
