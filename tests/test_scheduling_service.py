from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from uuid import UUID, uuid4

import pytest
from pydantic import ValidationError

from consultbook.core.enums import RoleEnum
from consultbook.core.security import Actor
from consultbook.modules.scheduling.schemas import OffTimeCreate, ScheduleCreate, ScheduleUpdate
from consultbook.modules.scheduling.service import SchedulingService
from consultbook.shared.exceptions import ForbiddenException, NotFoundException, ValidationException


@dataclass
class FakeExpert:
    id: UUID
    user_id: UUID


@dataclass
class FakeSchedule:
    id: UUID
    expert_id: UUID
    day_of_week: int
    start_time: str
    end_time: str
    is_active: bool = True


@dataclass
class FakeOffTime:
    id: UUID
    expert_id: UUID
    start_date: date
    end_date: date
    reason: str | None = None


@dataclass
class CallLog:
    calls: list[str] = field(default_factory=list)


class FakeSchedulingRepository:
    def __init__(self, log: CallLog) -> None:
        self.log = log
        self.schedules: dict[UUID, FakeSchedule] = {}
        self.off_times: dict[UUID, FakeOffTime] = {}

    async def create_schedule(self, expert_id, day_of_week, start_time, end_time) -> FakeSchedule:
        schedule = FakeSchedule(uuid4(), expert_id, day_of_week, start_time, end_time)
        self.schedules[schedule.id] = schedule
        self.log.calls.append("write")
        return schedule

    async def get_schedule(self, schedule_id: UUID) -> FakeSchedule | None:
        return self.schedules.get(schedule_id)

    async def list_schedules_by_expert(self, expert_id: UUID, include_inactive: bool = False):
        return [
            item
            for item in self.schedules.values()
            if item.expert_id == expert_id and (include_inactive or item.is_active)
        ]

    async def update_schedule(self, schedule: FakeSchedule, **changes) -> FakeSchedule:
        for key, value in changes.items():
            setattr(schedule, key, value)
        self.log.calls.append("write")
        return schedule

    async def deactivate_schedule(self, schedule: FakeSchedule) -> FakeSchedule:
        schedule.is_active = False
        self.log.calls.append("write")
        return schedule

    async def create_off_time(self, expert_id, start_date, end_date, reason) -> FakeOffTime:
        off_time = FakeOffTime(uuid4(), expert_id, start_date, end_date, reason)
        self.off_times[off_time.id] = off_time
        self.log.calls.append("write")
        return off_time

    async def get_off_time(self, off_time_id: UUID) -> FakeOffTime | None:
        return self.off_times.get(off_time_id)

    async def list_off_times_by_expert(self, expert_id: UUID) -> list[FakeOffTime]:
        return [item for item in self.off_times.values() if item.expert_id == expert_id]

    async def delete_off_time(self, off_time: FakeOffTime) -> None:
        del self.off_times[off_time.id]
        self.log.calls.append("write")

    async def commit(self) -> None:
        self.log.calls.append("commit")


class FakeExpertRepository:
    def __init__(self, experts: dict[UUID, FakeExpert]) -> None:
        self._experts = experts

    async def get_by_id(self, expert_id: UUID) -> FakeExpert | None:
        return self._experts.get(expert_id)


class RecordingCache:
    def __init__(self, log: CallLog) -> None:
        self.log = log
        self.invalidated: list[UUID] = []

    async def invalidate_expert(self, expert_id: UUID) -> int:
        self.invalidated.append(expert_id)
        self.log.calls.append("invalidate")
        return 1


def make_service() -> tuple[SchedulingService, FakeExpert, FakeSchedulingRepository, RecordingCache, CallLog]:
    log = CallLog()
    expert = FakeExpert(id=uuid4(), user_id=uuid4())
    repository = FakeSchedulingRepository(log)
    cache = RecordingCache(log)
    service = SchedulingService(repository, FakeExpertRepository({expert.id: expert}), cache)
    return service, expert, repository, cache, log


@pytest.mark.asyncio
async def test_owner_creates_schedule_and_cache_is_dropped_after_commit() -> None:
    service, expert, _, cache, log = make_service()
    owner = Actor(expert.user_id, RoleEnum.EXPERT)

    schedule = await service.create_schedule(
        expert.id,
        ScheduleCreate(day_of_week=1, start_time="09:00", end_time="12:00"),
        owner,
    )

    assert schedule.day_of_week == 1
    assert cache.invalidated == [expert.id]
    assert log.calls == ["write", "commit", "invalidate"]


@pytest.mark.asyncio
async def test_other_expert_and_user_cannot_manage_schedule() -> None:
    service, expert, _, cache, _ = make_service()
    payload = ScheduleCreate(day_of_week=1, start_time="09:00", end_time="12:00")

    with pytest.raises(ForbiddenException):
        await service.create_schedule(expert.id, payload, Actor(uuid4(), RoleEnum.EXPERT))
    with pytest.raises(ForbiddenException):
        await service.create_schedule(expert.id, payload, Actor(expert.user_id, RoleEnum.USER))
    assert cache.invalidated == []


@pytest.mark.asyncio
async def test_unknown_expert_is_not_found() -> None:
    service, _, _, _, _ = make_service()

    with pytest.raises(NotFoundException):
        await service.list_schedules(uuid4())


@pytest.mark.asyncio
async def test_update_schedule_checks_merged_window() -> None:
    service, expert, _, cache, _ = make_service()
    admin = Actor(uuid4(), RoleEnum.ADMIN)
    schedule = await service.create_schedule(
        expert.id,
        ScheduleCreate(day_of_week=1, start_time="09:00", end_time="12:00"),
        admin,
    )

    with pytest.raises(ValidationException):
        await service.update_schedule(schedule.id, ScheduleUpdate(start_time="12:30"), admin)

    updated = await service.update_schedule(schedule.id, ScheduleUpdate(end_time="13:00"), admin)

    assert updated.end_time == "13:00"
    assert cache.invalidated == [expert.id, expert.id]


@pytest.mark.asyncio
async def test_deactivate_keeps_row_but_hides_it_from_active_list() -> None:
    service, expert, _, cache, _ = make_service()
    owner = Actor(expert.user_id, RoleEnum.EXPERT)
    schedule = await service.create_schedule(
        expert.id,
        ScheduleCreate(day_of_week=3, start_time="10:00", end_time="11:00"),
        owner,
    )

    await service.deactivate_schedule(schedule.id, owner)

    assert await service.list_schedules(expert.id) == []
    assert [item.id for item in await service.list_schedules(expert.id, include_inactive=True)] == [schedule.id]
    assert len(cache.invalidated) == 2


@pytest.mark.asyncio
async def test_off_time_create_and_delete_invalidate_cache() -> None:
    service, expert, repository, cache, log = make_service()
    owner = Actor(expert.user_id, RoleEnum.EXPERT)

    off_time = await service.create_off_time(
        expert.id,
        OffTimeCreate(start_date=date(2025, 6, 2), end_date=date(2025, 6, 4), reason="Conference"),
        owner,
    )
    await service.delete_off_time(off_time.id, owner)

    assert repository.off_times == {}
    assert cache.invalidated == [expert.id, expert.id]
    assert log.calls == ["write", "commit", "invalidate", "write", "commit", "invalidate"]

    with pytest.raises(NotFoundException):
        await service.delete_off_time(off_time.id, owner)


def test_schedule_payload_validation() -> None:
    with pytest.raises(ValidationError):
        ScheduleCreate(day_of_week=7, start_time="09:00", end_time="10:00")
    with pytest.raises(ValidationError):
        ScheduleCreate(day_of_week=1, start_time="10:00", end_time="10:00")
    with pytest.raises(ValidationError):
        ScheduleCreate(day_of_week=1, start_time="9:00", end_time="10:00")
    with pytest.raises(ValidationError):
        OffTimeCreate(start_date=date(2025, 6, 3), end_date=date(2025, 6, 2))

    single_day = OffTimeCreate(start_date=date(2025, 6, 2), end_date=date(2025, 6, 2))
    assert single_day.start_date == single_day.end_date
