from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from uuid import UUID, uuid4
from zoneinfo import ZoneInfo

import pytest

from consultbook.core.cache import InMemoryCacheBackend
from consultbook.core.enums import ExpertStatusEnum
from consultbook.modules.availability.cache import AvailabilityCache
from consultbook.modules.availability.resolver import AvailabilityResolver, schedule_windows
from consultbook.modules.availability.schemas import AvailabilityCheckRequest
from consultbook.shared.exceptions import CacheUnavailableError, NotFoundException
from consultbook.shared.utils import parse_minute_of_day

MONDAY = date(2025, 6, 2)


@dataclass
class FakeExpert:
    id: UUID
    status: ExpertStatusEnum = ExpertStatusEnum.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.status == ExpertStatusEnum.ACTIVE


@dataclass
class FakeSchedule:
    day_of_week: int
    start_time: str
    end_time: str
    id: UUID = field(default_factory=uuid4)

    @property
    def start_minute(self) -> int | None:
        return parse_minute_of_day(self.start_time)

    @property
    def end_minute(self) -> int | None:
        return parse_minute_of_day(self.end_time)


@dataclass
class FakeOffTime:
    start_date: date
    end_date: date


class FakeExpertRepository:
    def __init__(self, experts: dict[UUID, FakeExpert]) -> None:
        self._experts = experts

    async def get_by_id(self, expert_id: UUID) -> FakeExpert | None:
        return self._experts.get(expert_id)


class FakeSchedulingRepository:
    def __init__(self, schedules: list[FakeSchedule], off_times: list[FakeOffTime] | None = None) -> None:
        self.schedules = schedules
        self.off_times = off_times or []
        self.schedule_reads = 0

    async def list_off_times_covering(self, expert_id: UUID, day: date) -> list[FakeOffTime]:
        return [item for item in self.off_times if item.start_date <= day <= item.end_date]

    async def list_active_schedules_for_day(self, expert_id: UUID, day_of_week: int) -> list[FakeSchedule]:
        self.schedule_reads += 1
        return [item for item in self.schedules if item.day_of_week == day_of_week]


class FailingCacheBackend:
    async def _fail(self, *args, **kwargs):
        raise CacheUnavailableError("redis down")

    get = set = delete = set_if_absent = delete_if_equals = delete_pattern = ping = _fail


def make_resolver(
    schedules: list[FakeSchedule],
    off_times: list[FakeOffTime] | None = None,
    status: ExpertStatusEnum = ExpertStatusEnum.ACTIVE,
    backend=None,
    zone=UTC,
) -> tuple[AvailabilityResolver, FakeExpert, FakeSchedulingRepository, AvailabilityCache]:
    expert = FakeExpert(id=uuid4(), status=status)
    scheduling_repo = FakeSchedulingRepository(schedules, off_times)
    cache = AvailabilityCache(backend or InMemoryCacheBackend(), ttl_seconds=3600)
    resolver = AvailabilityResolver(
        expert_repository=FakeExpertRepository({expert.id: expert}),
        scheduling_repository=scheduling_repo,
        cache=cache,
        zone=zone,
    )
    return resolver, expert, scheduling_repo, cache


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2025, 6, 2, hour, minute, tzinfo=UTC)


@pytest.mark.asyncio
async def test_cache_round_trips_hints_and_reports_miss() -> None:
    cache = AvailabilityCache(InMemoryCacheBackend(), ttl_seconds=60)
    expert_id = uuid4()

    assert await cache.get(expert_id, MONDAY) is None
    await cache.set(expert_id, MONDAY, False)
    assert await cache.get(expert_id, MONDAY) is False
    await cache.set(expert_id, MONDAY, True)
    assert await cache.get(expert_id, MONDAY) is True


@pytest.mark.asyncio
async def test_cache_invalidation_is_scoped_to_expert() -> None:
    cache = AvailabilityCache(InMemoryCacheBackend(), ttl_seconds=60)
    expert_id, other_id = uuid4(), uuid4()
    await cache.set(expert_id, MONDAY, True)
    await cache.set(expert_id, date(2025, 6, 3), False)
    await cache.set(other_id, MONDAY, True)

    assert await cache.invalidate_expert(expert_id) == 2
    assert await cache.get(expert_id, MONDAY) is None
    assert await cache.get(other_id, MONDAY) is True


@pytest.mark.asyncio
async def test_cache_failures_degrade_to_miss() -> None:
    cache = AvailabilityCache(FailingCacheBackend(), ttl_seconds=60)
    expert_id = uuid4()

    await cache.set(expert_id, MONDAY, True)
    assert await cache.get(expert_id, MONDAY) is None
    assert await cache.invalidate_expert(expert_id) == 0


def test_cache_key_layout() -> None:
    cache = AvailabilityCache(InMemoryCacheBackend(), ttl_seconds=60, namespace="avail")
    expert_id = UUID("11111111-1111-4111-8111-111111111111")

    assert cache.key(expert_id, MONDAY) == "avail:11111111-1111-4111-8111-111111111111:2025-06-02"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("instant", "expected"),
    [
        (at(8, 59), False),
        (at(9, 0), True),
        (at(11, 59), True),
        (at(12, 0), False),
        (at(14, 0), True),
    ],
)
async def test_window_is_closed_at_start_and_open_at_end(instant: datetime, expected: bool) -> None:
    resolver, expert, _, _ = make_resolver(
        [FakeSchedule(1, "09:00", "12:00"), FakeSchedule(1, "13:30", "17:00")],
    )

    assert await resolver.is_available(expert.id, instant) is expected


@pytest.mark.asyncio
async def test_other_weekday_schedule_does_not_apply() -> None:
    resolver, expert, _, cache = make_resolver([FakeSchedule(2, "09:00", "12:00")])

    assert await resolver.is_available(expert.id, at(10)) is False
    assert await cache.get(expert.id, MONDAY) is False


@pytest.mark.asyncio
async def test_off_time_overrides_schedule_and_caches_false() -> None:
    resolver, expert, scheduling_repo, cache = make_resolver(
        [FakeSchedule(1, "09:00", "12:00")],
        off_times=[FakeOffTime(date(2025, 6, 1), date(2025, 6, 3))],
    )

    assert await resolver.is_available(expert.id, at(10)) is False
    assert await cache.get(expert.id, MONDAY) is False
    assert scheduling_repo.schedule_reads == 0


@pytest.mark.asyncio
async def test_cached_false_short_circuits() -> None:
    resolver, expert, scheduling_repo, cache = make_resolver([FakeSchedule(1, "09:00", "12:00")])
    await cache.set(expert.id, MONDAY, False)

    assert await resolver.is_available(expert.id, at(10)) is False
    assert scheduling_repo.schedule_reads == 0


@pytest.mark.asyncio
async def test_cached_true_is_rechecked_against_schedules() -> None:
    resolver, expert, scheduling_repo, cache = make_resolver([FakeSchedule(1, "09:00", "12:00")])
    await cache.set(expert.id, MONDAY, True)

    assert await resolver.is_available(expert.id, at(15)) is False
    assert scheduling_repo.schedule_reads == 1
    assert await cache.get(expert.id, MONDAY) is True


@pytest.mark.asyncio
async def test_stale_true_hint_is_corrected_when_no_windows_remain() -> None:
    resolver, expert, _, cache = make_resolver([])
    await cache.set(expert.id, MONDAY, True)

    assert await resolver.is_available(expert.id, at(10)) is False
    assert await cache.get(expert.id, MONDAY) is False


@pytest.mark.asyncio
async def test_inactive_expert_is_unavailable_and_unknown_expert_is_not_found() -> None:
    resolver, expert, _, _ = make_resolver(
        [FakeSchedule(1, "09:00", "12:00")],
        status=ExpertStatusEnum.INACTIVE,
    )

    assert await resolver.is_available(expert.id, at(10)) is False
    with pytest.raises(NotFoundException):
        await resolver.is_available(uuid4(), at(10))


@pytest.mark.asyncio
async def test_cache_outage_still_answers_from_source() -> None:
    resolver, expert, _, _ = make_resolver([FakeSchedule(1, "09:00", "12:00")], backend=FailingCacheBackend())

    assert await resolver.is_available(expert.id, at(10)) is True
    assert await resolver.is_available(expert.id, at(13)) is False


def test_schedule_windows_skip_malformed_entries() -> None:
    schedules = [
        FakeSchedule(1, "09:00", "12:00"),
        FakeSchedule(1, "9am", "12:00"),
        FakeSchedule(1, "14:00", "13:00"),
        FakeSchedule(1, "24:00", "24:30"),
    ]

    assert schedule_windows(schedules) == [(540, 720)]


@pytest.mark.asyncio
async def test_regional_date_and_weekday_come_from_configured_zone() -> None:
    # 2025-06-01T23:30Z is Monday 06:30 in Asia/Ho_Chi_Minh (UTC+7)
    resolver, expert, _, cache = make_resolver(
        [FakeSchedule(1, "06:00", "07:00")],
        zone=ZoneInfo("Asia/Ho_Chi_Minh"),
    )

    assert await resolver.is_available(expert.id, datetime(2025, 6, 1, 23, 30, tzinfo=UTC)) is True
    assert await cache.get(expert.id, MONDAY) is True


@pytest.mark.asyncio
async def test_check_combines_regional_date_and_time() -> None:
    resolver, expert, _, _ = make_resolver([FakeSchedule(1, "09:00", "12:00")])

    available = await resolver.check(AvailabilityCheckRequest(expert_id=expert.id, date=MONDAY, time="11:45"))
    closed = await resolver.check(AvailabilityCheckRequest(expert_id=expert.id, date=MONDAY, time="12:00"))

    assert available is True
    assert closed is False
