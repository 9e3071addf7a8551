"""Seed idempotent demo data for local/non-production environments."""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import dataclass
from datetime import date, timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from consultbook.core.cache import close_cache_backend
from consultbook.core.config import get_settings
from consultbook.core.database import SessionLocal, close_engine
from consultbook.core.enums import ExpertStatusEnum, RoleEnum
from consultbook.core.security import create_access_token
from consultbook.modules.availability.cache import get_availability_cache
from consultbook.modules.experts.models import Expert
from consultbook.modules.scheduling.models import OffTime, Schedule

DEMO_ADMIN_ID = UUID("00000000-0000-4000-8000-000000000001")
DEMO_EXPERT_USER_ID = UUID("00000000-0000-4000-8000-000000000002")
DEMO_USER_ID = UUID("00000000-0000-4000-8000-000000000003")

DEMO_EXPERT_EMAIL = "demo-expert@consultbook.dev"

# Monday..Friday, 0=Sunday
DEMO_SCHEDULE_DAYS = (1, 2, 3, 4, 5)
DEMO_SCHEDULE_WINDOWS = (("09:00", "12:00"), ("13:30", "17:00"))
DEMO_OFF_TIME_OFFSET_DAYS = 14


@dataclass(slots=True)
class SeedStats:
    expert_created: bool = False
    expert_id: str | None = None
    schedules_created: int = 0
    off_time_created: bool = False


async def _ensure_expert(session: AsyncSession) -> tuple[Expert, bool]:
    expert = await session.scalar(select(Expert).where(Expert.email == DEMO_EXPERT_EMAIL))
    if expert is None:
        expert = Expert(
            user_id=DEMO_EXPERT_USER_ID,
            name="Demo Tax Advisor",
            email=DEMO_EXPERT_EMAIL,
            expertise="tax",
            bio="Advisor for demo scenarios: personal income tax and small business filings.",
            status=ExpertStatusEnum.ACTIVE,
        )
        session.add(expert)
        await session.flush()
        return expert, True

    expert.status = ExpertStatusEnum.ACTIVE
    await session.flush()
    return expert, False


async def _ensure_schedules(session: AsyncSession, expert: Expert) -> int:
    created = 0
    for day in DEMO_SCHEDULE_DAYS:
        for start_time, end_time in DEMO_SCHEDULE_WINDOWS:
            existing = await session.scalar(
                select(Schedule).where(
                    Schedule.expert_id == expert.id,
                    Schedule.day_of_week == day,
                    Schedule.start_time == start_time,
                    Schedule.end_time == end_time,
                ),
            )
            if existing is not None:
                existing.is_active = True
                continue
            session.add(
                Schedule(
                    expert_id=expert.id,
                    day_of_week=day,
                    start_time=start_time,
                    end_time=end_time,
                    is_active=True,
                ),
            )
            created += 1
    await session.flush()
    return created


async def _ensure_off_time(session: AsyncSession, expert: Expert) -> bool:
    day = date.today() + timedelta(days=DEMO_OFF_TIME_OFFSET_DAYS)
    existing = await session.scalar(
        select(OffTime).where(OffTime.expert_id == expert.id, OffTime.start_date == day),
    )
    if existing is not None:
        return False
    session.add(OffTime(expert_id=expert.id, start_date=day, end_date=day, reason="Demo day off"))
    await session.flush()
    return True


async def _run_seed(*, allow_production: bool) -> SeedStats:
    settings = get_settings()
    app_env = settings.app_env.strip().lower()
    if app_env in {"production", "prod"} and not allow_production:
        raise RuntimeError(
            "Refusing to seed demo data in production. "
            "Re-run with --allow-production only if you are absolutely sure.",
        )

    stats = SeedStats()

    async with SessionLocal() as session:
        try:
            expert, stats.expert_created = await _ensure_expert(session)
            stats.expert_id = str(expert.id)
            stats.schedules_created = await _ensure_schedules(session, expert)
            stats.off_time_created = await _ensure_off_time(session, expert)
            await session.commit()
        except Exception:
            await session.rollback()
            raise

    await get_availability_cache().invalidate_expert(expert.id)
    return stats


async def _shutdown() -> None:
    await close_cache_backend()
    await close_engine()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Seed idempotent demo data for ConsultBook (expert, weekly schedules, one off-time).",
    )
    parser.add_argument(
        "--allow-production",
        action="store_true",
        help="Allow seeding even when APP_ENV is production/prod.",
    )
    return parser


def _print_summary(stats: SeedStats) -> None:
    print("Demo seed completed.")
    print(f"- Expert created: {stats.expert_created}")
    print(f"- Expert id: {stats.expert_id}")
    print(f"- Schedules created: {stats.schedules_created}")
    print(f"- Off-time created: {stats.off_time_created}")
    print("")
    print("Demo bearer tokens (non-production only):")
    print(f"- admin:  {create_access_token(str(DEMO_ADMIN_ID), RoleEnum.ADMIN)}")
    print(f"- expert: {create_access_token(str(DEMO_EXPERT_USER_ID), RoleEnum.EXPERT)}")
    print(f"- user:   {create_access_token(str(DEMO_USER_ID), RoleEnum.USER)}")


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()

    try:
        stats = asyncio.run(_run_seed(allow_production=args.allow_production))
    except Exception as exc:
        print(f"Demo seed failed: {exc}")
        return 1
    finally:
        asyncio.run(_shutdown())

    _print_summary(stats)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
