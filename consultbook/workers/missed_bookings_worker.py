"""Executable worker that marks overdue bookings as missed."""

from __future__ import annotations

import asyncio
import logging
import os

from consultbook.core.cache import close_cache_backend
from consultbook.core.database import SessionLocal, close_engine
from consultbook.core.security import SYSTEM_ACTOR
from consultbook.modules.availability.cache import get_availability_cache
from consultbook.modules.booking.locks import get_slot_lock_manager
from consultbook.modules.booking.service import build_booking_service

logger = logging.getLogger(__name__)


async def run_cycle() -> int:
    """Run a single sweep in one DB transaction."""
    async with SessionLocal() as session:
        service = build_booking_service(session, get_availability_cache(), get_slot_lock_manager())
        return await service.sweep_missed_bookings(
            SYSTEM_ACTOR,
            limit=int(os.getenv("MISSED_WORKER_BATCH_SIZE", "500")),
        )


async def main() -> None:
    """Run once or keep polling according to worker mode."""
    logging.basicConfig(
        level=os.getenv("MISSED_WORKER_LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    mode = os.getenv("MISSED_WORKER_MODE", "once").strip().lower()
    poll_seconds = int(os.getenv("MISSED_WORKER_POLL_SECONDS", "60"))

    try:
        if mode == "once":
            marked = await run_cycle()
            logger.info("Missed bookings worker marked %s bookings", marked)
            return

        while True:
            try:
                marked = await run_cycle()
                logger.info("Missed bookings worker marked %s bookings", marked)
            except Exception:
                logger.exception("Missed bookings worker cycle failed")
            await asyncio.sleep(poll_seconds)
    finally:
        await close_cache_backend()
        await close_engine()


if __name__ == "__main__":
    asyncio.run(main())
