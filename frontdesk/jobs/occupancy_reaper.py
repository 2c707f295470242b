from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from frontdesk.config import settings
from frontdesk.database import SessionLocal
from frontdesk.services.occupancy_service import OccupancyService


logger = logging.getLogger(__name__)


async def run_occupancy_reaper(
    session_factory: async_sessionmaker[AsyncSession] = SessionLocal,
    *,
    max_age_minutes: int | None = None,
    now: datetime | None = None,
) -> int:
    """Release room check-ins idle past the inactivity threshold.

    Returns how many check-ins were released (0 when the run failed).
    """

    max_age = max_age_minutes if max_age_minutes is not None else settings.reaper_inactivity_minutes

    try:
        async with session_factory() as session:
            released = await OccupancyService().release_stale_checkins(
                session,
                max_age_minutes=max_age,
                now=now,
            )
    except Exception:
        logger.exception("occupancy_reaper_run_failed max_age_minutes=%s", max_age)
        return 0

    if released:
        logger.info("occupancy_reaper_run_done released=%s", len(released))
    return len(released)
