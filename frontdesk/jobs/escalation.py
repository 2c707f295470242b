from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from frontdesk.database import SessionLocal
from frontdesk.services.queue_service import QueueService


logger = logging.getLogger(__name__)


async def run_escalation(
    session_factory: async_sessionmaker[AsyncSession] = SessionLocal,
    *,
    now: datetime | None = None,
) -> int:
    """One escalation tick: re-classify scheduled entries still waiting.

    Returns how many entries changed. A failing run is logged and reported as
    0 so the next tick starts clean.
    """

    try:
        async with session_factory() as session:
            changed = await QueueService().escalate_scheduled(session, now=now)
    except Exception:
        logger.exception("escalation_run_failed")
        return 0

    if changed:
        logger.info("escalation_run_done changed=%s", len(changed))
    return len(changed)
