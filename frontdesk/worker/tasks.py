from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from frontdesk.database import engine
from frontdesk.jobs.escalation import run_escalation
from frontdesk.jobs.occupancy_reaper import run_occupancy_reaper
from frontdesk.worker.celery_app import celery_app


logger = logging.getLogger(__name__)


def _run_job(job: Callable[[], Awaitable[int]]) -> int:
    async def _main() -> int:
        try:
            return await job()
        finally:
            # Each task gets a fresh event loop; pooled connections must not outlive it.
            await engine.dispose()

    return asyncio.run(_main())


@celery_app.task(name="frontdesk.escalate_scheduled")
def escalate_scheduled() -> int:
    changed = _run_job(run_escalation)
    logger.info("escalate_scheduled task done", extra={"changed": changed})
    return changed


@celery_app.task(name="frontdesk.release_stale_checkins")
def release_stale_checkins() -> int:
    released = _run_job(run_occupancy_reaper)
    logger.info("release_stale_checkins task done", extra={"released": released})
    return released
