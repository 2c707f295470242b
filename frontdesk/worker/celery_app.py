from __future__ import annotations

from celery import Celery

from frontdesk.config import settings


def make_celery() -> Celery:
    """Create the Celery app with the periodic job schedule.

    Built in a function so tests can import tasks without a broker.
    """

    celery = Celery(
        "frontdesk",
        broker=settings.redis_url,
        backend=settings.redis_url,
        include=["frontdesk.worker.tasks"],
    )

    celery.conf.update(
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        timezone="UTC",
        enable_utc=True,
    )

    # Intervals are independent; run beat with `celery -A frontdesk.worker.celery_app beat`.
    celery.conf.beat_schedule = {
        "escalate-scheduled-entries": {
            "task": "frontdesk.escalate_scheduled",
            "schedule": float(settings.escalation_interval_seconds),
        },
        "release-stale-checkins": {
            "task": "frontdesk.release_stale_checkins",
            "schedule": float(settings.reaper_interval_seconds),
        },
    }

    return celery


celery_app = make_celery()
