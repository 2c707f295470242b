from frontdesk.config import settings
from frontdesk.worker import tasks
from frontdesk.worker.celery_app import celery_app


def test_beat_schedule_uses_configured_intervals():
    schedule = celery_app.conf.beat_schedule

    assert schedule["escalate-scheduled-entries"]["task"] == "frontdesk.escalate_scheduled"
    assert schedule["escalate-scheduled-entries"]["schedule"] == float(settings.escalation_interval_seconds)
    assert schedule["release-stale-checkins"]["task"] == "frontdesk.release_stale_checkins"
    assert schedule["release-stale-checkins"]["schedule"] == float(settings.reaper_interval_seconds)


def test_tasks_are_registered_under_stable_names():
    assert tasks.escalate_scheduled.name == "frontdesk.escalate_scheduled"
    assert tasks.release_stale_checkins.name == "frontdesk.release_stale_checkins"


def test_tasks_run_jobs_synchronously(monkeypatch):
    calls = []

    async def _fake_escalation():
        calls.append("escalation")
        return 3

    async def _fake_reaper():
        calls.append("reaper")
        return 1

    monkeypatch.setattr(tasks, "run_escalation", _fake_escalation)
    monkeypatch.setattr(tasks, "run_occupancy_reaper", _fake_reaper)

    assert tasks.escalate_scheduled() == 3
    assert tasks.release_stale_checkins() == 1
    assert calls == ["escalation", "reaper"]


def test_escalation_task_against_the_database():
    # Empty queue: the real job runs end to end and changes nothing.
    assert tasks.escalate_scheduled.apply().get() == 0
