import asyncio
from datetime import datetime, timedelta, timezone

from frontdesk.database import SessionLocal
from frontdesk.jobs.escalation import run_escalation
from frontdesk.models.enums import EntryStatus, Priority
from frontdesk.schemas.queue import QueueEntryCreate
from frontdesk.services.queue_service import QueueService


T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


async def _add_scheduled(service, session, name, *, priority, scheduled_at):
    return await service.add_entry(
        session,
        QueueEntryCreate(
            patient_name=name,
            tutor_name="Ana",
            service_type="consulta",
            priority=priority,
            has_scheduled_appointment=True,
            scheduled_at=scheduled_at,
        ),
        now=T0,
    )


def test_escalation_converts_only_lapsed_appointments_and_is_idempotent():
    service = QueueService()
    sweep_at = T0 + timedelta(minutes=30)

    async def _setup():
        async with SessionLocal() as session:
            late = await _add_scheduled(service, session, "late", priority=Priority.HIGH, scheduled_at=T0 + timedelta(minutes=10))
            grace = await _add_scheduled(
                service, session, "grace", priority=Priority.HIGH, scheduled_at=T0 + timedelta(minutes=20)
            )
            emergency = await _add_scheduled(
                service, session, "emergency", priority=Priority.EMERGENCY, scheduled_at=T0
            )
            return late.id, grace.id, emergency.id

    async def _load(entry_id):
        async with SessionLocal() as session:
            entry = await service.get_entry(session, entry_id)
            await session.commit()
            return entry

    async def _run():
        ids = await _setup()
        first = await run_escalation(SessionLocal, now=sweep_at)
        second = await run_escalation(SessionLocal, now=sweep_at)
        return first, second, [await _load(i) for i in ids]

    first, second, (late, grace, emergency) = asyncio.run(_run())

    assert first == 2
    assert second == 0

    assert late.priority == Priority.NORMAL
    assert late.has_scheduled_appointment is False
    assert late.scheduled_at is None

    assert grace.priority == Priority.HIGH
    assert grace.has_scheduled_appointment is True

    assert emergency.priority == Priority.EMERGENCY
    assert emergency.has_scheduled_appointment is False
    assert emergency.status == EntryStatus.WAITING


def test_escalation_ignores_entries_no_longer_waiting(make_room, make_user):
    service = QueueService()

    async def _run():
        async with SessionLocal() as session:
            room = await make_room(session)
            vet = await make_user(session, room=room)
            entry = await _add_scheduled(service, session, "called", priority=Priority.HIGH, scheduled_at=T0)
            await service.call_next(session, vet_id=vet.id, now=T0)

        changed = await run_escalation(SessionLocal, now=T0 + timedelta(hours=1))

        async with SessionLocal() as session:
            reloaded = await service.get_entry(session, entry.id)
            await session.commit()
        return changed, reloaded

    changed, entry = asyncio.run(_run())
    assert changed == 0
    assert entry.status == EntryStatus.CALLED
    assert entry.has_scheduled_appointment is True


def test_escalation_run_failure_is_logged_not_raised(caplog):
    def _broken_factory():
        raise RuntimeError("database unavailable")

    assert asyncio.run(run_escalation(_broken_factory)) == 0
    assert any("escalation_run_failed" in r.getMessage() for r in caplog.records)
