import asyncio
import logging
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from frontdesk.database import SessionLocal
from frontdesk.errors import QueueValidationError
from frontdesk.models.enums import EntryStatus, Priority
from frontdesk.models.queue_entry import QueueEntry
from frontdesk.schemas.queue import QueueEntryCreate
from frontdesk.services.queue_service import QueueService
from frontdesk.services.scheduling_policy import LAPSED_APPOINTMENT_MESSAGE


NOW = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)


async def _count_entries(session) -> int:
    res = await session.execute(select(func.count()).select_from(QueueEntry))
    count = int(res.scalar_one())
    await session.commit()
    return count


def test_add_entry_inserts_waiting_walk_in_with_default_priority():
    service = QueueService()

    async def _run():
        async with SessionLocal() as session:
            return await service.add_entry(
                session,
                QueueEntryCreate(patient_name=" Rex ", tutor_name="Ana", service_type="consulta"),
                now=NOW,
            )

    entry = asyncio.run(_run())

    assert entry.status == EntryStatus.WAITING
    assert entry.priority == Priority.NORMAL
    assert entry.patient_name == "Rex"
    assert entry.created_at == NOW
    assert entry.called_at is None
    assert entry.completed_at is None
    assert entry.system_message is None


def test_add_entry_lapsed_appointment_becomes_normal_walk_in(caplog):
    service = QueueService()

    async def _run():
        async with SessionLocal() as session:
            return await service.add_entry(
                session,
                QueueEntryCreate(
                    patient_name="Rex",
                    tutor_name="Ana",
                    service_type="consulta",
                    priority=Priority.HIGH,
                    has_scheduled_appointment=True,
                    scheduled_at=NOW - timedelta(minutes=20),
                ),
                now=NOW,
            )

    with caplog.at_level(logging.INFO, logger="frontdesk.services.queue_service"):
        entry = asyncio.run(_run())

    assert entry.priority == Priority.NORMAL
    assert entry.has_scheduled_appointment is False
    assert entry.scheduled_at is None
    assert entry.system_message == LAPSED_APPOINTMENT_MESSAGE

    events = [getattr(r, "event_type", None) for r in caplog.records]
    assert "AppointmentConversion" in events
    assert "EntryEnqueued" in events


def test_add_entry_within_grace_keeps_appointment():
    service = QueueService()
    scheduled_at = NOW - timedelta(minutes=10)

    async def _run():
        async with SessionLocal() as session:
            return await service.add_entry(
                session,
                QueueEntryCreate(
                    patient_name="Rex",
                    tutor_name="Ana",
                    service_type="consulta",
                    priority=Priority.HIGH,
                    has_scheduled_appointment=True,
                    scheduled_at=scheduled_at,
                ),
                now=NOW,
            )

    entry = asyncio.run(_run())

    assert entry.priority == Priority.HIGH
    assert entry.has_scheduled_appointment is True
    assert entry.scheduled_at == scheduled_at
    assert entry.system_message is None


def test_add_entry_naive_scheduled_at_is_treated_as_utc():
    data = QueueEntryCreate(
        patient_name="Rex",
        tutor_name="Ana",
        service_type="consulta",
        has_scheduled_appointment=True,
        scheduled_at=datetime(2026, 3, 2, 10, 30),
    )
    assert data.scheduled_at.tzinfo is timezone.utc


@pytest.mark.parametrize(
    "payload",
    [
        {"patient_name": "   ", "tutor_name": "Ana", "service_type": "consulta"},
        {"patient_name": "Rex", "tutor_name": "", "service_type": "consulta"},
        {"patient_name": "Rex", "tutor_name": "Ana", "service_type": "  "},
    ],
)
def test_add_entry_rejects_blank_fields_and_inserts_nothing(payload):
    service = QueueService()

    async def _run():
        async with SessionLocal() as session:
            with pytest.raises(QueueValidationError):
                await service.add_entry(session, QueueEntryCreate(**payload), now=NOW)
            return await _count_entries(session)

    assert asyncio.run(_run()) == 0


def test_add_entry_patient_reference_allows_blank_names():
    service = QueueService()

    async def _run():
        async with SessionLocal() as session:
            return await service.add_entry(
                session,
                QueueEntryCreate(patient_id="pet-123", service_type="vacina"),
                now=NOW,
            )

    entry = asyncio.run(_run())

    assert entry.patient_id == "pet-123"
    assert entry.patient_name == ""
    assert entry.status == EntryStatus.WAITING


def test_add_entry_can_preassign_a_vet(make_user):
    service = QueueService()

    async def _run():
        async with SessionLocal() as session:
            vet = await make_user(session)
            entry = await service.add_entry(
                session,
                QueueEntryCreate(patient_name="Rex", tutor_name="Ana", service_type="consulta", assigned_vet_id=vet.id),
                now=NOW,
            )
            return vet.id, entry

    vet_id, entry = asyncio.run(_run())
    assert entry.assigned_vet_id == vet_id
