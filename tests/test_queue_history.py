import asyncio
from datetime import datetime, timedelta, timezone

from frontdesk.database import SessionLocal
from frontdesk.schemas.queue import HistoryFilters, QueueEntryCreate
from frontdesk.services.queue_service import QueueService


T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


async def _seed_history(service, session):
    rows = [
        ("Rex", "Ana Souza", "consulta", 1),
        ("Mia", "Bruno Lima", "vacina", 2),
        ("Thor", "ana paula", "consulta", 3),
        ("Luna", "Carla", "exame", 4),
    ]
    for patient, tutor, service_type, hour in rows:
        entry = await service.add_entry(
            session,
            QueueEntryCreate(patient_name=patient, tutor_name=tutor, service_type=service_type),
            now=T0,
        )
        await service.complete(session, entry.id, now=T0 + timedelta(hours=hour))

    # Active and cancelled entries never show up in history.
    await service.add_entry(session, QueueEntryCreate(patient_name="Zeca", tutor_name="Ana", service_type="consulta"), now=T0)
    cancelled = await service.add_entry(
        session, QueueEntryCreate(patient_name="Bidu", tutor_name="Ana", service_type="consulta"), now=T0
    )
    await service.cancel(session, cancelled.id)


def test_history_is_completed_only_newest_first():
    service = QueueService()

    async def _run():
        async with SessionLocal() as session:
            await _seed_history(service, session)
            return await service.get_history(session)

    names = [e.patient_name for e in asyncio.run(_run())]
    assert names == ["Luna", "Thor", "Mia", "Rex"]


def test_history_filters():
    service = QueueService()

    async def _run():
        async with SessionLocal() as session:
            await _seed_history(service, session)
            by_tutor = await service.get_history(session, HistoryFilters(tutor_name="ANA"))
            by_service = await service.get_history(session, HistoryFilters(service_type="consulta"))
            by_range = await service.get_history(
                session,
                HistoryFilters(start_date=T0 + timedelta(hours=2), end_date=T0 + timedelta(hours=3)),
            )
            by_patient = await service.get_history(session, HistoryFilters(patient_name="ux"))
            return by_tutor, by_service, by_range, by_patient

    by_tutor, by_service, by_range, by_patient = asyncio.run(_run())

    assert [e.patient_name for e in by_tutor] == ["Thor", "Rex"]
    assert [e.patient_name for e in by_service] == ["Thor", "Rex"]
    assert [e.patient_name for e in by_range] == ["Thor", "Mia"]
    assert by_patient == []


def test_history_name_filters_match_wildcards_literally():
    service = QueueService()

    async def _run():
        async with SessionLocal() as session:
            await _seed_history(service, session)
            entry = await service.add_entry(
                session,
                QueueEntryCreate(patient_name="Bob_1", tutor_name="Loja 100%", service_type="banho"),
                now=T0,
            )
            await service.complete(session, entry.id, now=T0 + timedelta(hours=5))

            by_percent = await service.get_history(session, HistoryFilters(tutor_name="%"))
            by_underscore = await service.get_history(session, HistoryFilters(patient_name="_"))
            by_wildcard_only = await service.get_history(session, HistoryFilters(tutor_name="a_a"))
            return by_percent, by_underscore, by_wildcard_only

    by_percent, by_underscore, by_wildcard_only = asyncio.run(_run())

    assert [e.patient_name for e in by_percent] == ["Bob_1"]
    assert [e.patient_name for e in by_underscore] == ["Bob_1"]
    assert by_wildcard_only == []


def test_history_pagination():
    service = QueueService()

    async def _run():
        async with SessionLocal() as session:
            await _seed_history(service, session)
            first = await service.get_history_page(session, HistoryFilters(page=1, limit=3))
            second = await service.get_history_page(session, HistoryFilters(page=2, limit=3))
            return first, second

    (items1, total1, page1, pages1), (items2, total2, page2, pages2) = asyncio.run(_run())

    assert (total1, page1, pages1) == (4, 1, 2)
    assert [e.patient_name for e in items1] == ["Luna", "Thor", "Mia"]
    assert (total2, page2, pages2) == (4, 2, 2)
    assert [e.patient_name for e in items2] == ["Rex"]


def test_room_occupations_combines_service_and_check_ins(make_room, make_user):
    service = QueueService()

    async def _run():
        async with SessionLocal() as session:
            room_a = await make_room(session, name="A")
            room_b = await make_room(session, name="B")
            busy = await make_user(session, name="Dr. Busy", room=room_a)
            idle = await make_user(session, name="Dr. Idle", room=room_b)
            await service.add_entry(
                session, QueueEntryCreate(patient_name="Rex", tutor_name="Ana", service_type="consulta"), now=T0
            )
            await service.call_next(session, vet_id=busy.id)

            everyone = await service.room_occupations(session)
            others = await service.room_occupations(session, exclude_vet_id=busy.id)
            return room_a.id, room_b.id, busy.id, idle.id, everyone, others

    room_a, room_b, busy_id, idle_id, everyone, others = asyncio.run(_run())

    assert everyone[room_a].vet_id == busy_id
    assert everyone[room_a].vet_name == "Dr. Busy"
    assert everyone[room_b].vet_id == idle_id
    assert set(others) == {room_b}


def test_list_active_scopes(make_user):
    service = QueueService()

    async def _run():
        async with SessionLocal() as session:
            vet = await make_user(session, name="Dr. A")
            other = await make_user(session, name="Dr. B")
            for name, assigned in (("pool", None), ("mine", vet.id), ("theirs", other.id)):
                await service.add_entry(
                    session,
                    QueueEntryCreate(patient_name=name, tutor_name="Ana", service_type="consulta", assigned_vet_id=assigned),
                    now=T0,
                )
            everything = await service.list_active(session)
            pool = await service.list_active(session, vet_id=None)
            mine = await service.list_active(session, vet_id=vet.id)
            return everything, pool, mine

    everything, pool, mine = asyncio.run(_run())
    assert {e.patient_name for e in everything} == {"pool", "mine", "theirs"}
    assert [e.patient_name for e in pool] == ["pool"]
    assert {e.patient_name for e in mine} == {"pool", "mine"}
