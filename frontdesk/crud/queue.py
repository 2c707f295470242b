from __future__ import annotations

import math
from collections.abc import Iterable
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from frontdesk.models.enums import ACTIVE_STATUSES, EntryStatus
from frontdesk.models.queue_entry import QueueEntry
from frontdesk.models.user import User
from frontdesk.schemas.queue import HistoryFilters
from frontdesk.services.scheduling_policy import Classification, selection_order


# Upper bound on candidates tried by one call-next before giving up. Only
# reachable on backends without SKIP LOCKED, where a concurrent caller can win
# the compare-and-swap on the row we picked.
CALL_NEXT_MAX_ATTEMPTS = 5


async def get_entry(
    session: AsyncSession,
    *,
    entry_id: UUID,
    refresh: bool = False,
) -> QueueEntry | None:
    stmt = select(QueueEntry).where(QueueEntry.id == entry_id)
    if refresh:
        stmt = stmt.execution_options(populate_existing=True)

    res = await session.execute(stmt)
    return res.scalar_one_or_none()


async def create_entry(session: AsyncSession, *, data: dict[str, Any]) -> QueueEntry:
    entry = QueueEntry(status=EntryStatus.WAITING.value, **data)
    session.add(entry)
    await session.flush()
    return entry


async def transition_entry(
    session: AsyncSession,
    *,
    entry_id: UUID,
    from_statuses: Iterable[EntryStatus],
    values: dict[str, Any],
    extra_conditions: Iterable[Any] = (),
) -> bool:
    """Compare-and-swap update guarded on the current status.

    Returns False when the row is no longer in one of ``from_statuses`` (or
    fails ``extra_conditions``), i.e. a concurrent writer got there first.
    Does not commit.
    """

    stmt = (
        update(QueueEntry)
        .where(QueueEntry.id == entry_id)
        .where(QueueEntry.status.in_([s.value for s in from_statuses]))
    )
    for cond in extra_conditions:
        stmt = stmt.where(cond)

    stmt = stmt.values(**values).execution_options(synchronize_session=False)
    res = await session.execute(stmt)
    return res.rowcount == 1


def _eligible_for(vet_id: UUID | None):
    """Entries a given vet may pull: their own plus the unassigned pool."""

    if vet_id is None:
        return QueueEntry.assigned_vet_id.is_(None)
    return or_(QueueEntry.assigned_vet_id == vet_id, QueueEntry.assigned_vet_id.is_(None))


async def lock_next_waiting(
    session: AsyncSession,
    *,
    vet_id: UUID | None,
    exclude_ids: Iterable[UUID] = (),
) -> UUID | None:
    """Pick and row-lock the next WAITING entry for ``vet_id``.

    FOR UPDATE SKIP LOCKED makes concurrent callers on PostgreSQL pass over a
    row another transaction is already claiming. SQLite ignores the clause;
    there every transaction is BEGIN IMMEDIATE (see frontdesk.database).
    """

    stmt = (
        select(QueueEntry.id)
        .where(QueueEntry.status == EntryStatus.WAITING.value)
        .where(_eligible_for(vet_id))
    )
    excluded = list(exclude_ids)
    if excluded:
        stmt = stmt.where(QueueEntry.id.not_in(excluded))

    stmt = stmt.order_by(*selection_order()).limit(1).with_for_update(skip_locked=True)

    res = await session.execute(stmt)
    return res.scalar_one_or_none()


async def call_next_with_lock(
    session: AsyncSession,
    *,
    vet_id: UUID | None,
    room_id: UUID,
    now: datetime,
) -> QueueEntry | None:
    """Claim the next eligible WAITING entry and mark it CALLED.

    Select + transition happen inside the caller's transaction; nothing is
    committed here. Returns None when no eligible entry exists.
    """

    tried: list[UUID] = []
    for _ in range(CALL_NEXT_MAX_ATTEMPTS):
        candidate_id = await lock_next_waiting(session, vet_id=vet_id, exclude_ids=tried)
        if candidate_id is None:
            return None

        claimed = await transition_entry(
            session,
            entry_id=candidate_id,
            from_statuses=[EntryStatus.WAITING],
            values={
                "status": EntryStatus.CALLED.value,
                "called_at": now,
                "assigned_vet_id": vet_id,
                "room_id": room_id,
                "updated_at": now,
            },
        )
        if claimed:
            return await get_entry(session, entry_id=candidate_id, refresh=True)

        tried.append(candidate_id)

    return None


async def list_active(
    session: AsyncSession,
    *,
    vet_id: UUID | None = None,
    unassigned_only: bool = False,
) -> list[QueueEntry]:
    """WAITING/CALLED/IN_PROGRESS entries in service order.

    - ``unassigned_only``: the general pool (no assigned vet).
    - ``vet_id``: that vet's entries plus the general pool.
    - neither: everything active.
    """

    stmt = select(QueueEntry).where(QueueEntry.status.in_([s.value for s in ACTIVE_STATUSES]))

    if unassigned_only:
        stmt = stmt.where(QueueEntry.assigned_vet_id.is_(None))
    elif vet_id is not None:
        stmt = stmt.where(_eligible_for(vet_id))

    stmt = stmt.order_by(*selection_order())
    res = await session.execute(stmt)
    return list(res.scalars().all())


def _history_query(filters: HistoryFilters):
    stmt = select(QueueEntry).where(QueueEntry.status == EntryStatus.COMPLETED.value)

    if filters.start_date is not None:
        stmt = stmt.where(QueueEntry.completed_at >= filters.start_date)
    if filters.end_date is not None:
        stmt = stmt.where(QueueEntry.completed_at <= filters.end_date)
    if filters.tutor_name:
        stmt = stmt.where(QueueEntry.tutor_name.icontains(filters.tutor_name, autoescape=True))
    if filters.patient_name:
        stmt = stmt.where(QueueEntry.patient_name.icontains(filters.patient_name, autoescape=True))
    if filters.service_type:
        stmt = stmt.where(QueueEntry.service_type == filters.service_type)

    return stmt


async def list_completed(session: AsyncSession, *, filters: HistoryFilters) -> list[QueueEntry]:
    stmt = _history_query(filters).order_by(QueueEntry.completed_at.desc(), QueueEntry.id.desc())
    res = await session.execute(stmt)
    return list(res.scalars().all())


async def list_completed_paginated(
    session: AsyncSession,
    *,
    filters: HistoryFilters,
) -> tuple[list[QueueEntry], int, int, int]:
    """Return (entries, total, page, total_pages)."""

    base = _history_query(filters)

    total = int((await session.execute(select(func.count()).select_from(base.subquery()))).scalar_one())

    stmt = (
        base.order_by(QueueEntry.completed_at.desc(), QueueEntry.id.desc())
        .offset((filters.page - 1) * filters.limit)
        .limit(filters.limit)
    )
    res = await session.execute(stmt)
    total_pages = math.ceil(total / filters.limit) if total else 0
    return list(res.scalars().all()), total, filters.page, total_pages


async def find_scheduled_waiting(session: AsyncSession) -> list[QueueEntry]:
    stmt = (
        select(QueueEntry)
        .where(QueueEntry.status == EntryStatus.WAITING.value)
        .where(QueueEntry.has_scheduled_appointment.is_(True))
        .order_by(QueueEntry.scheduled_at.asc())
    )
    res = await session.execute(stmt)
    return list(res.scalars().all())


async def apply_classification(
    session: AsyncSession,
    *,
    entry_id: UUID,
    classification: Classification,
    now: datetime,
) -> bool:
    """Persist a policy result for a still-waiting scheduled entry.

    Guarded on WAITING + still scheduled so a run that races a call, an edit
    or a previous sweep simply finds nothing to do.
    """

    return await transition_entry(
        session,
        entry_id=entry_id,
        from_statuses=[EntryStatus.WAITING],
        extra_conditions=[QueueEntry.has_scheduled_appointment.is_(True)],
        values={
            "priority": int(classification.priority),
            "has_scheduled_appointment": classification.scheduled,
            "scheduled_at": classification.scheduled_at,
            "updated_at": now,
        },
    )


async def vet_has_active_entries(session: AsyncSession, *, vet_id: UUID) -> bool:
    stmt = (
        select(QueueEntry.id)
        .where(QueueEntry.assigned_vet_id == vet_id)
        .where(QueueEntry.status.in_([EntryStatus.CALLED.value, EntryStatus.IN_PROGRESS.value]))
        .limit(1)
    )
    res = await session.execute(stmt)
    return res.scalar_one_or_none() is not None


async def rooms_in_service(
    session: AsyncSession,
    *,
    exclude_vet_id: UUID | None = None,
) -> list[tuple[UUID, UUID, str]]:
    """(room_id, vet_id, vet_name) for CALLED/IN_PROGRESS entries holding a room."""

    stmt = (
        select(QueueEntry.room_id, User.id, User.name)
        .join(User, User.id == QueueEntry.assigned_vet_id)
        .where(QueueEntry.room_id.is_not(None))
        .where(QueueEntry.status.in_([EntryStatus.CALLED.value, EntryStatus.IN_PROGRESS.value]))
        .order_by(QueueEntry.called_at.asc())
    )
    if exclude_vet_id is not None:
        stmt = stmt.where(QueueEntry.assigned_vet_id != exclude_vet_id)

    res = await session.execute(stmt)
    return [(row[0], row[1], row[2]) for row in res.all()]
