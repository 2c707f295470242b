from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession

from frontdesk.crud import occupancy as occupancy_crud
from frontdesk.crud import queue as queue_crud
from frontdesk.crud.room import rooms as rooms_crud
from frontdesk.errors import (
    Forbidden,
    InvalidTransition,
    NotCheckedIn,
    NotFound,
    QueueValidationError,
    RoomHasNoActiveOccupant,
    RoomOccupiedByOther,
)
from frontdesk.models.base import utcnow
from frontdesk.models.enums import ACTIVE_STATUSES, EntryStatus, Priority, StaffRole
from frontdesk.models.queue_entry import QueueEntry
from frontdesk.schemas.queue import HistoryFilters, QueueEntryCreate, QueueEntryUpdate
from frontdesk.services.scheduling_policy import LAPSED_APPOINTMENT_MESSAGE, classify


logger = logging.getLogger(__name__)

# list_active() sentinel: no vet filter at all.
ALL_VETS = object()


@dataclass(frozen=True)
class QueueDefaults:
    """Default queue behavior."""

    default_priority: Priority = Priority.NORMAL
    # Store round-trips slower than this are logged as warnings.
    slow_operation_ms: float = 500.0


@dataclass(frozen=True)
class RoomOccupant:
    vet_id: UUID
    vet_name: str


class QueueService:
    """Queue scheduler: every entry state transition goes through here.

    Methods take the caller's session and commit their own unit of work.
    Guarded writes are compare-and-swap updates (see frontdesk.crud.queue), so
    a concurrent writer that got there first surfaces as InvalidTransition
    instead of being silently overwritten.
    """

    def __init__(self, *, defaults: QueueDefaults | None = None) -> None:
        self._defaults = defaults or QueueDefaults()

    # -- creation / editing -------------------------------------------------

    async def add_entry(
        self,
        session: AsyncSession,
        data: QueueEntryCreate,
        *,
        now: datetime | None = None,
    ) -> QueueEntry:
        now = now or utcnow()

        patient_name = (data.patient_name or "").strip()
        tutor_name = (data.tutor_name or "").strip()
        service_type = (data.service_type or "").strip()

        if not data.patient_id and not patient_name:
            logger.warning("add_entry_rejected reason=missing_patient_name")
            raise QueueValidationError("Patient name is required")
        if not data.patient_id and not tutor_name:
            logger.warning("add_entry_rejected reason=missing_tutor_name")
            raise QueueValidationError("Tutor name is required")
        if not service_type:
            logger.warning("add_entry_rejected reason=missing_service_type")
            raise QueueValidationError("Service type is required")

        result = classify(
            data.priority if data.priority is not None else self._defaults.default_priority,
            data.has_scheduled_appointment,
            data.scheduled_at,
            now,
        )

        started = time.perf_counter()
        try:
            entry = await queue_crud.create_entry(
                session,
                data={
                    "patient_name": patient_name,
                    "tutor_name": tutor_name,
                    "service_type": service_type,
                    "patient_id": data.patient_id,
                    "priority": int(result.priority),
                    "assigned_vet_id": data.assigned_vet_id,
                    "has_scheduled_appointment": result.scheduled,
                    "scheduled_at": result.scheduled_at,
                    "created_at": now,
                    "updated_at": now,
                },
            )
            await session.commit()
        except Exception:
            await session.rollback()
            logger.exception(
                "add_entry_failed service_type=%s priority=%s",
                service_type,
                int(result.priority),
            )
            raise
        self._warn_if_slow("add_entry", started, entry_id=entry.id)

        if result.lapsed:
            entry.system_message = LAPSED_APPOINTMENT_MESSAGE
            logger.info(
                "appointment_converted entry_id=%s requested_scheduled_at=%s",
                entry.id,
                data.scheduled_at,
                extra={
                    "event_type": "AppointmentConversion",
                    "entry_id": str(entry.id),
                    "patient_id": data.patient_id,
                    "stage": "create",
                },
            )

        logger.info(
            "entry_enqueued entry_id=%s priority=%s scheduled=%s",
            entry.id,
            entry.priority,
            entry.has_scheduled_appointment,
            extra={"event_type": "EntryEnqueued", "entry_id": str(entry.id)},
        )
        return entry

    async def update_entry(
        self,
        session: AsyncSession,
        entry_id: UUID,
        fields: QueueEntryUpdate,
        *,
        requester_role: StaffRole | str | None,
        now: datetime | None = None,
    ) -> QueueEntry:
        """Edit a WAITING entry (front desk / admin only).

        The scheduling policy is re-applied to the resulting priority and
        appointment fields, so an edit cannot keep a lapsed appointment alive.
        """

        if requester_role not in (StaffRole.FRONT_DESK, StaffRole.ADMIN):
            raise Forbidden("Only the front desk can edit queue entries")

        now = now or utcnow()
        entry = await self._get_or_404(session, entry_id)
        current_status = entry.status
        current = {
            "patient_id": entry.patient_id,
            "priority": entry.priority,
            "has_scheduled_appointment": entry.has_scheduled_appointment,
            "scheduled_at": entry.scheduled_at,
        }
        # The write below is guarded on WAITING; nothing needs to stay locked.
        await session.commit()

        if current_status != EntryStatus.WAITING:
            raise InvalidTransition("Only waiting entries can be edited")

        changes = fields.model_dump(exclude_unset=True)
        values: dict[str, Any] = {}

        patient_id = changes["patient_id"] if "patient_id" in changes else current["patient_id"]
        for key, label in (("patient_name", "Patient name"), ("tutor_name", "Tutor name")):
            if key in changes:
                cleaned = (changes[key] or "").strip()
                if not cleaned and not patient_id:
                    raise QueueValidationError(f"{label} is required")
                values[key] = cleaned
        if "service_type" in changes:
            service_type = (changes["service_type"] or "").strip()
            if not service_type:
                raise QueueValidationError("Service type is required")
            values["service_type"] = service_type
        if "patient_id" in changes:
            values["patient_id"] = changes["patient_id"]
        if "assigned_vet_id" in changes:
            values["assigned_vet_id"] = changes["assigned_vet_id"]

        priority = changes.get("priority")
        has_scheduled = changes.get("has_scheduled_appointment")
        result = classify(
            priority if priority is not None else current["priority"],
            has_scheduled if has_scheduled is not None else current["has_scheduled_appointment"],
            changes["scheduled_at"] if "scheduled_at" in changes else current["scheduled_at"],
            now,
        )
        values.update(
            priority=int(result.priority),
            has_scheduled_appointment=result.scheduled,
            scheduled_at=result.scheduled_at,
            updated_at=now,
        )

        started = time.perf_counter()
        updated = await queue_crud.transition_entry(
            session,
            entry_id=entry_id,
            from_statuses=[EntryStatus.WAITING],
            values=values,
        )
        if not updated:
            await session.rollback()
            raise InvalidTransition("Entry is no longer waiting")
        await session.commit()
        self._warn_if_slow("update_entry", started, entry_id=entry_id)

        entry = await self._reload(session, entry_id)
        if result.lapsed:
            entry.system_message = LAPSED_APPOINTMENT_MESSAGE
            logger.info(
                "appointment_converted entry_id=%s",
                entry_id,
                extra={
                    "event_type": "AppointmentConversion",
                    "entry_id": str(entry_id),
                    "stage": "update",
                },
            )

        logger.info(
            "entry_updated entry_id=%s priority=%s fields=%s",
            entry_id,
            entry.priority,
            sorted(changes),
            extra={"event_type": "QueueEntryUpdated", "entry_id": str(entry_id)},
        )
        return entry

    # -- calling ------------------------------------------------------------

    async def call_next(
        self,
        session: AsyncSession,
        *,
        vet_id: UUID | None = None,
        room_id: UUID | None = None,
        now: datetime | None = None,
    ) -> QueueEntry | None:
        """Call the highest-priority, oldest eligible WAITING entry into a room.

        Returns None when nothing is waiting for this vet (their own entries
        plus the unassigned pool).
        """

        now = now or utcnow()
        acting_vet_id, room_id = await self._resolve_room(session, vet_id=vet_id, room_id=room_id)

        entry = await queue_crud.call_next_with_lock(
            session,
            vet_id=acting_vet_id,
            room_id=room_id,
            now=now,
        )
        if entry is None:
            await session.commit()
            logger.info("call_next_empty vet_id=%s room_id=%s", acting_vet_id, room_id)
            return None

        await occupancy_crud.touch_activity(session, user_id=acting_vet_id, now=now)
        await session.commit()

        self._log_transition(entry, EntryStatus.WAITING, EntryStatus.CALLED)
        return entry

    async def call_entry(
        self,
        session: AsyncSession,
        entry_id: UUID,
        *,
        vet_id: UUID | None = None,
        room_id: UUID | None = None,
        now: datetime | None = None,
    ) -> QueueEntry:
        now = now or utcnow()

        entry = await self._get_or_404(session, entry_id)
        if entry.status != EntryStatus.WAITING:
            current = entry.status
            await session.rollback()
            raise InvalidTransition(f"Only waiting entries can be called (current status: {current})")

        acting_vet_id, room_id = await self._resolve_room(session, vet_id=vet_id, room_id=room_id)

        called = await queue_crud.transition_entry(
            session,
            entry_id=entry_id,
            from_statuses=[EntryStatus.WAITING],
            values={
                "status": EntryStatus.CALLED.value,
                "called_at": now,
                "assigned_vet_id": acting_vet_id,
                "room_id": room_id,
                "updated_at": now,
            },
        )
        if not called:
            await session.rollback()
            raise InvalidTransition("Entry was called by someone else")

        await occupancy_crud.touch_activity(session, user_id=acting_vet_id, now=now)
        await session.commit()

        entry = await self._reload(session, entry_id)
        self._log_transition(entry, EntryStatus.WAITING, EntryStatus.CALLED)
        return entry

    # -- service lifecycle --------------------------------------------------

    async def start(
        self,
        session: AsyncSession,
        entry_id: UUID,
        *,
        requester_role: StaffRole | str | None = None,
        now: datetime | None = None,
    ) -> QueueEntry:
        if requester_role == StaffRole.FRONT_DESK:
            raise Forbidden("Front desk cannot start a service")

        now = now or utcnow()
        entry = await self._get_or_404(session, entry_id)
        old_status = EntryStatus(entry.status)
        if old_status not in (EntryStatus.CALLED, EntryStatus.WAITING):
            await session.rollback()
            raise InvalidTransition(f"Only called or waiting entries can be started (current status: {old_status.value})")

        values: dict[str, Any] = {"status": EntryStatus.IN_PROGRESS.value, "updated_at": now}
        if entry.called_at is None:
            # Started without an explicit call step.
            values["called_at"] = now
        assigned_vet_id = entry.assigned_vet_id

        await self._transition_or_raise(session, entry_id, [old_status], values)
        if assigned_vet_id is not None:
            await occupancy_crud.touch_activity(session, user_id=assigned_vet_id, now=now)
        await session.commit()

        entry = await self._reload(session, entry_id)
        self._log_transition(entry, old_status, EntryStatus.IN_PROGRESS, requester_role=requester_role)
        return entry

    async def complete(
        self,
        session: AsyncSession,
        entry_id: UUID,
        *,
        requester_role: StaffRole | str | None = None,
        now: datetime | None = None,
    ) -> QueueEntry:
        now = now or utcnow()
        entry = await self._get_or_404(session, entry_id)
        old_status = EntryStatus(entry.status)
        assigned_vet_id = entry.assigned_vet_id

        if old_status == EntryStatus.COMPLETED:
            await session.rollback()
            raise InvalidTransition("Service has already been completed")
        if old_status == EntryStatus.CANCELLED:
            await session.rollback()
            raise InvalidTransition("Entry is already finalized")
        if requester_role == StaffRole.FRONT_DESK and assigned_vet_id is None:
            await session.rollback()
            raise Forbidden("Cannot complete a service with no assigned vet")

        await self._transition_or_raise(
            session,
            entry_id,
            ACTIVE_STATUSES,
            {"status": EntryStatus.COMPLETED.value, "completed_at": now, "updated_at": now},
        )
        if assigned_vet_id is not None:
            await occupancy_crud.touch_activity(session, user_id=assigned_vet_id, now=now)
        await session.commit()

        entry = await self._reload(session, entry_id)
        self._log_transition(entry, old_status, EntryStatus.COMPLETED, requester_role=requester_role)
        return entry

    async def cancel(
        self,
        session: AsyncSession,
        entry_id: UUID,
        *,
        now: datetime | None = None,
    ) -> QueueEntry:
        now = now or utcnow()
        entry = await self._get_or_404(session, entry_id)
        old_status = EntryStatus(entry.status)

        if old_status == EntryStatus.COMPLETED:
            await session.rollback()
            raise InvalidTransition("Cannot cancel a completed entry")
        if old_status == EntryStatus.CANCELLED:
            await session.rollback()
            raise InvalidTransition("Entry is already finalized")

        await self._transition_or_raise(
            session,
            entry_id,
            ACTIVE_STATUSES,
            {"status": EntryStatus.CANCELLED.value, "updated_at": now},
        )
        await session.commit()

        entry = await self._reload(session, entry_id)
        self._log_transition(entry, old_status, EntryStatus.CANCELLED)
        return entry

    async def claim(
        self,
        session: AsyncSession,
        entry_id: UUID,
        *,
        vet_id: UUID,
        now: datetime | None = None,
    ) -> QueueEntry:
        """Self-assign a WAITING entry without calling it."""

        now = now or utcnow()
        entry = await self._get_or_404(session, entry_id)
        if entry.status != EntryStatus.WAITING:
            await session.rollback()
            raise InvalidTransition("Only waiting entries can be claimed")

        if await occupancy_crud.get_user(session, user_id=vet_id) is None:
            await session.rollback()
            raise NotFound("Staff member not found")

        claimed = await queue_crud.transition_entry(
            session,
            entry_id=entry_id,
            from_statuses=[EntryStatus.WAITING],
            extra_conditions=[
                or_(QueueEntry.assigned_vet_id.is_(None), QueueEntry.assigned_vet_id == vet_id),
            ],
            values={"assigned_vet_id": vet_id, "updated_at": now},
        )
        if not claimed:
            await session.rollback()
            raise InvalidTransition("Entry is already assigned to another staff member")

        await occupancy_crud.touch_activity(session, user_id=vet_id, now=now)
        await session.commit()

        logger.info(
            "entry_claimed entry_id=%s vet_id=%s",
            entry_id,
            vet_id,
            extra={"event_type": "EntryClaimed", "entry_id": str(entry_id)},
        )
        return await self._reload(session, entry_id)

    # -- reads --------------------------------------------------------------

    async def get_entry(self, session: AsyncSession, entry_id: UUID) -> QueueEntry:
        return await self._get_or_404(session, entry_id)

    async def list_active(
        self,
        session: AsyncSession,
        *,
        vet_id: UUID | None | object = ALL_VETS,
    ) -> list[QueueEntry]:
        """Active entries in service order.

        ``vet_id`` omitted: every active entry. ``None``: the unassigned pool
        only. A vet id: that vet's entries plus the unassigned pool.
        """

        if vet_id is ALL_VETS:
            entries = await queue_crud.list_active(session)
        elif vet_id is None:
            entries = await queue_crud.list_active(session, unassigned_only=True)
        else:
            entries = await queue_crud.list_active(session, vet_id=vet_id)
        await session.commit()
        return entries

    async def get_history(
        self,
        session: AsyncSession,
        filters: HistoryFilters | None = None,
    ) -> list[QueueEntry]:
        entries = await queue_crud.list_completed(session, filters=filters or HistoryFilters())
        await session.commit()
        return entries

    async def get_history_page(
        self,
        session: AsyncSession,
        filters: HistoryFilters | None = None,
    ) -> tuple[list[QueueEntry], int, int, int]:
        page = await queue_crud.list_completed_paginated(session, filters=filters or HistoryFilters())
        await session.commit()
        return page

    async def room_occupations(
        self,
        session: AsyncSession,
        *,
        exclude_vet_id: UUID | None = None,
    ) -> dict[UUID, RoomOccupant]:
        """Who is in which room.

        Rooms serving a CALLED/IN_PROGRESS entry come first; check-ins fill in
        the remaining rooms.
        """

        occupations: dict[UUID, RoomOccupant] = {}
        for room_id, occupant_id, occupant_name in await queue_crud.rooms_in_service(
            session, exclude_vet_id=exclude_vet_id
        ):
            occupations.setdefault(room_id, RoomOccupant(vet_id=occupant_id, vet_name=occupant_name))

        for user in await occupancy_crud.list_checked_in(session, exclude_user_id=exclude_vet_id):
            occupations.setdefault(user.current_room_id, RoomOccupant(vet_id=user.id, vet_name=user.name))

        await session.commit()
        return occupations

    # -- escalation ---------------------------------------------------------

    async def escalate_scheduled(
        self,
        session: AsyncSession,
        *,
        now: datetime | None = None,
    ) -> list[QueueEntry]:
        """Re-apply the scheduling policy to scheduled entries still waiting.

        Safe to run repeatedly: once an entry lapses it is no longer scheduled
        and drops out of the scan. Each change commits on its own so one bad
        row does not block the others.
        """

        now = now or utcnow()
        entries = await queue_crud.find_scheduled_waiting(session)
        snapshots = [(e.id, e.priority, e.scheduled_at) for e in entries]

        changed: list[QueueEntry] = []
        for entry_id, priority, scheduled_at in snapshots:
            result = classify(priority, True, scheduled_at, now)
            if result.scheduled and result.priority == priority:
                continue

            try:
                applied = await queue_crud.apply_classification(
                    session,
                    entry_id=entry_id,
                    classification=result,
                    now=now,
                )
                await session.commit()
            except Exception:
                await session.rollback()
                logger.exception("escalation_failed entry_id=%s", entry_id)
                continue

            if not applied:
                continue

            changed.append(await self._reload(session, entry_id))
            logger.info(
                "appointment_converted entry_id=%s scheduled_at=%s priority=%s->%s",
                entry_id,
                scheduled_at,
                priority,
                int(result.priority),
                extra={
                    "event_type": "AppointmentConversion",
                    "entry_id": str(entry_id),
                    "stage": "escalation",
                },
            )

        await session.commit()
        return changed

    # -- helpers ------------------------------------------------------------

    async def _get_or_404(self, session: AsyncSession, entry_id: UUID) -> QueueEntry:
        entry = await queue_crud.get_entry(session, entry_id=entry_id, refresh=True)
        if entry is None:
            await session.rollback()
            raise NotFound("Queue entry not found")
        return entry

    async def _reload(self, session: AsyncSession, entry_id: UUID) -> QueueEntry:
        entry = await queue_crud.get_entry(session, entry_id=entry_id, refresh=True)
        await session.commit()
        if entry is None:
            raise NotFound("Queue entry not found")
        return entry

    async def _transition_or_raise(
        self,
        session: AsyncSession,
        entry_id: UUID,
        from_statuses,
        values: dict[str, Any],
    ) -> None:
        if not await queue_crud.transition_entry(
            session,
            entry_id=entry_id,
            from_statuses=from_statuses,
            values=values,
        ):
            await session.rollback()
            raise InvalidTransition("Entry status changed concurrently; reload and retry")

    async def _resolve_room(
        self,
        session: AsyncSession,
        *,
        vet_id: UUID | None,
        room_id: UUID | None,
    ) -> tuple[UUID, UUID]:
        """Validate the target room and return (acting vet, room).

        - vet without room: the vet's current check-in is used.
        - vet with room: nobody else may hold that room.
        - room without vet (front desk dispatch): the room's occupant acts, and
          must be an active vet.
        """

        if vet_id is not None:
            vet = await occupancy_crud.get_user(session, user_id=vet_id)
            if vet is None:
                await session.rollback()
                raise NotFound("Staff member not found")
            if room_id is None:
                if vet.current_room_id is None:
                    await session.rollback()
                    logger.warning("call_without_checkin vet_id=%s", vet_id)
                    raise NotCheckedIn("Check into a room before calling patients")
                room_id = vet.current_room_id

        if room_id is None:
            await session.rollback()
            raise QueueValidationError("A room is required")

        room = await rooms_crud.get(session, id=room_id)
        if room is None:
            await session.rollback()
            raise NotFound("Room not found")
        if not room.is_active:
            await session.rollback()
            raise QueueValidationError("Room is not active")

        # Locking the holder's row keeps them from checking out mid-call.
        holder = await occupancy_crud.occupant_of_room(session, room_id=room_id, lock=True)

        if vet_id is not None:
            if holder is not None and holder.id != vet_id:
                holder_name = holder.name
                await session.rollback()
                logger.warning("room_occupied room_id=%s vet_id=%s", room_id, vet_id)
                raise RoomOccupiedByOther(f"Room is already occupied by {holder_name}")
            return vet_id, room_id

        if holder is None or holder.role != StaffRole.VET.value or not holder.is_active:
            await session.rollback()
            logger.warning("room_has_no_occupant room_id=%s", room_id)
            raise RoomHasNoActiveOccupant("The selected room has no active vet")
        return holder.id, room_id

    def _log_transition(
        self,
        entry: QueueEntry,
        old_status: EntryStatus,
        new_status: EntryStatus,
        *,
        requester_role: StaffRole | str | None = None,
    ) -> None:
        logger.info(
            "status_transition entry_id=%s old=%s new=%s vet_id=%s room_id=%s",
            entry.id,
            old_status.value,
            new_status.value,
            entry.assigned_vet_id,
            entry.room_id,
            extra={
                "event_type": "StatusTransition",
                "entry_id": str(entry.id),
                "old_status": old_status.value,
                "new_status": new_status.value,
                "requester_role": getattr(requester_role, "value", requester_role),
            },
        )

    def _warn_if_slow(self, operation: str, started: float, *, entry_id: UUID) -> None:
        duration_ms = (time.perf_counter() - started) * 1000
        if duration_ms > self._defaults.slow_operation_ms:
            logger.warning(
                "slow_store_operation operation=%s entry_id=%s duration_ms=%.2f",
                operation,
                entry_id,
                duration_ms,
            )
