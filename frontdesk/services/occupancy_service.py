from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from frontdesk.config import settings
from frontdesk.crud import occupancy as occupancy_crud
from frontdesk.crud import queue as queue_crud
from frontdesk.crud.room import rooms as rooms_crud
from frontdesk.errors import (
    InvalidTransition,
    NotCheckedIn,
    NotFound,
    QueueValidationError,
    RoomOccupiedByOther,
)
from frontdesk.models.base import utcnow
from frontdesk.models.user import User


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReleasedCheckin:
    user_id: UUID
    user_name: str
    room_id: UUID
    last_seen_at: datetime | None


class OccupancyService:
    """Room check-in registry: which staff member holds which room."""

    async def check_in(
        self,
        session: AsyncSession,
        *,
        vet_id: UUID,
        room_id: UUID,
        now: datetime | None = None,
    ) -> User:
        """Occupy ``room_id``.

        Verification and write share one transaction; a user already in another
        room is moved.
        """

        user = await occupancy_crud.get_user(session, user_id=vet_id, lock=True)
        if user is None:
            await session.rollback()
            raise NotFound("Staff member not found")

        return await self._occupy(session, user=user, room_id=room_id, now=now or utcnow())

    async def change_room(
        self,
        session: AsyncSession,
        *,
        vet_id: UUID,
        room_id: UUID,
        now: datetime | None = None,
    ) -> User:
        user = await occupancy_crud.get_user(session, user_id=vet_id, lock=True)
        if user is None:
            await session.rollback()
            raise NotFound("Staff member not found")

        if await queue_crud.vet_has_active_entries(session, vet_id=vet_id):
            await session.rollback()
            raise InvalidTransition("Cannot change rooms with patients in service")

        return await self._occupy(session, user=user, room_id=room_id, now=now or utcnow())

    async def check_out(self, session: AsyncSession, *, vet_id: UUID) -> User:
        user = await occupancy_crud.get_user(session, user_id=vet_id, lock=True)
        if user is None:
            await session.rollback()
            raise NotFound("Staff member not found")
        if user.current_room_id is None:
            await session.rollback()
            raise NotCheckedIn("Staff member is not checked into any room")

        if await queue_crud.vet_has_active_entries(session, vet_id=vet_id):
            await session.rollback()
            raise InvalidTransition("Cannot leave the room with patients in service")

        room_id = user.current_room_id
        await occupancy_crud.clear_room(session, user_id=vet_id)
        await session.commit()

        logger.info("room_checkout user_id=%s room_id=%s", vet_id, room_id)
        return await self._reload(session, user)

    async def touch_activity(
        self,
        session: AsyncSession,
        *,
        vet_id: UUID,
        now: datetime | None = None,
    ) -> None:
        await occupancy_crud.touch_activity(session, user_id=vet_id, now=now or utcnow())
        await session.commit()

    async def release_stale_checkins(
        self,
        session: AsyncSession,
        *,
        max_age_minutes: int | None = None,
        now: datetime | None = None,
    ) -> list[ReleasedCheckin]:
        """Clear room occupancy for staff inactive longer than ``max_age_minutes``.

        Each release commits on its own; one failure is logged and the sweep
        moves on to the next user.
        """

        now = now or utcnow()
        max_age = max_age_minutes if max_age_minutes is not None else settings.reaper_inactivity_minutes
        cutoff = now - timedelta(minutes=max_age)

        stale = await occupancy_crud.find_stale_checkins(session, cutoff=cutoff)
        candidates = [
            ReleasedCheckin(
                user_id=u.id,
                user_name=u.name,
                room_id=u.current_room_id,
                last_seen_at=u.last_activity_at or u.room_checked_in_at,
            )
            for u in stale
        ]

        released: list[ReleasedCheckin] = []
        for candidate in candidates:
            try:
                cleared = await occupancy_crud.clear_room(
                    session,
                    user_id=candidate.user_id,
                    expected_room_id=candidate.room_id,
                )
                await session.commit()
            except Exception:
                await session.rollback()
                logger.exception(
                    "room_release_failed user_id=%s room_id=%s",
                    candidate.user_id,
                    candidate.room_id,
                )
                continue

            if cleared:
                released.append(candidate)
                logger.info(
                    "room_released_inactive user_id=%s room_id=%s last_seen_at=%s",
                    candidate.user_id,
                    candidate.room_id,
                    candidate.last_seen_at,
                    extra={"event_type": "RoomCheckinReleased", "user_id": str(candidate.user_id)},
                )

        await session.commit()
        return released

    async def _occupy(self, session: AsyncSession, *, user: User, room_id: UUID, now: datetime) -> User:
        room = await rooms_crud.get(session, id=room_id)
        if room is None:
            await session.rollback()
            raise NotFound("Room not found")
        if not room.is_active:
            await session.rollback()
            raise QueueValidationError("Room is not active")

        holder = await occupancy_crud.occupant_of_room(session, room_id=room_id, lock=True)
        if holder is not None and holder.id != user.id:
            holder_name = holder.name
            await session.rollback()
            raise RoomOccupiedByOther(f"Room is already occupied by {holder_name}")

        if user.current_room_id is not None and user.current_room_id != room_id:
            logger.warning(
                "room_implicit_checkout user_id=%s from_room_id=%s to_room_id=%s",
                user.id,
                user.current_room_id,
                room_id,
            )

        try:
            await occupancy_crud.assign_room(session, user_id=user.id, room_id=room_id, now=now)
            await session.commit()
        except IntegrityError:
            # Lost a concurrent check-in race on the unique room index.
            await session.rollback()
            raise RoomOccupiedByOther("Room is already occupied")

        logger.info("room_checkin user_id=%s room_id=%s", user.id, room_id)
        return await self._reload(session, user)

    async def _reload(self, session: AsyncSession, user: User) -> User:
        refreshed = await occupancy_crud.get_user(session, user_id=user.id, refresh=True)
        await session.commit()
        return refreshed or user
