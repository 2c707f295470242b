from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from frontdesk.crud.room import rooms as rooms_crud
from frontdesk.errors import NotFound, QueueValidationError
from frontdesk.models.room import Room
from frontdesk.schemas.room import RoomCreate, RoomUpdate


logger = logging.getLogger(__name__)


class RoomService:
    """Service points. Rooms are soft-deactivated, never deleted."""

    async def list_rooms(self, session: AsyncSession) -> list[Room]:
        rooms = await rooms_crud.list_active(session)
        await session.commit()
        return rooms

    async def list_all_rooms(self, session: AsyncSession) -> list[Room]:
        rooms = await rooms_crud.get_multi(session, limit=1000)
        await session.commit()
        return rooms

    async def get_room(self, session: AsyncSession, *, room_id: UUID) -> Room:
        room = await rooms_crud.get(session, id=room_id)
        if room is None:
            await session.rollback()
            raise NotFound("Room not found")
        return room

    async def create_room(self, session: AsyncSession, *, data: RoomCreate) -> Room:
        name = data.name.strip()
        if not name:
            raise QueueValidationError("Room name is required")

        if await rooms_crud.find_by_name(session, name=name) is not None:
            await session.rollback()
            raise QueueValidationError("A room with this name already exists")

        room = await rooms_crud.create(session, obj_in={"name": name, "is_active": True})
        await session.commit()
        logger.info("room_created room_id=%s name=%s", room.id, room.name)
        return room

    async def update_room(self, session: AsyncSession, *, room_id: UUID, data: RoomUpdate) -> Room:
        room = await self.get_room(session, room_id=room_id)

        changes = data.model_dump(exclude_unset=True)
        if "name" in changes:
            name = (changes["name"] or "").strip()
            if not name:
                await session.rollback()
                raise QueueValidationError("Room name is required")
            existing = await rooms_crud.find_by_name(session, name=name)
            if existing is not None and existing.id != room.id:
                await session.rollback()
                raise QueueValidationError("A room with this name already exists")
            changes["name"] = name
        if changes.get("is_active") is None:
            changes.pop("is_active", None)

        room = await rooms_crud.update(session, db_obj=room, obj_in=changes)
        await session.commit()
        return room

    async def deactivate_room(self, session: AsyncSession, *, room_id: UUID) -> Room:
        room = await self.get_room(session, room_id=room_id)
        room = await rooms_crud.update(session, db_obj=room, obj_in={"is_active": False})
        await session.commit()
        logger.info("room_deactivated room_id=%s", room.id)
        return room
