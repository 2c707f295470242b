from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from frontdesk.crud.base import BaseCRUD
from frontdesk.models.room import Room
from frontdesk.schemas.room import RoomCreate, RoomUpdate


class RoomCRUD(BaseCRUD[Room, RoomCreate, RoomUpdate]):
    async def list_active(self, session: AsyncSession) -> list[Room]:
        return await self.get_multi(session, limit=1000, filters={"is_active": True})

    async def find_by_name(self, session: AsyncSession, *, name: str) -> Room | None:
        stmt = select(Room).where(func.lower(Room.name) == name.strip().lower()).limit(1)
        res = await session.execute(stmt)
        return res.scalar_one_or_none()


rooms = RoomCRUD(Room, order_by="name")
