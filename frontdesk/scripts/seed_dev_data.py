from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from frontdesk.config import settings
from frontdesk.models.enums import StaffRole
from frontdesk.models.room import Room
from frontdesk.models.user import User


@dataclass(frozen=True)
class SeedUserSpec:
    name: str
    role: StaffRole


@dataclass(frozen=True)
class SeedResult:
    room_ids: dict[str, uuid.UUID]
    user_ids: dict[str, uuid.UUID]


DEMO_ROOMS: tuple[str, ...] = ("Consultorio 1", "Consultorio 2", "Sala de Emergência")

DEMO_USERS: tuple[SeedUserSpec, ...] = (
    SeedUserSpec(name="Demo Admin", role=StaffRole.ADMIN),
    SeedUserSpec(name="Demo Front Desk", role=StaffRole.FRONT_DESK),
    SeedUserSpec(name="Dr. Demo Vet", role=StaffRole.VET),
    SeedUserSpec(name="Dr. Second Vet", role=StaffRole.VET),
)


async def _get_or_create_room(session: AsyncSession, *, name: str) -> Room:
    res = await session.execute(select(Room).where(func.lower(Room.name) == name.lower()))
    room = res.scalar_one_or_none()

    if room is None:
        room = Room(name=name, is_active=True)
        session.add(room)
        await session.flush()
    else:
        room.is_active = True

    return room


async def _get_or_create_user(session: AsyncSession, *, spec: SeedUserSpec) -> User:
    res = await session.execute(select(User).where(User.name == spec.name))
    user = res.scalar_one_or_none()

    if user is None:
        user = User(name=spec.name, role=spec.role.value, is_active=True)
        session.add(user)
        await session.flush()
    else:
        # Keep the demo staff active with the expected roles.
        user.is_active = True
        user.role = spec.role.value

    return user


async def seed_dev_data(database_url: str | None = None) -> SeedResult:
    """Create demo rooms and staff. Safe to run repeatedly."""

    engine = create_async_engine(database_url or settings.database_url, pool_pre_ping=True)
    session_maker = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    try:
        async with session_maker() as session:
            async with session.begin():
                rooms = {name: await _get_or_create_room(session, name=name) for name in DEMO_ROOMS}
                users = {spec.name: await _get_or_create_user(session, spec=spec) for spec in DEMO_USERS}

            return SeedResult(
                room_ids={name: room.id for name, room in rooms.items()},
                user_ids={name: user.id for name, user in users.items()},
            )
    finally:
        await engine.dispose()


def main() -> None:
    result = asyncio.run(seed_dev_data())
    print(f"seeded rooms={len(result.room_ids)} users={len(result.user_ids)}")


if __name__ == "__main__":
    main()
