from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from frontdesk.models.user import User


async def get_user(
    session: AsyncSession,
    *,
    user_id: UUID,
    lock: bool = False,
    refresh: bool = False,
) -> User | None:
    stmt = select(User).where(User.id == user_id)
    if lock:
        stmt = stmt.with_for_update()
    if refresh:
        stmt = stmt.execution_options(populate_existing=True)

    res = await session.execute(stmt)
    return res.scalar_one_or_none()


async def occupant_of_room(
    session: AsyncSession,
    *,
    room_id: UUID,
    lock: bool = False,
) -> User | None:
    """User currently holding ``room_id``, if any.

    Any holder counts, whatever their role or active flag: the room stays
    taken until they check out or the reaper releases it.
    """

    stmt = select(User).where(User.current_room_id == room_id).limit(1)
    if lock:
        stmt = stmt.with_for_update()

    res = await session.execute(stmt)
    return res.scalar_one_or_none()


async def assign_room(
    session: AsyncSession,
    *,
    user_id: UUID,
    room_id: UUID,
    now: datetime,
) -> None:
    """Write the check-in. Does not commit.

    The unique index on users.current_room_id rejects a second holder at flush
    (IntegrityError) even if two check-ins passed their checks concurrently.
    """

    stmt = (
        update(User)
        .where(User.id == user_id)
        .values(current_room_id=room_id, room_checked_in_at=now, last_activity_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    await session.execute(stmt)


async def clear_room(
    session: AsyncSession,
    *,
    user_id: UUID,
    expected_room_id: UUID | None = None,
) -> bool:
    """Drop a user's room occupancy.

    With ``expected_room_id`` the update only applies if the user still holds
    that room, so a sweep never evicts someone who re-checked-in meanwhile.
    """

    stmt = update(User).where(User.id == user_id).where(User.current_room_id.is_not(None))
    if expected_room_id is not None:
        stmt = stmt.where(User.current_room_id == expected_room_id)

    stmt = stmt.values(
        current_room_id=None,
        room_checked_in_at=None,
        last_activity_at=None,
    ).execution_options(synchronize_session=False)
    res = await session.execute(stmt)
    return res.rowcount == 1


async def touch_activity(session: AsyncSession, *, user_id: UUID, now: datetime) -> None:
    stmt = (
        update(User)
        .where(User.id == user_id)
        .values(last_activity_at=now)
        .execution_options(synchronize_session=False)
    )
    await session.execute(stmt)


async def find_stale_checkins(session: AsyncSession, *, cutoff: datetime) -> list[User]:
    """Users holding a room whose last sign of life is older than ``cutoff``.

    Last sign of life is last_activity_at, falling back to room_checked_in_at.
    A holder with neither timestamp is treated as stale.
    """

    last_seen = func.coalesce(User.last_activity_at, User.room_checked_in_at)
    stmt = (
        select(User)
        .where(User.current_room_id.is_not(None))
        .where(or_(last_seen < cutoff, last_seen.is_(None)))
        .order_by(User.name.asc())
    )
    res = await session.execute(stmt)
    return list(res.scalars().all())


async def list_checked_in(session: AsyncSession, *, exclude_user_id: UUID | None = None) -> list[User]:
    stmt = (
        select(User)
        .where(User.current_room_id.is_not(None))
        .where(User.is_active.is_(True))
        .order_by(User.name.asc())
    )
    if exclude_user_id is not None:
        stmt = stmt.where(User.id != exclude_user_id)

    res = await session.execute(stmt)
    return list(res.scalars().all())
