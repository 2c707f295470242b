import asyncio
import os
import tempfile
from datetime import datetime, timezone

# Must be set before frontdesk.config is imported. CI may point DATABASE_URL
# at PostgreSQL instead; the suite runs on either backend.
_DB_DIR = tempfile.mkdtemp(prefix="frontdesk-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_DB_DIR}/frontdesk.db")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from frontdesk.database import engine  # noqa: E402
from frontdesk.main import app  # noqa: E402
from frontdesk.models import Base, Room, User  # noqa: E402
from frontdesk.models.enums import StaffRole  # noqa: E402


async def _reset_schema() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture(autouse=True)
def clean_db():
    asyncio.run(_reset_schema())
    yield


@pytest.fixture()
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture()
def make_room():
    async def _make(session, *, name: str = "Room 1", is_active: bool = True) -> Room:
        room = Room(name=name, is_active=is_active)
        session.add(room)
        await session.commit()
        return room

    return _make


@pytest.fixture()
def make_user():
    async def _make(
        session,
        *,
        name: str = "Dr. Vet",
        role: StaffRole = StaffRole.VET,
        room: Room | None = None,
        checked_in_at: datetime | None = None,
        last_activity_at: datetime | None = None,
    ) -> User:
        user = User(name=name, role=role.value, is_active=True)
        if room is not None:
            user.current_room_id = room.id
            user.room_checked_in_at = checked_in_at or datetime.now(tz=timezone.utc)
            user.last_activity_at = last_activity_at
        session.add(user)
        await session.commit()
        return user

    return _make
