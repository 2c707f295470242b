from __future__ import annotations

from collections.abc import AsyncGenerator
import os
import sys

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from frontdesk.config import settings


_engine_kwargs: dict = {"pool_pre_ping": True}

# NOTE: In CI/pytest we use FastAPI's sync TestClient (AnyIO portal) and
# asyncio.run() per test. Both run coroutines on different event loops, and
# pooled async connections must not be shared across loops. Disable pooling
# under pytest.
if os.getenv("PYTEST_CURRENT_TEST") or ("pytest" in sys.modules):
    _engine_kwargs["poolclass"] = NullPool


def _use_immediate_transactions(engine: AsyncEngine) -> None:
    """Make every SQLite transaction take the write lock up front.

    pysqlite/aiosqlite defer BEGIN until the first write, so two sessions can
    both read the same WAITING row before either writes. BEGIN IMMEDIATE
    serializes writers instead, which is what the call-next claim relies on
    when running against SQLite (local dev and tests).
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_implicit_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


engine = create_async_engine(settings.database_url, **_engine_kwargs)
if engine.dialect.name == "sqlite":
    _use_immediate_transactions(engine)

SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with SessionLocal() as session:
        yield session
