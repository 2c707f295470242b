from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession


TModel = TypeVar("TModel")
TCreate = TypeVar("TCreate")
TUpdate = TypeVar("TUpdate")


def _to_dict(obj: Any, *, exclude_unset: bool = True) -> dict[str, Any]:
    """Best-effort conversion for Pydantic models / plain dict payloads."""

    if obj is None:
        return {}
    if isinstance(obj, dict):
        return obj
    if isinstance(obj, BaseModel):
        return obj.model_dump(exclude_unset=exclude_unset)

    return dict(vars(obj))


class BaseCRUD(Generic[TModel, TCreate, TUpdate]):
    """Generic CRUD helper for SQLAlchemy (async).

    Methods intentionally do NOT commit. Callers control transaction boundaries.
    """

    def __init__(self, model: type[TModel], *, order_by: str | None = None) -> None:
        self.model = model
        self.order_by = order_by

    async def create(self, session: AsyncSession, *, obj_in: TCreate) -> TModel:
        data = _to_dict(obj_in)
        db_obj = self.model(**data)  # type: ignore[call-arg]
        session.add(db_obj)
        await session.flush()
        return db_obj

    async def get(self, session: AsyncSession, *, id: Any) -> TModel | None:
        q = select(self.model).where(getattr(self.model, "id") == id)
        r = await session.execute(q)
        return r.scalar_one_or_none()

    async def get_multi(
        self,
        session: AsyncSession,
        *,
        skip: int = 0,
        limit: int = 100,
        filters: dict[str, Any] | None = None,
    ) -> list[TModel]:
        q = select(self.model)

        if filters:
            for key, value in filters.items():
                if value is None:
                    continue
                if not hasattr(self.model, key):
                    continue
                q = q.where(getattr(self.model, key) == value)

        if self.order_by is not None:
            q = q.order_by(getattr(self.model, self.order_by).asc())

        q = q.offset(max(skip, 0)).limit(max(1, limit))
        r = await session.execute(q)
        return list(r.scalars().all())

    async def update(self, session: AsyncSession, *, db_obj: TModel, obj_in: TUpdate) -> TModel:
        data = _to_dict(obj_in)

        for field, value in data.items():
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)

        session.add(db_obj)  # no-op for persistent objects, safe for detached
        await session.flush()
        return db_obj
