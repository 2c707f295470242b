from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Index, String, Uuid, func, text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UTCDateTime, utcnow


class Room(Base):
    __tablename__ = "rooms"
    __table_args__ = (Index("uq_rooms_name_lower", text("lower(name)"), unique=True),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")

    created_at: Mapped[object] = mapped_column(UTCDateTime(), nullable=False, default=utcnow, server_default=func.now())
