from __future__ import annotations

import uuid

from sqlalchemy import Boolean, ForeignKey, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UTCDateTime, utcnow


class User(Base):
    """Staff member. Only the fields the queue and room registry need live here."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    name: Mapped[str] = mapped_column(String(150), nullable=False)
    role: Mapped[str] = mapped_column(String(30), nullable=False, server_default="VET")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")

    # Unique: at most one user may hold a room at any time. NULLs don't collide.
    current_room_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("rooms.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
    )
    room_checked_in_at: Mapped[object | None] = mapped_column(UTCDateTime(), nullable=True)
    last_activity_at: Mapped[object | None] = mapped_column(UTCDateTime(), nullable=True)

    created_at: Mapped[object] = mapped_column(UTCDateTime(), nullable=False, default=utcnow, server_default=func.now())
    updated_at: Mapped[object] = mapped_column(
        UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow, server_default=func.now()
    )
