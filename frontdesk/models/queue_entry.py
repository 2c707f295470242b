from __future__ import annotations

import uuid

from sqlalchemy import Boolean, ForeignKey, Integer, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UTCDateTime, utcnow


class QueueEntry(Base):
    __tablename__ = "queue_entries"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    patient_name: Mapped[str] = mapped_column(String(150), nullable=False)
    tutor_name: Mapped[str] = mapped_column(String(150), nullable=False)
    service_type: Mapped[str] = mapped_column(String(50), nullable=False)
    patient_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Priority ordinal, see models.enums.Priority (lower is served first).
    priority: Mapped[int] = mapped_column(Integer, nullable=False, server_default="3")
    status: Mapped[str] = mapped_column(String(30), nullable=False, server_default="WAITING")

    has_scheduled_appointment: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false"
    )
    scheduled_at: Mapped[object | None] = mapped_column(UTCDateTime(), nullable=True)

    assigned_vet_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    room_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("rooms.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[object] = mapped_column(UTCDateTime(), nullable=False, default=utcnow, server_default=func.now())
    called_at: Mapped[object | None] = mapped_column(UTCDateTime(), nullable=True)
    completed_at: Mapped[object | None] = mapped_column(UTCDateTime(), nullable=True)
    updated_at: Mapped[object] = mapped_column(
        UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow, server_default=func.now()
    )

    # Not persisted. Set when add/update converted a late appointment into a walk-in.
    system_message = None
