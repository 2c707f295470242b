from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class OccupantRead(BaseModel):
    id: UUID
    name: str
    role: str
    is_active: bool

    current_room_id: UUID | None = None
    room_checked_in_at: datetime | None = None
    last_activity_at: datetime | None = None

    class Config:
        from_attributes = True


class CheckInRequest(BaseModel):
    vet_id: UUID | None = None
