from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class RoomCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)


class RoomUpdate(BaseModel):
    name: str | None = Field(None, max_length=100)
    is_active: bool | None = None


class RoomRead(BaseModel):
    id: UUID
    name: str
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class RoomListResponse(BaseModel):
    items: list[RoomRead] = Field(default_factory=list)


class RoomOccupation(BaseModel):
    vet_id: UUID
    vet_name: str


class RoomOccupationsResponse(BaseModel):
    # Keyed by room id.
    rooms: dict[UUID, RoomOccupation] = Field(default_factory=dict)
