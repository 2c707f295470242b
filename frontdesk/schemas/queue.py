from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from frontdesk.models.enums import EntryStatus, Priority


def _assume_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class QueueEntryCreate(BaseModel):
    # Blank names are rejected by QueueService (unless patient_id is given),
    # so they are not constrained here.
    patient_name: str = ""
    tutor_name: str = ""
    service_type: str
    # None: QueueService applies its default priority (NORMAL).
    priority: Priority | None = None

    assigned_vet_id: UUID | None = None
    patient_id: str | None = None

    has_scheduled_appointment: bool = False
    scheduled_at: datetime | None = None

    utc_scheduled_at = field_validator("scheduled_at")(_assume_utc)


class QueueEntryUpdate(BaseModel):
    patient_name: str | None = None
    tutor_name: str | None = None
    service_type: str | None = None
    priority: Priority | None = None

    assigned_vet_id: UUID | None = None
    patient_id: str | None = None

    has_scheduled_appointment: bool | None = None
    scheduled_at: datetime | None = None

    utc_scheduled_at = field_validator("scheduled_at")(_assume_utc)


class QueueEntryRead(BaseModel):
    id: UUID

    patient_name: str
    tutor_name: str
    service_type: str
    patient_id: str | None = None

    priority: Priority
    status: EntryStatus

    has_scheduled_appointment: bool
    scheduled_at: datetime | None = None

    assigned_vet_id: UUID | None = None
    room_id: UUID | None = None

    created_at: datetime
    called_at: datetime | None = None
    completed_at: datetime | None = None

    system_message: str | None = None

    class Config:
        from_attributes = True


class QueueEntryListResponse(BaseModel):
    items: list[QueueEntryRead] = Field(default_factory=list)


class QueueHistoryResponse(BaseModel):
    items: list[QueueEntryRead] = Field(default_factory=list)
    total: int
    page: int
    total_pages: int


class CallRequest(BaseModel):
    vet_id: UUID | None = None
    room_id: UUID | None = None


class ClaimRequest(BaseModel):
    vet_id: UUID | None = None


class HistoryFilters(BaseModel):
    start_date: datetime | None = None
    end_date: datetime | None = None
    tutor_name: str | None = None
    patient_name: str | None = None
    service_type: str | None = None

    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=200)

    utc_start = field_validator("start_date")(_assume_utc)
    utc_end = field_validator("end_date")(_assume_utc)


class CallNextResponse(BaseModel):
    # None when nothing eligible is waiting.
    entry: QueueEntryRead | None = None
