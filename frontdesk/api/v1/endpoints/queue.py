from __future__ import annotations

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from frontdesk.api.deps import Requester, acting_vet_id, get_requester
from frontdesk.database import get_db
from frontdesk.schemas.queue import (
    CallNextResponse,
    CallRequest,
    ClaimRequest,
    HistoryFilters,
    QueueEntryCreate,
    QueueEntryListResponse,
    QueueEntryRead,
    QueueEntryUpdate,
    QueueHistoryResponse,
)
from frontdesk.schemas.room import RoomOccupation, RoomOccupationsResponse
from frontdesk.services.queue_service import ALL_VETS, QueueService


router = APIRouter(prefix="/queue", tags=["queue"])

queue_service = QueueService()


@router.post("", response_model=QueueEntryRead, status_code=status.HTTP_201_CREATED)
async def add_entry_endpoint(
    payload: QueueEntryCreate,
    session: AsyncSession = Depends(get_db),
) -> QueueEntryRead:
    entry = await queue_service.add_entry(session, payload)
    return QueueEntryRead.model_validate(entry)


@router.get("/active", response_model=QueueEntryListResponse)
async def list_active_endpoint(
    vet_id: uuid.UUID | None = Query(None, description="Vet UUID: their entries plus the unassigned pool"),
    unassigned: bool = Query(False, description="Only entries with no assigned vet"),
    session: AsyncSession = Depends(get_db),
) -> QueueEntryListResponse:
    if vet_id is not None and unassigned:
        raise HTTPException(status_code=422, detail="vet_id and unassigned are mutually exclusive")

    scope = None if unassigned else (vet_id or ALL_VETS)
    entries = await queue_service.list_active(session, vet_id=scope)
    return QueueEntryListResponse(items=[QueueEntryRead.model_validate(e) for e in entries])


@router.get("/history", response_model=QueueHistoryResponse)
async def history_endpoint(
    start_date: datetime | None = Query(None, description="Filter: completed_at >= start_date"),
    end_date: datetime | None = Query(None, description="Filter: completed_at <= end_date"),
    tutor_name: str | None = Query(None, description="Case-insensitive substring"),
    patient_name: str | None = Query(None, description="Case-insensitive substring"),
    service_type: str | None = Query(None, description="Exact match"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    session: AsyncSession = Depends(get_db),
) -> QueueHistoryResponse:
    filters = HistoryFilters(
        start_date=start_date,
        end_date=end_date,
        tutor_name=tutor_name,
        patient_name=patient_name,
        service_type=service_type,
        page=page,
        limit=limit,
    )
    entries, total, page, total_pages = await queue_service.get_history_page(session, filters)
    return QueueHistoryResponse(
        items=[QueueEntryRead.model_validate(e) for e in entries],
        total=total,
        page=page,
        total_pages=total_pages,
    )


@router.get("/room-occupations", response_model=RoomOccupationsResponse)
async def room_occupations_endpoint(
    exclude_vet_id: uuid.UUID | None = Query(None),
    session: AsyncSession = Depends(get_db),
) -> RoomOccupationsResponse:
    occupations = await queue_service.room_occupations(session, exclude_vet_id=exclude_vet_id)
    return RoomOccupationsResponse(
        rooms={
            room_id: RoomOccupation(vet_id=o.vet_id, vet_name=o.vet_name)
            for room_id, o in occupations.items()
        }
    )


@router.post("/call-next", response_model=CallNextResponse)
async def call_next_endpoint(
    payload: CallRequest,
    requester: Requester = Depends(get_requester),
    session: AsyncSession = Depends(get_db),
) -> CallNextResponse:
    entry = await queue_service.call_next(
        session,
        vet_id=acting_vet_id(payload.vet_id, requester),
        room_id=payload.room_id,
    )
    if entry is None:
        return CallNextResponse(entry=None)
    return CallNextResponse(entry=QueueEntryRead.model_validate(entry))


@router.post("/{entry_id}/call", response_model=QueueEntryRead)
async def call_entry_endpoint(
    entry_id: uuid.UUID,
    payload: CallRequest,
    requester: Requester = Depends(get_requester),
    session: AsyncSession = Depends(get_db),
) -> QueueEntryRead:
    entry = await queue_service.call_entry(
        session,
        entry_id,
        vet_id=acting_vet_id(payload.vet_id, requester),
        room_id=payload.room_id,
    )
    return QueueEntryRead.model_validate(entry)


@router.post("/{entry_id}/start", response_model=QueueEntryRead)
async def start_endpoint(
    entry_id: uuid.UUID,
    requester: Requester = Depends(get_requester),
    session: AsyncSession = Depends(get_db),
) -> QueueEntryRead:
    entry = await queue_service.start(session, entry_id, requester_role=requester.role)
    return QueueEntryRead.model_validate(entry)


@router.post("/{entry_id}/complete", response_model=QueueEntryRead)
async def complete_endpoint(
    entry_id: uuid.UUID,
    requester: Requester = Depends(get_requester),
    session: AsyncSession = Depends(get_db),
) -> QueueEntryRead:
    entry = await queue_service.complete(session, entry_id, requester_role=requester.role)
    return QueueEntryRead.model_validate(entry)


@router.post("/{entry_id}/cancel", response_model=QueueEntryRead)
async def cancel_endpoint(
    entry_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
) -> QueueEntryRead:
    entry = await queue_service.cancel(session, entry_id)
    return QueueEntryRead.model_validate(entry)


@router.post("/{entry_id}/claim", response_model=QueueEntryRead)
async def claim_endpoint(
    entry_id: uuid.UUID,
    payload: ClaimRequest | None = None,
    requester: Requester = Depends(get_requester),
    session: AsyncSession = Depends(get_db),
) -> QueueEntryRead:
    vet_id = (payload.vet_id if payload is not None else None) or requester.user_id
    if vet_id is None:
        raise HTTPException(status_code=422, detail="vet_id is required")

    entry = await queue_service.claim(session, entry_id, vet_id=vet_id)
    return QueueEntryRead.model_validate(entry)


@router.patch("/{entry_id}", response_model=QueueEntryRead)
async def update_entry_endpoint(
    entry_id: uuid.UUID,
    payload: QueueEntryUpdate,
    requester: Requester = Depends(get_requester),
    session: AsyncSession = Depends(get_db),
) -> QueueEntryRead:
    entry = await queue_service.update_entry(session, entry_id, payload, requester_role=requester.role)
    return QueueEntryRead.model_validate(entry)
