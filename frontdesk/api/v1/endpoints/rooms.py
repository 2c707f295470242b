from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from frontdesk.api.deps import Requester, get_requester
from frontdesk.database import get_db
from frontdesk.schemas.room import RoomCreate, RoomListResponse, RoomRead, RoomUpdate
from frontdesk.schemas.user import CheckInRequest, OccupantRead
from frontdesk.services.occupancy_service import OccupancyService
from frontdesk.services.room_service import RoomService


router = APIRouter(prefix="/rooms", tags=["rooms"])

room_service = RoomService()
occupancy_service = OccupancyService()


def _vet_or_422(requested: uuid.UUID | None, requester: Requester) -> uuid.UUID:
    vet_id = requested or requester.user_id
    if vet_id is None:
        raise HTTPException(status_code=422, detail="vet_id is required")
    return vet_id


@router.get("", response_model=RoomListResponse)
async def list_rooms_endpoint(session: AsyncSession = Depends(get_db)) -> RoomListResponse:
    rooms = await room_service.list_rooms(session)
    return RoomListResponse(items=[RoomRead.model_validate(r) for r in rooms])


@router.get("/all", response_model=RoomListResponse)
async def list_all_rooms_endpoint(session: AsyncSession = Depends(get_db)) -> RoomListResponse:
    rooms = await room_service.list_all_rooms(session)
    return RoomListResponse(items=[RoomRead.model_validate(r) for r in rooms])


@router.post("", response_model=RoomRead, status_code=status.HTTP_201_CREATED)
async def create_room_endpoint(
    payload: RoomCreate,
    session: AsyncSession = Depends(get_db),
) -> RoomRead:
    room = await room_service.create_room(session, data=payload)
    return RoomRead.model_validate(room)


@router.post("/check-out", response_model=OccupantRead)
async def check_out_endpoint(
    payload: CheckInRequest | None = None,
    requester: Requester = Depends(get_requester),
    session: AsyncSession = Depends(get_db),
) -> OccupantRead:
    vet_id = _vet_or_422(payload.vet_id if payload is not None else None, requester)
    user = await occupancy_service.check_out(session, vet_id=vet_id)
    return OccupantRead.model_validate(user)


@router.patch("/{room_id}", response_model=RoomRead)
async def update_room_endpoint(
    room_id: uuid.UUID,
    payload: RoomUpdate,
    session: AsyncSession = Depends(get_db),
) -> RoomRead:
    room = await room_service.update_room(session, room_id=room_id, data=payload)
    return RoomRead.model_validate(room)


@router.delete("/{room_id}", response_model=RoomRead)
async def deactivate_room_endpoint(
    room_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
) -> RoomRead:
    room = await room_service.deactivate_room(session, room_id=room_id)
    return RoomRead.model_validate(room)


@router.post("/{room_id}/check-in", response_model=OccupantRead)
async def check_in_endpoint(
    room_id: uuid.UUID,
    payload: CheckInRequest | None = None,
    requester: Requester = Depends(get_requester),
    session: AsyncSession = Depends(get_db),
) -> OccupantRead:
    vet_id = _vet_or_422(payload.vet_id if payload is not None else None, requester)
    user = await occupancy_service.check_in(session, vet_id=vet_id, room_id=room_id)
    return OccupantRead.model_validate(user)
