from fastapi import APIRouter

from frontdesk.api.v1.endpoints.queue import router as queue_router
from frontdesk.api.v1.endpoints.rooms import router as rooms_router

router = APIRouter()


@router.get("/ping")
async def ping():
    return {"ping": "pong"}


router.include_router(queue_router)
router.include_router(rooms_router)
