from fastapi import APIRouter, Depends, HTTPException

from tutorsched.api.dependencies import get_record_store
from tutorsched.clients.record_store import RecordStoreClient
from tutorsched.core.config import settings
from tutorsched.core.exceptions import ServiceError
from tutorsched.scheduling.schemas import ConflictCheckRequest, ConflictCheckResponse

from . import service

router = APIRouter(prefix="/api/v1/conflicts", tags=["conflicts"])


@router.post("/check", response_model=ConflictCheckResponse)
async def check_conflicts(
    payload: ConflictCheckRequest,
    store: RecordStoreClient = Depends(get_record_store),
) -> ConflictCheckResponse:
    """Committed lessons and open slots of the teacher overlapping [start, end) on the given date."""
    try:
        return await service.check_conflicts(store, payload, settings.schedule_timezone)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
