from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tutorsched.db.session import get_db

from . import service
from .schemas import ConflictOverrideLogResponse

router = APIRouter(prefix="/api/v1/audit", tags=["audit"])


@router.get("/conflict-overrides", response_model=List[ConflictOverrideLogResponse])
async def list_conflict_overrides(
    teacher_id: Optional[str] = Query(None, alias="teacherId"),
    date: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
) -> List[ConflictOverrideLogResponse]:
    """Saves that went through despite overlapping slots, newest first."""
    return await service.list_conflict_overrides(db, teacher_id=teacher_id, date=date, limit=limit)
