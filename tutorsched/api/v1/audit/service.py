from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tutorsched.core.models import ConflictOverrideLog

from .schemas import ConflictOverrideLogResponse


async def list_conflict_overrides(
    db: AsyncSession,
    teacher_id: Optional[str] = None,
    date: Optional[str] = None,
    limit: int = 100,
) -> List[ConflictOverrideLogResponse]:
    """Most recent override events first."""
    stmt = select(ConflictOverrideLog)
    if teacher_id:
        stmt = stmt.where(ConflictOverrideLog.teacher_id == teacher_id)
    if date:
        stmt = stmt.where(ConflictOverrideLog.date == date)
    stmt = stmt.order_by(ConflictOverrideLog.created_at.desc()).limit(limit)
    result = await db.execute(stmt)
    return [ConflictOverrideLogResponse.model_validate(row) for row in result.scalars().all()]
