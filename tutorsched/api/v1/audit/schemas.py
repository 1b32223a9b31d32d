from datetime import datetime
from typing import Optional
from uuid import UUID

from tutorsched.scheduling.schemas import CamelModel


class ConflictOverrideLogResponse(CamelModel):
    id: UUID
    record_id: Optional[str] = None
    entity: str
    teacher_id: str
    date: str
    conflict_summary: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
