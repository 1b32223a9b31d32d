"""Audit log for slot saves that knowingly overrode advisory conflicts."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Text, Uuid

from tutorsched.db.session import Base


class ConflictOverrideLog(Base):
    __tablename__ = "conflict_override_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    record_id = Column(String(64), nullable=True, index=True)
    entity = Column(String(50), nullable=False)
    teacher_id = Column(String(64), nullable=False, index=True)
    date = Column(String(10), nullable=False)
    conflict_summary = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
