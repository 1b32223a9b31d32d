"""
Override-audit sinks. Call once per save that proceeds despite advisory conflicts.

Recording is fire-and-forget from the caller's point of view: emit_override
never raises, so a broken sink cannot block the underlying save.
"""

import logging
from collections import deque
from datetime import datetime, timezone
from typing import Deque, List

from sqlalchemy.ext.asyncio import async_sessionmaker

from tutorsched.core.models import ConflictOverrideLog

from .schemas import ConflictOverrideEvent

logger = logging.getLogger(__name__)

MAX_MEMORY_EVENTS = 100


class MemoryAuditSink:
    """Keeps the most recent override events in memory, newest first."""

    def __init__(self, max_events: int = MAX_MEMORY_EVENTS) -> None:
        self._events: Deque[ConflictOverrideEvent] = deque(maxlen=max_events)

    async def record(self, event: ConflictOverrideEvent) -> None:
        self._events.appendleft(event)

    def events(self) -> List[ConflictOverrideEvent]:
        return list(self._events)


class DatabaseAuditSink:
    """Appends one ConflictOverrideLog row per event."""

    def __init__(self, session_factory: async_sessionmaker) -> None:
        self._session_factory = session_factory

    async def record(self, event: ConflictOverrideEvent) -> None:
        async with self._session_factory() as db:
            db.add(
                ConflictOverrideLog(
                    record_id=event.record_id,
                    entity=event.entity.value,
                    teacher_id=event.teacher_id,
                    date=event.date,
                    conflict_summary=event.conflict_summary,
                    created_at=datetime.now(timezone.utc),
                )
            )
            await db.commit()


async def emit_override(sink, event: ConflictOverrideEvent) -> bool:
    """Record the event; log and swallow any sink failure. Returns whether it was recorded."""
    logger.info(
        "Advisory conflict override: record=%s teacher=%s date=%s [%s]",
        event.record_id,
        event.teacher_id,
        event.date,
        event.conflict_summary,
    )
    if sink is None:
        return False
    try:
        await sink.record(event)
    except Exception:
        logger.exception("Failed to record conflict override for %s", event.record_id)
        return False
    return True
