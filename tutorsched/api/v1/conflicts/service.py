"""Server side of the conflict check: lessons and open inventory overlapping a proposed range."""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import status

from tutorsched.core.enums import SlotStatus
from tutorsched.core.exceptions import ServiceError
from tutorsched.scheduling.conflicts import CANCELLED_LESSON_STATUSES, lesson_to_conflict, slot_to_conflict
from tutorsched.scheduling.normalizer import parse_instant, to_instant
from tutorsched.scheduling.overlap import find_conflicts
from tutorsched.scheduling.schemas import ConflictCheckRequest, ConflictCheckResponse, ConflictItem

logger = logging.getLogger(__name__)


def _resolve(date_ymd: str, value: str, tz_name: str) -> Optional[datetime]:
    if "T" in value:
        return parse_instant(value, tz_name)
    return to_instant(date_ymd, value, tz_name)


async def check_conflicts(store, payload: ConflictCheckRequest, tz_name: str) -> ConflictCheckResponse:
    start = _resolve(payload.date, payload.start, tz_name)
    end = _resolve(payload.date, payload.end, tz_name)
    if start is None or end is None:
        raise ServiceError("date, start and end must be YYYY-MM-DD and HH:MM", status.HTTP_400_BAD_REQUEST)
    if end <= start:
        raise ServiceError("end must be after start", status.HTTP_400_BAD_REQUEST)

    try:
        lessons = await store.list_lessons(payload.date, payload.date, payload.teacher_id)
        slots = await store.list_slot_inventory(payload.date, payload.date, payload.teacher_id)
    except ServiceError as e:
        logger.error("Conflict check for teacher %s on %s failed: %s", payload.teacher_id, payload.date, e.message)
        raise ServiceError("Conflict check failed", status.HTTP_502_BAD_GATEWAY)

    excluded = set(payload.linked_lesson_ids or [])
    if payload.record_id:
        excluded.add(payload.record_id)

    existing: List[ConflictItem] = []
    for lesson in lessons:
        if lesson.id in excluded or lesson.status in CANCELLED_LESSON_STATUSES:
            continue
        if lesson.teacher_id and lesson.teacher_id != payload.teacher_id:
            continue
        item = lesson_to_conflict(lesson, tz_name)
        if item is not None:
            existing.append(item)
    for slot in slots:
        if slot.id in excluded or slot.status != SlotStatus.OPEN:
            continue
        if slot.teacher_id and slot.teacher_id != payload.teacher_id:
            continue
        if not slot.date or not slot.start_time or not slot.end_time:
            continue
        existing.append(slot_to_conflict(slot, tz_name))

    conflicts = find_conflicts(start, end, existing, tz_name=tz_name)
    return ConflictCheckResponse(has_conflicts=bool(conflicts), conflicts=conflicts)
