"""
Conflict resolution for one-off slot inventory edits.

A proposed slot is checked twice: a synchronous local pass against the
inventory window already loaded by the caller, and an asynchronous pass
through the conflict check endpoint. Lesson overlaps are blocking, slot
overlaps are advisory. A failed remote check fails open.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pytz

from tutorsched.core.enums import ConflictSource, SlotStatus
from tutorsched.core.exceptions import ConflictCheckUnavailable, OperationInFlightError

from .normalizer import normalize_time_string, parse_instant, to_instant
from .overlap import has_overlap
from .schemas import ConflictCheckRequest, ConflictItem, Lesson, SlotInventory

logger = logging.getLogger(__name__)

CANCELLED_LESSON_STATUSES = {"בוטל", "ממתין לאישור ביטול", "cancelled", "canceled", "pending_cancel"}


@dataclass
class ConflictOutcome:
    """blocking is None when no lesson conflict was found."""

    blocking: Optional[List[ConflictItem]] = None
    advisory: List[ConflictItem] = field(default_factory=list)
    check_failed: bool = False

    @property
    def is_blocked(self) -> bool:
        return bool(self.blocking)


def _hhmm(value: str) -> str:
    return normalize_time_string(value) or ""


def build_conflict_summary(conflicts: Sequence[ConflictItem]) -> str:
    """One-line digest: "lessons:recA 10:00-11:00; slot_inventory:recB 10:30-11:30"."""
    return "; ".join(f"{c.source.value}:{c.record_id} {_hhmm(c.start)}-{_hhmm(c.end)}" for c in conflicts)


def _iso(dt: Optional[datetime]) -> str:
    return dt.isoformat() if dt else ""


def slot_to_conflict(slot: SlotInventory, tz_name: str) -> ConflictItem:
    return ConflictItem(
        source=ConflictSource.SLOT_INVENTORY,
        record_id=slot.id,
        start=_iso(to_instant(slot.date, slot.start_time, tz_name)),
        end=_iso(to_instant(slot.date, slot.end_time, tz_name)),
        label=f"{slot.status.value.capitalize()} slot {slot.date} {slot.start_time}-{slot.end_time}",
        meta={"status": slot.status.value, "teacherId": slot.teacher_id},
    )


def lesson_to_conflict(lesson: Lesson, tz_name: str) -> Optional[ConflictItem]:
    start = parse_instant(lesson.start, tz_name)
    end = parse_instant(lesson.end, tz_name)
    if start is None or end is None:
        return None
    local_start = start
    if start.tzinfo is not None:
        local_start = start.astimezone(pytz.timezone(tz_name))
    return ConflictItem(
        source=ConflictSource.LESSONS,
        record_id=lesson.id,
        start=lesson.start,
        end=lesson.end,
        label=lesson.student_name or "Lesson",
        meta={
            "studentName": lesson.student_name,
            "date": local_start.date().isoformat(),
            "startTime": local_start.strftime("%H:%M"),
            "durationMinutes": int((end - start).total_seconds() // 60),
        },
    )


def conflict_items_from_payload(
    lessons: Iterable[Dict[str, Any]],
    open_slots: Iterable[Dict[str, Any]],
) -> List[ConflictItem]:
    """Render a store CONFLICT_ERROR payload ({lessons, openSlots}) as ConflictItems."""
    items: List[ConflictItem] = []
    for raw in lessons or []:
        if not isinstance(raw, dict):
            continue
        date = str(raw.get("date") or "")[:10]
        start = normalize_time_string(raw.get("startTime")) or ""
        duration = raw.get("duration")
        items.append(
            ConflictItem(
                source=ConflictSource.LESSONS,
                record_id=str(raw.get("id") or ""),
                start=raw.get("start") or f"{date}T{start}",
                end=raw.get("end") or "",
                label=raw.get("studentName") or "Lesson",
                meta={
                    "studentName": raw.get("studentName"),
                    "date": date,
                    "startTime": start,
                    "durationMinutes": duration if duration is not None else 60,
                },
            )
        )
    for raw in open_slots or []:
        if not isinstance(raw, dict):
            continue
        date = str(raw.get("date") or "")[:10]
        items.append(
            ConflictItem(
                source=ConflictSource.SLOT_INVENTORY,
                record_id=str(raw.get("id") or ""),
                start=f"{date}T{normalize_time_string(raw.get('startTime')) or ''}",
                end=f"{date}T{normalize_time_string(raw.get('endTime')) or ''}",
                label="Open slot",
                meta={"date": date},
            )
        )
    return items


def _dedupe(items: Iterable[ConflictItem]) -> List[ConflictItem]:
    seen = set()
    out: List[ConflictItem] = []
    for item in items:
        if item.record_id in seen:
            continue
        seen.add(item.record_id)
        out.append(item)
    return out


class ConflictResolver:
    """
    Classify a proposed slot into blocking and advisory conflicts.

    Holds no slot data between calls; siblings are passed in by the caller.
    The only state is the in-flight flag guarding against double submission.
    """

    def __init__(self, checker, tz_name: str) -> None:
        self._checker = checker
        self._tz_name = tz_name
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def local_pass(self, candidate, siblings: Iterable[SlotInventory]) -> List[ConflictItem]:
        """Advisory conflicts against already-loaded inventory on the same date."""
        if not candidate.date or not candidate.start_time or not candidate.end_time:
            return []
        start = to_instant(candidate.date, candidate.start_time, self._tz_name)
        end = to_instant(candidate.date, candidate.end_time, self._tz_name)
        if start is None or end is None:
            return []
        cand_id = getattr(candidate, "id", None)
        hits: List[ConflictItem] = []
        for slot in siblings:
            if cand_id and slot.id == cand_id:
                continue
            if slot.date != candidate.date or slot.status == SlotStatus.CANCELED:
                continue
            if candidate.teacher_id and slot.teacher_id and slot.teacher_id != candidate.teacher_id:
                continue
            s_start = to_instant(slot.date, slot.start_time, self._tz_name)
            s_end = to_instant(slot.date, slot.end_time, self._tz_name)
            if s_start is None or s_end is None:
                continue
            if has_overlap(start, end, s_start, s_end):
                hits.append(slot_to_conflict(slot, self._tz_name))
        return hits

    async def check(
        self,
        candidate,
        siblings: Iterable[SlotInventory],
        record_id: Optional[str] = None,
        linked_lesson_ids: Optional[List[str]] = None,
    ) -> ConflictOutcome:
        if self._in_flight:
            raise OperationInFlightError("A conflict check is already running")
        local = self.local_pass(candidate, siblings)
        request = ConflictCheckRequest(
            record_id=record_id,
            linked_lesson_ids=linked_lesson_ids or None,
            teacher_id=candidate.teacher_id,
            date=candidate.date,
            start=candidate.start_time,
            end=candidate.end_time,
        )
        self._in_flight = True
        try:
            response = await self._checker.check(request)
        except ConflictCheckUnavailable as e:
            logger.warning(
                "Conflict check failed for %s %s-%s, allowing save: %s",
                candidate.date,
                candidate.start_time,
                candidate.end_time,
                e,
            )
            return ConflictOutcome(blocking=None, advisory=[], check_failed=True)
        finally:
            self._in_flight = False

        excluded = set(linked_lesson_ids or [])
        blocking = [
            c
            for c in response.conflicts
            if c.source == ConflictSource.LESSONS and c.record_id not in excluded
        ]
        if blocking:
            return ConflictOutcome(blocking=blocking, advisory=[])
        remote_advisory = [
            c
            for c in response.conflicts
            if c.source == ConflictSource.SLOT_INVENTORY and c.record_id != record_id
        ]
        return ConflictOutcome(blocking=None, advisory=_dedupe([*local, *remote_advisory]))
