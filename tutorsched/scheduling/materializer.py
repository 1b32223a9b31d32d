"""
Materialize weekly templates into dated slot inventory.

Generation starts from the Sunday on or before the requested date. Existing
inventory is never overwritten: a generated slot whose natural key already
exists (in any status) is left alone, so manual edits survive a re-run.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, List, Sequence

from tutorsched.core.enums import SlotStatus, WeeklySlotStatus

from .normalizer import day_of_week_for_date, parse_time_to_minutes
from .overlap import intervals_overlap
from .schemas import SlotInventory, WeeklySlot

logger = logging.getLogger(__name__)


def build_natural_key(teacher_id: str, date_ymd: str, start_time: str) -> str:
    """teacherId|YYYY-MM-DD|HH:MM"""
    if not teacher_id or not date_ymd or not start_time:
        raise ValueError(
            f"natural key needs teacher_id, date and start_time (got {teacher_id!r}, {date_ymd!r}, {start_time!r})"
        )
    return f"{teacher_id}|{date_ymd}|{start_time}"


def week_start(d: date) -> date:
    """Sunday on or before d."""
    return d - timedelta(days=int(day_of_week_for_date(d)))


def generate_inventory_from_templates(
    templates: Iterable[WeeklySlot],
    start_date: date,
    days_ahead: int = 14,
) -> List[SlotInventory]:
    first = week_start(start_date)
    generated: List[SlotInventory] = []
    usable = [
        t
        for t in templates
        if t.status == WeeklySlotStatus.ACTIVE
        and t.teacher_id
        and t.day_of_week is not None
        and t.start_time
        and t.end_time
    ]
    for offset in range(days_ahead):
        day = first + timedelta(days=offset)
        dow = day_of_week_for_date(day)
        for template in usable:
            if template.day_of_week != dow:
                continue
            date_ymd = day.isoformat()
            fixed = template.is_fixed
            generated.append(
                SlotInventory(
                    id=build_natural_key(template.teacher_id, date_ymd, template.start_time),
                    teacher_id=template.teacher_id,
                    date=date_ymd,
                    start_time=template.start_time,
                    end_time=template.end_time,
                    status=SlotStatus.BOOKED if fixed else SlotStatus.OPEN,
                    students=list(template.reserved_for_ids) if fixed else [],
                    created_from=template.id,
                )
            )
    return generated


@dataclass
class InventoryPlan:
    to_create: List[SlotInventory] = field(default_factory=list)
    duplicates: List[SlotInventory] = field(default_factory=list)
    overlapping: List[SlotInventory] = field(default_factory=list)


def _overlaps_existing(slot: SlotInventory, existing: Sequence[SlotInventory]) -> bool:
    start = parse_time_to_minutes(slot.start_time)
    end = parse_time_to_minutes(slot.end_time)
    if start is None or end is None:
        return False
    for other in existing:
        if other.status == SlotStatus.CANCELED:
            continue
        if other.teacher_id != slot.teacher_id or other.date != slot.date:
            continue
        o_start = parse_time_to_minutes(other.start_time)
        o_end = parse_time_to_minutes(other.end_time)
        if o_start is None or o_end is None:
            continue
        if intervals_overlap(start, end, o_start, o_end):
            return True
    return False


def plan_inventory_sync(generated: Iterable[SlotInventory], existing: Sequence[SlotInventory]) -> InventoryPlan:
    """Split generated slots into new ones, natural-key duplicates, and ones overlapping existing inventory."""
    existing_keys = {
        build_natural_key(s.teacher_id, s.date, s.start_time)
        for s in existing
        if s.teacher_id and s.date and s.start_time
    }
    plan = InventoryPlan()
    accepted: List[SlotInventory] = []
    for slot in generated:
        key = build_natural_key(slot.teacher_id, slot.date, slot.start_time)
        if key in existing_keys:
            plan.duplicates.append(slot)
        elif _overlaps_existing(slot, existing) or _overlaps_existing(slot, accepted):
            logger.info("Skipping generated slot %s: overlaps existing inventory", key)
            plan.overlapping.append(slot)
        else:
            accepted.append(slot)
            existing_keys.add(key)
    plan.to_create = accepted
    return plan
