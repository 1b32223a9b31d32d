"""
Overlap detection on half-open intervals.

Two ranges [a_start, a_end) and [b_start, b_end) overlap iff
a_start < b_end and b_start < a_end. Touching edges are not an overlap, so
back-to-back slots are legal.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Union

from tutorsched.core.enums import DayOfWeek

from .normalizer import normalize_day_of_week, parse_instant, parse_time_to_minutes
from .schemas import ConflictItem, WeeklySlot, WeeklySlotOverlap

logger = logging.getLogger(__name__)

InstantLike = Union[str, datetime]


def intervals_overlap(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    return start_a < end_b and start_b < end_a


def has_overlap(
    start_a: InstantLike,
    end_a: InstantLike,
    start_b: InstantLike,
    end_b: InstantLike,
    tz_name: Optional[str] = None,
) -> bool:
    """
    Date-scoped overlap on ISO instants. Unparseable instants never overlap.

    Instants without an offset are read as wall-clock time in tz_name. Without
    tz_name a naive instant cannot be compared with an aware one; that pair is
    logged and treated as not overlapping.
    """
    instants = [parse_instant(v, tz_name) for v in (start_a, end_a, start_b, end_b)]
    if any(i is None for i in instants):
        return False
    a_s, a_e, b_s, b_e = instants
    try:
        return a_s < b_e and b_s < a_e
    except TypeError:
        logger.warning(
            "Cannot compare %s-%s with %s-%s: mixed naive and aware instants", start_a, end_a, start_b, end_b
        )
        return False


def _field(obj, name: str):
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def detect_weekly_slot_overlaps(candidate, all_slots: Iterable[WeeklySlot]) -> List[WeeklySlotOverlap]:
    """
    Return the siblings whose [start_time, end_time) intersects the candidate on the same day.

    candidate needs day_of_week, start_time, end_time and optionally id (a
    WeeklySlot, a draft, a dict, or anything exposing those names). Siblings
    whose day cannot be normalized are skipped, never reported.
    """
    cand_day = _field(candidate, "day_of_week")
    cand_start = _field(candidate, "start_time")
    cand_end = _field(candidate, "end_time")
    cand_id = _field(candidate, "id")
    if cand_day is None or not cand_start or not cand_end:
        return []

    day = normalize_day_of_week(cand_day)
    if day is None:
        logger.debug("Cannot normalize candidate day %r, skipping overlap check", cand_day)
        return []

    c_start = parse_time_to_minutes(cand_start)
    c_end = parse_time_to_minutes(cand_end)
    if c_start is None or c_end is None:
        return []

    overlaps: List[WeeklySlotOverlap] = []
    for slot in all_slots:
        if cand_id and slot.id == cand_id:
            continue
        other_day = normalize_day_of_week(slot.day_of_week)
        if other_day is None:
            logger.debug("Cannot normalize day of slot %s, skipping", slot.id)
            continue
        if other_day != day:
            continue
        if not slot.start_time or not slot.end_time:
            continue
        s_start = parse_time_to_minutes(slot.start_time)
        s_end = parse_time_to_minutes(slot.end_time)
        if s_start is None or s_end is None:
            continue
        if intervals_overlap(c_start, c_end, s_start, s_end):
            overlaps.append(
                WeeklySlotOverlap(
                    slot_id=slot.id,
                    day_of_week=DayOfWeek(other_day),
                    start_time=slot.start_time,
                    end_time=slot.end_time,
                )
            )
    return overlaps


def find_conflicts(
    proposed_start: InstantLike,
    proposed_end: InstantLike,
    existing: Sequence[ConflictItem],
    exclude_record_id: Optional[str] = None,
    tz_name: Optional[str] = None,
) -> List[ConflictItem]:
    """Existing intervals overlapping the proposed range, sorted by start. Naive instants are read in tz_name."""
    hits = [
        item
        for item in existing
        if not (exclude_record_id and item.record_id == exclude_record_id)
        and has_overlap(proposed_start, proposed_end, item.start, item.end, tz_name)
    ]
    hits.sort(key=lambda item: parse_instant(item.start, tz_name))
    return hits
