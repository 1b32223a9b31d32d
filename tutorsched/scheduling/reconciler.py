"""
Deduplicate and order record collections fetched from the record store.

Denormalized join queries upstream can return the same record more than once.
The first occurrence of an id wins.
"""

import logging
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, TypeVar

from pydantic import BaseModel

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


def _default_sort_key(record) -> Tuple[str, str]:
    return (getattr(record, "date", None) or "", getattr(record, "start_time", None) or "")


def weekly_sort_key(record) -> Tuple[int, str]:
    day = getattr(record, "day_of_week", None)
    # unknown days sort first
    return (-1 if day is None else int(day), getattr(record, "start_time", None) or "")


def reconcile(
    records: Iterable[RecordT],
    sort_key: Optional[Callable[[RecordT], tuple]] = None,
) -> List[RecordT]:
    """Return records deduplicated by id (first wins) and sorted by (date, start_time)."""
    seen = {}
    kept: List[RecordT] = []
    for record in records:
        first = seen.get(record.id)
        if first is None:
            seen[record.id] = record
            kept.append(record)
            continue
        if first.model_dump() != record.model_dump():
            logger.warning("Dropped duplicate record %s with differing fields", record.id)
        else:
            logger.debug("Dropped duplicate record %s", record.id)
    kept.sort(key=sort_key or _default_sort_key)
    return kept


def merge(
    current: Sequence[RecordT],
    updates: Iterable[RecordT],
    sort_key: Optional[Callable[[RecordT], tuple]] = None,
) -> Tuple[RecordT, ...]:
    """New collection where updated records replace their current copies by id."""
    by_id = {r.id: r for r in current}
    for record in updates:
        by_id[record.id] = record
    return tuple(reconcile(by_id.values(), sort_key=sort_key))


def remove(current: Sequence[RecordT], record_id: str) -> Tuple[RecordT, ...]:
    return tuple(r for r in current if r.id != record_id)
