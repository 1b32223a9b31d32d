"""
Slot lifecycle manager: owns one operator session's working collections of
weekly templates and slot inventory, and drives every state change through
validation, conflict resolution and the record store.

WeeklySlot:     active <-> paused (toggle), deleted (confirmed)
SlotInventory:  open -> booked (reserve), open <-> blocked, booked -> open (last lesson cancelled),
                open/blocked/booked -> canceled (confirmed), any -> deleted (confirmed)

Collections are tuples replaced wholesale, never mutated in place, so a
reader always sees a consistent snapshot. Only one remote operation may be
in flight per session. Results of a request are discarded when the open
record changed while it was pending.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional, Set, Tuple

from tutorsched.core.enums import DayOfWeek, SlotStatus, WeeklySlotStatus
from tutorsched.core.exceptions import (
    BlockingConflictError,
    ConfirmationRequiredError,
    InvalidTransitionError,
    OperationInFlightError,
    RecordNotFoundError,
    ServiceError,
    SlotValidationError,
    StaleOperationError,
)

from . import reconciler
from .audit import emit_override
from .conflicts import ConflictOutcome, ConflictResolver, build_conflict_summary
from .materializer import InventoryPlan, generate_inventory_from_templates, plan_inventory_sync
from .normalizer import normalize_day_of_week, parse_time_to_minutes
from .overlap import detect_weekly_slot_overlaps, intervals_overlap
from .schemas import (
    ConflictItem,
    ConflictOverrideEvent,
    SlotInventory,
    SlotInventoryDraft,
    WeeklySlot,
    WeeklySlotDraft,
    WeeklySlotOverlap,
)

logger = logging.getLogger(__name__)

# target status -> statuses it may be entered from
INVENTORY_TRANSITIONS: Dict[SlotStatus, Set[SlotStatus]] = {
    SlotStatus.BOOKED: {SlotStatus.OPEN},
    SlotStatus.BLOCKED: {SlotStatus.OPEN},
    SlotStatus.OPEN: {SlotStatus.BLOCKED},
    SlotStatus.CANCELED: {SlotStatus.OPEN, SlotStatus.BLOCKED, SlotStatus.BOOKED},
}


@dataclass
class WeeklySlotSaveResult:
    slot: WeeklySlot
    overlaps: List[WeeklySlotOverlap] = field(default_factory=list)


@dataclass
class InventorySaveResult:
    slot: SlotInventory
    advisory: List[ConflictItem] = field(default_factory=list)
    override_recorded: bool = False
    check_failed: bool = False


def _check_times(start_time: Optional[str], end_time: Optional[str]) -> None:
    start = parse_time_to_minutes(start_time)
    end = parse_time_to_minutes(end_time)
    if start is None or end is None:
        raise SlotValidationError("start_time and end_time must be HH:MM")
    if end <= start:
        raise SlotValidationError("end_time must be after start_time")


def _check_date(value: Optional[str]) -> None:
    try:
        date.fromisoformat(value or "")
    except ValueError:
        raise SlotValidationError("date must be YYYY-MM-DD")


class SlotLifecycleManager:
    def __init__(
        self,
        store,
        resolver: ConflictResolver,
        audit_sink=None,
        *,
        require_student: bool = True,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._audit_sink = audit_sink
        self._require_student = require_student
        self._weekly: Tuple[WeeklySlot, ...] = ()
        self._inventory: Tuple[SlotInventory, ...] = ()
        self._busy = False
        self._open_record_id: Optional[str] = None
        self._editor_token = 0

    @property
    def weekly_slots(self) -> Tuple[WeeklySlot, ...]:
        return self._weekly

    @property
    def inventory(self) -> Tuple[SlotInventory, ...]:
        return self._inventory

    @property
    def open_slots(self) -> Tuple[SlotInventory, ...]:
        return tuple(s for s in self._inventory if s.status == SlotStatus.OPEN and not s.pending)

    @property
    def in_flight(self) -> bool:
        return self._busy

    @property
    def open_record_id(self) -> Optional[str]:
        return self._open_record_id

    # editor identity

    def open_record(self, record_id: Optional[str]) -> None:
        """Mark record_id as the one being edited. Pending results for any other record become stale."""
        self._open_record_id = record_id
        self._editor_token += 1

    def close_record(self) -> None:
        self.open_record(None)

    def _is_current(self, token: int) -> bool:
        return token == self._editor_token

    @asynccontextmanager
    async def _exclusive(self):
        if self._busy:
            raise OperationInFlightError()
        self._busy = True
        try:
            yield
        finally:
            self._busy = False

    # fetch

    async def load_weekly_slots(self, teacher_id: Optional[str] = None) -> Tuple[WeeklySlot, ...]:
        async with self._exclusive():
            records = await self._store.list_weekly_slots(teacher_id)
        self._weekly = tuple(reconciler.reconcile(records, sort_key=reconciler.weekly_sort_key))
        return self._weekly

    async def load_inventory(
        self,
        start_date: str,
        end_date: str,
        teacher_id: Optional[str] = None,
    ) -> Tuple[SlotInventory, ...]:
        async with self._exclusive():
            records = await self._store.list_slot_inventory(start_date, end_date, teacher_id)
        self._inventory = tuple(reconciler.reconcile(records))
        return self._inventory

    def _weekly_by_id(self, slot_id: str) -> WeeklySlot:
        for slot in self._weekly:
            if slot.id == slot_id:
                return slot
        raise RecordNotFoundError("Weekly slot not found")

    def _inventory_by_id(self, slot_id: str) -> SlotInventory:
        for slot in self._inventory:
            if slot.id == slot_id:
                return slot
        raise RecordNotFoundError("Slot not found")

    # weekly templates

    def weekly_overlaps(self, candidate: WeeklySlotDraft) -> List[WeeklySlotOverlap]:
        """Advisory overlaps of a candidate against the same teacher's active templates."""
        teacher_id = candidate.teacher_id
        if not teacher_id and candidate.id:
            teacher_id = next((s.teacher_id for s in self._weekly if s.id == candidate.id), None)
        siblings = [
            s
            for s in self._weekly
            if s.status == WeeklySlotStatus.ACTIVE and (not teacher_id or s.teacher_id == teacher_id)
        ]
        return detect_weekly_slot_overlaps(candidate, siblings)

    def _weekly_values(self, draft: WeeklySlotDraft, base: Optional[WeeklySlot] = None) -> dict:
        values = base.model_dump(exclude={"id"}) if base else {}
        changes = draft.model_dump(exclude_unset=True, exclude={"id"})
        if "day_of_week" in changes:
            day = normalize_day_of_week(changes["day_of_week"])
            if day is None:
                raise SlotValidationError(f"Unrecognized day of week: {changes['day_of_week']!r}")
            changes["day_of_week"] = DayOfWeek(day)
        values.update({k: v for k, v in changes.items() if v is not None})
        if not values.get("teacher_id"):
            raise SlotValidationError("teacher_id is required")
        if values.get("day_of_week") is None:
            raise SlotValidationError("day_of_week is required")
        _check_times(values.get("start_time"), values.get("end_time"))
        return values

    async def create_weekly_slot(self, draft: WeeklySlotDraft) -> WeeklySlotSaveResult:
        values = self._weekly_values(draft)
        values.setdefault("status", WeeklySlotStatus.ACTIVE)
        overlaps = self.weekly_overlaps(WeeklySlotDraft(**values))
        async with self._exclusive():
            created = await self._store.create_weekly_slot(values)
        self._weekly = reconciler.merge(self._weekly, [created], sort_key=reconciler.weekly_sort_key)
        if overlaps:
            logger.info("Weekly slot %s saved with %d overlapping template(s)", created.id, len(overlaps))
        return WeeklySlotSaveResult(slot=created, overlaps=overlaps)

    async def update_weekly_slot(self, slot_id: str, draft: WeeklySlotDraft) -> WeeklySlotSaveResult:
        existing = self._weekly_by_id(slot_id)
        values = self._weekly_values(draft, base=existing)
        overlaps = self.weekly_overlaps(WeeklySlotDraft(id=slot_id, **values))
        async with self._exclusive():
            updated = await self._store.update_weekly_slot(slot_id, values)
        self._weekly = reconciler.merge(self._weekly, [updated], sort_key=reconciler.weekly_sort_key)
        return WeeklySlotSaveResult(slot=updated, overlaps=overlaps)

    async def toggle_weekly_slot_status(self, slot_id: str) -> WeeklySlot:
        existing = self._weekly_by_id(slot_id)
        target = WeeklySlotStatus.PAUSED if existing.status == WeeklySlotStatus.ACTIVE else WeeklySlotStatus.ACTIVE
        async with self._exclusive():
            updated = await self._store.update_weekly_slot(slot_id, {"status": target})
        self._weekly = reconciler.merge(self._weekly, [updated], sort_key=reconciler.weekly_sort_key)
        return updated

    async def delete_weekly_slot(self, slot_id: str, confirmed: bool = False) -> None:
        self._weekly_by_id(slot_id)
        if not confirmed:
            raise ConfirmationRequiredError("Deleting a weekly slot requires confirmation")
        async with self._exclusive():
            await self._store.delete_weekly_slot(slot_id)
        self._weekly = reconciler.remove(self._weekly, slot_id)

    # one-off inventory

    def _inventory_candidate(self, draft: SlotInventoryDraft, base: Optional[SlotInventory] = None) -> SlotInventory:
        values = base.model_dump(exclude={"pending"}) if base else {"id": ""}
        values.update(draft.model_dump(exclude_unset=True, exclude={"id"}, exclude_none=True))
        for name in ("date", "start_time", "end_time", "teacher_id"):
            if not values.get(name):
                raise SlotValidationError(f"{name} is required")
        _check_date(values["date"])
        _check_times(values["start_time"], values["end_time"])
        return SlotInventory(**values)

    async def propose(self, draft: SlotInventoryDraft, record_id: Optional[str] = None) -> ConflictOutcome:
        """Run the conflict check for a proposed create (record_id None) or edit without committing."""
        base = self._inventory_by_id(record_id) if record_id else None
        candidate = self._inventory_candidate(draft, base)
        token = self._editor_token
        outcome = await self._resolver.check(
            candidate,
            self._inventory,
            record_id=record_id,
            linked_lesson_ids=list(base.lessons) if base else None,
        )
        if not self._is_current(token):
            raise StaleOperationError()
        return outcome

    async def _emit_override(self, slot: SlotInventory, advisory: List[ConflictItem]) -> bool:
        event = ConflictOverrideEvent(
            record_id=slot.id,
            teacher_id=slot.teacher_id,
            date=slot.date or "",
            conflict_summary=build_conflict_summary(advisory),
        )
        return await emit_override(self._audit_sink, event)

    async def _commit_checked(self, candidate: SlotInventory, record_id: Optional[str], write) -> InventorySaveResult:
        token = self._editor_token
        async with self._exclusive():
            outcome = await self._resolver.check(
                candidate,
                self._inventory,
                record_id=record_id,
                linked_lesson_ids=list(candidate.lessons) if record_id else None,
            )
            if not self._is_current(token):
                raise StaleOperationError()
            if outcome.is_blocked:
                raise BlockingConflictError(outcome.blocking)
            saved = await write()
        if self._is_current(token):
            self._inventory = reconciler.merge(self._inventory, [saved])
        else:
            logger.info("Editor moved on before slot %s was saved; not applying locally", saved.id)
        recorded = False
        if outcome.advisory:
            recorded = await self._emit_override(saved, outcome.advisory)
        return InventorySaveResult(
            slot=saved,
            advisory=outcome.advisory,
            override_recorded=recorded,
            check_failed=outcome.check_failed,
        )

    async def create_inventory_slot(self, draft: SlotInventoryDraft) -> InventorySaveResult:
        candidate = self._inventory_candidate(draft)
        values = candidate.model_dump(exclude={"id", "pending", "lessons"})
        values["status"] = SlotStatus.OPEN

        async def write():
            return await self._store.create_slot_inventory(values)

        return await self._commit_checked(candidate, None, write)

    async def update_inventory_slot(self, slot_id: str, draft: SlotInventoryDraft) -> InventorySaveResult:
        existing = self._inventory_by_id(slot_id)
        if existing.status == SlotStatus.CANCELED:
            raise InvalidTransitionError("A canceled slot cannot be edited")
        candidate = self._inventory_candidate(draft, base=existing)
        values = draft.model_dump(exclude_unset=True, exclude={"id"}, exclude_none=True)
        # Status is sent unchanged so the store never reads a field edit as a status change.
        values["status"] = existing.status

        async def write():
            return await self._store.update_slot_inventory(slot_id, values)

        return await self._commit_checked(candidate, slot_id, write)

    async def reserve_slot(self, slot_id: str, student_ids: Iterable[str]) -> SlotInventory:
        """open -> booked. The slot leaves the open set immediately and is restored if the store refuses."""
        existing = self._inventory_by_id(slot_id)
        students = [s for s in student_ids if s]
        if self._require_student and not students:
            raise SlotValidationError("Select at least one student to book this slot")
        self._check_transition(existing, SlotStatus.BOOKED)
        async with self._exclusive():
            provisional = existing.model_copy(
                update={"status": SlotStatus.BOOKED, "students": students, "pending": True}
            )
            self._inventory = reconciler.merge(self._inventory, [provisional])
            try:
                confirmed = await self._store.update_slot_inventory(
                    slot_id, {"status": SlotStatus.BOOKED, "students": students}
                )
            except Exception:
                self._inventory = reconciler.merge(self._inventory, [existing])
                raise
            self._inventory = reconciler.merge(self._inventory, [confirmed])
            await self._close_overlapping_open_slots(confirmed)
        return confirmed

    def _overlapping_open_slots(self, booked: SlotInventory) -> List[SlotInventory]:
        start = parse_time_to_minutes(booked.start_time)
        end = parse_time_to_minutes(booked.end_time)
        if start is None or end is None:
            return []
        hits: List[SlotInventory] = []
        for slot in self._inventory:
            if slot.id == booked.id or slot.status != SlotStatus.OPEN or slot.lessons or slot.pending:
                continue
            if slot.teacher_id != booked.teacher_id or slot.date != booked.date:
                continue
            s_start = parse_time_to_minutes(slot.start_time)
            s_end = parse_time_to_minutes(slot.end_time)
            if s_start is None or s_end is None:
                continue
            if intervals_overlap(start, end, s_start, s_end):
                hits.append(slot)
        return hits

    async def _close_overlapping_open_slots(self, booked: SlotInventory) -> List[SlotInventory]:
        """Mark open slots that overlap a newly booked one as booked so they cannot be offered again."""
        closed: List[SlotInventory] = []
        for slot in self._overlapping_open_slots(booked):
            try:
                closed.append(await self._store.update_slot_inventory(slot.id, {"status": SlotStatus.BOOKED}))
            except ServiceError as e:
                logger.warning("Could not close slot %s overlapping booked slot %s: %s", slot.id, booked.id, e.message)
        if closed:
            self._inventory = reconciler.merge(self._inventory, closed)
            logger.info("Closed %d open slot(s) overlapping booked slot %s", len(closed), booked.id)
        return closed

    async def reopen_for_cancelled_lesson(self, lesson_id: str) -> List[SlotInventory]:
        """
        Unlink a cancelled lesson from the loaded slots that reference it.

        A booked slot left with no lessons goes back to open. Slots whose
        update fails are logged and skipped. Returns the reopened slots.
        """
        linked = [s for s in self._inventory if lesson_id in s.lessons]
        updated: List[SlotInventory] = []
        reopened: List[SlotInventory] = []
        async with self._exclusive():
            for slot in linked:
                remaining = [other for other in slot.lessons if other != lesson_id]
                values = {"lessons": remaining, "status": slot.status}
                if not remaining and slot.status == SlotStatus.BOOKED:
                    values["status"] = SlotStatus.OPEN
                try:
                    saved = await self._store.update_slot_inventory(slot.id, values)
                except ServiceError as e:
                    logger.warning("Could not unlink lesson %s from slot %s: %s", lesson_id, slot.id, e.message)
                    continue
                updated.append(saved)
                if values["status"] != slot.status:
                    reopened.append(saved)
            if updated:
                self._inventory = reconciler.merge(self._inventory, updated)
        logger.info("Lesson %s unlinked from %d slot(s), %d reopened", lesson_id, len(updated), len(reopened))
        return reopened

    def _check_transition(self, slot: SlotInventory, target: SlotStatus) -> None:
        if slot.status not in INVENTORY_TRANSITIONS[target]:
            raise InvalidTransitionError(f"Cannot change slot from {slot.status.value} to {target.value}")

    async def _transition(self, slot_id: str, target: SlotStatus) -> SlotInventory:
        existing = self._inventory_by_id(slot_id)
        self._check_transition(existing, target)
        async with self._exclusive():
            updated = await self._store.update_slot_inventory(slot_id, {"status": target})
        self._inventory = reconciler.merge(self._inventory, [updated])
        return updated

    async def block_slot(self, slot_id: str) -> SlotInventory:
        return await self._transition(slot_id, SlotStatus.BLOCKED)

    async def unblock_slot(self, slot_id: str) -> SlotInventory:
        return await self._transition(slot_id, SlotStatus.OPEN)

    async def cancel_slot(self, slot_id: str, confirmed: bool = False) -> SlotInventory:
        existing = self._inventory_by_id(slot_id)
        self._check_transition(existing, SlotStatus.CANCELED)
        if not confirmed:
            raise ConfirmationRequiredError("Canceling a slot requires confirmation")
        return await self._transition(slot_id, SlotStatus.CANCELED)

    async def delete_inventory_slot(self, slot_id: str, confirmed: bool = False) -> None:
        self._inventory_by_id(slot_id)
        if not confirmed:
            raise ConfirmationRequiredError("Deleting a slot requires confirmation")
        async with self._exclusive():
            await self._store.delete_slot_inventory(slot_id)
        self._inventory = reconciler.remove(self._inventory, slot_id)

    # template materialization

    async def materialize(self, start_date: date, days_ahead: int = 14) -> InventoryPlan:
        """Create inventory for active templates over the window; existing slots are kept as they are."""
        generated = generate_inventory_from_templates(self._weekly, start_date, days_ahead)
        if not generated:
            return InventoryPlan()
        first = min(s.date for s in generated)
        last = max(s.date for s in generated)
        async with self._exclusive():
            existing = reconciler.reconcile(await self._store.list_slot_inventory(first, last))
            plan = plan_inventory_sync(generated, existing)
            created: List[SlotInventory] = []
            for slot in plan.to_create:
                created.append(await self._store.create_slot_inventory(slot.model_dump(exclude={"id", "pending"})))
        self._inventory = reconciler.merge(self._inventory, [*existing, *created])
        plan.to_create = created
        logger.info(
            "Materialized %d slot(s) from %s, skipped %d existing and %d overlapping",
            len(created),
            first,
            len(plan.duplicates),
            len(plan.overlapping),
        )
        return plan
