"""
Domain records of the scheduling engine.

These models are the ingestion boundary: remote records are validated into
them right after a fetch, and day-of-week / slot status values are brought to
their canonical form here so everything downstream sees a single format.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

from tutorsched.core.enums import ConflictEntity, ConflictSource, DayOfWeek, SlotStatus, SlotType, WeeklySlotStatus

from .normalizer import normalize_day_of_week, normalize_slot_status, normalize_time_string


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True


def _day_or_none(v: Any) -> Optional[int]:
    return normalize_day_of_week(v)


def _ids(v: Any) -> List[str]:
    """Linked-record fields come as a list of ids, a list of {id} dicts, a single id, or nothing."""
    if v is None or v == "":
        return []
    if not isinstance(v, (list, tuple)):
        v = [v]
    out: List[str] = []
    for item in v:
        if isinstance(item, dict):
            item = item.get("id")
        if item:
            out.append(str(item))
    return out


class WeeklySlot(CamelModel):
    """Recurring availability template. day_of_week is None when upstream sent an unknown day."""

    id: str
    teacher_id: str = ""
    day_of_week: Optional[DayOfWeek] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    type: SlotType = SlotType.PRIVATE
    is_fixed: bool = False
    reserved_for_ids: List[str] = Field(default_factory=list)
    status: WeeklySlotStatus = WeeklySlotStatus.ACTIVE

    @field_validator("day_of_week", mode="before")
    @classmethod
    def normalize_day(cls, v: Any) -> Optional[int]:
        return _day_or_none(v)

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def normalize_time(cls, v: Any) -> Optional[str]:
        return normalize_time_string(v)

    @field_validator("teacher_id", mode="before")
    @classmethod
    def first_teacher(cls, v: Any) -> str:
        ids = _ids(v)
        return ids[0] if ids else ""

    @field_validator("reserved_for_ids", mode="before")
    @classmethod
    def linked_ids(cls, v: Any) -> List[str]:
        return _ids(v)

    @field_validator("type", mode="before")
    @classmethod
    def default_type(cls, v: Any) -> Any:
        return v or SlotType.PRIVATE

    @field_validator("status", mode="before")
    @classmethod
    def default_status(cls, v: Any) -> Any:
        return v or WeeklySlotStatus.ACTIVE


class SlotInventory(CamelModel):
    """Concrete, date-specific bookable unit."""

    id: str
    teacher_id: str = ""
    date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    status: SlotStatus = SlotStatus.OPEN
    lessons: List[str] = Field(default_factory=list)
    students: List[str] = Field(default_factory=list)
    created_from: Optional[str] = None
    # Local only: set while an optimistic change waits for the store to confirm.
    pending: bool = Field(False, exclude=True)

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def normalize_time(cls, v: Any) -> Optional[str]:
        return normalize_time_string(v)

    @field_validator("date", mode="before")
    @classmethod
    def date_only(cls, v: Any) -> Optional[str]:
        if v is None or v == "":
            return None
        return str(v)[:10]

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v: Any) -> SlotStatus:
        return normalize_slot_status(v)

    @field_validator("teacher_id", mode="before")
    @classmethod
    def first_teacher(cls, v: Any) -> str:
        ids = _ids(v)
        return ids[0] if ids else ""

    @field_validator("lessons", "students", mode="before")
    @classmethod
    def linked_ids(cls, v: Any) -> List[str]:
        return _ids(v)

    @field_validator("created_from", mode="before")
    @classmethod
    def first_template(cls, v: Any) -> Optional[str]:
        ids = _ids(v)
        return ids[0] if ids else None


class Lesson(CamelModel):
    """Committed lesson as the record store reports it; start/end are ISO instants."""

    id: str
    teacher_id: str = ""
    student_name: Optional[str] = None
    start: str
    end: str
    status: str = ""

    @field_validator("teacher_id", mode="before")
    @classmethod
    def first_teacher(cls, v: Any) -> str:
        ids = _ids(v)
        return ids[0] if ids else ""


class ConflictItem(CamelModel):
    source: ConflictSource
    record_id: str
    start: str
    end: str
    label: str = ""
    meta: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_blocking(self) -> bool:
        return self.source == ConflictSource.LESSONS


class WeeklySlotOverlap(CamelModel):
    """The other slot of a detected weekly overlap."""

    slot_id: str
    day_of_week: DayOfWeek
    start_time: str
    end_time: str


class ConflictCheckRequest(CamelModel):
    entity: ConflictEntity = ConflictEntity.SLOT_INVENTORY
    record_id: Optional[str] = None
    linked_lesson_ids: Optional[List[str]] = None
    teacher_id: str
    date: str
    start: str
    end: str


class ConflictCheckResponse(CamelModel):
    has_conflicts: bool = False
    conflicts: List[ConflictItem] = Field(default_factory=list)


class ConflictOverrideEvent(CamelModel):
    """Audit record of an operator saving despite advisory conflicts."""

    record_id: Optional[str] = None
    entity: ConflictEntity = ConflictEntity.SLOT_INVENTORY
    teacher_id: str
    date: str
    conflict_summary: str = ""


class WeeklySlotDraft(CamelModel):
    """Proposed weekly template values. day_of_week is raw operator/upstream input."""

    id: Optional[str] = None
    teacher_id: Optional[str] = None
    day_of_week: Any = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    type: Optional[SlotType] = None
    is_fixed: Optional[bool] = None
    reserved_for_ids: Optional[List[str]] = None
    status: Optional[WeeklySlotStatus] = None


class SlotInventoryDraft(CamelModel):
    """Proposed one-off slot values. Status is changed only through explicit transitions."""

    id: Optional[str] = None
    teacher_id: Optional[str] = None
    date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    students: Optional[List[str]] = None
