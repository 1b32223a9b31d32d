from datetime import date
from typing import List, Optional

from pydantic import Field

from tutorsched.core.enums import SlotType, WeeklySlotStatus
from tutorsched.scheduling.schemas import CamelModel, SlotInventory, WeeklySlot, WeeklySlotDraft, WeeklySlotOverlap


def api_day(day: Optional[int]) -> Optional[int]:
    """Canonical day (0 = Sunday) in the 1-7 numbering used on the wire."""
    return None if day is None else int(day) + 1


class WeeklySlotCreate(WeeklySlotDraft):
    """
    dayOfWeek accepts a day name (English or Hebrew) or a number. Numbers 1-7
    are read as 1 = Sunday; 0 is also Sunday.
    """


class WeeklySlotUpdate(WeeklySlotDraft):
    pass


class WeeklySlotResponse(CamelModel):
    """
    Outgoing weekly slot. dayOfWeek uses the same 1-7 numbering (1 = Sunday) the
    endpoints accept, so a slot read from the API can be sent back unchanged.
    """

    id: str
    teacher_id: str = ""
    day_of_week: Optional[int] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    type: SlotType = SlotType.PRIVATE
    is_fixed: bool = False
    reserved_for_ids: List[str] = Field(default_factory=list)
    status: WeeklySlotStatus = WeeklySlotStatus.ACTIVE

    @classmethod
    def from_slot(cls, slot: WeeklySlot) -> "WeeklySlotResponse":
        values = slot.model_dump()
        values["day_of_week"] = api_day(slot.day_of_week)
        return cls(**values)


class WeeklySlotOverlapResponse(CamelModel):
    slot_id: str
    day_of_week: int
    start_time: str
    end_time: str

    @classmethod
    def from_overlap(cls, overlap: WeeklySlotOverlap) -> "WeeklySlotOverlapResponse":
        return cls(
            slot_id=overlap.slot_id,
            day_of_week=api_day(overlap.day_of_week),
            start_time=overlap.start_time,
            end_time=overlap.end_time,
        )


class WeeklySlotSaveResponse(CamelModel):
    slot: WeeklySlotResponse
    overlaps: List[WeeklySlotOverlapResponse] = Field(default_factory=list)


class MaterializeRequest(CamelModel):
    start_date: date
    days_ahead: Optional[int] = Field(None, ge=1, le=90)


class MaterializeResponse(CamelModel):
    created: List[SlotInventory]
    skipped_existing: int
    skipped_overlapping: int
