from typing import List, Optional

from pydantic import Field

from tutorsched.scheduling.schemas import CamelModel, ConflictItem, SlotInventory, SlotInventoryDraft


class SlotInventoryCreate(SlotInventoryDraft):
    pass


class SlotInventoryUpdate(SlotInventoryDraft):
    pass


class ProposeRequest(SlotInventoryDraft):
    record_id: Optional[str] = None


class ConflictOutcomeResponse(CamelModel):
    blocking: Optional[List[ConflictItem]] = None
    advisory: List[ConflictItem] = Field(default_factory=list)
    check_failed: bool = False


class SlotInventorySaveResponse(CamelModel):
    slot: SlotInventory
    advisory_conflicts: List[ConflictItem] = Field(default_factory=list)
    override_recorded: bool = False
    check_failed: bool = False


class ReserveRequest(CamelModel):
    student_ids: List[str] = Field(default_factory=list)
