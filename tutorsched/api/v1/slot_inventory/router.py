from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from tutorsched.api.dependencies import get_workspace
from tutorsched.core.exceptions import ServiceError
from tutorsched.scheduling.lifecycle import InventorySaveResult, SlotLifecycleManager
from tutorsched.scheduling.schemas import SlotInventory

from .schemas import (
    ConflictOutcomeResponse,
    ProposeRequest,
    ReserveRequest,
    SlotInventoryCreate,
    SlotInventorySaveResponse,
    SlotInventoryUpdate,
)

router = APIRouter(prefix="/api/v1/slot-inventory", tags=["slot-inventory"])


def _save_response(result: InventorySaveResult) -> SlotInventorySaveResponse:
    return SlotInventorySaveResponse(
        slot=result.slot,
        advisory_conflicts=result.advisory,
        override_recorded=result.override_recorded,
        check_failed=result.check_failed,
    )


@router.get("", response_model=List[SlotInventory])
async def list_slot_inventory(
    start_date: str = Query(..., alias="startDate"),
    end_date: str = Query(..., alias="endDate"),
    teacher_id: Optional[str] = Query(None, alias="teacherId"),
    workspace: SlotLifecycleManager = Depends(get_workspace),
) -> List[SlotInventory]:
    """Load the inventory window [startDate, endDate] into the session."""
    try:
        return list(await workspace.load_inventory(start_date, end_date, teacher_id))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get("/open", response_model=List[SlotInventory])
async def list_open_slots(workspace: SlotLifecycleManager = Depends(get_workspace)) -> List[SlotInventory]:
    """Open slots of the loaded window. Slots with a reservation awaiting confirmation are left out."""
    return list(workspace.open_slots)


@router.post("/propose", response_model=ConflictOutcomeResponse)
async def propose_slot(
    payload: ProposeRequest,
    workspace: SlotLifecycleManager = Depends(get_workspace),
) -> ConflictOutcomeResponse:
    """Run the conflict check for a proposed slot without saving it."""
    draft = payload.model_dump(exclude_unset=True, exclude={"record_id"})
    try:
        outcome = await workspace.propose(SlotInventoryCreate(**draft), record_id=payload.record_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return ConflictOutcomeResponse(
        blocking=outcome.blocking,
        advisory=outcome.advisory,
        check_failed=outcome.check_failed,
    )


@router.put("/editor/{slot_id}", status_code=status.HTTP_204_NO_CONTENT)
async def open_editor(slot_id: str, workspace: SlotLifecycleManager = Depends(get_workspace)) -> Response:
    """Mark the slot as the one being edited. Results still pending for another slot are discarded."""
    workspace.open_record(slot_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/editor", status_code=status.HTTP_204_NO_CONTENT)
async def close_editor(workspace: SlotLifecycleManager = Depends(get_workspace)) -> Response:
    workspace.close_record()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("", response_model=SlotInventorySaveResponse, status_code=status.HTTP_201_CREATED)
async def create_slot(
    payload: SlotInventoryCreate,
    workspace: SlotLifecycleManager = Depends(get_workspace),
) -> SlotInventorySaveResponse:
    """
    Create a one-off open slot.

    Overlapping lessons refuse the save (409 BLOCKING_CONFLICT). Overlapping
    slots are returned as advisoryConflicts and an override audit event is recorded.
    """
    try:
        result = await workspace.create_inventory_slot(payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return _save_response(result)


@router.put("/{slot_id}", response_model=SlotInventorySaveResponse)
async def update_slot(
    slot_id: str,
    payload: SlotInventoryUpdate,
    workspace: SlotLifecycleManager = Depends(get_workspace),
) -> SlotInventorySaveResponse:
    try:
        result = await workspace.update_inventory_slot(slot_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return _save_response(result)


@router.post("/lessons/{lesson_id}/reopen", response_model=List[SlotInventory])
async def reopen_for_cancelled_lesson(
    lesson_id: str,
    workspace: SlotLifecycleManager = Depends(get_workspace),
) -> List[SlotInventory]:
    """Unlink a cancelled lesson from the loaded slots; booked slots left without lessons reopen."""
    try:
        return await workspace.reopen_for_cancelled_lesson(lesson_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.post("/{slot_id}/reserve", response_model=SlotInventory)
async def reserve_slot(
    slot_id: str,
    payload: ReserveRequest,
    workspace: SlotLifecycleManager = Depends(get_workspace),
) -> SlotInventory:
    try:
        return await workspace.reserve_slot(slot_id, payload.student_ids)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.post("/{slot_id}/block", response_model=SlotInventory)
async def block_slot(slot_id: str, workspace: SlotLifecycleManager = Depends(get_workspace)) -> SlotInventory:
    try:
        return await workspace.block_slot(slot_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.post("/{slot_id}/unblock", response_model=SlotInventory)
async def unblock_slot(slot_id: str, workspace: SlotLifecycleManager = Depends(get_workspace)) -> SlotInventory:
    try:
        return await workspace.unblock_slot(slot_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.post("/{slot_id}/cancel", response_model=SlotInventory)
async def cancel_slot(
    slot_id: str,
    confirm: bool = False,
    workspace: SlotLifecycleManager = Depends(get_workspace),
) -> SlotInventory:
    """Cancel a slot. Requires confirm=true."""
    try:
        return await workspace.cancel_slot(slot_id, confirmed=confirm)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.delete("/{slot_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_slot(
    slot_id: str,
    confirm: bool = False,
    workspace: SlotLifecycleManager = Depends(get_workspace),
) -> Response:
    """Delete a slot. Requires confirm=true."""
    try:
        await workspace.delete_inventory_slot(slot_id, confirmed=confirm)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
