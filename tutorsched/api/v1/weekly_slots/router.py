from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from tutorsched.api.dependencies import get_workspace
from tutorsched.core.config import settings
from tutorsched.core.exceptions import ServiceError
from tutorsched.scheduling.lifecycle import SlotLifecycleManager
from tutorsched.scheduling.schemas import WeeklySlotDraft

from .schemas import (
    MaterializeRequest,
    MaterializeResponse,
    WeeklySlotCreate,
    WeeklySlotOverlapResponse,
    WeeklySlotResponse,
    WeeklySlotSaveResponse,
    WeeklySlotUpdate,
)

router = APIRouter(prefix="/api/v1/weekly-slots", tags=["weekly-slots"])


@router.get("", response_model=List[WeeklySlotResponse])
async def list_weekly_slots(
    teacher_id: Optional[str] = Query(None, alias="teacherId"),
    workspace: SlotLifecycleManager = Depends(get_workspace),
) -> List[WeeklySlotResponse]:
    """Load weekly templates from the record store into the session, sorted by day then start time."""
    try:
        slots = await workspace.load_weekly_slots(teacher_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return [WeeklySlotResponse.from_slot(s) for s in slots]


@router.post("/overlaps", response_model=List[WeeklySlotOverlapResponse])
async def preview_overlaps(
    payload: WeeklySlotDraft,
    workspace: SlotLifecycleManager = Depends(get_workspace),
) -> List[WeeklySlotOverlapResponse]:
    """Overlaps of a draft against the loaded active templates. Nothing is saved."""
    return [WeeklySlotOverlapResponse.from_overlap(o) for o in workspace.weekly_overlaps(payload)]


@router.post("", response_model=WeeklySlotSaveResponse, status_code=status.HTTP_201_CREATED)
async def create_weekly_slot(
    payload: WeeklySlotCreate,
    workspace: SlotLifecycleManager = Depends(get_workspace),
) -> WeeklySlotSaveResponse:
    """Create a weekly template. Overlaps with other templates are returned as warnings and do not block."""
    try:
        result = await workspace.create_weekly_slot(payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return WeeklySlotSaveResponse(
        slot=WeeklySlotResponse.from_slot(result.slot),
        overlaps=[WeeklySlotOverlapResponse.from_overlap(o) for o in result.overlaps],
    )


@router.put("/{slot_id}", response_model=WeeklySlotSaveResponse)
async def update_weekly_slot(
    slot_id: str,
    payload: WeeklySlotUpdate,
    workspace: SlotLifecycleManager = Depends(get_workspace),
) -> WeeklySlotSaveResponse:
    try:
        result = await workspace.update_weekly_slot(slot_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return WeeklySlotSaveResponse(
        slot=WeeklySlotResponse.from_slot(result.slot),
        overlaps=[WeeklySlotOverlapResponse.from_overlap(o) for o in result.overlaps],
    )


@router.post("/{slot_id}/toggle-status", response_model=WeeklySlotResponse)
async def toggle_weekly_slot_status(
    slot_id: str,
    workspace: SlotLifecycleManager = Depends(get_workspace),
) -> WeeklySlotResponse:
    """Flip a template between active and paused."""
    try:
        slot = await workspace.toggle_weekly_slot_status(slot_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return WeeklySlotResponse.from_slot(slot)


@router.delete("/{slot_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_weekly_slot(
    slot_id: str,
    confirm: bool = False,
    workspace: SlotLifecycleManager = Depends(get_workspace),
) -> Response:
    """Delete a template. Requires confirm=true."""
    try:
        await workspace.delete_weekly_slot(slot_id, confirmed=confirm)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/materialize", response_model=MaterializeResponse)
async def materialize_inventory(
    payload: MaterializeRequest,
    workspace: SlotLifecycleManager = Depends(get_workspace),
) -> MaterializeResponse:
    """Generate slot inventory from the loaded active templates. Existing and overlapping slots are skipped."""
    days_ahead = payload.days_ahead or settings.materialize_days_ahead
    try:
        plan = await workspace.materialize(payload.start_date, days_ahead)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return MaterializeResponse(
        created=plan.to_create,
        skipped_existing=len(plan.duplicates),
        skipped_overlapping=len(plan.overlapping),
    )
