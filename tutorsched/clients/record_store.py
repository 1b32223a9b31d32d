"""
HTTP client for the remote record store that holds weekly slots, slot
inventory and lessons.

Records are parsed into the domain models as soon as they arrive; records
that do not validate are skipped with a warning rather than failing the
whole fetch.
"""

import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

import httpx
from fastapi import status
from pydantic import BaseModel, ValidationError

from tutorsched.core.exceptions import RecordNotFoundError, RemoteStoreError, RemoteWriteConflictError
from tutorsched.scheduling.schemas import Lesson, SlotInventory, WeeklySlot

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def weekly_slot_fields(values: Dict[str, Any]) -> Dict[str, Any]:
    """
    Wire representation of a weekly slot write. day_of_week is canonical
    (0 = Sunday) internally and is written in 1-7 numbering (1 = Sunday).
    """
    fields: Dict[str, Any] = {}
    for key, value in values.items():
        if key == "day_of_week":
            fields["dayOfWeek"] = None if value is None else int(value) + 1
        elif key == "id" or value is None:
            continue
        else:
            fields[_camel(key)] = getattr(value, "value", value)
    return fields


def inventory_fields(values: Dict[str, Any]) -> Dict[str, Any]:
    fields: Dict[str, Any] = {}
    for key, value in values.items():
        if key in ("id", "pending") or value is None:
            continue
        fields[_camel(key)] = getattr(value, "value", value)
    return fields


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(p.title() for p in rest)


def _records(payload: Any) -> List[Dict[str, Any]]:
    if isinstance(payload, dict):
        payload = payload.get("records", [])
    return payload if isinstance(payload, list) else []


def _record(payload: Any) -> Dict[str, Any]:
    if isinstance(payload, dict) and isinstance(payload.get("record"), dict):
        return payload["record"]
    return payload if isinstance(payload, dict) else {}


def _parse_many(model: Type[ModelT], payload: Any) -> List[ModelT]:
    parsed: List[ModelT] = []
    for raw in _records(payload):
        try:
            parsed.append(model.model_validate(raw))
        except ValidationError as e:
            logger.warning("Skipping malformed %s record %s: %s", model.__name__, raw.get("id"), e.errors()[:1])
    return parsed


class RecordStoreClient:
    """Async client for the record store's REST contract."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise RemoteStoreError(f"Record store request failed: {e}") from e

        if response.status_code == status.HTTP_204_NO_CONTENT:
            return None
        try:
            body = response.json() if response.content else None
        except ValueError:
            body = None

        if response.status_code == status.HTTP_409_CONFLICT or (
            isinstance(body, dict) and body.get("code") == "CONFLICT_ERROR"
        ):
            body = body or {}
            conflicts = body.get("conflicts")
            if not isinstance(conflicts, dict):
                conflicts = {}
            raise RemoteWriteConflictError(
                body.get("message") or "The record store rejected the write because of a conflict",
                lessons=conflicts.get("lessons"),
                open_slots=conflicts.get("openSlots"),
            )
        if response.status_code == status.HTTP_404_NOT_FOUND:
            raise RecordNotFoundError(_message(body, response, "Record not found"))
        if response.is_error:
            raise RemoteStoreError(_message(body, response, "Record store error"))
        return body

    async def list_weekly_slots(self, teacher_id: Optional[str] = None) -> List[WeeklySlot]:
        params = {"teacherId": teacher_id} if teacher_id else None
        return _parse_many(WeeklySlot, await self._request("GET", "/weekly-slots", params=params))

    async def create_weekly_slot(self, values: Dict[str, Any]) -> WeeklySlot:
        body = await self._request("POST", "/weekly-slots", json=weekly_slot_fields(values))
        return WeeklySlot.model_validate(_record(body))

    async def update_weekly_slot(self, slot_id: str, values: Dict[str, Any]) -> WeeklySlot:
        body = await self._request("PATCH", f"/weekly-slots/{slot_id}", json=weekly_slot_fields(values))
        return WeeklySlot.model_validate(_record(body))

    async def delete_weekly_slot(self, slot_id: str) -> None:
        await self._request("DELETE", f"/weekly-slots/{slot_id}")

    async def list_slot_inventory(
        self,
        start_date: str,
        end_date: str,
        teacher_id: Optional[str] = None,
    ) -> List[SlotInventory]:
        params = {"start": start_date, "end": end_date}
        if teacher_id:
            params["teacherId"] = teacher_id
        return _parse_many(SlotInventory, await self._request("GET", "/slot-inventory", params=params))

    async def create_slot_inventory(self, values: Dict[str, Any]) -> SlotInventory:
        body = await self._request("POST", "/slot-inventory", json=inventory_fields(values))
        return SlotInventory.model_validate(_record(body))

    async def update_slot_inventory(self, slot_id: str, values: Dict[str, Any]) -> SlotInventory:
        body = await self._request("PATCH", f"/slot-inventory/{slot_id}", json=inventory_fields(values))
        return SlotInventory.model_validate(_record(body))

    async def delete_slot_inventory(self, slot_id: str) -> None:
        await self._request("DELETE", f"/slot-inventory/{slot_id}")

    async def list_lessons(
        self,
        start_date: str,
        end_date: str,
        teacher_id: Optional[str] = None,
    ) -> List[Lesson]:
        params = {"start": start_date, "end": end_date}
        if teacher_id:
            params["teacherId"] = teacher_id
        return _parse_many(Lesson, await self._request("GET", "/lessons", params=params))


def _message(body: Any, response: httpx.Response, fallback: str) -> str:
    if isinstance(body, dict):
        msg = body.get("message") or body.get("error")
        if isinstance(msg, dict):
            msg = msg.get("message")
        if msg:
            return str(msg)
    return f"{fallback} ({response.status_code})"
