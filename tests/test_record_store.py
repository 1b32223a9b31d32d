"""Record store and conflict check HTTP clients against httpx.MockTransport."""

import json

import httpx
import pytest

from tutorsched.clients.conflict_check import ConflictCheckClient
from tutorsched.clients.record_store import RecordStoreClient, weekly_slot_fields
from tutorsched.core.enums import ConflictSource, DayOfWeek, SlotStatus, WeeklySlotStatus
from tutorsched.core.exceptions import (
    ConflictCheckUnavailable,
    RecordNotFoundError,
    RemoteStoreError,
    RemoteWriteConflictError,
)
from tutorsched.scheduling.schemas import ConflictCheckRequest


def _client(handler) -> RecordStoreClient:
    return RecordStoreClient("http://store.test/api", token="secret", transport=httpx.MockTransport(handler))


def test_weekly_slot_fields_writes_one_based_day() -> None:
    fields = weekly_slot_fields(
        {
            "id": "w1",
            "teacher_id": "t1",
            "day_of_week": DayOfWeek.SUNDAY,
            "start_time": "10:00",
            "status": WeeklySlotStatus.ACTIVE,
            "end_time": None,
        }
    )
    assert fields == {"teacherId": "t1", "dayOfWeek": 1, "startTime": "10:00", "status": "active"}


@pytest.mark.asyncio
async def test_list_weekly_slots_normalizes_upstream_days() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/weekly-slots"
        assert request.url.params["teacherId"] == "t1"
        assert request.headers["Authorization"] == "Bearer secret"
        return httpx.Response(
            200,
            json={
                "records": [
                    {"id": "w1", "teacherId": ["t1"], "dayOfWeek": 7, "startTime": "10:00:00", "endTime": "11:00"},
                    {"id": "w2", "teacherId": "t1", "dayOfWeek": "שני", "startTime": "12:00", "endTime": "13:00"},
                    {"teacherId": "t1", "dayOfWeek": 2},
                ]
            },
        )

    client = _client(handler)
    slots = await client.list_weekly_slots("t1")
    await client.aclose()

    assert [s.id for s in slots] == ["w1", "w2"]
    assert slots[0].day_of_week == DayOfWeek.SATURDAY
    assert slots[0].teacher_id == "t1"
    assert slots[0].start_time == "10:00"
    assert slots[1].day_of_week == DayOfWeek.MONDAY


@pytest.mark.asyncio
async def test_create_weekly_slot_round_trips_day() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert body["dayOfWeek"] == 3
        return httpx.Response(201, json={"record": {"id": "w9", **body}})

    client = _client(handler)
    slot = await client.create_weekly_slot(
        {"teacher_id": "t1", "day_of_week": DayOfWeek.TUESDAY, "start_time": "09:00", "end_time": "10:00"}
    )
    await client.aclose()
    assert slot.id == "w9"
    assert slot.day_of_week == DayOfWeek.TUESDAY


@pytest.mark.asyncio
async def test_inventory_update_sends_camel_case_status() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "s1", "teacherId": "t1", "date": "2024-05-07", "status": "סגור"})

    client = _client(handler)
    slot = await client.update_slot_inventory("s1", {"status": SlotStatus.BOOKED, "students": ["st1"]})
    await client.aclose()

    assert seen == {"method": "PATCH", "path": "/api/slot-inventory/s1", "body": {"status": "booked", "students": ["st1"]}}
    assert slot.status == SlotStatus.BOOKED


@pytest.mark.asyncio
async def test_write_conflict_is_mapped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            409,
            json={
                "code": "CONFLICT_ERROR",
                "message": "Slot overlaps",
                "conflicts": {"lessons": [{"id": "l1", "studentName": "Dana"}], "openSlots": [{"id": "s2"}]},
            },
        )

    client = _client(handler)
    with pytest.raises(RemoteWriteConflictError) as exc:
        await client.create_slot_inventory({"teacher_id": "t1"})
    await client.aclose()

    assert exc.value.message == "Slot overlaps"
    items = exc.value.conflict_items()
    assert [(i.source, i.record_id) for i in items] == [
        (ConflictSource.LESSONS, "l1"),
        (ConflictSource.SLOT_INVENTORY, "s2"),
    ]


@pytest.mark.asyncio
async def test_not_found_and_server_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "DELETE":
            return httpx.Response(404, json={"message": "No such slot"})
        return httpx.Response(500, json={"error": {"message": "boom"}})

    client = _client(handler)
    with pytest.raises(RecordNotFoundError):
        await client.delete_slot_inventory("missing")
    with pytest.raises(RemoteStoreError) as exc:
        await client.list_lessons("2024-05-07", "2024-05-07")
    await client.aclose()
    assert exc.value.message == "boom"
    assert exc.value.status_code == 502


@pytest.mark.asyncio
async def test_transport_error_is_remote_store_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client = _client(handler)
    with pytest.raises(RemoteStoreError):
        await client.list_slot_inventory("2024-05-01", "2024-05-31")
    await client.aclose()


@pytest.mark.asyncio
async def test_delete_no_content() -> None:
    client = _client(lambda request: httpx.Response(204))
    assert await client.delete_weekly_slot("w1") is None
    await client.aclose()


def _check_request() -> ConflictCheckRequest:
    return ConflictCheckRequest(teacher_id="t1", date="2024-05-07", start="10:00", end="11:00", record_id="s1")


@pytest.mark.asyncio
async def test_conflict_check_client_posts_camel_case() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert body == {
            "entity": "slot_inventory",
            "recordId": "s1",
            "teacherId": "t1",
            "date": "2024-05-07",
            "start": "10:00",
            "end": "11:00",
        }
        return httpx.Response(
            200,
            json={
                "hasConflicts": True,
                "conflicts": [
                    {"source": "lessons", "recordId": "l1", "start": "2024-05-07T10:30:00+03:00", "end": "2024-05-07T11:00:00+03:00"}
                ],
            },
        )

    client = ConflictCheckClient("http://check.test/api/conflicts/check", transport=httpx.MockTransport(handler))
    response = await client.check(_check_request())
    await client.aclose()
    assert response.has_conflicts
    assert response.conflicts[0].is_blocking


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "respond",
    [
        lambda request: httpx.Response(500),
        lambda request: httpx.Response(200, content=b"not json"),
        lambda request: httpx.Response(200, json={"conflicts": [{"source": "nowhere"}]}),
    ],
)
async def test_conflict_check_failures_raise_unavailable(respond) -> None:
    client = ConflictCheckClient("http://check.test/api/conflicts/check", transport=httpx.MockTransport(respond))
    with pytest.raises(ConflictCheckUnavailable):
        await client.check(_check_request())
    await client.aclose()
