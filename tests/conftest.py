import asyncio
import itertools
from typing import AsyncGenerator, Dict, List, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tutorsched.api import dependencies
from tutorsched.core.exceptions import ConflictCheckUnavailable
from tutorsched.db.session import Base, get_db
from tutorsched.main import app
from tutorsched.scheduling.audit import MemoryAuditSink
from tutorsched.scheduling.conflicts import ConflictResolver
from tutorsched.scheduling.lifecycle import SlotLifecycleManager
from tutorsched.scheduling.schemas import ConflictCheckRequest, ConflictCheckResponse, Lesson, SlotInventory, WeeklySlot

TZ = "Asia/Jerusalem"


class FakeRecordStore:
    """In-memory stand-in for RecordStoreClient with the same method surface."""

    def __init__(self) -> None:
        self.weekly: Dict[str, WeeklySlot] = {}
        self.inventory: Dict[str, SlotInventory] = {}
        self.lessons: Dict[str, Lesson] = {}
        self.writes: List[tuple] = []
        self.fail_next_write: Optional[Exception] = None
        self.duplicate_reads = False
        self._ids = itertools.count(1)

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}{next(self._ids)}"

    def _maybe_fail(self) -> None:
        if self.fail_next_write is not None:
            error, self.fail_next_write = self.fail_next_write, None
            raise error

    async def list_weekly_slots(self, teacher_id: Optional[str] = None) -> List[WeeklySlot]:
        slots = [s for s in self.weekly.values() if not teacher_id or s.teacher_id == teacher_id]
        return slots + slots if self.duplicate_reads else slots

    async def create_weekly_slot(self, values: dict) -> WeeklySlot:
        self._maybe_fail()
        slot = WeeklySlot(**{**values, "id": self._next_id("ws")})
        self.weekly[slot.id] = slot
        self.writes.append(("create_weekly", slot.id, values))
        return slot

    async def update_weekly_slot(self, slot_id: str, values: dict) -> WeeklySlot:
        self._maybe_fail()
        slot = WeeklySlot(**{**self.weekly[slot_id].model_dump(), **values})
        self.weekly[slot_id] = slot
        self.writes.append(("update_weekly", slot_id, values))
        return slot

    async def delete_weekly_slot(self, slot_id: str) -> None:
        self._maybe_fail()
        del self.weekly[slot_id]
        self.writes.append(("delete_weekly", slot_id, None))

    async def list_slot_inventory(
        self, start_date: str, end_date: str, teacher_id: Optional[str] = None
    ) -> List[SlotInventory]:
        return [
            s
            for s in self.inventory.values()
            if start_date <= (s.date or "") <= end_date and (not teacher_id or s.teacher_id == teacher_id)
        ]

    async def create_slot_inventory(self, values: dict) -> SlotInventory:
        self._maybe_fail()
        slot = SlotInventory(**{**values, "id": self._next_id("si")})
        self.inventory[slot.id] = slot
        self.writes.append(("create_inventory", slot.id, values))
        return slot

    async def update_slot_inventory(self, slot_id: str, values: dict) -> SlotInventory:
        self._maybe_fail()
        slot = SlotInventory(**{**self.inventory[slot_id].model_dump(exclude={"pending"}), **values})
        self.inventory[slot_id] = slot
        self.writes.append(("update_inventory", slot_id, values))
        return slot

    async def delete_slot_inventory(self, slot_id: str) -> None:
        self._maybe_fail()
        del self.inventory[slot_id]
        self.writes.append(("delete_inventory", slot_id, None))

    async def list_lessons(self, start_date: str, end_date: str, teacher_id: Optional[str] = None) -> List[Lesson]:
        return [
            lesson
            for lesson in self.lessons.values()
            if start_date <= lesson.start[:10] <= end_date and (not teacher_id or lesson.teacher_id == teacher_id)
        ]

    def add_inventory(self, **fields) -> SlotInventory:
        slot = SlotInventory(**fields)
        self.inventory[slot.id] = slot
        return slot

    def add_lesson(self, **fields) -> Lesson:
        lesson = Lesson(**fields)
        self.lessons[lesson.id] = lesson
        return lesson


class FakeConflictChecker:
    """Returns a canned response. Set fail=True to simulate an unreachable endpoint."""

    def __init__(self) -> None:
        self.response = ConflictCheckResponse()
        self.fail = False
        self.requests: List[ConflictCheckRequest] = []
        self.gate: Optional[asyncio.Event] = None
        self.entered = asyncio.Event()

    async def check(self, request: ConflictCheckRequest) -> ConflictCheckResponse:
        self.requests.append(request)
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise ConflictCheckUnavailable("connection refused")
        return self.response


class BrokenAuditSink:
    async def record(self, event) -> None:
        raise RuntimeError("audit store is down")


@pytest.fixture()
def store() -> FakeRecordStore:
    return FakeRecordStore()


@pytest.fixture()
def checker() -> FakeConflictChecker:
    return FakeConflictChecker()


@pytest.fixture()
def audit_sink() -> MemoryAuditSink:
    return MemoryAuditSink()


@pytest.fixture()
def manager(store: FakeRecordStore, checker: FakeConflictChecker, audit_sink: MemoryAuditSink) -> SlotLifecycleManager:
    return SlotLifecycleManager(store, ConflictResolver(checker, TZ), audit_sink)


@pytest.fixture()
async def db_session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """Session factory over a temporary SQLite file with all tables created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'audit.db'}", echo=False, future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture()
async def client(
    store: FakeRecordStore,
    checker: FakeConflictChecker,
    audit_sink: MemoryAuditSink,
    db_session_factory: async_sessionmaker,
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app with the record store and checker replaced by fakes."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with db_session_factory() as session:
            yield session

    app.dependency_overrides[dependencies.get_record_store] = lambda: store
    app.dependency_overrides[dependencies.get_conflict_checker] = lambda: checker
    app.dependency_overrides[dependencies.get_audit_sink] = lambda: audit_sink
    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
    dependencies._workspaces.clear()
