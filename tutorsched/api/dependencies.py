import logging
from collections import OrderedDict
from typing import Optional

from fastapi import Depends, Header

from tutorsched.clients.conflict_check import ConflictCheckClient
from tutorsched.clients.record_store import RecordStoreClient
from tutorsched.core.config import settings
from tutorsched.db.session import AsyncSessionLocal
from tutorsched.scheduling.audit import DatabaseAuditSink
from tutorsched.scheduling.conflicts import ConflictResolver
from tutorsched.scheduling.lifecycle import SlotLifecycleManager

_record_store: Optional[RecordStoreClient] = None
_conflict_checker: Optional[ConflictCheckClient] = None
_audit_sink: Optional[DatabaseAuditSink] = None

logger = logging.getLogger(__name__)

# One lifecycle manager per operator session, keyed by X-Admin-Session, least recently used first.
_workspaces: "OrderedDict[str, SlotLifecycleManager]" = OrderedDict()


def get_record_store() -> RecordStoreClient:
    global _record_store
    if _record_store is None:
        _record_store = RecordStoreClient(
            settings.record_store_url,
            token=settings.record_store_token,
            timeout=settings.request_timeout_seconds,
        )
    return _record_store


def get_conflict_checker() -> ConflictCheckClient:
    global _conflict_checker
    if _conflict_checker is None:
        _conflict_checker = ConflictCheckClient(
            settings.conflict_check_url,
            timeout=settings.request_timeout_seconds,
        )
    return _conflict_checker


def get_audit_sink() -> DatabaseAuditSink:
    global _audit_sink
    if _audit_sink is None:
        _audit_sink = DatabaseAuditSink(AsyncSessionLocal)
    return _audit_sink


def get_workspace(
    x_admin_session: str = Header("default"),
    store: RecordStoreClient = Depends(get_record_store),
    checker: ConflictCheckClient = Depends(get_conflict_checker),
    audit_sink: DatabaseAuditSink = Depends(get_audit_sink),
) -> SlotLifecycleManager:
    """
    Resolve the calling operator's lifecycle manager, creating it on first use.

    At most MAX_ADMIN_SESSIONS managers are kept; the least recently used idle
    one is dropped to make room.
    """
    workspace = _workspaces.get(x_admin_session)
    if workspace is not None:
        _workspaces.move_to_end(x_admin_session)
    else:
        workspace = SlotLifecycleManager(
            store,
            ConflictResolver(checker, settings.schedule_timezone),
            audit_sink,
            require_student=settings.require_student_for_booking,
        )
        _workspaces[x_admin_session] = workspace
        _evict_idle_workspaces(keep=x_admin_session)
    return workspace


def _evict_idle_workspaces(keep: str) -> None:
    while len(_workspaces) > max(settings.max_admin_sessions, 1):
        idle = next((key for key, ws in _workspaces.items() if key != keep and not ws.in_flight), None)
        if idle is None:
            break
        del _workspaces[idle]
        logger.info("Dropped idle admin session %s", idle)


async def close_clients() -> None:
    global _record_store, _conflict_checker
    if _record_store is not None:
        await _record_store.aclose()
        _record_store = None
    if _conflict_checker is not None:
        await _conflict_checker.aclose()
        _conflict_checker = None
    _workspaces.clear()
