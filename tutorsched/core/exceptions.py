from typing import Any, Dict, List, Optional

from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def detail(self) -> Any:
        return self.message


class SlotValidationError(ServiceError):
    """A required field is missing or inconsistent. Raised before any I/O."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class RecordNotFoundError(ServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class InvalidTransitionError(ServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class ConfirmationRequiredError(ServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_428_PRECONDITION_REQUIRED)


class OperationInFlightError(ServiceError):
    def __init__(self, message: str = "Another operation is still in progress for this session") -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class StaleOperationError(ServiceError):
    """The open record changed while a request was pending; its result was discarded."""

    def __init__(self, message: str = "The edited record was closed before the request finished") -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class RemoteStoreError(ServiceError):
    def __init__(self, message: str, status_code: int = status.HTTP_502_BAD_GATEWAY) -> None:
        super().__init__(message, status_code)


class BlockingConflictError(ServiceError):
    """Proposed time overlaps committed lessons; the save is refused."""

    def __init__(self, conflicts: List[Any]) -> None:
        self.conflicts = list(conflicts)
        super().__init__(_blocking_message(self.conflicts), status.HTTP_409_CONFLICT)

    @property
    def detail(self) -> Dict[str, Any]:
        return {
            "code": "BLOCKING_CONFLICT",
            "message": self.message,
            "conflicts": [c.model_dump(by_alias=True, mode="json") for c in self.conflicts],
        }


class RemoteWriteConflictError(ServiceError):
    """409 / CONFLICT_ERROR returned by the record store on a write."""

    def __init__(
        self,
        message: str,
        lessons: Optional[List[Dict[str, Any]]] = None,
        open_slots: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)
        self.lessons = lessons or []
        self.open_slots = open_slots or []

    def conflict_items(self) -> List[Any]:
        from tutorsched.scheduling.conflicts import conflict_items_from_payload

        return conflict_items_from_payload(self.lessons, self.open_slots)

    @property
    def detail(self) -> Dict[str, Any]:
        return {
            "code": "CONFLICT_ERROR",
            "message": self.message,
            "conflicts": [c.model_dump(by_alias=True, mode="json") for c in self.conflict_items()],
        }


class ConflictCheckUnavailable(Exception):
    """The proactive conflict check could not produce an answer."""


def _blocking_message(conflicts: List[Any]) -> str:
    parts = []
    for c in conflicts:
        meta = getattr(c, "meta", None) or {}
        student = meta.get("studentName") or getattr(c, "label", "") or "Unnamed"
        when = f"{meta.get('date', '')} {meta.get('startTime', '')}".strip()
        duration = meta.get("durationMinutes")
        detail = f"{student} - {when}" if when else student
        if duration is not None:
            detail += f" ({duration} min)"
        parts.append(detail)
    noun = "lesson" if len(conflicts) == 1 else "lessons"
    return f"Cannot save: the time overlaps {len(conflicts)} existing {noun}: " + ", ".join(parts)
