from enum import Enum, IntEnum


class DayOfWeek(IntEnum):
    """Canonical day of week. 0 = Sunday .. 6 = Saturday."""

    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6


class SlotType(str, Enum):
    PRIVATE = "private"
    PAIR = "pair"
    GROUP = "group"


class WeeklySlotStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"


class SlotStatus(str, Enum):
    OPEN = "open"
    BOOKED = "booked"
    BLOCKED = "blocked"
    CANCELED = "canceled"


class ConflictSource(str, Enum):
    LESSONS = "lessons"
    SLOT_INVENTORY = "slot_inventory"


class ConflictEntity(str, Enum):
    SLOT_INVENTORY = "slot_inventory"
