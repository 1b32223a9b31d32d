"""
Canonical forms for the day-of-week, time-of-day and slot-status values that
arrive from the record store in several upstream formats.

Nothing here raises on bad input: unrecognized values come back as None
(or the documented default) and callers skip the comparison.
"""

import logging
from datetime import date, datetime
from typing import Any, Optional, Union

import pytz

from tutorsched.core.enums import DayOfWeek, SlotStatus

logger = logging.getLogger(__name__)

HEBREW_DAY_NAMES = {
    "ראשון": DayOfWeek.SUNDAY,
    "שני": DayOfWeek.MONDAY,
    "שלישי": DayOfWeek.TUESDAY,
    "רביעי": DayOfWeek.WEDNESDAY,
    "חמישי": DayOfWeek.THURSDAY,
    "שישי": DayOfWeek.FRIDAY,
    "שבת": DayOfWeek.SATURDAY,
}

ENGLISH_DAY_NAMES = {
    "sunday": DayOfWeek.SUNDAY,
    "monday": DayOfWeek.MONDAY,
    "tuesday": DayOfWeek.TUESDAY,
    "wednesday": DayOfWeek.WEDNESDAY,
    "thursday": DayOfWeek.THURSDAY,
    "friday": DayOfWeek.FRIDAY,
    "saturday": DayOfWeek.SATURDAY,
}

_SLOT_STATUS_ALIASES = {
    "פתוח": SlotStatus.OPEN,
    "open": SlotStatus.OPEN,
    "סגור": SlotStatus.BOOKED,
    "closed": SlotStatus.BOOKED,
    "booked": SlotStatus.BOOKED,
    "מבוטל": SlotStatus.CANCELED,
    "canceled": SlotStatus.CANCELED,
    "cancelled": SlotStatus.CANCELED,
    'חסום ע"י מנהל': SlotStatus.BLOCKED,
    "חסום": SlotStatus.BLOCKED,
    "blocked": SlotStatus.BLOCKED,
}


def _from_number(num: int) -> Optional[int]:
    # 1-7 numbering is checked first, so 1..6 are always read as 1-based.
    if 1 <= num <= 7:
        return num - 1
    if num == 0:
        return 0
    return None


def normalize_day_of_week(value: Any) -> Optional[int]:
    """
    Convert a day-of-week value to the canonical 0-6 form (0 = Sunday).

    Accepts a DayOfWeek member (returned as is), an int or numeric string in
    either 1-7 or 0-6 numbering, or an English/Hebrew day name.
    Returns None for anything it cannot place.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, DayOfWeek):
        return int(value)
    if isinstance(value, int):
        return _from_number(value)
    if isinstance(value, float):
        if value != value:
            return None
        return _from_number(int(value))
    if isinstance(value, str):
        trimmed = value.strip()
        if not trimmed:
            return None
        try:
            return _from_number(int(trimmed))
        except ValueError:
            pass
        if trimmed in HEBREW_DAY_NAMES:
            return int(HEBREW_DAY_NAMES[trimmed])
        english = ENGLISH_DAY_NAMES.get(trimmed.lower())
        if english is not None:
            return int(english)
        return None
    return None


def parse_time_to_minutes(hhmm: Any) -> Optional[int]:
    """Minutes since midnight for "HH:MM" (missing minutes count as 0). None when malformed."""
    if not isinstance(hhmm, str) or not hhmm.strip():
        return None
    parts = hhmm.strip().split(":")
    try:
        hours = int(parts[0])
        minutes = int(parts[1]) if len(parts) > 1 and parts[1] != "" else 0
    except ValueError:
        return None
    return hours * 60 + minutes


def normalize_time_string(value: Any) -> Optional[str]:
    """Trim "HH:MM:SS" or ISO datetimes down to "HH:MM"; pass other strings through."""
    if value is None:
        return None
    s = str(value).strip()
    if not s:
        return None
    if "T" in s:
        return s[11:16]
    if len(s) >= 5 and s[2] == ":":
        return s[:5]
    return s


def normalize_slot_status(raw: Any) -> SlotStatus:
    """Map any Hebrew/English status string to SlotStatus. Unknown values default to open."""
    if raw is None:
        return SlotStatus.OPEN
    if isinstance(raw, SlotStatus):
        return raw
    status = _SLOT_STATUS_ALIASES.get(str(raw).strip())
    if status is None:
        status = _SLOT_STATUS_ALIASES.get(str(raw).strip().lower(), SlotStatus.OPEN)
    return status


def day_of_week_for_date(d: Union[date, str]) -> DayOfWeek:
    if isinstance(d, str):
        d = date.fromisoformat(d)
    # date.weekday() is Monday=0
    return DayOfWeek((d.weekday() + 1) % 7)


def _timezone(tz_name: str):
    try:
        return pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        logger.warning("Unknown timezone %r, using UTC", tz_name)
        return pytz.UTC


def to_instant(day: Union[date, str], hhmm: str, tz_name: str) -> Optional[datetime]:
    """Localize a wall-clock date + "HH:MM" to an aware datetime. None when either part is malformed."""
    minutes = parse_time_to_minutes(hhmm)
    if minutes is None:
        return None
    try:
        if isinstance(day, str):
            day = date.fromisoformat(day)
        naive = datetime(day.year, day.month, day.day, minutes // 60, minutes % 60)
    except ValueError:
        return None
    return _timezone(tz_name).localize(naive)


def parse_instant(value: Union[str, datetime], tz_name: Optional[str] = None) -> Optional[datetime]:
    """
    Parse an ISO instant (a trailing Z is accepted). None when unparseable.

    A value without an offset is wall-clock time; when tz_name is given it is
    localized to that zone, otherwise it comes back naive.
    """
    if isinstance(value, datetime):
        parsed = value
    elif not isinstance(value, str) or not value.strip():
        return None
    else:
        s = value.strip()
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(s)
        except ValueError:
            return None
    if parsed.tzinfo is None and tz_name:
        return _timezone(tz_name).localize(parsed)
    return parsed
