"""
Canonical time-of-day and sub-slot values.

Rows written by older clients carry times such as "08:00:00", "8:0" or "0930"
and 0-based sub-slots. Everything read from the store or from a request goes
through these helpers so the rest of the code can compare plain "HH:mm"
strings and 1..5 integers.
"""
import re
from datetime import datetime, time, timedelta

MIN_SUB_SLOT = 1
MAX_SUB_SLOT = 5
_LEGACY_SUB_SLOTS = (0, MAX_SUB_SLOT - 1)

_DIGITS = re.compile(r"\d+")


def _clamp(value: int, lo: int, hi: int) -> int:
    return max(lo, min(hi, value))


def normalize_time(value) -> str:
    """
    Return `value` as "HH:mm", hours clamped to 0-23 and minutes to 0-59.

    Accepts `datetime.time`, `datetime.timedelta` (offset from midnight, as some
    drivers return TIME columns) or a loose string. Seconds are dropped.
    Unparseable input yields "00:00".
    """
    if isinstance(value, datetime):
        value = value.time()
    if isinstance(value, time):
        return f"{value.hour:02d}:{value.minute:02d}"
    if isinstance(value, timedelta):
        total = int(value.total_seconds()) // 60
        return f"{_clamp(total // 60, 0, 23):02d}:{_clamp(total % 60, 0, 59):02d}"
    if not isinstance(value, str):
        return "00:00"

    groups = _DIGITS.findall(value)
    if not groups:
        return "00:00"

    if len(groups) >= 2:
        hours, minutes = int(groups[0]), int(groups[1])
    else:
        run = groups[0]
        if len(run) <= 2:
            hours, minutes = int(run), 0
        elif len(run) == 3:
            # "930" -> 9:30
            hours, minutes = int(run[0]), int(run[1:])
        else:
            # "0930", "093000"
            hours, minutes = int(run[:2]), int(run[2:4])

    return f"{_clamp(hours, 0, 23):02d}:{_clamp(minutes, 0, 59):02d}"


def normalize_sub_slot(value) -> int:
    """
    Canonical 1..5 sub-slot.

    0 and 4 only occur as legacy 0-based values (the last 0-based position
    is 4), so they shift up to 1 and 5. 1, 2, 3 and 5 mean the same thing in
    both numberings and pass through. Anything else falls back to 1.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        return MIN_SUB_SLOT
    if value in _LEGACY_SUB_SLOTS:
        return value + 1
    if MIN_SUB_SLOT <= value <= MAX_SUB_SLOT:
        return value
    return MIN_SUB_SLOT


def to_minutes(hhmm: str) -> int:
    hours, minutes = normalize_time(hhmm).split(":")
    return int(hours) * 60 + int(minutes)


def add_minutes(hhmm: str, minutes: int) -> str:
    total = (to_minutes(hhmm) + minutes) % (24 * 60)
    return f"{total // 60:02d}:{total % 60:02d}"


def generate_time_slots(workday_start: str, workday_end: str, slot_minutes: int) -> list[str]:
    """Slot start times from workday start to end, both inclusive. Only used to draw grids."""
    if slot_minutes <= 0:
        raise ValueError("slot_minutes must be positive")
    current = to_minutes(workday_start)
    end = to_minutes(workday_end)
    slots = []
    while current <= end:
        slots.append(f"{current // 60:02d}:{current % 60:02d}")
        current += slot_minutes
    return slots
