from datetime import date, datetime
from typing import Callable
import pytz
from frontdesk.core.config import settings

Clock = Callable[[], datetime]

# 0 = domingo .. 6 = sábado, the weekday numbering stored in practitioner_availability
WEEKDAY_NAMES_ES = ["domingo", "lunes", "martes", "miércoles", "jueves", "viernes", "sábado"]


def clinic_tz():
    return pytz.timezone(settings.CLINIC_TZ)


def utcnow() -> datetime:
    return datetime.now(pytz.UTC)


def now_local(clock: Clock = utcnow) -> datetime:
    """Current wall-clock time in the clinic timezone."""
    now = clock()
    if now.tzinfo is None:
        now = pytz.UTC.localize(now)
    return now.astimezone(clinic_tz())


def today_local(clock: Clock = utcnow) -> date:
    return now_local(clock).date()


def weekday_of(d: date) -> int:
    """Sunday-based weekday (0=Sunday .. 6=Saturday)."""
    return (d.weekday() + 1) % 7
