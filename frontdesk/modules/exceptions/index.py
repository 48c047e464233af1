"""
Date-indexed view of schedule exceptions and holidays.

`build_index` is a pure function over the rows fetched for a visible date
range; callers rebuild it whenever the rows change instead of mutating it.
"""
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Iterable

from frontdesk.core.slots import normalize_time
from frontdesk.modules.exceptions.models import ExceptionType, Holiday, ScheduleException

DEFAULT_CLOSED_REASON = "Día cerrado"
DEFAULT_BLOCK_REASON = "Profesional bloqueado"
DEFAULT_RANGE_BLOCK_REASON = "Profesional bloqueado en este horario"


@dataclass(frozen=True)
class ExceptionEntry:
    id: uuid.UUID
    date: date
    type: ExceptionType
    reason: str | None = None
    practitioner_id: uuid.UUID | None = None
    from_time: str | None = None
    to_time: str | None = None
    is_holiday: bool = False

    @property
    def has_time_pair(self) -> bool:
        return bool(self.from_time and self.to_time)

    @classmethod
    def from_exception(cls, row: ScheduleException) -> "ExceptionEntry":
        return cls(
            id=row.id,
            date=row.date,
            type=ExceptionType(row.type),
            reason=row.reason,
            practitioner_id=row.practitioner_id,
            from_time=normalize_time(row.from_time) if row.from_time else None,
            to_time=normalize_time(row.to_time) if row.to_time else None,
        )

    @classmethod
    def from_holiday(cls, row: Holiday) -> "ExceptionEntry":
        # a holiday behaves exactly like a clinic closure named after it
        return cls(id=row.id, date=row.date, type=ExceptionType.CLINIC_CLOSED, reason=row.name, is_holiday=True)


@dataclass(frozen=True)
class BlockResult:
    blocked: bool
    reason: str | None = None


NOT_BLOCKED = BlockResult(blocked=False)


def build_index(exceptions: Iterable[ScheduleException], holidays: Iterable[Holiday]) -> dict[date, list[ExceptionEntry]]:
    index: dict[date, list[ExceptionEntry]] = defaultdict(list)
    for row in exceptions:
        index[row.date].append(ExceptionEntry.from_exception(row))
    for row in holidays:
        index[row.date].append(ExceptionEntry.from_holiday(row))
    return dict(index)


class ExceptionIndex:
    def __init__(self, entries: dict[date, list[ExceptionEntry]] | None = None):
        self.entries = entries or {}

    @classmethod
    def from_rows(cls, exceptions: Iterable[ScheduleException], holidays: Iterable[Holiday]) -> "ExceptionIndex":
        return cls(build_index(exceptions, holidays))

    def for_date(self, on: date) -> list[ExceptionEntry]:
        return list(self.entries.get(on, []))

    def is_blocked(self, on: date, time: str | None = None, practitioner_id: uuid.UUID | None = None) -> BlockResult:
        entries = self.entries.get(on)
        if not entries:
            return NOT_BLOCKED

        # clinic closures and holidays dominate, whatever the entry order
        for entry in entries:
            if entry.type == ExceptionType.CLINIC_CLOSED or entry.is_holiday:
                return BlockResult(blocked=True, reason=entry.reason or DEFAULT_CLOSED_REASON)

        if practitioner_id is None:
            return NOT_BLOCKED

        hhmm = normalize_time(time) if time is not None else None
        for entry in entries:
            if entry.type != ExceptionType.PRACTITIONER_BLOCK or entry.practitioner_id != practitioner_id:
                continue
            if not entry.has_time_pair:
                return BlockResult(blocked=True, reason=entry.reason or DEFAULT_BLOCK_REASON)
            if hhmm is not None and entry.from_time <= hhmm < entry.to_time:
                return BlockResult(blocked=True, reason=entry.reason or DEFAULT_RANGE_BLOCK_REASON)

        # extended_hours entries never block
        return NOT_BLOCKED
