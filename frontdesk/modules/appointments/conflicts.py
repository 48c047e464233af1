"""
Block-level and sub-slot-level booking conflicts.

A "block" is one practitioner's (clinic, date, start_time); it holds up to five
sub-slots. Exclusive treatments claim the whole block; everything else only
claims its own sub-slot.
"""
import uuid
import datetime as dt
from dataclasses import dataclass
from typing import Iterable

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from frontdesk.core.slots import normalize_sub_slot, normalize_time
from frontdesk.modules.appointments.models import Appointment, AppointmentStatus
from frontdesk.modules.appointments.repository import AppointmentRepository
from frontdesk.modules.appointments.treatments import is_exclusive


@dataclass(frozen=True)
class Candidate:
    """A prospective appointment position, always held in canonical form."""

    clinic_id: uuid.UUID
    practitioner_id: uuid.UUID
    date: dt.date
    start_time: str
    sub_slot: int
    treatment_type: str
    id: uuid.UUID | None = None

    @classmethod
    def build(cls, clinic_id, practitioner_id, date, start_time, sub_slot, treatment_type, id=None) -> "Candidate":
        return cls(
            clinic_id=clinic_id,
            practitioner_id=practitioner_id,
            date=date,
            start_time=normalize_time(start_time),
            sub_slot=normalize_sub_slot(sub_slot),
            treatment_type=str(getattr(treatment_type, "value", treatment_type)).lower(),
            id=id,
        )

    @classmethod
    def from_appointment(cls, obj: Appointment) -> "Candidate":
        return cls.build(obj.clinic_id, obj.practitioner_id, obj.date, obj.start_time, obj.sub_slot, obj.treatment_type, obj.id)


@dataclass(frozen=True)
class ExclusiveConflict:
    appointment_id: uuid.UUID | None
    treatment_type: str
    start_time: str


@dataclass(frozen=True)
class ExclusivityResult:
    ok: bool
    conflict: ExclusiveConflict | None = None


def has_exclusive_conflict(candidate: Candidate, existing: Iterable[Candidate | Appointment]) -> ExclusivityResult:
    """
    `existing` must already be narrowed to the candidate's block with
    cancelled rows and the candidate itself removed. Any conflicting entry
    is a valid witness.
    """
    candidate_exclusive = is_exclusive(candidate.treatment_type)
    for other in existing:
        if candidate.id is not None and other.id == candidate.id:
            continue
        if candidate_exclusive or is_exclusive(other.treatment_type):
            return ExclusivityResult(ok=False, conflict=ExclusiveConflict(
                appointment_id=other.id,
                treatment_type=other.treatment_type,
                start_time=normalize_time(other.start_time),
            ))
    return ExclusivityResult(ok=True)


class ConflictChecker:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.repo = AppointmentRepository(session)

    async def check_exclusive(self, candidate: Candidate, exclude_id: uuid.UUID | None = None) -> ExclusivityResult:
        exclude_id = exclude_id or candidate.id
        block = await self.repo.in_block(candidate.clinic_id, candidate.practitioner_id, candidate.date, candidate.start_time, exclude_id=exclude_id)
        return has_exclusive_conflict(candidate, block)

    async def is_slot_taken(
        self,
        clinic_id: uuid.UUID,
        practitioner_id: uuid.UUID,
        on: dt.date,
        start_time: str,
        sub_slot: int,
        exclude_id: uuid.UUID | None = None,
    ) -> bool:
        cond = [
            Appointment.clinic_id == clinic_id,
            Appointment.practitioner_id == practitioner_id,
            Appointment.date == on,
            Appointment.start_time == normalize_time(start_time),
            Appointment.sub_slot == normalize_sub_slot(sub_slot),
            Appointment.status != AppointmentStatus.CANCELLED.value,
        ]
        if exclude_id is not None:
            cond.append(Appointment.id != exclude_id)
        res = await self.session.execute(select(Appointment.id).where(and_(*cond)).limit(1))
        return res.first() is not None
