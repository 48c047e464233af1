import uuid
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from frontdesk.core.clinic_time import Clock, utcnow
from frontdesk.core.errors import AdmissionRejected, InvalidStatusTransition, NotFound, SlotTakenConcurrently, ValidationFailed
from frontdesk.modules.appointments.admission import AdmissionDecision, AdmissionService
from frontdesk.modules.appointments.conflicts import Candidate
from frontdesk.modules.appointments.models import Appointment, AppointmentStatus
from frontdesk.modules.appointments.repository import AppointmentRepository, StatusHistoryRepository
from frontdesk.modules.appointments.schemas import AdmissionRequest, AppointmentCreate, AppointmentUpdate
from frontdesk.modules.events.outbox import OutboxService

logger = logging.getLogger(__name__)

VALID_NEXT = {
    AppointmentStatus.SCHEDULED.value: {"completed", "cancelled", "no_show"},
    AppointmentStatus.NO_SHOW.value: {"completed"},
    AppointmentStatus.COMPLETED.value: set(),
    AppointmentStatus.CANCELLED.value: set(),
}

# Fields that move an appointment to a different bookable position
SLOT_FIELDS = {"practitioner_id", "date", "start_time", "sub_slot", "treatment_type"}


@dataclass
class BookingResult:
    appointment: Appointment
    warnings: list[str] = field(default_factory=list)


@dataclass
class BulkItemResult:
    index: int
    appointment: Appointment | None = None
    code: str | None = None
    reason: str | None = None
    warnings: list[str] = field(default_factory=list)


class AppointmentService:
    def __init__(self, session: AsyncSession, admission: AdmissionService, clock: Clock = utcnow):
        self.session = session
        self.admission = admission
        self.clock = clock
        self.appts = AppointmentRepository(session)
        self.history = StatusHistoryRepository(session)
        self.outbox = OutboxService(session)

    async def check(self, payload: AdmissionRequest) -> AdmissionDecision:
        candidate = Candidate.build(
            payload.clinic_id, payload.practitioner_id, payload.date, payload.start_time,
            payload.sub_slot, payload.treatment_type, payload.exclude_id,
        )
        return await self.admission.decide(candidate)

    async def _admit(self, candidate: Candidate) -> AdmissionDecision:
        decision = await self.admission.decide(candidate)
        if not decision.admitted:
            raise AdmissionRejected(decision.reason or "Turno no disponible")
        return decision

    async def _guarded_write(self, candidate: Candidate, write: Callable[[], Awaitable[Appointment]]) -> Appointment:
        """
        Run `write` and commit. A uniqueness violation means another session
        took the slot after our checks passed; admission is re-run against the
        committed state so the caller gets a current reason.
        """
        try:
            obj = await write()
            await self.session.commit()
            return obj
        except IntegrityError:
            await self.session.rollback()
            logger.info(f"Slot {candidate.date} {candidate.start_time}/{candidate.sub_slot} for practitioner {candidate.practitioner_id} was taken concurrently")
            decision = await self.admission.decide(candidate)
            reason = decision.reason if not decision.admitted else (
                f"El sub-turno {candidate.sub_slot} de las {candidate.start_time} fue tomado por otra sesión"
            )
            raise SlotTakenConcurrently(reason)

    # ---- Appointments ----
    async def create(self, payload: AppointmentCreate, created_by: uuid.UUID | None = None) -> BookingResult:
        candidate = Candidate.build(
            payload.clinic_id, payload.practitioner_id, payload.date, payload.start_time,
            payload.sub_slot, payload.treatment_type,
        )
        decision = await self._admit(candidate)

        async def write() -> Appointment:
            obj = await self.appts.create(
                candidate.clinic_id,
                practitioner_id=candidate.practitioner_id,
                patient_id=payload.patient_id,
                date=candidate.date,
                start_time=candidate.start_time,
                sub_slot=candidate.sub_slot,
                treatment_type=candidate.treatment_type,
                status=AppointmentStatus.SCHEDULED.value,
                notes=payload.notes,
            )
            await self.history.record(obj.id, None, obj.status, created_by, self.clock())
            await self.outbox.enqueue(obj.clinic_id, "appointment.created", "appointment", obj.id, _slot_payload(obj))
            return obj

        obj = await self._guarded_write(candidate, write)
        return BookingResult(appointment=obj, warnings=decision.warnings)

    async def create_many(self, items: list[AppointmentCreate], created_by: uuid.UUID | None = None) -> list[BulkItemResult]:
        """Each item is admitted and committed on its own, so earlier items constrain later ones."""
        results = []
        for i, item in enumerate(items):
            try:
                booked = await self.create(item, created_by)
                results.append(BulkItemResult(index=i, appointment=booked.appointment, warnings=booked.warnings))
            except AdmissionRejected as e:
                results.append(BulkItemResult(index=i, code=e.code, reason=e.reason))
        created = sum(1 for r in results if r.appointment is not None)
        logger.info(f"Bulk booking: {created}/{len(items)} appointments created")
        return results

    async def update(self, appt_id: uuid.UUID, payload: AppointmentUpdate) -> BookingResult:
        obj = await self.get(appt_id)
        data = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None or k in ("patient_id", "notes")}
        if "treatment_type" in data:
            data["treatment_type"] = data["treatment_type"].value

        moves = {k for k in SLOT_FIELDS & data.keys() if data[k] != getattr(obj, k)}
        if moves and obj.status != AppointmentStatus.SCHEDULED.value:
            raise ValidationFailed(f"Cannot move a {obj.status} appointment")

        warnings: list[str] = []
        candidate = Candidate.build(
            obj.clinic_id,
            data.get("practitioner_id", obj.practitioner_id),
            data.get("date", obj.date),
            data.get("start_time", obj.start_time),
            data.get("sub_slot", obj.sub_slot),
            data.get("treatment_type", obj.treatment_type),
            obj.id,
        )
        if moves:
            warnings = (await self._admit(candidate)).warnings

        async def write() -> Appointment:
            for k, v in data.items():
                setattr(obj, k, v)
            await self.session.flush()
            await self.outbox.enqueue(obj.clinic_id, "appointment.updated", "appointment", obj.id, _slot_payload(obj))
            return obj

        return BookingResult(appointment=await self._guarded_write(candidate, write), warnings=warnings)

    async def change_status(self, appt_id: uuid.UUID, new_status: AppointmentStatus | str, changed_by: uuid.UUID | None = None) -> Appointment:
        obj = await self.get(appt_id)
        nxt = AppointmentStatus(new_status).value
        if nxt not in VALID_NEXT.get(obj.status, set()):
            raise InvalidStatusTransition(obj.status, nxt)
        prev = obj.status
        obj.status = nxt
        await self.history.record(obj.id, prev, nxt, changed_by, self.clock())
        await self.outbox.enqueue(obj.clinic_id, "appointment.status_changed", "appointment", obj.id, {"from": prev, "to": nxt})
        await self.session.commit()
        return obj

    async def delete(self, appt_id: uuid.UUID) -> None:
        obj = await self.get(appt_id)
        clinic_id, payload = obj.clinic_id, _slot_payload(obj)
        await self.appts.delete(obj)
        await self.outbox.enqueue(clinic_id, "appointment.deleted", "appointment", appt_id, payload)
        await self.session.commit()

    async def get(self, appt_id: uuid.UUID) -> Appointment:
        obj = await self.appts.get(appt_id)
        if not obj:
            raise NotFound("Appointment not found")
        return obj

    async def list(self, clinic_id: uuid.UUID, **filters):
        return await self.appts.list(clinic_id, **filters)

    async def status_history(self, appt_id: uuid.UUID):
        await self.get(appt_id)
        return await self.history.for_appointment(appt_id)


def _slot_payload(obj: Appointment) -> dict:
    return {
        "practitioner_id": str(obj.practitioner_id),
        "date": obj.date.isoformat(),
        "start_time": obj.start_time,
        "sub_slot": obj.sub_slot,
        "status": obj.status,
    }
