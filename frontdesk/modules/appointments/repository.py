import uuid
import datetime as dt
from typing import Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_
from frontdesk.modules.appointments.models import Appointment, AppointmentStatus, AppointmentStatusHistory

class AppointmentRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, clinic_id: uuid.UUID, **data) -> Appointment:
        obj = Appointment(clinic_id=clinic_id, **data)
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def get(self, appt_id: uuid.UUID) -> Appointment | None:
        res = await self.session.execute(select(Appointment).where(Appointment.id == appt_id))
        return res.scalar_one_or_none()

    async def list(
        self,
        clinic_id: uuid.UUID,
        *,
        date_from: dt.date | None = None,
        date_to: dt.date | None = None,
        practitioner_id: uuid.UUID | None = None,
        status: str | None = None,
        limit: int = 200,
        offset: int = 0,
    ) -> Sequence[Appointment]:
        cond = [Appointment.clinic_id == clinic_id]
        if date_from:
            cond.append(Appointment.date >= date_from)
        if date_to:
            cond.append(Appointment.date <= date_to)
        if practitioner_id:
            cond.append(Appointment.practitioner_id == practitioner_id)
        if status:
            cond.append(Appointment.status == status)
        q = (
            select(Appointment)
            .where(and_(*cond))
            .order_by(Appointment.date, Appointment.start_time, Appointment.sub_slot)
            .limit(limit)
            .offset(offset)
        )
        res = await self.session.execute(q)
        return res.scalars().all()

    async def in_block(self, clinic_id: uuid.UUID, practitioner_id: uuid.UUID, on: dt.date, start_time: str, exclude_id: uuid.UUID | None = None) -> Sequence[Appointment]:
        """Live (non-cancelled) appointments sharing one practitioner time block."""
        cond = [
            Appointment.clinic_id == clinic_id,
            Appointment.practitioner_id == practitioner_id,
            Appointment.date == on,
            Appointment.start_time == start_time,
            Appointment.status != AppointmentStatus.CANCELLED.value,
        ]
        if exclude_id is not None:
            cond.append(Appointment.id != exclude_id)
        res = await self.session.execute(select(Appointment).where(and_(*cond)).order_by(Appointment.sub_slot))
        return res.scalars().all()

    async def delete(self, obj: Appointment):
        await self.session.delete(obj)
        await self.session.flush()


class StatusHistoryRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def record(self, appointment_id: uuid.UUID, old_status: str | None, new_status: str, changed_by: uuid.UUID | None, changed_at: dt.datetime) -> AppointmentStatusHistory:
        obj = AppointmentStatusHistory(
            appointment_id=appointment_id,
            old_status=old_status,
            new_status=new_status,
            changed_by=changed_by,
            changed_at=changed_at,
        )
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def for_appointment(self, appointment_id: uuid.UUID) -> Sequence[AppointmentStatusHistory]:
        res = await self.session.execute(
            select(AppointmentStatusHistory)
            .where(AppointmentStatusHistory.appointment_id == appointment_id)
            .order_by(AppointmentStatusHistory.changed_at)
        )
        return res.scalars().all()
