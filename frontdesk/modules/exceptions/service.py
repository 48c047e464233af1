import uuid
import logging
from datetime import date, timedelta
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from frontdesk.core.config import settings
from frontdesk.core.errors import NotFound, ValidationFailed
from frontdesk.core.slots import to_minutes
from frontdesk.modules.appointments.models import Appointment, AppointmentStatus
from frontdesk.modules.events.outbox import OutboxService
from frontdesk.modules.exceptions.holidays import bundled_holidays
from frontdesk.modules.exceptions.models import ExceptionType, ScheduleException, Holiday
from frontdesk.modules.exceptions.repository import ExceptionRepository, HolidayRepository
from frontdesk.modules.exceptions.schemas import ExceptionCreate, ExceptionUpdate, HolidayCreate, HolidayUpdate

logger = logging.getLogger(__name__)

# longest date_to range accepted in one request
MAX_RANGE_DAYS = 366


def validate_shape(type_: ExceptionType, practitioner_id: uuid.UUID | None, from_time: str | None, to_time: str | None) -> None:
    if (from_time is None) != (to_time is None):
        raise ValidationFailed("from_time and to_time must be given together")
    if from_time is not None and to_minutes(from_time) >= to_minutes(to_time):
        raise ValidationFailed(f"Time range {from_time}–{to_time} ends before it starts")
    if type_ == ExceptionType.CLINIC_CLOSED:
        if practitioner_id is not None or from_time is not None:
            raise ValidationFailed("A clinic closure covers the whole day and takes no practitioner or times")
    elif type_ == ExceptionType.PRACTITIONER_BLOCK:
        if practitioner_id is None:
            raise ValidationFailed("A practitioner block needs a practitioner")
    elif type_ == ExceptionType.EXTENDED_HOURS:
        if from_time is None:
            raise ValidationFailed("Extended hours need from_time and to_time")


class ScheduleExceptionService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.repo = ExceptionRepository(session)
        self.holidays = HolidayRepository(session)
        self.outbox = OutboxService(session)

    # ---- Exceptions ----
    async def create_exception(self, payload: ExceptionCreate, created_by: uuid.UUID | None = None) -> list[ScheduleException]:
        validate_shape(payload.type, payload.practitioner_id, payload.from_time, payload.to_time)
        last = payload.date_to or payload.date
        if last < payload.date:
            raise ValidationFailed("date_to is before date")
        if (last - payload.date).days >= MAX_RANGE_DAYS:
            raise ValidationFailed(f"Exception ranges are limited to {MAX_RANGE_DAYS} days")

        rows = []
        day = payload.date
        while day <= last:
            rows.append(await self.repo.create(
                payload.clinic_id,
                practitioner_id=payload.practitioner_id,
                date=day,
                type=payload.type.value,
                from_time=payload.from_time,
                to_time=payload.to_time,
                reason=payload.reason,
                created_by=created_by,
            ))
            day += timedelta(days=1)

        await self.outbox.enqueue(
            payload.clinic_id, "schedule_exception.created", "schedule_exception", rows[0].id,
            {"dates": [r.date.isoformat() for r in rows], "type": payload.type.value},
        )
        await self.session.commit()

        # bookings made before the exception existed stay in place
        if payload.type != ExceptionType.EXTENDED_HOURS:
            affected = 0
            for r in rows:
                affected += await self.count_affected(payload.clinic_id, r.date, payload.type, payload.practitioner_id)
            if affected:
                logger.info(f"New {payload.type.value} for clinic {payload.clinic_id} overlaps {affected} scheduled appointments")
        return rows

    async def update_exception(self, exception_id: uuid.UUID, payload: ExceptionUpdate) -> ScheduleException:
        obj = await self.get_exception(exception_id)
        data = payload.model_dump(exclude_unset=True)
        type_ = data.get("type", ExceptionType(obj.type))
        practitioner_id = data.get("practitioner_id", obj.practitioner_id)
        from_time = data.get("from_time", obj.from_time)
        to_time = data.get("to_time", obj.to_time)
        validate_shape(type_, practitioner_id, from_time, to_time)

        obj.type = type_.value
        obj.practitioner_id = practitioner_id
        obj.from_time = from_time
        obj.to_time = to_time
        if "reason" in data:
            obj.reason = data["reason"]
        await self.outbox.enqueue(obj.clinic_id, "schedule_exception.updated", "schedule_exception", obj.id, {"date": obj.date.isoformat()})
        await self.session.commit()
        return obj

    async def delete_exception(self, exception_id: uuid.UUID) -> None:
        obj = await self.get_exception(exception_id)
        clinic_id, on = obj.clinic_id, obj.date
        await self.repo.delete(obj)
        await self.outbox.enqueue(clinic_id, "schedule_exception.deleted", "schedule_exception", exception_id, {"date": on.isoformat()})
        await self.session.commit()

    async def get_exception(self, exception_id: uuid.UUID) -> ScheduleException:
        obj = await self.repo.get(exception_id)
        if not obj:
            raise NotFound("Schedule exception not found")
        return obj

    async def list_exceptions(self, clinic_id: uuid.UUID, start: date, end: date):
        return await self.repo.list_range(clinic_id, start, end)

    async def count_affected(self, clinic_id: uuid.UUID, on: date, type_: ExceptionType, practitioner_id: uuid.UUID | None = None) -> int:
        """How many scheduled appointments fall on a day an exception would block."""
        q = select(func.count()).select_from(Appointment).where(
            Appointment.clinic_id == clinic_id,
            Appointment.date == on,
            Appointment.status == AppointmentStatus.SCHEDULED.value,
        )
        if type_ == ExceptionType.PRACTITIONER_BLOCK and practitioner_id is not None:
            q = q.where(Appointment.practitioner_id == practitioner_id)
        res = await self.session.execute(q)
        return int(res.scalar() or 0)

    # ---- Holidays ----
    async def create_holiday(self, payload: HolidayCreate) -> Holiday:
        obj = await self.holidays.create(**payload.model_dump())
        await self.outbox.enqueue(obj.clinic_id, "holiday.created", "holiday", obj.id, {"date": obj.date.isoformat(), "name": obj.name})
        await self.session.commit()
        return obj

    async def update_holiday(self, holiday_id: uuid.UUID, payload: HolidayUpdate) -> Holiday:
        obj = await self.get_holiday(holiday_id)
        for k, v in payload.model_dump(exclude_unset=True).items():
            if v is not None:
                setattr(obj, k, v)
        await self.outbox.enqueue(obj.clinic_id, "holiday.updated", "holiday", obj.id, {"date": obj.date.isoformat(), "name": obj.name})
        await self.session.commit()
        return obj

    async def delete_holiday(self, holiday_id: uuid.UUID) -> None:
        obj = await self.get_holiday(holiday_id)
        clinic_id, on = obj.clinic_id, obj.date
        await self.holidays.delete(obj)
        await self.outbox.enqueue(clinic_id, "holiday.deleted", "holiday", holiday_id, {"date": on.isoformat()})
        await self.session.commit()

    async def get_holiday(self, holiday_id: uuid.UUID) -> Holiday:
        obj = await self.holidays.get(holiday_id)
        if not obj:
            raise NotFound("Holiday not found")
        return obj

    async def list_holidays(self, clinic_id: uuid.UUID | None, start: date | None = None, end: date | None = None):
        return await self.holidays.list_range(clinic_id, start, end)

    async def import_holidays(self, clinic_id: uuid.UUID | None, year: int | None = None) -> tuple[int, int]:
        """Load the bundled national holidays; dates that already have one are skipped."""
        candidates = bundled_holidays(year)
        if not candidates:
            return 0, 0
        existing = await self.holidays.list_range(clinic_id, candidates[0][0], candidates[-1][0])
        taken = {h.date for h in existing}

        imported = skipped = 0
        for on, name in candidates:
            if on in taken:
                skipped += 1
                continue
            await self.holidays.create(clinic_id=clinic_id, date=on, name=name, country_code=settings.HOLIDAY_COUNTRY_CODE)
            taken.add(on)
            imported += 1

        if imported:
            await self.outbox.enqueue(clinic_id, "holiday.imported", "holiday", f"import-{year or 'all'}", {"imported": imported})
        await self.session.commit()
        logger.info(f"Imported {imported} holidays for clinic {clinic_id} (skipped {skipped})")
        return imported, skipped
