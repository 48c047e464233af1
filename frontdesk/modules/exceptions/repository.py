import uuid
from datetime import date
from typing import Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_
from frontdesk.modules.exceptions.models import ScheduleException, Holiday

class ExceptionRepository:
    def __init__(self, s: AsyncSession): self.s = s

    async def create(self, clinic_id: uuid.UUID, **data) -> ScheduleException:
        obj = ScheduleException(clinic_id=clinic_id, **data); self.s.add(obj); await self.s.flush(); return obj

    async def get(self, exception_id: uuid.UUID) -> ScheduleException | None:
        res = await self.s.execute(select(ScheduleException).where(ScheduleException.id == exception_id))
        return res.scalar_one_or_none()

    async def list_range(self, clinic_id: uuid.UUID, start: date, end: date) -> Sequence[ScheduleException]:
        res = await self.s.execute(select(ScheduleException).where(
            ScheduleException.clinic_id == clinic_id,
            ScheduleException.date >= start,
            ScheduleException.date <= end,
        ).order_by(ScheduleException.date, ScheduleException.from_time))
        return res.scalars().all()

    async def delete(self, obj: ScheduleException):
        await self.s.delete(obj); await self.s.flush()

class HolidayRepository:
    def __init__(self, s: AsyncSession): self.s = s

    async def create(self, **data) -> Holiday:
        obj = Holiday(**data); self.s.add(obj); await self.s.flush(); return obj

    async def get(self, holiday_id: uuid.UUID) -> Holiday | None:
        res = await self.s.execute(select(Holiday).where(Holiday.id == holiday_id))
        return res.scalar_one_or_none()

    async def list_range(self, clinic_id: uuid.UUID | None, start: date | None = None, end: date | None = None) -> Sequence[Holiday]:
        # clinic-specific rows plus the ones shared by every clinic
        q = select(Holiday)
        if clinic_id is not None:
            q = q.where(or_(Holiday.clinic_id == clinic_id, Holiday.clinic_id.is_(None)))
        else:
            q = q.where(Holiday.clinic_id.is_(None))
        if start is not None:
            q = q.where(Holiday.date >= start)
        if end is not None:
            q = q.where(Holiday.date <= end)
        res = await self.s.execute(q.order_by(Holiday.date))
        return res.scalars().all()

    async def delete(self, obj: Holiday):
        await self.s.delete(obj); await self.s.flush()
