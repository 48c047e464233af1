import uuid
from typing import Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from frontdesk.modules.availability.models import PractitionerAvailability

class AvailabilityRepository:
    def __init__(self, s: AsyncSession): self.s = s

    async def create_window(self, clinic_id: uuid.UUID, **data) -> PractitionerAvailability:
        obj = PractitionerAvailability(clinic_id=clinic_id, **data); self.s.add(obj); await self.s.flush(); return obj

    async def get_window(self, window_id: uuid.UUID) -> PractitionerAvailability | None:
        res = await self.s.execute(select(PractitionerAvailability).where(PractitionerAvailability.id == window_id))
        return res.scalar_one_or_none()

    async def list_windows(self, clinic_id: uuid.UUID, practitioner_id: uuid.UUID, weekday: int | None = None) -> Sequence[PractitionerAvailability]:
        q = select(PractitionerAvailability).where(
            PractitionerAvailability.clinic_id == clinic_id,
            PractitionerAvailability.practitioner_id == practitioner_id,
        )
        if weekday is not None:
            q = q.where(PractitionerAvailability.weekday == weekday)
        res = await self.s.execute(q.order_by(PractitionerAvailability.weekday, PractitionerAvailability.from_time))
        return res.scalars().all()

    async def has_any_window(self, clinic_id: uuid.UUID, practitioner_id: uuid.UUID) -> bool:
        res = await self.s.execute(select(PractitionerAvailability.id).where(
            PractitionerAvailability.clinic_id == clinic_id,
            PractitionerAvailability.practitioner_id == practitioner_id,
        ).limit(1))
        return res.first() is not None

    async def delete_window(self, obj: PractitionerAvailability):
        await self.s.delete(obj); await self.s.flush()

    async def delete_all_for(self, clinic_id: uuid.UUID, practitioner_id: uuid.UUID) -> int:
        res = await self.s.execute(delete(PractitionerAvailability).where(
            PractitionerAvailability.clinic_id == clinic_id,
            PractitionerAvailability.practitioner_id == practitioner_id,
        ))
        return res.rowcount or 0
