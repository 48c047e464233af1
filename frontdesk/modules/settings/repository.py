import uuid
from typing import Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from frontdesk.modules.settings.models import ClinicSettings

DEFAULTS = {
    "min_slot_minutes": 30,
    "workday_start": "08:00",
    "workday_end": "19:00",
    "auto_mark_no_show": True,
    "auto_mark_no_show_time": "00:00",
}

class ClinicSettingsRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, clinic_id: uuid.UUID) -> ClinicSettings | None:
        res = await self.session.execute(select(ClinicSettings).where(ClinicSettings.clinic_id == clinic_id))
        return res.scalar_one_or_none()

    async def create(self, clinic_id: uuid.UUID, **data) -> ClinicSettings:
        obj = ClinicSettings(clinic_id=clinic_id, **{**DEFAULTS, **data})
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def list_all(self) -> Sequence[ClinicSettings]:
        res = await self.session.execute(select(ClinicSettings))
        return res.scalars().all()
